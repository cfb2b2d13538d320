"""
Authentication tests.

Verifies:
- Customer self-registration returns a usable token
- Login / logout / me
- Password rules and password change revoking other sessions
"""

import pytest

from conftest import PASSWORD, auth_headers, get_auth_token


def _register(client, **fields):
    payload = {
        'email': 'new.customer@test.local',
        'password': 'Secret123',
        'first_name': 'สมหญิง',
        'last_name': 'ใจดี',
        'phone': '0812345678',
    }
    payload.update(fields)
    return client.post('/api/auth/register', json=payload)


class TestRegister:

    def test_register_customer(self, client, db_session):
        response = _register(client, email='New.Customer@Test.local')
        assert response.status_code == 201
        assert response.json['user']['email'] == 'new.customer@test.local'
        assert response.json['user']['role'] == 'customer'

        me = client.get('/api/auth/me', headers=auth_headers(response.json['token']))
        assert me.status_code == 200
        assert me.json['user']['email'] == 'new.customer@test.local'

    def test_role_cannot_be_chosen(self, client, db_session):
        response = _register(client, role='admin')
        assert response.status_code == 201
        assert response.json['user']['role'] == 'customer'

    def test_duplicate_email(self, client, customer_user):
        response = _register(client, email=customer_user.email)
        assert response.status_code == 409
        assert response.json['code'] == 'EMAIL_EXISTS'

    @pytest.mark.parametrize('password', ['short1', 'longpassword', '1234567890'])
    def test_weak_password(self, client, db_session, password):
        response = _register(client, password=password)
        assert response.status_code == 400
        assert response.json['code'] == 'WEAK_PASSWORD'

    @pytest.mark.parametrize('fields', [
        {'email': 'not-an-email'},
        {'phone': '08-1234'},
        {'first_name': ''},
        {'first_name': 42},
        {'email': 12345},
        {'password': 12345678},
    ])
    def test_invalid_fields(self, client, db_session, fields):
        response = _register(client, **fields)
        assert response.status_code == 400


class TestLogin:

    def test_login(self, client, customer_user):
        response = client.post('/api/auth/login', json={'email': customer_user.email, 'password': PASSWORD})
        assert response.status_code == 200
        assert response.json['token']
        assert response.json['user']['id'] == customer_user.id

    def test_wrong_password(self, client, customer_user):
        response = client.post('/api/auth/login', json={'email': customer_user.email, 'password': 'Wrong12345'})
        assert response.status_code == 401
        assert response.json['code'] == 'INVALID_CREDENTIALS'

    def test_unknown_email_same_error(self, client, db_session):
        response = client.post('/api/auth/login', json={'email': 'nobody@test.local', 'password': PASSWORD})
        assert response.status_code == 401
        assert response.json['code'] == 'INVALID_CREDENTIALS'

    def test_missing_fields(self, client, db_session):
        response = client.post('/api/auth/login', json={'email': 'a@b.co'})
        assert response.status_code == 400

    @pytest.mark.parametrize('body,status,code', [
        ({'email': 123, 'password': 'Password123'}, 400, 'VALIDATION_ERROR'),
        ({'email': 'customer@test.local', 'password': 12345678}, 401, 'INVALID_CREDENTIALS'),
    ])
    def test_non_text_credentials(self, client, customer_user, body, status, code):
        response = client.post('/api/auth/login', json=body)
        assert response.status_code == status
        assert response.json['code'] == code

    def test_inactive_account(self, client, customer_user, db_session):
        customer_user.status = 'inactive'
        db_session.commit()
        response = client.post('/api/auth/login', json={'email': customer_user.email, 'password': PASSWORD})
        assert response.status_code == 403
        assert response.json['code'] == 'ACCOUNT_INACTIVE'


class TestSessions:

    def test_logout_revokes_token(self, client, customer_headers):
        assert client.post('/api/auth/logout', headers=customer_headers).status_code == 200
        response = client.get('/api/auth/me', headers=customer_headers)
        assert response.status_code == 401
        assert response.json['code'] == 'INVALID_TOKEN'

    def test_garbage_token(self, client, db_session):
        response = client.get('/api/auth/me', headers=auth_headers('not-a-real-token'))
        assert response.status_code == 401

    def test_password_change_revokes_other_sessions(self, client, customer_user):
        first = auth_headers(get_auth_token(client, customer_user.email, PASSWORD))
        second = auth_headers(get_auth_token(client, customer_user.email, PASSWORD))

        response = client.put('/api/users/password', headers=first, json={
            'current_password': PASSWORD,
            'new_password': 'NewSecret456',
        })
        assert response.status_code == 200

        assert client.get('/api/auth/me', headers=first).status_code == 200
        assert client.get('/api/auth/me', headers=second).status_code == 401
        assert get_auth_token(client, customer_user.email, 'NewSecret456')

    def test_password_change_wrong_current(self, client, customer_headers):
        response = client.put('/api/users/password', headers=customer_headers, json={
            'current_password': 'Wrong12345',
            'new_password': 'NewSecret456',
        })
        assert response.status_code == 400
        assert response.json['code'] == 'INVALID_CREDENTIALS'


class TestProfile:

    def test_update_profile(self, client, customer_headers):
        response = client.put('/api/users/profile', headers=customer_headers, json={
            'first_name': 'ใหม่',
            'phone': '0899999999',
        })
        assert response.status_code == 200
        assert response.json['first_name'] == 'ใหม่'
        assert response.json['phone'] == '0899999999'

    def test_role_not_editable(self, client, customer_headers):
        response = client.put('/api/users/profile', headers=customer_headers, json={'role': 'admin'})
        assert response.status_code == 400
