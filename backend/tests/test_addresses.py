"""
Address book tests.

Verifies:
- Customers manage only their own addresses
- Phone / postal code formats and address_type are checked
- Only one default address per user
- Checkout can ship to a saved address
"""

import pytest

from backoffice.models import Address, Order

ADDRESS = {
    'recipient_name': 'สมหญิง ใจดี',
    'phone': '0812345678',
    'address_line1': '99/1 ถ.สุขุมวิท',
    'address_line2': 'ซอย 11',
    'subdistrict': 'คลองเตยเหนือ',
    'district': 'วัฒนา',
    'province': 'กรุงเทพมหานคร',
    'postal_code': '10110',
}


def _create(client, headers, **fields):
    payload = dict(ADDRESS)
    payload.update(fields)
    return client.post('/api/users/addresses', headers=headers, json=payload)


class TestAddressBook:

    def test_create_defaults(self, client, customer_headers, customer_user):
        response = _create(client, customer_headers)
        assert response.status_code == 201
        assert response.json['user_id'] == customer_user.id
        assert response.json['address_type'] == 'shipping'
        assert response.json['is_default'] is False

    @pytest.mark.parametrize('fields', [
        {'phone': '08-1234'},
        {'postal_code': '1011'},
        {'address_type': 'office'},
        {'recipient_name': ''},
        {'province': None},
        {'is_default': 'yes'},
    ])
    def test_invalid_address(self, client, customer_headers, fields):
        response = _create(client, customer_headers, **fields)
        assert response.status_code == 400
        assert response.json['code'] == 'VALIDATION_ERROR'

    def test_missing_required(self, client, customer_headers):
        response = client.post('/api/users/addresses', headers=customer_headers, json={'recipient_name': 'x'})
        assert response.status_code == 400

    def test_single_default(self, client, db_session, customer_headers, customer_user):
        first = _create(client, customer_headers, is_default=True).json
        second = _create(client, customer_headers, is_default=True, address_line1='1 ถ.สีลม').json

        db_session.expire_all()
        defaults = db_session.query(Address).filter_by(user_id=customer_user.id, is_default=True).all()
        assert [a.id for a in defaults] == [second['id']]

        listing = client.get('/api/users/addresses', headers=customer_headers).json
        assert listing['count'] == 2
        assert listing['items'][0]['id'] == second['id']

        client.put(f'/api/users/addresses/{first["id"]}', headers=customer_headers, json={'is_default': True})
        listing = client.get('/api/users/addresses', headers=customer_headers).json
        assert [a['is_default'] for a in listing['items']] == [True, False]
        assert listing['items'][0]['id'] == first['id']

    def test_partial_update(self, client, customer_headers):
        address = _create(client, customer_headers).json
        response = client.put(f'/api/users/addresses/{address["id"]}', headers=customer_headers,
                              json={'address_type': 'billing', 'address_line2': None})
        assert response.status_code == 200
        assert response.json['address_type'] == 'billing'
        assert response.json['address_line2'] is None
        assert response.json['province'] == 'กรุงเทพมหานคร'

    def test_other_users_address_is_hidden(self, client, customer_headers, staff_headers):
        address = _create(client, customer_headers).json

        assert client.put(f'/api/users/addresses/{address["id"]}', headers=staff_headers,
                          json={'province': 'เชียงใหม่'}).status_code == 404
        response = client.delete(f'/api/users/addresses/{address["id"]}', headers=staff_headers)
        assert response.status_code == 404
        assert response.json['code'] == 'ADDRESS_NOT_FOUND'
        assert client.get('/api/users/addresses', headers=staff_headers).json['count'] == 0

    def test_delete(self, client, customer_headers):
        address = _create(client, customer_headers).json
        assert client.delete(f'/api/users/addresses/{address["id"]}', headers=customer_headers).status_code == 200
        assert client.get('/api/users/addresses', headers=customer_headers).json['count'] == 0


class TestCheckoutWithSavedAddress:

    def test_order_ships_to_saved_address(self, client, db_session, customer_headers, product):
        address = _create(client, customer_headers).json
        response = client.post('/api/orders', headers=customer_headers, json={
            'items': [{'product_id': product.id, 'quantity': 1}],
            'address_id': address['id'],
        })
        assert response.status_code == 201
        assert response.json['shipping_address'] == '99/1 ถ.สุขุมวิท ซอย 11'
        assert response.json['shipping_district'] == 'วัฒนา'
        assert response.json['shipping_postal_code'] == '10110'

    def test_guest_cannot_use_address_id(self, client, db_session, product):
        response = client.post('/api/orders', json={
            'guest_name': 'คุณสมศรี',
            'guest_phone': '0811111111',
            'items': [{'product_id': product.id, 'quantity': 1}],
            'address_id': 1,
        })
        assert response.status_code == 400
        assert db_session.query(Order).count() == 0

    def test_someone_elses_address(self, client, customer_headers, staff_headers, product):
        address = _create(client, staff_headers).json
        response = client.post('/api/orders', headers=customer_headers, json={
            'items': [{'product_id': product.id, 'quantity': 1}],
            'address_id': address['id'],
        })
        assert response.status_code == 404
        assert response.json['code'] == 'ADDRESS_NOT_FOUND'
