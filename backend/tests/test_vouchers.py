"""
Voucher tests.

Verifies:
- Admin CRUD with code normalization and rule checks
- Validation errors: unknown, inactive, not started, expired, limits, minimum
- Discount calculation (percentage cap, fixed capped at subtotal)
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from backoffice.models import Voucher
from backoffice.services import voucher_service
from backoffice.time_utils import utcnow


def _iso(dt):
    return dt.replace(microsecond=0).isoformat() + 'Z'


def _voucher_payload(**fields):
    now = utcnow()
    payload = {
        'code': 'SAVE10',
        'name': 'ลด 10%',
        'discount_type': 'percentage',
        'discount_value': '10',
        'max_discount_amount': '50',
        'start_date': _iso(now - timedelta(days=1)),
        'end_date': _iso(now + timedelta(days=7)),
    }
    payload.update(fields)
    return payload


def _validate(client, code, subtotal, headers=None):
    return client.post('/api/vouchers/validate', headers=headers or {}, json={'code': code, 'subtotal': subtotal})


@pytest.fixture
def voucher(client, admin_headers):
    response = client.post('/api/vouchers', headers=admin_headers, json=_voucher_payload())
    assert response.status_code == 201
    return response.json


class TestVoucherAdmin:

    def test_create_normalizes_code(self, client, admin_headers):
        response = client.post('/api/vouchers', headers=admin_headers, json=_voucher_payload(code=' summer '))
        assert response.status_code == 201
        assert response.json['code'] == 'SUMMER'
        assert response.json['usage_count'] == 0
        assert response.json['usage_limit_per_customer'] == 1
        assert response.json['minimum_order_amount'] == '0.00'

    def test_duplicate_code(self, client, admin_headers, voucher):
        response = client.post('/api/vouchers', headers=admin_headers, json=_voucher_payload(code='save10'))
        assert response.status_code == 409
        assert response.json['code'] == 'DUPLICATE_VOUCHER_CODE'

    @pytest.mark.parametrize('fields', [
        {'discount_type': 'bogo'},
        {'discount_value': '0'},
        {'discount_value': '150'},
        {'usage_limit': 0},
        {'start_date': '2026-02-01T00:00:00Z', 'end_date': '2026-01-01T00:00:00Z'},
        {'start_date': 'next tuesday'},
    ])
    def test_invalid_voucher(self, client, admin_headers, fields):
        response = client.post('/api/vouchers', headers=admin_headers, json=_voucher_payload(**fields))
        assert response.status_code == 400

    def test_update_checks_merged_rules(self, client, admin_headers, voucher):
        # percentage voucher: 150 is only invalid because of the stored discount_type
        response = client.put(f'/api/vouchers/{voucher["id"]}', headers=admin_headers, json={'discount_value': '150'})
        assert response.status_code == 400

    def test_update_and_deactivate(self, client, admin_headers, voucher):
        response = client.put(f'/api/vouchers/{voucher["id"]}', headers=admin_headers, json={'status': 'inactive'})
        assert response.status_code == 200
        assert response.json['status'] == 'inactive'

    def test_list_and_search(self, client, admin_headers, voucher):
        client.post('/api/vouchers', headers=admin_headers, json=_voucher_payload(code='FREESHIP', name='ส่งฟรี'))
        response = client.get('/api/vouchers?search=free', headers=admin_headers)
        assert [v['code'] for v in response.json['items']] == ['FREESHIP']

    def test_delete_unused(self, client, admin_headers, voucher):
        response = client.delete(f'/api/vouchers/{voucher["id"]}', headers=admin_headers)
        assert response.status_code == 200
        assert client.get(f'/api/vouchers/{voucher["id"]}', headers=admin_headers).status_code == 404

    def test_usage_history_empty(self, client, admin_headers, voucher):
        response = client.get(f'/api/vouchers/{voucher["id"]}/usage', headers=admin_headers)
        assert response.status_code == 200
        assert response.json['count'] == 0


class TestVoucherValidation:

    def test_percentage_capped(self, client, voucher):
        response = _validate(client, 'save10', '1000')
        assert response.status_code == 200
        assert response.json['valid'] is True
        assert response.json['discount_amount'] == '50.00'

    def test_percentage_under_cap(self, client, voucher):
        assert _validate(client, 'SAVE10', '199.99').json['discount_amount'] == '20.00'

    def test_fixed_capped_at_subtotal(self, client, admin_headers):
        client.post('/api/vouchers', headers=admin_headers, json=_voucher_payload(
            code='FLAT100', discount_type='fixed', discount_value='100', max_discount_amount=None,
        ))
        assert _validate(client, 'FLAT100', '60').json['discount_amount'] == '60.00'

    def test_unknown_code(self, client, db_session):
        response = _validate(client, 'NOPE', '100')
        assert response.status_code == 404
        assert response.json['code'] == 'VOUCHER_NOT_FOUND'

    def test_minimum_amount(self, client, admin_headers):
        client.post('/api/vouchers', headers=admin_headers, json=_voucher_payload(code='MIN500', minimum_order_amount='500'))
        response = _validate(client, 'MIN500', '200')
        assert response.status_code == 400
        assert response.json['code'] == 'VOUCHER_MIN_AMOUNT'
        assert response.json['details']['minimum_order_amount'] == '500.00'

    def test_subtotal_must_be_number(self, client, voucher):
        assert _validate(client, 'SAVE10', 'lots').status_code == 400

    @pytest.mark.parametrize('subtotal', ['1e30', '-1'])
    def test_subtotal_out_of_range(self, client, voucher, subtotal):
        response = _validate(client, 'SAVE10', subtotal)
        assert response.status_code == 400
        assert response.json['code'] == 'VALIDATION_ERROR'

    def test_code_must_be_text(self, client, voucher):
        response = _validate(client, 5, '100')
        assert response.status_code == 400
        assert response.json['code'] == 'VALIDATION_ERROR'

    @pytest.mark.parametrize('fields,code', [
        ({'status': 'inactive'}, 'VOUCHER_INACTIVE'),
        ({'start_date': timedelta(days=1), 'end_date': timedelta(days=5)}, 'VOUCHER_NOT_STARTED'),
        ({'start_date': timedelta(days=-10), 'end_date': timedelta(days=-1)}, 'VOUCHER_EXPIRED'),
        ({'usage_limit': 1, 'usage_count': 1}, 'VOUCHER_USAGE_LIMIT'),
    ])
    def test_unusable_voucher(self, db_session, fields, code):
        now = utcnow()
        values = {
            'code': 'X1',
            'name': 'x',
            'discount_type': 'fixed',
            'discount_value': Decimal('10'),
            'minimum_order_amount': Decimal('0'),
            'usage_limit_per_customer': 1,
            'usage_count': 0,
            'start_date': now - timedelta(days=1),
            'end_date': now + timedelta(days=1),
            'status': 'active',
        }
        for key, value in fields.items():
            values[key] = now + value if isinstance(value, timedelta) else value
        db_session.add(Voucher(**values))
        db_session.commit()

        with pytest.raises(voucher_service.VoucherError) as exc:
            voucher_service.validate_voucher('X1', Decimal('100'))
        assert exc.value.code == code
