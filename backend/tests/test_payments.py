"""
Payment tests.

Verifies:
- Slip upload creates a pending payment (public, for guests)
- Verify issues a receipt number and marks the order paid
- Reject requires a reason and marks the order payment failed
- A rejected payment accepts a new slip and returns to pending
- Verified payments are final
"""

import io
import os
import re

import pytest

from backoffice.models import Payment
from backoffice.services import promptpay_service
from conftest import fail_commit_for

RECEIPT_NUMBER = re.compile(r"^RCP-\d{8}-\d{5}$")

GUEST = {
    'guest_name': 'คุณสมศรี',
    'guest_phone': '0811111111',
}


def _slip(name='slip.jpg', content_type='image/jpeg'):
    return (io.BytesIO(b'\xff\xd8\xff fake slip'), name, content_type)


@pytest.fixture
def order(client, product):
    response = client.post('/api/orders', json={
        **GUEST,
        'items': [{'product_id': product.id, 'quantity': 1}],
        'shipping_address': '1 ถ.พหลโยธิน',
    })
    assert response.status_code == 201
    return response.json


def _upload(client, order, **form):
    data = {'order_id': str(order['id']), 'slip_image': _slip()}
    data.update(form)
    return client.post('/api/payments/upload-slip', data=data, content_type='multipart/form-data')


def _confirm(client, headers, payment_id, **body):
    return client.post(f'/api/payments/{payment_id}/confirm', headers=headers, json=body)


class TestSlipUpload:

    def test_upload_creates_pending_payment(self, app, client, order):
        response = _upload(client, order)
        assert response.status_code == 200
        payment = response.json
        assert payment['status'] == 'pending'
        assert payment['amount'] == order['total_amount']
        assert payment['payment_method'] == 'bank_transfer'
        assert payment['slip_image_path'].startswith(f'/uploads/slips/slip-{order["order_number"]}-')

        local = os.path.join(app.config['UPLOAD_FOLDER'], payment['slip_image_path'][len('/uploads/'):])
        assert os.path.exists(local)

    def test_upload_by_order_number(self, client, order):
        response = client.post('/api/payments/upload-slip', data={
            'order_number': order['order_number'],
            'slip_image': _slip(),
        }, content_type='multipart/form-data')
        assert response.status_code == 200
        assert response.json['order_number'] == order['order_number']

    def test_upload_requires_image(self, client, order):
        response = _upload(client, order, slip_image=_slip('slip.pdf', 'application/pdf'))
        assert response.status_code == 400
        assert response.json['code'] == 'INVALID_FILE_TYPE'

    def test_upload_unknown_order(self, client, db_session):
        response = client.post('/api/payments/upload-slip', data={
            'order_id': '9999',
            'slip_image': _slip(),
        }, content_type='multipart/form-data')
        assert response.status_code == 404
        assert response.json['code'] == 'ORDER_NOT_FOUND'

    def test_upload_cancelled_order(self, client, staff_headers, order):
        client.post(f'/api/orders/{order["id"]}/cancel', headers=staff_headers)
        response = _upload(client, order)
        assert response.status_code == 400
        assert response.json['code'] == 'ORDER_CANCELLED'

    def test_failed_save_removes_slip_file(self, app, client, order, db_session, monkeypatch):
        slips = os.path.join(app.config['UPLOAD_FOLDER'], 'slips')
        os.makedirs(slips, exist_ok=True)
        before = set(os.listdir(slips))
        fail_commit_for(monkeypatch, Payment)

        response = _upload(client, order)
        assert response.status_code == 500
        assert set(os.listdir(slips)) == before

        monkeypatch.undo()
        assert db_session.query(Payment).count() == 0


class TestConfirmPayment:

    def test_verify_issues_receipt(self, client, staff_headers, staff_user, order):
        payment = _upload(client, order).json
        response = _confirm(client, staff_headers, payment['id'], verified=True)
        assert response.status_code == 200
        assert response.json['status'] == 'verified'
        assert response.json['verified'] is True
        assert response.json['verified_by'] == staff_user.id
        assert RECEIPT_NUMBER.match(response.json['receipt_number'])

        updated = client.get(f'/api/orders/{order["id"]}', headers=staff_headers).json
        assert updated['payment_status'] == 'paid'
        assert updated['status'] == 'paid'

    def test_reject_marks_order_failed(self, client, staff_headers, order):
        payment = _upload(client, order).json
        response = _confirm(client, staff_headers, payment['id'], verified=False, rejection_reason='ยอดเงินไม่ตรง')
        assert response.status_code == 200
        assert response.json['status'] == 'rejected'
        assert response.json['rejection_reason'] == 'ยอดเงินไม่ตรง'
        assert response.json['receipt_number'] is None

        updated = client.get(f'/api/orders/{order["id"]}', headers=staff_headers).json
        assert updated['payment_status'] == 'failed'
        assert updated['status'] == 'pending'

    def test_reject_requires_reason(self, client, staff_headers, order):
        payment = _upload(client, order).json
        response = _confirm(client, staff_headers, payment['id'], verified=False)
        assert response.status_code == 400

    def test_verified_must_be_boolean(self, client, staff_headers, order):
        payment = _upload(client, order).json
        response = _confirm(client, staff_headers, payment['id'], verified='yes')
        assert response.status_code == 400

    def test_reupload_after_reject_returns_to_pending(self, app, client, staff_headers, order):
        payment = _upload(client, order).json
        _confirm(client, staff_headers, payment['id'], verified=False, rejection_reason='ภาพไม่ชัด')

        response = _upload(client, order, slip_image=_slip('again.png', 'image/png'))
        assert response.status_code == 200
        assert response.json['id'] == payment['id']
        assert response.json['status'] == 'pending'
        assert response.json['rejection_reason'] is None
        assert response.json['slip_image_path'].endswith('.png')

        old_local = os.path.join(app.config['UPLOAD_FOLDER'], payment['slip_image_path'][len('/uploads/'):])
        assert not os.path.exists(old_local)

        assert _confirm(client, staff_headers, payment['id'], verified=True).json['status'] == 'verified'

    def test_verified_is_final(self, client, staff_headers, order):
        payment = _upload(client, order).json
        _confirm(client, staff_headers, payment['id'], verified=True)

        again = _confirm(client, staff_headers, payment['id'], verified=False, rejection_reason='oops')
        assert again.status_code == 400
        assert again.json['code'] == 'INVALID_PAYMENT_STATUS'

        upload = _upload(client, order)
        assert upload.status_code == 400
        assert upload.json['code'] == 'PAYMENT_ALREADY_VERIFIED'

    def test_bank_transfer_without_slip(self, client, staff_headers, order):
        payment = client.post('/api/payments', headers=staff_headers, json={'order_id': order['id']}).json
        response = _confirm(client, staff_headers, payment['id'], verified=True)
        assert response.status_code == 400
        assert response.json['code'] == 'NO_SLIP_IMAGE'

    def test_cash_payment_verified_without_slip(self, client, staff_headers, order):
        payment = client.post('/api/payments', headers=staff_headers, json={
            'order_id': order['id'],
            'payment_method': 'cash',
        }).json
        response = _confirm(client, staff_headers, payment['id'], verified=True)
        assert response.status_code == 200

    def test_customer_cannot_confirm(self, client, customer_headers, order):
        payment = _upload(client, order).json
        response = _confirm(client, customer_headers, payment['id'], verified=True)
        assert response.status_code == 403


class TestPaymentRecords:

    def test_create_payment_defaults_amount(self, client, staff_headers, order):
        response = client.post('/api/payments', headers=staff_headers, json={'order_id': order['id']})
        assert response.status_code == 201
        assert response.json['amount'] == order['total_amount']

    def test_one_payment_per_order(self, client, staff_headers, order):
        client.post('/api/payments', headers=staff_headers, json={'order_id': order['id']})
        response = client.post('/api/payments', headers=staff_headers, json={'order_id': order['id']})
        assert response.status_code == 409
        assert response.json['code'] == 'PAYMENT_EXISTS'

    def test_list_filters_by_status(self, client, staff_headers, order):
        _upload(client, order)
        pending = client.get('/api/payments?status=pending', headers=staff_headers).json
        verified = client.get('/api/payments?status=verified', headers=staff_headers).json
        assert pending['pagination']['total'] == 1
        assert verified['pagination']['total'] == 0

    def test_guest_reads_payment_with_phone(self, client, order):
        _upload(client, order)
        response = client.get(f'/api/payments/order/{order["id"]}?phone=0811111111')
        assert response.status_code == 200
        assert response.json['status'] == 'pending'

        assert client.get(f'/api/payments/order/{order["id"]}?phone=0800000000').status_code == 404
        assert client.get(f'/api/payments/order/{order["id"]}').status_code == 401

    def test_admin_deletes_payment_and_slip(self, app, client, admin_headers, order):
        payment = _upload(client, order).json
        local = os.path.join(app.config['UPLOAD_FOLDER'], payment['slip_image_path'][len('/uploads/'):])

        response = client.delete(f'/api/payments/{payment["id"]}', headers=admin_headers)
        assert response.status_code == 200
        assert not os.path.exists(local)
        assert client.get(f'/api/payments/{payment["id"]}', headers=admin_headers).status_code == 404


class TestReceipts:

    def _verified(self, client, staff_headers, order):
        payment = _upload(client, order).json
        return _confirm(client, staff_headers, payment['id'], verified=True).json

    def test_guest_reads_receipt(self, client, staff_headers, order):
        payment = self._verified(client, staff_headers, order)
        response = client.get(f'/api/payments/receipt/{payment["receipt_number"]}?phone=0811111111')
        assert response.status_code == 200

        receipt = response.json
        assert receipt['receipt_number'] == payment['receipt_number']
        assert receipt['order_number'] == order['order_number']
        assert receipt['customer']['name'] == 'คุณสมศรี'
        assert re.match(r'^\d{2}/\d{2}/25\d{2} \d{2}:\d{2}$', receipt['issued_at_display'])

        line = receipt['items'][0]
        assert line['quantity'] == 1
        assert line['unit_price_excluding_vat'] == '100.00'
        assert line['line_total_vat'] == '7.00'
        assert line['line_total_including_vat'] == '107.00'

        assert receipt['totals']['subtotal_excluding_vat'] == '100.00'
        assert receipt['totals']['total_vat_amount'] == '7.00'
        assert receipt['totals']['total_amount'] == order['total_amount']
        assert receipt['payment']['payment_method_label'] == 'โอนเงินผ่านธนาคาร'

    def test_staff_reads_receipt(self, client, staff_headers, order):
        payment = self._verified(client, staff_headers, order)
        response = client.get(f'/api/payments/receipt/{payment["receipt_number"]}', headers=staff_headers)
        assert response.status_code == 200

    def test_wrong_contact(self, client, staff_headers, order):
        payment = self._verified(client, staff_headers, order)
        response = client.get(f'/api/payments/receipt/{payment["receipt_number"]}?phone=0800000000')
        assert response.status_code == 404

    def test_other_customer_denied(self, client, staff_headers, customer_headers, order):
        payment = self._verified(client, staff_headers, order)
        response = client.get(f'/api/payments/receipt/{payment["receipt_number"]}', headers=customer_headers)
        assert response.status_code == 403

    def test_unknown_receipt(self, client, staff_headers, order):
        _upload(client, order)
        response = client.get('/api/payments/receipt/RCP-20260101-00001', headers=staff_headers)
        assert response.status_code == 404
        assert response.json['code'] == 'RECEIPT_NOT_FOUND'


class TestPromptPay:

    @pytest.fixture
    def promptpay(self, app, monkeypatch):
        monkeypatch.setitem(app.config, 'PROMPTPAY_ID', '081-234-5678')
        monkeypatch.setitem(app.config, 'BANK_NAME', 'กสิกรไทย')

    def test_crc_check_value(self):
        assert promptpay_service.crc16_ccitt(b'123456789') == 0x29B1

    def test_mobile_payload_with_amount(self):
        payload = promptpay_service.build_payload('081-234-5678', '264')
        assert payload.startswith(
            '000201'
            '010212'
            '29370016A00000067701011101130066812345678'
            '5303764'
            '5406264.00'
            '5802TH'
            '6304'
        )
        crc = promptpay_service.crc16_ccitt(payload[:-4].encode('ascii'))
        assert payload[-4:] == f'{crc:04X}'

    def test_tax_id_static_payload(self):
        payload = promptpay_service.build_payload('1234567890123')
        assert '010211' in payload
        assert '02131234567890123' in payload
        assert '53037645802TH' in payload

    @pytest.mark.parametrize('target', ['12345', '', '0812345678901'])
    def test_invalid_target(self, target):
        with pytest.raises(promptpay_service.PromptPayError) as exc:
            promptpay_service.build_payload(target, '100')
        assert exc.value.code == 'INVALID_PROMPTPAY_ID'

    def test_guest_gets_qr_for_order(self, client, order, promptpay):
        response = client.get(f'/api/payments/promptpay/{order["id"]}?phone=0811111111')
        assert response.status_code == 200
        assert response.json['amount'] == order['total_amount']
        assert response.json['promptpay_id'] == '081-234-5678'
        assert response.json['bank_account']['bank_name'] == 'กสิกรไทย'
        assert response.json['qr_code']['payload'].startswith('000201010212')
        assert f'54{len(order["total_amount"]):02d}{order["total_amount"]}' in response.json['qr_code']['payload']
        assert response.json['qr_code']['image'].startswith('data:image/png;base64,')

    def test_not_configured(self, app, client, staff_headers, order, monkeypatch):
        monkeypatch.setitem(app.config, 'PROMPTPAY_ID', '')
        monkeypatch.setitem(app.config, 'SHOP_PHONE', '')
        response = client.get(f'/api/payments/promptpay/{order["id"]}', headers=staff_headers)
        assert response.status_code == 503
        assert response.json['code'] == 'PROMPTPAY_NOT_CONFIGURED'

    def test_paid_order(self, client, staff_headers, order, promptpay):
        payment = _upload(client, order).json
        _confirm(client, staff_headers, payment['id'], verified=True)
        response = client.get(f'/api/payments/promptpay/{order["id"]}', headers=staff_headers)
        assert response.status_code == 400
        assert response.json['code'] == 'ORDER_ALREADY_PAID'

    def test_other_customer_denied(self, client, customer_headers, order, promptpay):
        response = client.get(f'/api/payments/promptpay/{order["id"]}', headers=customer_headers)
        assert response.status_code == 403
