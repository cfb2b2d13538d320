import pytest


class TestHealth:

    def test_health_ok(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json['status'] == 'healthy'
        assert response.json['version'] == '1.0.0'
        assert response.json['checks']['database']['status'] == 'healthy'
        assert response.json['checks']['session_service']['status'] == 'healthy'


class TestVatCalculator:

    def test_exclusive_default(self, client):
        response = client.get('/api/vat/calculate?amount=100')
        assert response.status_code == 200
        assert response.json == {
            'price_excluding_vat': '100.00',
            'vat_rate': '7.00',
            'vat_amount': '7.00',
            'price_including_vat': '107.00',
        }

    def test_inclusive(self, client):
        response = client.get('/api/vat/calculate?amount=107&mode=inclusive')
        assert response.json['price_excluding_vat'] == '100.00'
        assert response.json['vat_amount'] == '7.00'

    @pytest.mark.parametrize('query,code', [
        ('', 'INVALID_AMOUNT'),
        ('amount=abc', 'INVALID_AMOUNT'),
        ('amount=1e30', 'INVALID_AMOUNT'),
        ('amount=1000000000000', 'INVALID_AMOUNT'),
        ('amount=100&rate=150', 'INVALID_VAT_RATE'),
        ('amount=100&mode=gross', 'INVALID_VAT_MODE'),
    ])
    def test_invalid_input(self, client, query, code):
        response = client.get(f'/api/vat/calculate?{query}')
        assert response.status_code == 400
        assert response.json['code'] == code


class TestCors:

    def test_allowed_origin_echoed(self, app, client, db_session):
        origin = sorted(app.config['CORS_ORIGINS'])[0]
        response = client.get('/api/health', headers={'Origin': origin})
        assert response.headers['Access-Control-Allow-Origin'] == origin

    def test_unknown_origin_ignored(self, client, db_session):
        response = client.get('/api/health', headers={'Origin': 'https://evil.example'})
        assert 'Access-Control-Allow-Origin' not in response.headers
