"""
Category API tests.

Verifies:
- Prefix validation (3-4 letters, uppercased)
- Prefix uniqueness (409 DUPLICATE_PREFIX)
- Prefix change warning on update
- Delete blocked while products exist
"""

import pytest


class TestCreateCategory:

    def test_create_with_prefix(self, client, admin_headers):
        response = client.post('/api/categories', headers=admin_headers, json={
            'name': 'ชุดทำงาน',
            'prefix': 'work',
            'description': 'Work wear',
        })
        assert response.status_code == 201
        assert response.json['prefix'] == 'WORK'
        assert response.json['status'] == 'active'

    def test_create_without_prefix(self, client, admin_headers):
        response = client.post('/api/categories', headers=admin_headers, json={'name': 'อื่นๆ'})
        assert response.status_code == 201
        assert response.json['prefix'] is None

    @pytest.mark.parametrize('prefix', ['AB', 'ABCDE', 'AB1', 'กขค'])
    def test_invalid_prefix(self, client, admin_headers, prefix):
        response = client.post('/api/categories', headers=admin_headers, json={'name': 'X', 'prefix': prefix})
        assert response.status_code == 400
        assert response.json['code'] == 'INVALID_PREFIX'
        assert 'suggestion' in response.json

    def test_duplicate_prefix(self, client, admin_headers, category):
        response = client.post('/api/categories', headers=admin_headers, json={'name': 'Other', 'prefix': 'DRES'})
        assert response.status_code == 409
        assert response.json['code'] == 'DUPLICATE_PREFIX'
        assert response.json['details']['category_id'] == category.id

    def test_missing_name(self, client, admin_headers):
        response = client.post('/api/categories', headers=admin_headers, json={'prefix': 'TOPS'})
        assert response.status_code == 400

    def test_staff_cannot_create(self, client, staff_headers):
        response = client.post('/api/categories', headers=staff_headers, json={'name': 'X'})
        assert response.status_code == 403


class TestReadCategories:

    def test_list_is_public_with_product_count(self, client, category, product):
        response = client.get('/api/categories')
        assert response.status_code == 200
        assert response.json['count'] == 1
        assert response.json['items'][0]['product_count'] == 1

    def test_get_missing(self, client, db_session):
        response = client.get('/api/categories/9999')
        assert response.status_code == 404
        assert response.json['code'] == 'CATEGORY_NOT_FOUND'


class TestUpdateCategory:

    def test_prefix_change_returns_warning(self, client, admin_headers, category, product):
        response = client.put(f'/api/categories/{category.id}', headers=admin_headers, json={'prefix': 'DRSS'})
        assert response.status_code == 200
        assert response.json['prefix'] == 'DRSS'
        warning = response.json['warnings'][0]
        assert warning['code'] == 'PREFIX_CHANGE_WARNING'
        assert warning['old_prefix'] == 'DRES'
        assert warning['new_prefix'] == 'DRSS'

        # Existing SKU keeps the old prefix
        response = client.get(f'/api/products/{product.id}')
        assert response.json['sku'] == 'DRES00001'

    def test_name_change_has_no_warning(self, client, admin_headers, category):
        response = client.put(f'/api/categories/{category.id}', headers=admin_headers, json={'name': 'เดรส'})
        assert response.status_code == 200
        assert 'warnings' not in response.json

    def test_prefix_taken_by_other_category(self, client, admin_headers, category):
        other = client.post('/api/categories', headers=admin_headers, json={'name': 'Skirts', 'prefix': 'SKRT'})
        response = client.put(f'/api/categories/{other.json["id"]}', headers=admin_headers, json={'prefix': 'DRES'})
        assert response.status_code == 409
        assert response.json['code'] == 'DUPLICATE_PREFIX'


class TestDeleteCategory:

    def test_delete_with_products_blocked(self, client, admin_headers, category, product):
        response = client.delete(f'/api/categories/{category.id}', headers=admin_headers)
        assert response.status_code == 409
        assert response.json['code'] == 'CATEGORY_HAS_PRODUCTS'

    def test_delete_empty_category(self, client, admin_headers, category):
        response = client.delete(f'/api/categories/{category.id}', headers=admin_headers)
        assert response.status_code == 200
        assert client.get(f'/api/categories/{category.id}').status_code == 404
