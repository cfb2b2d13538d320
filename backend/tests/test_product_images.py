"""
Product image upload tests.

Images are stored as uploads/products/{SKU}.{ext}; a new upload replaces the
previous file even when the extension differs.
"""

import io
import os

import pytest

from backoffice.models import Product
from conftest import fail_commit_for


def _image(name='photo.jpg', content_type='image/jpeg', data=b'\xff\xd8\xff fake jpeg'):
    return {'image': (io.BytesIO(data), name, content_type)}


def _products_dir(app):
    return os.path.join(app.config['UPLOAD_FOLDER'], 'products')


class TestProductImageUpload:

    def test_upload_named_after_sku(self, app, client, admin_headers, product):
        response = client.post(
            f'/api/products/{product.id}/image',
            headers=admin_headers,
            data=_image(),
            content_type='multipart/form-data',
        )
        assert response.status_code == 200
        assert response.json['image_path'] == '/uploads/products/DRES00001.jpg'
        assert os.path.exists(os.path.join(_products_dir(app), 'DRES00001.jpg'))

    def test_new_upload_replaces_old_extension(self, app, client, admin_headers, product):
        client.post(f'/api/products/{product.id}/image', headers=admin_headers,
                    data=_image(), content_type='multipart/form-data')
        response = client.post(f'/api/products/{product.id}/image', headers=admin_headers,
                               data=_image('photo.png', 'image/png', b'\x89PNG fake'),
                               content_type='multipart/form-data')

        assert response.json['image_path'] == '/uploads/products/DRES00001.png'
        names = [n for n in os.listdir(_products_dir(app)) if n.startswith('DRES00001')]
        assert names == ['DRES00001.png']

    def test_image_is_served(self, client, admin_headers, product):
        client.post(f'/api/products/{product.id}/image', headers=admin_headers,
                    data=_image(data=b'jpeg-bytes'), content_type='multipart/form-data')
        response = client.get('/uploads/products/DRES00001.jpg')
        assert response.status_code == 200
        assert response.data == b'jpeg-bytes'

    @pytest.mark.parametrize('name,content_type', [
        ('notes.txt', 'text/plain'),
        ('script.jpg', 'application/x-sh'),
        ('archive.zip', 'application/zip'),
    ])
    def test_rejects_non_images(self, client, admin_headers, product, name, content_type):
        response = client.post(f'/api/products/{product.id}/image', headers=admin_headers,
                               data=_image(name, content_type), content_type='multipart/form-data')
        assert response.status_code == 400
        assert response.json['code'] == 'INVALID_FILE_TYPE'

    def test_missing_file(self, client, admin_headers, product):
        response = client.post(f'/api/products/{product.id}/image', headers=admin_headers,
                               data={}, content_type='multipart/form-data')
        assert response.status_code == 400
        assert response.json['code'] == 'NO_FILE'

    def test_unknown_product_leaves_no_file(self, app, client, admin_headers, db_session):
        before = set(os.listdir(_products_dir(app))) if os.path.isdir(_products_dir(app)) else set()
        response = client.post('/api/products/9999/image', headers=admin_headers,
                               data=_image(), content_type='multipart/form-data')
        assert response.status_code == 404
        assert set(os.listdir(_products_dir(app))) == before

    def test_failed_save_removes_temp_and_renamed_files(self, app, client, admin_headers, product, db_session, monkeypatch):
        os.makedirs(_products_dir(app), exist_ok=True)
        before = {n for n in os.listdir(_products_dir(app)) if not n.startswith('DRES00001')}
        fail_commit_for(monkeypatch, Product)

        response = client.post(f'/api/products/{product.id}/image', headers=admin_headers,
                               data=_image(), content_type='multipart/form-data')
        assert response.status_code == 500
        assert set(os.listdir(_products_dir(app))) == before

        monkeypatch.undo()
        db_session.expire_all()
        assert db_session.get(Product, product.id).image_path is None

    def test_delete_image(self, app, client, admin_headers, product):
        client.post(f'/api/products/{product.id}/image', headers=admin_headers,
                    data=_image(), content_type='multipart/form-data')
        response = client.delete(f'/api/products/{product.id}/image', headers=admin_headers)
        assert response.status_code == 200
        assert response.json['image_path'] is None
        assert not os.path.exists(os.path.join(_products_dir(app), 'DRES00001.jpg'))

    def test_delete_without_image(self, client, admin_headers, product):
        response = client.delete(f'/api/products/{product.id}/image', headers=admin_headers)
        assert response.status_code == 404
        assert response.json['code'] == 'IMAGE_NOT_FOUND'
