"""Unit tests for object storage uploads (boto3 client mocked)."""
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError
from werkzeug.datastructures import FileStorage

from saleflyer.exceptions import BackendError, ValidationError
from saleflyer.services import storage_service
from saleflyer.services.storage_service import (
    StorageService, product_image_key, theme_header_key, upload_product_image
)


def _file(data=b'\x89PNG fake', filename='bottle.png', content_type='image/png'):
    return FileStorage(stream=BytesIO(data), filename=filename, content_type=content_type)


@pytest.fixture
def s3_client():
    client = MagicMock()
    with patch('saleflyer.services.storage_service.boto3.client', return_value=client):
        yield client


@pytest.fixture
def storage(app, s3_client):
    with app.app_context():
        service = StorageService()
    return service


class TestObjectKeys:

    def test_product_image_key(self):
        key = product_image_key('sale-1', 'Crown Royal.PNG')

        folder, name = key.split('/')
        assert folder == 'sale-1'
        assert name.endswith('.png')
        assert len(name) == len('.png') + 32

    def test_theme_header_key(self):
        assert theme_header_key('Halloween', 'header.jpg', timestamp=1700000000000) == 'Halloween-1700000000000.jpg'

    def test_missing_extension(self):
        assert product_image_key('s', 'noext').endswith('.bin')


class TestStorageService:

    def test_upload_returns_public_url(self, storage, s3_client):
        url = storage.upload_file(_file(), 'sale-1/abc.png', 'product-images')

        assert url == 'http://localhost:9000/product-images/sale-1/abc.png'
        s3_client.head_bucket.assert_called_once_with(Bucket='product-images')
        args, kwargs = s3_client.upload_fileobj.call_args
        assert args[1:] == ('product-images', 'sale-1/abc.png')
        assert kwargs['ExtraArgs']['ContentType'] == 'image/png'

    def test_missing_bucket_is_created(self, storage, s3_client):
        s3_client.head_bucket.side_effect = ClientError({'Error': {'Code': '404'}}, 'HeadBucket')

        storage.upload_file(_file(), 'a.png', 'theme-headers')
        storage.upload_file(_file(), 'b.png', 'theme-headers')

        s3_client.create_bucket.assert_called_once_with(Bucket='theme-headers')
        s3_client.put_bucket_policy.assert_called_once()

    def test_rejects_wrong_type(self, storage):
        with pytest.raises(ValidationError) as exc:
            storage.upload_file(_file(content_type='application/pdf'), 'x.pdf', 'product-images')
        assert 'File type not allowed' in exc.value.message

    def test_rejects_large_file(self, storage):
        storage.max_size = 4
        with pytest.raises(ValidationError) as exc:
            storage.upload_file(_file(b'0123456789'), 'x.png', 'product-images')
        assert 'too large' in exc.value.message

    def test_delete_failure_returns_false(self, storage, s3_client):
        s3_client.delete_object.side_effect = ClientError({'Error': {'Code': '500'}}, 'DeleteObject')
        assert storage.delete_file('x.png', 'product-images') is False


class TestUploadHelpers:

    def test_client_error_becomes_backend_error(self, app, storage, s3_client, monkeypatch):
        s3_client.upload_fileobj.side_effect = ClientError({'Error': {'Code': 'AccessDenied'}}, 'PutObject')
        monkeypatch.setattr(storage_service, '_storage_service', storage)

        with app.app_context():
            with pytest.raises(BackendError) as exc:
                upload_product_image(_file(), 'sale-1')

        assert exc.value.status_code == 502
        assert exc.value.message.startswith('Failed to upload image')
