"""
Object Storage Service for S3-compatible storage (MinIO, AWS S3, DigitalOcean Spaces).

Two public-read buckets back the admin panel:
- product-images: `<saleId>/<random>.<ext>`
- theme-headers:  `<themeName>-<timestamp>.<ext>`

Architecture:
- Uses boto3 (AWS SDK for Python)
- Compatible with MinIO (local), AWS S3, DigitalOcean Spaces
- Buckets are created with a public-read policy on first use
"""
import json
import logging
import mimetypes
import time
import uuid
from typing import Optional

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import ClientError
from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from saleflyer.exceptions import BackendError, ValidationError

logger = logging.getLogger(__name__)


class StorageService:
    """
    S3-compatible object storage service.

    Usage:
        storage = StorageService()
        url = storage.upload_file(file, 'abc/123.jpg', bucket='product-images')
        storage.delete_file('abc/123.jpg', bucket='product-images')
    """

    def __init__(self):
        """Initialize S3 client from Flask config."""
        self.endpoint = current_app.config['S3_ENDPOINT']
        self.access_key = current_app.config['S3_ACCESS_KEY']
        self.secret_key = current_app.config['S3_SECRET_KEY']
        self.region = current_app.config['S3_REGION']
        self.public_url = current_app.config['S3_PUBLIC_URL'].rstrip('/')
        self.max_size = current_app.config.get('MAX_UPLOAD_SIZE', 5 * 1024 * 1024)
        self.allowed_types = current_app.config.get('ALLOWED_MIME_TYPES', set())

        # Initialize boto3 S3 client
        self.client = boto3.client(
            's3',
            endpoint_url=self.endpoint,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region,
            config=BotoConfig(signature_version='s3v4')
        )
        self._known_buckets = set()

    def _ensure_bucket_exists(self, bucket: str):
        """Create bucket (public-read) if it doesn't exist."""
        if bucket in self._known_buckets:
            return
        try:
            self.client.head_bucket(Bucket=bucket)
            logger.info(f"[STORAGE] Bucket '{bucket}' exists")
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code != '404':
                logger.error(f"[STORAGE] ✗ Failed to check bucket: {e}")
                raise
            self.client.create_bucket(Bucket=bucket)
            policy = {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Effect": "Allow",
                        "Principal": {"AWS": "*"},
                        "Action": "s3:GetObject",
                        "Resource": f"arn:aws:s3:::{bucket}/*"
                    }
                ]
            }
            self.client.put_bucket_policy(Bucket=bucket, Policy=json.dumps(policy))
            logger.info(f"[STORAGE] ✓ Bucket '{bucket}' created with public-read policy")
        self._known_buckets.add(bucket)

    def upload_file(
        self,
        file: FileStorage,
        object_name: str,
        bucket: str,
        content_type: Optional[str] = None
    ) -> str:
        """
        Upload file to S3-compatible storage.

        Args:
            file: Werkzeug FileStorage object from request.files
            object_name: S3 object key (path in bucket)
            bucket: Target bucket
            content_type: MIME type (auto-detected if None)

        Returns:
            Public URL of uploaded file

        Raises:
            ValidationError: If file validation fails
            ClientError: If upload fails
        """
        self._validate_file(file)

        if not content_type:
            content_type = file.content_type or mimetypes.guess_type(file.filename)[0] or 'application/octet-stream'

        self._ensure_bucket_exists(bucket)
        try:
            file.seek(0)
            logger.info(f"[STORAGE] Uploading '{object_name}' to bucket '{bucket}'...")
            self.client.upload_fileobj(
                file.stream,
                bucket,
                object_name,
                ExtraArgs={'ContentType': content_type, 'ACL': 'public-read'}
            )
            url = self.get_public_url(object_name, bucket)
            logger.info(f"[STORAGE] ✓ File uploaded: {url}")
            return url
        except ClientError as e:
            logger.exception(f"[STORAGE] ✗ Upload failed: {e}")
            raise

    def delete_file(self, object_name: str, bucket: str) -> bool:
        """Delete file from storage. Returns False instead of raising."""
        try:
            logger.info(f"[STORAGE] Deleting '{object_name}' from bucket '{bucket}'...")
            self.client.delete_object(Bucket=bucket, Key=object_name)
            return True
        except ClientError as e:
            logger.exception(f"[STORAGE] ✗ Delete failed: {e}")
            return False

    def get_public_url(self, object_name: str, bucket: str) -> str:
        """
        Get public URL for an object.

        Returns:
            Public URL (e.g., 'http://localhost:9000/product-images/<sale>/<file>.jpg')
        """
        return f"{self.public_url}/{bucket}/{object_name.lstrip('/')}"

    def _validate_file(self, file: FileStorage):
        """Validate uploaded file (size, type)."""
        if not file or not file.filename:
            raise ValidationError("No file was provided")

        file.seek(0, 2)  # Seek to end
        file_size = file.tell()
        file.seek(0)

        if file_size > self.max_size:
            max_mb = self.max_size / (1024 * 1024)
            raise ValidationError(f"File is too large. Maximum {max_mb:.1f}MB")

        if self.allowed_types and file.content_type not in self.allowed_types:
            raise ValidationError(
                f"File type not allowed: {file.content_type}. Allowed: {', '.join(sorted(self.allowed_types))}"
            )


def _extension(filename: str) -> str:
    name = secure_filename(filename or '')
    if '.' not in name:
        return 'bin'
    return name.rsplit('.', 1)[1].lower()


def product_image_key(sale_id: str, filename: str) -> str:
    """`<saleId>/<random>.<ext>`"""
    return f"{sale_id}/{uuid.uuid4().hex}.{_extension(filename)}"


def theme_header_key(theme_name: str, filename: str, timestamp: Optional[int] = None) -> str:
    """`<themeName>-<timestamp>.<ext>`"""
    stamp = timestamp if timestamp is not None else int(time.time() * 1000)
    safe_name = secure_filename(theme_name) or 'theme'
    return f"{safe_name}-{stamp}.{_extension(filename)}"


def upload_product_image(file: FileStorage, sale_id: str) -> str:
    """Upload a product picture for a sale and return its public URL."""
    storage = get_storage_service()
    bucket = current_app.config['PRODUCT_IMAGES_BUCKET']
    try:
        return storage.upload_file(file, product_image_key(sale_id, file.filename), bucket)
    except ClientError as e:
        raise BackendError(f"Failed to upload image: {e}")


def upload_theme_header(file: FileStorage, theme_name: str) -> str:
    """Upload a theme header image and return its public URL."""
    storage = get_storage_service()
    bucket = current_app.config['THEME_HEADERS_BUCKET']
    try:
        return storage.upload_file(file, theme_header_key(theme_name, file.filename), bucket)
    except ClientError as e:
        raise BackendError(f"Failed to upload image: {e}")


# Singleton instance
_storage_service = None


def get_storage_service() -> StorageService:
    """
    Get or create StorageService singleton.

    Returns:
        StorageService instance
    """
    global _storage_service
    if _storage_service is None:
        _storage_service = StorageService()
    return _storage_service
