"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Admin panel password (single shared password for the store staff)
    ADMIN_PASSWORD = os.getenv('ADMIN_PASSWORD')
    SESSION_AUTH_KEY = os.getenv('SESSION_AUTH_KEY', 'admin_authenticated')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'flyers')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'flyers')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'flyers')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    DB_CREATE_ALL = os.getenv('DB_CREATE_ALL', 'false').lower() == 'true'

    # Business Information (flyer header/footer and marketing pages)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'MY LIQUOR')
    BUSINESS_TOWN = os.getenv('BUSINESS_TOWN', 'Drayton Valley')

    # Object Storage Configuration (MinIO/S3)
    # Compatible with AWS S3, DigitalOcean Spaces, MinIO
    S3_ENDPOINT = os.getenv('S3_ENDPOINT', 'http://minio:9000')
    S3_ACCESS_KEY = os.getenv('S3_ACCESS_KEY', 'minioadmin')
    S3_SECRET_KEY = os.getenv('S3_SECRET_KEY', 'minioadmin')
    S3_REGION = os.getenv('S3_REGION', 'us-east-1')
    S3_PUBLIC_URL = os.getenv('S3_PUBLIC_URL', 'http://localhost:9000')
    PRODUCT_IMAGES_BUCKET = os.getenv('PRODUCT_IMAGES_BUCKET', 'product-images')
    THEME_HEADERS_BUCKET = os.getenv('THEME_HEADERS_BUCKET', 'theme-headers')

    # Upload constraints
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 5 * 1024 * 1024))  # 5MB
    ALLOWED_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp'}
    ALLOWED_MIME_TYPES = {
        'image/jpeg',
        'image/png',
        'image/gif',
        'image/webp'
    }

    # Redis Cache Configuration
    # Backs the public flyer page so the marketing site doesn't hit the DB on every view
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_FLYER_TTL = int(os.getenv('CACHE_FLYER_TTL', '300'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'flyers')

    # Flyer export pipeline
    # Peak memory is roughly CHUNK_SIZE decoded pages at CAPTURE_SCALE (~10MB each at 2x)
    FLYER_CAPTURE_SCALE = int(os.getenv('FLYER_CAPTURE_SCALE', '2'))
    FLYER_JPEG_QUALITY = int(os.getenv('FLYER_JPEG_QUALITY', '95'))
    FLYER_RENDER_CHUNK_SIZE = int(os.getenv('FLYER_RENDER_CHUNK_SIZE', '2'))
    FLYER_CHUNK_PAUSE_SECONDS = float(os.getenv('FLYER_CHUNK_PAUSE_SECONDS', '0.1'))
    FLYER_MAX_ATTEMPTS = int(os.getenv('FLYER_MAX_ATTEMPTS', '3'))
    FLYER_RETRY_BASE_SECONDS = float(os.getenv('FLYER_RETRY_BASE_SECONDS', '1.0'))
    FLYER_IMAGE_PROBE_TIMEOUT = float(os.getenv('FLYER_IMAGE_PROBE_TIMEOUT', '10'))
    FLYER_PRINT_FALLBACK_DELAY = float(os.getenv('FLYER_PRINT_FALLBACK_DELAY', '1.0'))


class TestingConfig(Config):
    """Configuration used by the test suite (in-memory SQLite, no Redis)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    DB_CREATE_ALL = True
    WTF_CSRF_ENABLED = False
    CACHE_ENABLED = False
    ADMIN_PASSWORD = 'test-admin-password'

    FLYER_CHUNK_PAUSE_SECONDS = 0
    FLYER_RETRY_BASE_SECONDS = 0
    FLYER_PRINT_FALLBACK_DELAY = 0
    FLYER_IMAGE_PROBE_TIMEOUT = 0.5
