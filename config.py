"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _csv_set(value):
    return {item.strip().upper() for item in value.split(',') if item.strip()}


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'barpos')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'barpos')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'barpos')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Restock authorization (server-side role check + optional capability token)
    RESTOCK_ROLES = _csv_set(os.getenv('RESTOCK_ROLES', 'OWNER,MANAGER'))
    RESTOCK_CAPABILITY_TOKEN = os.getenv('RESTOCK_CAPABILITY_TOKEN') or None

    # Stock status thresholds (percentage of initial stock remaining)
    LOW_STOCK_CRITICAL_PCT = int(os.getenv('LOW_STOCK_CRITICAL_PCT', '30'))
    LOW_STOCK_WARNING_PCT = int(os.getenv('LOW_STOCK_WARNING_PCT', '60'))

    # Redis Cache Configuration
    # Holds the per-manager dashboard projection and publishes change notifications
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_DASHBOARD_TTL = int(os.getenv('CACHE_DASHBOARD_TTL', '30'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'barpos')
    CHANGE_FEED_CHANNEL = os.getenv('CHANGE_FEED_CHANNEL', 'barpos:changes')


class TestingConfig(Config):
    """Configuration used by the test suite (in-memory SQLite, no Redis)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    CACHE_ENABLED = False
    RESTOCK_ROLES = {'OWNER', 'MANAGER'}
    RESTOCK_CAPABILITY_TOKEN = None
