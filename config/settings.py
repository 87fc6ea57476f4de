# config/settings.py
"""
Environment-driven configuration for the contact & email relay service
"""

import os
from typing import List

from dotenv import load_dotenv

# Pick up a local .env before any config class reads the environment
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name: str, default: str) -> List[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(',') if item.strip()]


class BaseConfig:
    """Settings shared by every environment"""

    ENV_NAME = 'production'
    DEBUG = False
    TESTING = False

    # Dev-server bind
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', 3000))

    # SMTP relay
    SMTP_HOST = os.environ.get('SMTP_HOST', 'smtp.hostinger.com')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', 587))
    SMTP_ENCRYPTION = os.environ.get('SMTP_ENCRYPTION', 'tls').lower()
    SMTP_USER = os.environ.get('SMTP_USER')
    SMTP_PASS = os.environ.get('SMTP_PASS')
    SMTP_FROM_ADDRESS = os.environ.get('SMTP_FROM_ADDRESS')
    SMTP_VALIDATE_CERTS = _env_bool('SMTP_VALIDATE_CERTS', False)
    SMTP_TIMEOUT = float(os.environ.get('SMTP_TIMEOUT', 60))

    # Contact form
    CONTACT_RECIPIENTS = _env_list('CONTACT_RECIPIENTS', 'contact@zahariacompany.com')
    COMPANY_NAME = os.environ.get('COMPANY_NAME', 'Zaharia Company')

    # Rate limiting (flask-limiter reads the RATELIMIT_* keys)
    MAIL_RATE_LIMIT = os.environ.get('MAIL_RATE_LIMIT', '10 per 15 minutes')
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_HEADERS_ENABLED = True

    # Error responses
    EXPOSE_ERROR_DETAILS = _env_bool('EXPOSE_ERROR_DETAILS', False)

    # Request handling
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB
    CORS_ORIGINS = _env_list('CORS_ORIGINS', '*')
    BEHIND_PROXY = _env_bool('BEHIND_PROXY', False)
    SLOW_REQUEST_THRESHOLD = int(os.environ.get('SLOW_REQUEST_THRESHOLD', 1000))  # ms

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
    LOG_FILE = os.environ.get('LOG_FILE')

    # Security headers
    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
        'Content-Security-Policy': "default-src 'none'; frame-ancestors 'none'",
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': 'camera=(), microphone=(), geolocation=()'
    }


class DevelopmentConfig(BaseConfig):
    """Local development: diagnostics are returned to the caller"""

    ENV_NAME = 'development'
    DEBUG = True
    EXPOSE_ERROR_DETAILS = _env_bool('EXPOSE_ERROR_DETAILS', True)
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG').upper()


class TestingConfig(BaseConfig):
    """Deterministic settings for the test suite"""

    ENV_NAME = 'testing'
    TESTING = True

    SMTP_HOST = 'smtp.test'
    SMTP_PORT = 587
    SMTP_ENCRYPTION = 'tls'
    SMTP_USER = 'relay@test.example'
    SMTP_PASS = 'secret'
    SMTP_FROM_ADDRESS = 'no-reply@test.example'
    SMTP_TIMEOUT = 5.0

    CONTACT_RECIPIENTS = ['contact@test.example', 'sales@test.example']
    COMPANY_NAME = 'Test Company'

    MAIL_RATE_LIMIT = '10 per 15 minutes'
    RATELIMIT_STORAGE_URI = 'memory://'

    EXPOSE_ERROR_DETAILS = False
    LOG_LEVEL = 'WARNING'
    LOG_FILE = None
    CORS_ORIGINS = ['*']
    BEHIND_PROXY = False


class ProductionConfig(BaseConfig):
    """Deployed service: diagnostics withheld unless explicitly enabled"""


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name: str = None):
    """
    Resolve a config class by environment name

    Falls back to ``APP_ENV`` and then to production for unknown names.
    """
    config_name = (config_name or os.environ.get('APP_ENV', 'production')).lower()
    return CONFIGS.get(config_name, ProductionConfig)
