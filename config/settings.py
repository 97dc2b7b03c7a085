# config/settings.py
"""
Application configuration for the SnailMail backend

Values come from the environment; a local .env file is honoured for
development. Select a config class by name with get_config().
"""

import os
from typing import Dict, Type

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value else default


class BaseConfig:
    """Settings shared by every environment"""

    APP_NAME = 'SnailMail Backend API'
    VERSION = os.environ.get('APP_VERSION', '1.0.0')
    PORT = _env_int('PORT', 3001)

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE')
    SLOW_REQUEST_THRESHOLD = 1000  # ms

    # CORS
    FRONTEND_URL = os.environ.get('FRONTEND_URL', 'http://localhost:5173')

    # Google Maps Distance Matrix
    GOOGLE_MAPS_API_KEY = os.environ.get('GOOGLE_MAPS_API_KEY')
    GOOGLE_MAPS_TIMEOUT = _env_float('GOOGLE_MAPS_TIMEOUT', 10.0)

    # Claude fallback estimator
    ANTHROPIC_API_KEY = os.environ.get('ANTHROPIC_API_KEY')
    ANTHROPIC_MODEL = os.environ.get('ANTHROPIC_MODEL', 'claude-sonnet-4-20250514')
    ANTHROPIC_MAX_TOKENS = _env_int('ANTHROPIC_MAX_TOKENS', 1000)

    # SMTP delivery; without credentials messages are logged instead
    SMTP_HOST = os.environ.get('SMTP_HOST', 'smtp.gmail.com')
    SMTP_PORT = _env_int('SMTP_PORT', 587)
    SMTP_TIMEOUT = _env_float('SMTP_TIMEOUT', 60.0)
    EMAIL_USER = os.environ.get('EMAIL_USER')
    EMAIL_PASS = os.environ.get('EMAIL_PASS')

    # Job tracker
    PROGRESS_TICK_SECONDS = _env_float('PROGRESS_TICK_SECONDS', 1.0)
    MAX_SPEED_MULTIPLIER = _env_float('MAX_SPEED_MULTIPLIER', 10000.0)

    MAX_CONTENT_LENGTH = 1 * 1024 * 1024  # 1MB request bodies

    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': 'camera=(), microphone=(), geolocation=()',
    }


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(BaseConfig):
    TESTING = True
    LOG_LEVEL = 'WARNING'
    LOG_FILE = None

    # Never reach real services from tests
    GOOGLE_MAPS_API_KEY = None
    ANTHROPIC_API_KEY = None
    EMAIL_USER = None
    EMAIL_PASS = None

    PROGRESS_TICK_SECONDS = 0.05


class ProductionConfig(BaseConfig):
    DEBUG = False
    SECURITY_HEADERS = dict(
        BaseConfig.SECURITY_HEADERS,
        **{'Strict-Transport-Security': 'max-age=31536000; includeSubDomains'}
    )


CONFIGS: Dict[str, Type[BaseConfig]] = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name: str = None) -> Type[BaseConfig]:
    """Resolve a config class by name, falling back to FLASK_ENV then production"""
    config_name = config_name or os.environ.get('FLASK_ENV', 'production')
    try:
        return CONFIGS[config_name]
    except KeyError:
        raise ValueError(
            f"Unknown configuration '{config_name}'; expected one of: {', '.join(CONFIGS)}"
        )
