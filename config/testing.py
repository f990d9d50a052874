"""
Testing configuration for the CRM backend
"""
import os
import tempfile
from datetime import timedelta

from config.settings import Config


class TestingConfig(Config):
    """Testing configuration with isolated database and safe defaults"""

    TESTING = True
    DEBUG = False

    # Use in-memory SQLite for fast tests
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'TEST_DATABASE_URL',
        'sqlite:///:memory:'
    )

    JWT_SECRET_KEY = 'test-jwt-secret'
    JWT_REFRESH_SECRET_KEY = 'test-jwt-refresh-secret'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=5)

    # Use simple password hashing for speed
    BCRYPT_LOG_ROUNDS = 4

    # Disable email sending
    MAIL_SUPPRESS_SEND = True
    RESEND_API_KEY = ''
    SENDGRID_API_KEY = ''
    ADMIN_EMAILS = ['admin@crm.test']

    BATUTA_API_URL = ''

    # Disable rate limiting in tests
    RATELIMIT_ENABLED = False

    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'crm_test_uploads')

    # Logging
    LOG_LEVEL = 'WARNING'

    CORS_ORIGINS = ['http://localhost:5173', 'http://localhost:3000']

    SOCKETIO_ASYNC_MODE = 'threading'
