import os
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()


def env_flag(name, default='False'):
    return os.environ.get(name, default).lower() == 'true'


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///bookhaven.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Storage: 'sql' (SQLAlchemy) or 'memory' (process lifetime only)
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'sql')
    SEED_DEMO_DATA = env_flag('SEED_DEMO_DATA', 'True')
    ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'admin@bookhaven.com')
    ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', 'admin123')
    PASSWORD_HASH_METHOD = os.environ.get('PASSWORD_HASH_METHOD', 'scrypt')

    # Checkout
    FREE_SHIPPING_THRESHOLD = Decimal(os.environ.get('FREE_SHIPPING_THRESHOLD', '35.00'))
    SHIPPING_FEE = Decimal(os.environ.get('SHIPPING_FEE', '5.99'))
    ESTIMATED_TAX_RATE = Decimal(os.environ.get('ESTIMATED_TAX_RATE', '0.08'))
    CART_MERGE_STRATEGY = os.environ.get('CART_MERGE_STRATEGY', 'additive')
    RELATED_BOOKS_LIMIT = int(os.environ.get('RELATED_BOOKS_LIMIT', 4))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Mail settings
    MAIL_SERVER = os.environ.get('MAIL_SERVER', 'localhost')
    MAIL_PORT = int(os.environ.get('MAIL_PORT', 25))
    MAIL_USE_TLS = env_flag('MAIL_USE_TLS')
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER', 'noreply@bookhaven.com')


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    DEBUG = False
    SEED_DEMO_DATA = env_flag('SEED_DEMO_DATA')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    STORAGE_BACKEND = 'memory'
    SEED_DEMO_DATA = False
    WTF_CSRF_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:1000'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
