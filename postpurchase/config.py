"""
Configuration for PostPurchase Pro.

Values come from the environment (optionally a local .env file). The
factory picks a class by name through get_config().
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() == 'true'


def _database_url(default: str = '') -> str:
    url = os.getenv('DATABASE_URL', default)
    # Heroku-style URLs use a scheme SQLAlchemy 2 no longer accepts
    if url.startswith('postgres://'):
        url = 'postgresql://' + url[len('postgres://'):]
    return url


class BaseConfig:
    SECRET_KEY = os.getenv('SECRET_KEY', 'postpurchase-dev-secret')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shopify app credentials (the CLI's client_id/secret names also work)
    SHOPIFY_API_KEY = os.getenv('SHOPIFY_API_KEY', os.getenv('SHOPIFY_CLIENT_ID', ''))
    SHOPIFY_API_SECRET = os.getenv('SHOPIFY_API_SECRET', os.getenv('SHOPIFY_CLIENT_SECRET', ''))
    SHOPIFY_API_VERSION = os.getenv('SHOPIFY_API_VERSION', '2024-10')
    SHOPIFY_AUTH_DEV_MODE = _env_flag('SHOPIFY_AUTH_DEV_MODE')

    SHOPIFY_BILLING_TEST = _env_flag('SHOPIFY_BILLING_TEST', 'true')
    BILLING_API_TIMEOUT = float(os.getenv('BILLING_API_TIMEOUT', '10'))

    # Base of the billing return URL
    APP_URL = os.getenv('APP_URL', 'https://post-purchase-pro-app.vercel.app')

    DEFAULT_ANALYTICS_RANGE_DAYS = 30


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SHOPIFY_AUTH_DEV_MODE = _env_flag('SHOPIFY_AUTH_DEV_MODE', 'true')
    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///postpurchase_dev.db')


class ProductionConfig(BaseConfig):
    DEBUG = False
    SECRET_KEY = os.getenv('SECRET_KEY', '')
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 5,
        'pool_recycle': 300,
        'pool_pre_ping': True,
    }

    MIN_SECRET_KEY_LENGTH = 32

    @classmethod
    def validate(cls) -> None:
        """Refuse to boot without a strong secret key and the Shopify app secret."""
        problems = []
        if not cls.SECRET_KEY:
            problems.append('SECRET_KEY is not set')
        elif len(cls.SECRET_KEY) < cls.MIN_SECRET_KEY_LENGTH:
            problems.append(f'SECRET_KEY must be at least {cls.MIN_SECRET_KEY_LENGTH} characters')
        if not cls.SHOPIFY_API_SECRET:
            problems.append('SHOPIFY_API_SECRET is not set; session tokens and webhooks cannot be verified')
        if not cls.SQLALCHEMY_DATABASE_URI:
            problems.append('DATABASE_URL is not set')

        if problems:
            raise RuntimeError('Invalid production configuration: ' + '; '.join(problems))


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SHOPIFY_API_KEY = 'test-api-key'
    SHOPIFY_API_SECRET = 'test-api-secret-for-session-tokens-32b'
    SHOPIFY_AUTH_DEV_MODE = False
    BILLING_API_TIMEOUT = 2.0


CONFIGS = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
}


def get_config(config_name: str = 'development'):
    return CONFIGS.get(config_name, DevelopmentConfig)


def validate_config(config_name: str = 'development') -> None:
    """Raises RuntimeError when the production settings are unusable."""
    if config_name == 'production':
        ProductionConfig.validate()
