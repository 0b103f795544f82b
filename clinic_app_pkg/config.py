# clinic_app_pkg/config.py
import os


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Base configuration settings."""
    # Application Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you_REALLY_should_set_a_secret_key_in_env'
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'you_REALLY_should_set_a_JWT_secret_key_in_env'
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRATION_MINUTES = int(os.environ.get('JWT_EXPIRATION_MINUTES', 60 * 24))

    # Database
    # Default to SQLite if DATABASE_URL is not set in the environment
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///clinic_default.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Visit handler returns the underlying error text on 500s when this is on.
    EXPOSE_ERROR_DETAILS = _env_flag('EXPOSE_ERROR_DETAILS', True)

    # Admin workflow
    WORKFLOW_USER_TASK_LIMIT = int(os.environ.get('WORKFLOW_USER_TASK_LIMIT', 50))
    WORKFLOW_ORGANIZATION_TASK_LIMIT = int(os.environ.get('WORKFLOW_ORGANIZATION_TASK_LIMIT', 20))
    # Placeholder until tasks carry their own timestamps
    WORKFLOW_AVERAGE_PROCESSING_MINUTES = int(os.environ.get('WORKFLOW_AVERAGE_PROCESSING_MINUTES', 15))

    # Visit listing
    VISITS_DEFAULT_LIMIT = int(os.environ.get('VISITS_DEFAULT_LIMIT', 50))
    VISITS_MAX_LIMIT = int(os.environ.get('VISITS_MAX_LIMIT', 100))

    # Integrations
    TELEMEDICINE_BASE_URL = os.environ.get('TELEMEDICINE_BASE_URL') or 'https://telehealth.example.com/session'


class DevelopmentConfig(Config):
    """Development-specific configuration."""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or os.environ.get('DATABASE_URL') or 'sqlite:///clinic_dev.db'


class TestingConfig(Config):
    """Testing-specific configuration."""
    TESTING = True
    DEBUG = True
    # In-memory SQLite unless a dedicated test database is configured
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or 'sqlite://'
    JWT_SECRET_KEY = 'testing-jwt-secret-key-with-enough-length'
    JWT_EXPIRATION_MINUTES = 5
    EXPOSE_ERROR_DETAILS = True


class ProductionConfig(Config):
    """Production-specific configuration."""
    DEBUG = False
    TESTING = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///prod_fallback.db'
    EXPOSE_ERROR_DETAILS = _env_flag('EXPOSE_ERROR_DETAILS', False)

    @classmethod
    def validate(cls):
        if cls.SECRET_KEY == 'you_REALLY_should_set_a_secret_key_in_env':
            raise ValueError("SECRET_KEY not set via environment variable for production")
        if cls.JWT_SECRET_KEY == 'you_REALLY_should_set_a_JWT_secret_key_in_env':
            raise ValueError("JWT_SECRET_KEY not set via environment variable for production")


def get_config(config_name=None):
    """Helper function to get the correct config class based on FLASK_ENV."""
    env = (config_name or os.environ.get('FLASK_ENV', 'development')).lower()
    if env == 'production':
        ProductionConfig.validate()
        return ProductionConfig
    elif env == 'testing':
        return TestingConfig
    return DevelopmentConfig
