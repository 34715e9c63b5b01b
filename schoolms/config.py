import os
from dotenv import load_dotenv

# Load environment variables from .env and .flaskenv files
load_dotenv('.env')
load_dotenv('.flaskenv')


def _database_url():
    database_url = os.environ.get('DATABASE_URL', 'sqlite:///schoolms.db')
    # Render and Heroku still hand out the old scheme
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')

    # Database
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
    }

    # Bearer tokens
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)
    JWT_ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
    JWT_EXPIRES_HOURS = int(os.environ.get('JWT_EXPIRES_HOURS', 24))

    # Rate limiting
    API_RATE_LIMIT = os.environ.get('API_RATE_LIMIT', '300 per minute')
    LOGIN_RATE_LIMIT = os.environ.get('LOGIN_RATE_LIMIT', '20 per minute')
    RATELIMIT_DEFAULT = API_RATE_LIMIT
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_ENABLED = True

    # Login lockout
    MAX_PASSWORD_ATTEMPTS = int(os.environ.get('MAX_PASSWORD_ATTEMPTS', 5))
    PASSWORD_LOCK_MINUTES = int(os.environ.get('PASSWORD_LOCK_MINUTES', 5))

    # Fees (UGX)
    BOARDING_FEE = float(os.environ.get('BOARDING_FEE', 500000))

    SCHOOL_TIMEZONE = os.environ.get('SCHOOL_TIMEZONE', 'Africa/Kampala')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = 'testing-secret'
    JWT_SECRET_KEY = 'testing-jwt-secret'
    RATELIMIT_ENABLED = False
    LOG_LEVEL = 'DEBUG'
