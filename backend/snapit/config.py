# Configuration settings
import os
import tempfile
from datetime import timedelta
from dotenv import load_dotenv

# This line loads the variables from your .env file
load_dotenv()


def _flag(name, default='0'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


def engine_options(database_url: str, timeout: float) -> dict:
    """Bound every store call: SQLite waits on its file lock, pooled drivers on the pool."""
    if database_url.startswith('sqlite'):
        return {'connect_args': {'timeout': timeout}}
    return {'pool_timeout': timeout, 'pool_pre_ping': True}


# This class holds all the configuration variables for your app
class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-change-me')
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)

    # Session tokens
    TOKEN_EXPIRY_HOURS = int(os.environ.get('TOKEN_EXPIRY_HOURS', 24))
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=TOKEN_EXPIRY_HOURS)
    # Carriers are tried in this order: cookie, request body, bearer header
    JWT_TOKEN_LOCATION = ['cookies', 'json', 'headers']
    JWT_ACCESS_COOKIE_NAME = 'token'
    JWT_JSON_KEY = 'token'
    JWT_SESSION_COOKIE = False
    JWT_COOKIE_CSRF_PROTECT = False
    COOKIE_SECURE = _flag('COOKIE_SECURE')
    JWT_COOKIE_SECURE = COOKIE_SECURE
    JWT_COOKIE_SAMESITE = 'None' if COOKIE_SECURE else 'Strict'

    # Persistent store
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL', 'sqlite:///' + os.path.join(os.getcwd(), 'snapit.db'))
    STORE_TIMEOUT_SECONDS = float(os.environ.get('STORE_TIMEOUT_SECONDS', 10))
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI, STORE_TIMEOUT_SECONDS)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Image storage
    STORAGE_BACKEND = os.environ.get('STORAGE_BACKEND', 'local')
    CLOUD_NAME = os.environ.get('CLOUD_NAME')
    API_KEY = os.environ.get('API_KEY')
    API_SECRET = os.environ.get('API_SECRET')
    FOLDER_NAME = os.environ.get('FOLDER_NAME', 'snapit')
    STORAGE_TIMEOUT_SECONDS = float(os.environ.get('STORAGE_TIMEOUT_SECONDS', 10))
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(os.getcwd(), 'uploads'))

    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 16 * 1024 * 1024))
    ALLOWED_EXTENSIONS = {ext.strip().lower() for ext in os.environ.get('ALLOWED_EXTENSIONS', 'png,jpg,jpeg,gif,webp').split(',')}
    MAX_IMAGES_PER_POST = int(os.environ.get('MAX_IMAGES_PER_POST', 10))
    PASSWORD_HASH_ITERATIONS = int(os.environ.get('PASSWORD_HASH_ITERATIONS', 200_000))

    CORS_ORIGIN = os.environ.get('CORS_ORIGIN', 'http://localhost:5173')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG' if _flag('FLASK_DEBUG') else 'INFO').upper()


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-length-for-hs256'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI, 5)
    STORAGE_BACKEND = 'local'
    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'snapit-test-uploads')
    PASSWORD_HASH_ITERATIONS = 1000
    COOKIE_SECURE = False
    JWT_COOKIE_SECURE = False
    JWT_COOKIE_SAMESITE = 'Strict'
