# catalog_api/config.py
import os
import binascii
import tempfile
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or binascii.hexlify(os.urandom(24)).decode()

    BASE_DIR = os.path.abspath(os.path.dirname(__file__))

    DATABASE_PATH = os.path.join(BASE_DIR, 'catalog_data.db')

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', f'sqlite:///{DATABASE_PATH}')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', 'uploads')

    # Max 10MB upload
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', 10))

    TOKEN_EXPIRES_HOURS = int(os.environ.get('TOKEN_EXPIRES_HOURS', 4))

    PRODUCT_LIST_MAX_LIMIT = 100

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    LOG_TIMEZONE = os.environ.get('LOG_TIMEZONE', 'UTC')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key-0123456789abcdef0123'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'catalog_api_uploads')
    # bcrypt's minimum cost keeps the suite fast
    BCRYPT_ROUNDS = 4
