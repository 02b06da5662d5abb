"""
Configuration for the Madrasa Fee Management System
"""

import os
from decimal import Decimal
from urllib.parse import quote_plus
import dotenv
dotenv.load_dotenv()  # Load environment variables from .env file

class Config:
    """Base configuration"""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'supersecretkey'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Database settings (DATABASE_URL wins, then the DB_* variables, then local SQLite)
    DATABASE_URL = os.environ.get('DATABASE_URL')
    MYSQL_HOST = os.environ.get('DB_HOST')
    MYSQL_PORT = int(os.environ.get('DB_PORT', 3306))
    MYSQL_USERNAME = os.environ.get('DB_USER')
    MYSQL_PASSWORD = os.environ.get('DB_PASS', '')
    MYSQL_DATABASE = os.environ.get('DB_NAME')
    MYSQL_CHARSET = 'utf8mb4'
    SQLITE_PATH = os.environ.get('SQLITE_PATH', 'madrasa_fees.db')

    # SQLAlchemy settings
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_recycle': 280,
        'pool_pre_ping': True,
    }

    # Institute settings (shown on the settings page and in reminder messages)
    INSTITUTE_NAME = os.environ.get('INSTITUTE_NAME', 'Madrasa')
    INSTITUTE_ADDRESS = os.environ.get('INSTITUTE_ADDRESS', '')
    INSTITUTE_PHONE = os.environ.get('INSTITUTE_PHONE', '')
    INSTITUTE_EMAIL = os.environ.get('INSTITUTE_EMAIL', '')
    DEFAULT_MONTHLY_FEE = Decimal(os.environ.get('DEFAULT_MONTHLY_FEE', '1000'))
    CURRENCY_SYMBOL = os.environ.get('CURRENCY_SYMBOL', '₹')

    def _encoded_password(self) -> str:
        """Percent-encode special characters for URL usage."""
        return quote_plus(self.MYSQL_PASSWORD) if self.MYSQL_PASSWORD else ''

    def get_database_uri(self) -> str:
        """Get the database URI for the configured backend."""
        if self.DATABASE_URL:
            if self.DATABASE_URL.startswith('postgres://'):
                return self.DATABASE_URL.replace('postgres://', 'postgresql://', 1)
            return self.DATABASE_URL

        if self.MYSQL_HOST and self.MYSQL_USERNAME and self.MYSQL_DATABASE:
            user = self.MYSQL_USERNAME
            pwd = self._encoded_password()
            host = self.MYSQL_HOST
            port = self.MYSQL_PORT
            database = self.MYSQL_DATABASE
            if pwd:
                return f"mysql+pymysql://{user}:{pwd}@{host}:{port}/{database}?charset={self.MYSQL_CHARSET}"
            return f"mysql+pymysql://{user}@{host}:{port}/{database}?charset={self.MYSQL_CHARSET}"

        return f"sqlite:///{self.SQLITE_PATH}"


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing-secret'
    LOG_LEVEL = 'WARNING'

    # Use in-memory SQLite for testing
    def get_database_uri(self) -> str:
        return 'sqlite:///:memory:'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
