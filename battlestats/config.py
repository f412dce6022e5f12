import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Engine configuration settings"""

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///battlestats.db')

    # Logging settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    LOG_TO_FILE = os.getenv('LOG_TO_FILE', 'False').lower() == 'true'

    # Pagination settings
    DEFAULT_PAGE_SIZE = int(os.getenv('DEFAULT_PAGE_SIZE', 25))
    MAX_PAGE_SIZE = int(os.getenv('MAX_PAGE_SIZE', 100))

    # Reporting period used when a request names no year (empty = current UTC year)
    FALLBACK_YEAR = os.getenv('FALLBACK_YEAR', '')

    @classmethod
    def get_async_database_url(cls) -> str:
        """Get the database URL with an async driver for sqlite"""
        database_url = cls.DATABASE_URL
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        elif database_url == 'sqlite://':
            database_url = 'sqlite+aiosqlite://'
        return database_url

    @classmethod
    def get_fallback_year(cls):
        """Get the configured fallback year, or None to use the current year"""
        if not cls.FALLBACK_YEAR:
            return None
        try:
            return int(cls.FALLBACK_YEAR)
        except ValueError:
            raise ValueError("FALLBACK_YEAR must be an integer year")

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        if cls.DEFAULT_PAGE_SIZE < 1:
            raise ValueError("DEFAULT_PAGE_SIZE must be at least 1")
        if cls.MAX_PAGE_SIZE < cls.DEFAULT_PAGE_SIZE:
            raise ValueError("MAX_PAGE_SIZE must not be smaller than DEFAULT_PAGE_SIZE")
        cls.get_fallback_year()
