import os

from dotenv import load_dotenv

# Variables already set in the environment take precedence over .env
load_dotenv()


class Config:
    # MongoDB Configuration
    MONGODB_URL = os.getenv('MONGODB_URL', 'mongodb://localhost:27017')
    MONGODB_DB_NAME = os.getenv('MONGODB_DB_NAME', 'phonebook')
    MONGODB_SSL_ALLOW_INVALID_CERTIFICATES = os.getenv('MONGODB_SSL_ALLOW_INVALID_CERTIFICATES', 'false').lower() == 'true'
    # Serve from process memory when MongoDB is unreachable at startup; data is lost on restart
    MONGODB_IN_MEMORY_FALLBACK = os.getenv('MONGODB_IN_MEMORY_FALLBACK', 'false').lower() == 'true'

    # JWT Configuration
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', os.getenv('SECRET'))
    JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
    ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', '60'))

    # User Configuration
    USERNAME_MIN_LENGTH = int(os.getenv('USERNAME_MIN_LENGTH', '3'))
    PASSWORD_MIN_LENGTH = int(os.getenv('PASSWORD_MIN_LENGTH', '3'))

    # Server Configuration
    HOST = os.getenv('HOST', '127.0.0.1')
    PORT = int(os.getenv('PORT', '3001'))
    DEBUG = os.getenv('DEBUG', 'false').lower() == 'true'
    LOG_FILE = os.getenv('LOG_FILE', 'phonebook.log')

    @classmethod
    def validate_config(cls):
        required_vars = [
            ('JWT_SECRET_KEY', cls.JWT_SECRET_KEY),
            ('MONGODB_URL', cls.MONGODB_URL)
        ]

        missing = [var[0] for var in required_vars if not var[1]]

        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")
