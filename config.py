import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    return os.environ.get(name, str(default)).lower() in ('true', '1', 'yes')


def _database_url():
    database_url = os.environ.get('DATABASE_URL')
    if not database_url:
        raise ValueError("DATABASE_URL is not set in .env file")
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


def _engine_options(database_url):
    # Pool and SSL settings only apply to the PostgreSQL deployment
    if not database_url.startswith('postgresql'):
        return {}
    return {
        'connect_args': {
            'connect_timeout': 10,
            'sslmode': os.environ.get('DATABASE_SSLMODE', 'require'),
        },
        'pool_size': 5,
        'max_overflow': 10,
        'pool_timeout': 30,
    }


class Config:
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)

    SECRET_KEY = os.environ.get('SECRET_KEY', 'xYz9wV1uT0sR9qP8oN7mL6kJ5iH4gF3eD2cB1a')
    SESSION_TYPE = os.environ.get('SESSION_TYPE', 'sqlalchemy')
    SESSION_PERMANENT = False
    SESSION_COOKIE_SECURE = _env_flag('SESSION_COOKIE_SECURE', True)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',') if o.strip()]

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG').upper()
    SCHEDULER_ENABLED = _env_flag('SCHEDULER_ENABLED', True)
    OVERDUE_REPORT_HOURS = int(os.environ.get('OVERDUE_REPORT_HOURS', '24'))
    PORT = int(os.environ.get('PORT', 5000))
