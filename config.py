import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DATABASE_URI = os.environ.get('DATABASE_URI', 'sqlite://')
SECRET_KEY = os.environ.get('SECRET_KEY', 'fallback_secret')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
HOSPITAL_TIMEZONE = os.environ.get('HOSPITAL_TIMEZONE', 'Africa/Lagos')

LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'default',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
}
