"""
Local development settings for the Conlify project.
This file is only used for local development.
"""

from .settings import *

# Override settings for local development
DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1', '0.0.0.0', '.ngrok-free.app']

# Use SQLite for local development (easier and faster for testing)
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db_local.sqlite3',
    }
}

# Console email backend for testing (emails print to console)
EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Disable HTTPS redirects for local development
SECURE_SSL_REDIRECT = False
SESSION_COOKIE_SECURE = False
CSRF_COOKIE_SECURE = False

# Run celery tasks inline so reminders work without a broker
CELERY_TASK_ALWAYS_EAGER = env.bool('CELERY_TASK_ALWAYS_EAGER', default=True)

LOG_LEVEL = 'DEBUG'
LOGGING['loggers']['circles']['level'] = LOG_LEVEL
LOGGING['loggers']['notifications']['level'] = LOG_LEVEL

TIME_ZONE = 'Africa/Nairobi'
USE_TZ = True
