"""
Development settings for the surgiplan backend (SQLite, no broker).

Usage:
    export DJANGO_SETTINGS_MODULE=surgiplan.settings_dev
    python manage.py migrate
    python manage.py runserver
"""

from .settings import *

DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1', '[::1]', '*']

CORS_ALLOW_ALL_ORIGINS = True

# ---------------------------------------------------------
# DATABASES: SQLite
# ---------------------------------------------------------

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'dev.sqlite3',
        'OPTIONS': {
            'timeout': 20,
        },
    },
}

# ---------------------------------------------------------
# CELERY: tasks run synchronously
# ---------------------------------------------------------

CELERY_BROKER_URL = None
CELERY_RESULT_BACKEND = None
CELERY_TASK_ALWAYS_EAGER = True

# ---------------------------------------------------------
# INTEGRATIONS: no external calendar, e-mails to the console
# ---------------------------------------------------------

SURGIPLAN_CALENDAR = {
    'BACKEND': 'surgiplan.integrations.calendar.NullCalendarOracle',
    'OPTIONS': {},
}

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# ---------------------------------------------------------
# LOGGING
# ---------------------------------------------------------

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '{levelname} {asctime} {module}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
    'loggers': {
        'django.db.backends': {
            'handlers': ['console'],
            'level': 'WARNING',  # DEBUG for SQL queries
            'propagate': False,
        },
        'surgiplan': {
            'handlers': ['console'],
            'level': 'DEBUG',
            'propagate': False,
        },
    },
}
