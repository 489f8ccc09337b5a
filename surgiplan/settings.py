"""
Django settings for the surgiplan backend.

Database, broker and external calendar credentials are read from the
environment (optionally via a local ``.env`` file).
"""

import os
from datetime import timedelta
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

load_dotenv()

from celery.schedules import crontab


BASE_DIR = Path(__file__).resolve().parent.parent


SECRET_KEY = os.getenv(
    'DJANGO_SECRET_KEY',
    'django-insecure-5u!r9ip#lan-dev-only-key-0c1x@t7m$w2e+4kq8n%h6v3z'
)

DEBUG = os.getenv('DJANGO_DEBUG', 'False').lower() == 'true'

ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,[::1]').split(',')
    if host.strip()
]


INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',

    'corsheaders',
    'rest_framework',
    'rest_framework_simplejwt',

    'surgiplan.core',
    'surgiplan.appointments',
    'surgiplan.surgeries',
    'surgiplan.notifications',
]


MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',  # must be before CommonMiddleware
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]


ROOT_URLCONF = 'surgiplan.urls'


TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]


WSGI_APPLICATION = 'surgiplan.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('SYS_DB_NAME', 'surgiplan'),
        'USER': os.getenv('SYS_DB_USER', 'postgres'),
        'PASSWORD': os.getenv('SYS_DB_PASSWORD') or os.getenv('PGPASSWORD', ''),
        'HOST': os.getenv('SYS_DB_HOST', 'localhost'),
        'PORT': os.getenv('SYS_DB_PORT', '5432'),
        'CONN_MAX_AGE': int(os.getenv('SYS_DB_CONN_MAX_AGE', '0')),
        'OPTIONS': {
            'connect_timeout': 10,
        },
    },
}

# DATABASE_URL, when set, takes precedence over the SYS_DB_* variables
if os.getenv('DATABASE_URL'):
    DATABASES['default'] = dj_database_url.config(
        env='DATABASE_URL',
        conn_max_age=int(os.getenv('SYS_DB_CONN_MAX_AGE', '0')),
    )


CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'surgiplan',
    }
}


AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Custom user model (must be set before running any migrations)
AUTH_USER_MODEL = 'core.User'


# Django REST Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
}

# SimpleJWT
JWT_SIGNING_KEY = os.getenv('JWT_SIGNING_KEY', SECRET_KEY)

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=30),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
    'ALGORITHM': 'HS256',
    'SIGNING_KEY': JWT_SIGNING_KEY,
}


# CORS
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv('CORS_ALLOWED_ORIGINS', '').split(',')
    if origin.strip()
]


LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'noreply@surgiplan.local')


# ---------------------------------------------------------
# CELERY: periodic sweeps
# ---------------------------------------------------------

CELERY_BROKER_URL = f"redis://{os.environ.get('REDIS_HOST', 'localhost')}:6379/0"
CELERY_RESULT_BACKEND = CELERY_BROKER_URL
CELERY_TIMEZONE = TIME_ZONE

CELERY_BEAT_SCHEDULE = {
    'readiness-sweep': {
        'task': 'surgiplan.surgeries.tasks.readiness_sweep',
        'schedule': crontab(minute='*/15'),
    },
    'expire-patient-requirements': {
        'task': 'surgiplan.surgeries.tasks.expire_patient_requirements',
        'schedule': crontab(minute=5),
    },
    'task-reminders': {
        'task': 'surgiplan.surgeries.tasks.send_task_reminders',
        'schedule': crontab(hour=7, minute=0),
    },
    'dispatch-notifications': {
        'task': 'surgiplan.notifications.tasks.dispatch_notifications',
        'schedule': crontab(minute='*'),
    },
}


# ---------------------------------------------------------
# SURGIPLAN: scheduling & readiness
# ---------------------------------------------------------

SURGIPLAN_CALENDAR = {
    'BACKEND': os.getenv(
        'SURGIPLAN_CALENDAR_BACKEND',
        'surgiplan.integrations.google_calendar.GoogleCalendarOracle',
    ),
    'OPTIONS': {
        'access_token': os.getenv('GOOGLE_CALENDAR_ACCESS_TOKEN', ''),
        'timeout': float(os.getenv('GOOGLE_CALENDAR_TIMEOUT', '10')),
    },
}

SURGIPLAN_EQUIPMENT_BACKEND = 'surgiplan.surgeries.services.equipment.ReservationEquipmentService'

SURGIPLAN_NOTIFICATION_SENDERS = {
    'email': 'surgiplan.notifications.senders.EmailSender',
    'sms': 'surgiplan.notifications.senders.LoggingSender',
    'dashboard': 'surgiplan.notifications.senders.DashboardSender',
}
SURGIPLAN_NOTIFICATION_MAX_ATTEMPTS = int(os.getenv('SURGIPLAN_NOTIFICATION_MAX_ATTEMPTS', '3'))

SURGIPLAN_TEMPLATE_CACHE_TTL = int(os.getenv('SURGIPLAN_TEMPLATE_CACHE_TTL', '60'))

SURGIPLAN_CONSULTATION_DEADLINE_DAYS = 3

# medications/instructions may be added to gate readiness on them as well
SURGIPLAN_READINESS_PATIENT_ITEMS = ('bloodwork', 'ecg')


# ---------------------------------------------------------
# LOGGING
# ---------------------------------------------------------

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'surgiplan': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}


# ---------------------------------------------------------
# SENTRY (Optional)
# ---------------------------------------------------------

SENTRY_DSN = os.getenv('SENTRY_DSN', '')
if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.celery import CeleryIntegration
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[DjangoIntegration(), CeleryIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
