#barberbook/settings.py

import os
from pathlib import Path
from datetime import timedelta
import ssl
from dotenv import load_dotenv
import urllib.parse as urlparse


# Load .env file
load_dotenv()
# ==============================
# Base Directory
# ==============================
BASE_DIR = Path(__file__).resolve().parent.parent

# ==============================
# Django Security
# ==============================
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-default-key')
DEBUG = os.getenv('DEBUG', 'True').lower() in ('true', '1', 't')

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', 'localhost').split(',')

# ==============================
# Installed Apps
# ==============================
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework_simplejwt',
    'django_celery_beat',
    'drf_yasg',
    'accounts',
    'payments',
    'api.apps.ApiConfig',
]

# ==============================
# REST Framework & JWT
# ==============================
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'EXCEPTION_HANDLER': 'api.exceptions.exception_handler',
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=60),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=7),
    'AUTH_HEADER_TYPES': ('Bearer',),
}

# ==============================
# Middleware
# ==============================
MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'barberbook.urls'

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

WSGI_APPLICATION = 'barberbook.wsgi.application'

# ==============================
# Helper logic to clean Redis URL
# ==============================

# Get the raw URL from the environment
RAW_REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
CLEAN_REDIS_URL = RAW_REDIS_URL
SSL_OPTIONS = {}

if RAW_REDIS_URL.startswith("rediss://"):
    # This is an SSL connection, set the correct SSL constant
    SSL_OPTIONS = {"ssl_cert_reqs": ssl.CERT_NONE}

    try:
        parsed_url = urlparse.urlparse(RAW_REDIS_URL)
        query_params = urlparse.parse_qs(parsed_url.query)

        # Remove the problematic key if it exists
        query_params.pop('ssl_cert_reqs', None)

        new_query = urlparse.urlencode(query_params, doseq=True)
        CLEAN_REDIS_URL = parsed_url._replace(query=new_query).geturl()

    except ValueError as e:
        print(f"Warning: Could not parse REDIS_URL, proceeding with raw URL. Error: {e}")
        CLEAN_REDIS_URL = RAW_REDIS_URL

# ==============================
# Database
# ==============================
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.getenv('DATABASE_NAME', 'barberbook'),
        'USER': os.getenv('DATABASE_USER', 'postgres'),
        'PASSWORD': os.getenv('DATABASE_PASSWORD', ''),
        'HOST': os.getenv('DATABASE_HOST', 'localhost'),
        'PORT': int(os.getenv('DATABASE_PORT', 5432)),
    }
}

# ==============================
# Password Validation
# ==============================
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',},
]

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "[%(asctime)s] %(levelname)s %(name)s:%(lineno)s %(message)s"
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        # Root logger
        "": {"handlers": ["console"], "level": "INFO"},

        # Django core
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},

        # Email backend
        "django.core.mail": {"handlers": ["console"], "level": "DEBUG", "propagate": False},

        # Booking engine
        "api": {"handlers": ["console"], "level": os.getenv("BOOKING_LOG_LEVEL", "INFO"), "propagate": False},
        "payments": {"handlers": ["console"], "level": os.getenv("BOOKING_LOG_LEVEL", "INFO"), "propagate": False},
    },
}
# ==============================
# Internationalization
# ==============================
LANGUAGE_CODE = 'en-us'
# Appointment dates/times are wall-clock values in this zone
TIME_ZONE = os.getenv("TIME_ZONE", "America/New_York")
USE_I18N = True
USE_TZ = True

# ==============================
# Static files
# ==============================
STATIC_URL = '/static/'
STATIC_ROOT = os.path.join(BASE_DIR, 'staticfiles')

# ==============================
# Default primary key field type
# ==============================
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ==============================
# Email Configuration
# ==============================
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', '')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', 587))
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = os.getenv('EMAIL_USE_TLS', 'true').lower() in ('true','1','yes')
EMAIL_USE_SSL = os.getenv('EMAIL_USE_SSL', 'false').lower() in ('true','1','yes')
EMAIL_TIMEOUT = int(os.getenv('EMAIL_TIMEOUT', 20))
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'BarberBook <no-reply@barberbook.test>')

# ==============================
# Custom User Model
# ==============================
AUTH_USER_MODEL = 'accounts.User'

# ==============================
# CSRF Trusted Origins
# ==============================
CSRF_TRUSTED_ORIGINS = [x.strip() for x in os.getenv('CSRF_TRUSTED_ORIGINS', '').split(',') if x]
CSRF_TRUSTED_ORIGINS += ['http://localhost:8000', 'http://127.0.0.1:8000']

# ==============================
# Celery Configuration
# ==============================
CELERY_BROKER_URL = CLEAN_REDIS_URL
CELERY_RESULT_BACKEND = CLEAN_REDIS_URL
CELERY_TASK_IGNORE_RESULT = True

# Sync Celery's timezone with Django's
CELERY_TIMEZONE = TIME_ZONE

# beat_schedule entries from barberbook/celery.py are synced into the
# django-celery-beat tables and can be paused or edited from the admin
CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"

# ==============================
# Twilio (SMS channel)
# ==============================
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER", "")  # fallback if no messaging service
TWILIO_MESSAGING_SERVICE_SID = os.getenv("TWILIO_MESSAGING_SERVICE_SID", "")
TWILIO_ENABLE = os.getenv("TWILIO_ENABLE", "true").lower() in ('true', '1', 'yes')

# ==============================
# Booking engine
# ==============================
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:8080")

BOOKING_SLOT_GRANULARITY_MINUTES = int(os.getenv("BOOKING_SLOT_GRANULARITY_MINUTES", 15))
BOOKING_LOOKAHEAD_DAYS = int(os.getenv("BOOKING_LOOKAHEAD_DAYS", 30))

ACTION_TOKEN_TTL_HOURS = int(os.getenv("ACTION_TOKEN_TTL_HOURS", 48))

NOTIFICATION_MAX_ATTEMPTS = int(os.getenv("NOTIFICATION_MAX_ATTEMPTS", 5))
NOTIFICATION_RETRY_DELAYS_MINUTES = [
    int(x) for x in os.getenv("NOTIFICATION_RETRY_DELAYS_MINUTES", "5,15,60").split(",") if x.strip()
]
# How long a claimed job stays invisible to other workers
NOTIFICATION_CLAIM_LEASE_MINUTES = int(os.getenv("NOTIFICATION_CLAIM_LEASE_MINUTES", 10))
NOTIFICATION_BATCH_SIZE = int(os.getenv("NOTIFICATION_BATCH_SIZE", 50))

# event -> [(channel, template, offset_minutes)]
# offset None = send immediately, otherwise minutes relative to the appointment start
NOTIFICATION_EVENT_MAP = {
    "created": [
        ("email", "confirmation", None),
        ("sms", "confirmation", None),
        ("email", "reminder_24h", -24 * 60),
        ("sms", "reminder_24h", -24 * 60),
        ("email", "reminder_2h", -2 * 60),
        ("sms", "reminder_2h", -2 * 60),
    ],
    "verified": [
        ("email", "payment_verified", None),
        ("sms", "payment_verified", None),
    ],
    "rescheduled": [
        ("email", "rescheduled", None),
        ("sms", "rescheduled", None),
        ("email", "reminder_24h", -24 * 60),
        ("sms", "reminder_24h", -24 * 60),
        ("email", "reminder_2h", -2 * 60),
        ("sms", "reminder_2h", -2 * 60),
    ],
    "canceled": [
        ("email", "canceled", None),
        ("sms", "canceled", None),
    ],
}
