"""
Django settings for the officiant finder project.

Deployment-specific values are read from environment variables; the defaults
are suitable for local development and the test suite.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name, default):
    value = os.environ.get(name)
    if not value:
        return default
    return [item.strip() for item in value.split(',') if item.strip()]


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-officiant-finder-dev-key')

DEBUG = _env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = _env_list('DJANGO_ALLOWED_HOSTS', ['localhost', '127.0.0.1', 'testserver'])


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'officiants',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'officiant_finder.urls'

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

WSGI_APPLICATION = 'officiant_finder.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.environ.get('DJANGO_DB_PATH', str(BASE_DIR / 'db.sqlite3')),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-ca'
TIME_ZONE = 'America/Toronto'
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'


# Geocoding (OSM Nominatim)
NOMINATIM_ENDPOINT = os.environ.get('NOMINATIM_ENDPOINT', 'https://nominatim.openstreetmap.org/search')
GEOCODER_USER_AGENT = os.environ.get(
    'GEOCODER_USER_AGENT',
    'OfficiantFinder/1.0 (wedding officiant directory)',
)
GEOCODER_RATE_LIMIT_SECONDS = float(os.environ.get('GEOCODER_RATE_LIMIT_SECONDS', '1.0'))

# Ontario Data Catalogue: registry of persons authorized to solemnize marriage
ONTARIO_API_BASE_URL = os.environ.get(
    'ONTARIO_API_BASE_URL',
    'https://data.ontario.ca/api/3/action/datastore_search',
)
ONTARIO_OFFICIANTS_RESOURCE_ID = os.environ.get(
    'ONTARIO_OFFICIANTS_RESOURCE_ID',
    'e010f610-c3d6-4f88-849b-6f8c11e98d9c',
)

# Shared password for the admin JSON endpoints. Empty disables them.
ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', '')


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'officiants': {
            'handlers': ['console'],
            'level': os.environ.get('OFFICIANTS_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}
