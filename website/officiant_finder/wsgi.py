"""WSGI config for the officiant finder project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'officiant_finder.settings')

application = get_wsgi_application()
