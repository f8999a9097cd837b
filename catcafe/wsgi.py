"""WSGI entry point for the booking site."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "catcafe.settings")

application = get_wsgi_application()
