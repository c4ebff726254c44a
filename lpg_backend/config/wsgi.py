"""WSGI config for the LPG distributor back-office."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lpg_backend.config.settings')

application = get_wsgi_application()
