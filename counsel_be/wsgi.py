"""WSGI entrypoint for the career counseling backend."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "counsel_be.settings")

application = get_wsgi_application()
