"""
WSGI config for servicehub project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "servicehub.settings")

application = get_wsgi_application()
