"""WSGI config for the Conlify project."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'Conlify.settings')

application = get_wsgi_application()
