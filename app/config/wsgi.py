"""
WSGI config for the enrollment service.

WSGI (Web Server Gateway Interface) is the traditional Python web server
interface. Gunicorn or any WSGI server can serve the enrollment API; it
needs no async features.

This file exposes the WSGI callable as a module-level variable named `application`.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
