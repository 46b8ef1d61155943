"""Production settings for ParkWise project.

Expects PostgreSQL (``DB_ENGINE=django.db.backends.postgresql``) so that
chunk rows can be locked with ``SELECT ... FOR UPDATE`` and lock waits are
bounded by ``ALLOCATION_LOCK_TIMEOUT_MS``. Secrets come from the
environment.
"""

import os

from django.core.exceptions import ImproperlyConfigured

from .base import *  # noqa: F401,F403

DEBUG = False

if SECRET_KEY == 'replace-me-in-production':  # noqa: F405
    raise ImproperlyConfigured("DJANGO_SECRET_KEY must be set in production")

ALLOWED_HOSTS = [host for host in os.environ.get('DJANGO_ALLOWED_HOSTS', '').split(',') if host]

CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
SECURE_HSTS_SECONDS = int(os.environ.get('SECURE_HSTS_SECONDS', 0))

# Allocation requests hold a row lock for the whole transaction
DATABASES['default']['CONN_MAX_AGE'] = int(os.environ.get('DB_CONN_MAX_AGE', 60))  # noqa: F405
DATABASES['default']['ATOMIC_REQUESTS'] = False  # noqa: F405

# The browsable API is a development aid only
REST_FRAMEWORK['DEFAULT_RENDERER_CLASSES'] = ['rest_framework.renderers.JSONRenderer']  # noqa: F405
