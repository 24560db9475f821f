"""WSGI config for ClaimPay."""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "claimpay.settings.prod")

application = get_wsgi_application()
