"""
Celery application for ClaimPay.

Settlement status polling and notification delivery run here.
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "claimpay.settings.dev")

app = Celery("claimpay")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
