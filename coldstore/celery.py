"""
Celery application for the cold-storage ledger.

Usage:
    celery -A coldstore worker -l INFO
    celery -A coldstore beat -l INFO
"""
import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "coldstore.settings")

app = Celery("coldstore")

app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
