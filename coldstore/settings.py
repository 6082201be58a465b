import os
import sys
from pathlib import Path

import dj_database_url
from celery.schedules import crontab
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "changeme")
DEBUG = os.getenv("DJANGO_DEBUG", "True") == "True"
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h]

TESTING = "pytest" in sys.modules or os.getenv("TESTING") == "True"

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "simple_history",
    "safedelete",
    "ledger.apps.LedgerConfig",
]

MIDDLEWARE = [
    "simple_history.middleware.HistoryRequestMiddleware",
]

DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

# Celery broker; production points this at Redis.
REDIS_URL = os.getenv("REDIS_URL", "")

# =============================================================================
# Ledger
# =============================================================================
LEDGER_BALANCE_TOLERANCE = os.getenv("LEDGER_BALANCE_TOLERANCE", "0.01")
LEDGER_SNAPSHOT_LOCK_TIMEOUT = int(os.getenv("LEDGER_SNAPSHOT_LOCK_TIMEOUT", "3600"))  # seconds
LEDGER_SNAPSHOT_MAX_RETRIES = int(os.getenv("LEDGER_SNAPSHOT_MAX_RETRIES", "3"))
LEDGER_SNAPSHOT_RETRY_DELAY = int(os.getenv("LEDGER_SNAPSHOT_RETRY_DELAY", "60"))  # seconds
LEDGER_COMPANY_NAME = os.getenv("LEDGER_COMPANY_NAME", "Your Company Name")
LEDGER_LOG_LEVEL = os.getenv("LEDGER_LOG_LEVEL", "INFO")

# =============================================================================
# Celery
# =============================================================================
CELERY_BROKER_URL = REDIS_URL or "memory://"
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", None)
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TIME_LIMIT = 60 * 60
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ALWAYS_EAGER = TESTING
CELERY_TASK_EAGER_PROPAGATES = TESTING

CELERY_BEAT_SCHEDULE = {
    "recompute-monthly-balances-nightly": {
        "task": "ledger.tasks.recompute_monthly_balances_task",
        "schedule": crontab(hour=1, minute=30),
    },
}

# =============================================================================
# Logging
# =============================================================================
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "ledger": {
            "level": LEDGER_LOG_LEVEL,
            "propagate": True,
        },
        "celery": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
