"""
Test settings for ClaimPay.
Optimized for fast test execution with in-memory databases
and simplified configurations.
"""
from .base import *  # noqa: F403, F405
from .base import SIMPLE_JWT
import os

SECRET_KEY = "test-secret-key-not-for-production-use-only"  # pragma: allowlist secret

SIMPLE_JWT["SIGNING_KEY"] = SECRET_KEY

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# If DATABASE_URL is explicitly set (like in CI), use it instead
if "DATABASE_URL" in os.environ:
    import dj_database_url

    DATABASES["default"] = dj_database_url.config(
        default=os.environ["DATABASE_URL"],
        conn_max_age=0,
    )

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "test-cache",
    }
}

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

# Run Celery tasks inline
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

PAYSTACK_SECRET_KEY = "sk_test_claimpay"  # pragma: allowlist secret
PAYSTACK_WEBHOOK_SECRET = "whsec_test_claimpay"  # pragma: allowlist secret
PAYSTACK_BASE_URL = "https://paystack.test"

# No throttling noise in API tests
REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
    "DEFAULT_THROTTLE_RATES": {
        scope: "100000/h"
        for scope in REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]  # noqa: F405
    },
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "CRITICAL",
        },
    },
}

DEBUG = False

ALLOWED_HOSTS = ["*"]
