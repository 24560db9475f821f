"""
Development settings for ClaimPay project.

Inherits from base settings and adds development-specific configuration.
"""

from .base import *  # noqa: F401, F403
from .base import config, BASE_DIR, SIMPLE_JWT

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config(
    "SECRET_KEY", default="django-insecure-dev-key-change-in-production"
)

DEBUG = config("DEBUG", default=True, cast=bool)

ALLOWED_HOSTS = config("ALLOWED_HOSTS", default="localhost,127.0.0.1").split(",")

SIMPLE_JWT["SIGNING_KEY"] = SECRET_KEY

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

EMAIL_BACKEND = config(
    "EMAIL_BACKEND", default="django.core.mail.backends.console.EmailBackend"
)

from claimpay.logging_config import get_logging_config  # noqa: E402

# Development keeps email addresses visible but still masks account numbers
LOGGING = get_logging_config(
    base_dir=BASE_DIR,
    environment="development",
    log_level="DEBUG",
)
