"""
Django base settings for ClaimPay project.

Shared settings that are common to development, production and test.
"""

import os
from pathlib import Path
from datetime import timedelta
from decouple import config
import redis

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# =============================================================================
# APPLICATION DEFINITION
# =============================================================================

INSTALLED_APPS = [
    # Django core
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third-party - API
    "rest_framework",
    "rest_framework_simplejwt",
    "corsheaders",
    "drf_spectacular",
    "django_filters",
    # ClaimPay application
    "claimpay.apps.ClaimpayConfig",
    "claimpay.settlements.apps.SettlementsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "claimpay.middleware.RequestIdMiddleware",
]

X_FRAME_OPTIONS = "DENY"

# Processor webhooks are small JSON documents
DATA_UPLOAD_MAX_MEMORY_SIZE = 2 * 1024 * 1024  # 2 MB in bytes

ROOT_URLCONF = "claimpay.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "claimpay.wsgi.application"

# =============================================================================
# DJANGO REST FRAMEWORK
# =============================================================================

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "anon": "100/h",
        "user": "2000/h",
        # Settlement initiation and retry move money
        "settlement_write": "120/h",
        "processor_lookup": "600/h",
        "authentication": "20/h",
    },
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 50,
    "EXCEPTION_HANDLER": "claimpay.api.exceptions.custom_exception_handler",
}

# JWT Settings
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ALGORITHM": "HS256",
    "SIGNING_KEY": None,  # Will be set in environment-specific settings
    "AUTH_HEADER_TYPES": ("Bearer",),
}

# API Documentation
SPECTACULAR_SETTINGS = {
    "TITLE": "ClaimPay API",
    "DESCRIPTION": "Claim settlement payouts and payment processor reconciliation",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "TAGS": [
        {"name": "Transfers", "description": "Settlement transfer initiation and status"},
        {"name": "Settlements", "description": "Claim settlement history and retries"},
        {"name": "Banks", "description": "Bank lookup and account verification"},
        {"name": "Payments", "description": "Inbound customer charges"},
    ],
    "SECURITY": [{"Bearer": []}],
    "COMPONENT_SPLIT_REQUEST": True,
}

# =============================================================================
# CORS SETTINGS
# =============================================================================

CORS_ALLOWED_ORIGINS = config(
    "CORS_ALLOWED_ORIGINS", default="http://localhost:5173,http://127.0.0.1:5173"
).split(",")

CORS_ALLOW_CREDENTIALS = True

CORS_EXPOSE_HEADERS = [
    "X-Request-Id",  # From RequestIdMiddleware - request tracing
]

# =============================================================================
# INTERNATIONALIZATION
# =============================================================================

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# =============================================================================
# STATIC FILES
# =============================================================================

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# LOGGING
# =============================================================================

from claimpay.logging_config import get_logging_config  # noqa: E402

# Bank account numbers are masked on every handler
LOGGING = get_logging_config(
    base_dir=BASE_DIR,
    environment="production",  # Overridden in dev.py and test.py
    log_level="INFO",
)

# =============================================================================
# CACHE SETTINGS
# =============================================================================

# Circuit breaker state lives in the cache, so workers and web processes
# must share it in production.
REDIS_URL = config("REDIS_URL", default="redis://localhost:6379")

try:
    r = redis.Redis.from_url(f"{REDIS_URL}/1", socket_connect_timeout=1)
    r.ping()
    r.close()

    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": f"{REDIS_URL}/1",
            "KEY_PREFIX": "claimpay",
            "TIMEOUT": 300,
        }
    }
except (redis.exceptions.ConnectionError, redis.exceptions.TimeoutError):
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "claimpay-cache",
            "TIMEOUT": 300,
        }
    }

# =============================================================================
# CELERY SETTINGS
# =============================================================================

CELERY_BROKER_URL = config("CELERY_BROKER_URL", default=f"{REDIS_URL}/0")
CELERY_RESULT_BACKEND = config("CELERY_RESULT_BACKEND", default=f"{REDIS_URL}/0")
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 5 * 60  # One poll tick never needs more than this
CELERY_TASK_SOFT_TIME_LIMIT = 4 * 60

# =============================================================================
# PAYMENT PROCESSOR (Paystack)
# =============================================================================

PAYSTACK_SECRET_KEY = config("PAYSTACK_SECRET_KEY", default="")
# Paystack signs webhooks with the account secret key
PAYSTACK_WEBHOOK_SECRET = config("PAYSTACK_WEBHOOK_SECRET", default=PAYSTACK_SECRET_KEY)
PAYSTACK_BASE_URL = config("PAYSTACK_BASE_URL", default="https://api.paystack.co")
PAYSTACK_CONNECT_TIMEOUT = config("PAYSTACK_CONNECT_TIMEOUT", default=5.0, cast=float)
PAYSTACK_READ_TIMEOUT = config("PAYSTACK_READ_TIMEOUT", default=20.0, cast=float)
PAYSTACK_CIRCUIT_FAILURE_THRESHOLD = config(
    "PAYSTACK_CIRCUIT_FAILURE_THRESHOLD", default=5, cast=int
)
PAYSTACK_CIRCUIT_RECOVERY_TIMEOUT = config(
    "PAYSTACK_CIRCUIT_RECOVERY_TIMEOUT", default=120, cast=int
)

# =============================================================================
# SETTLEMENTS
# =============================================================================

SETTLEMENT_CURRENCY = config("SETTLEMENT_CURRENCY", default="NGN")
SETTLEMENT_TRANSFER_SOURCE = config("SETTLEMENT_TRANSFER_SOURCE", default="balance")
SETTLEMENT_MAX_POLLS = config("SETTLEMENT_MAX_POLLS", default=60, cast=int)
SETTLEMENT_REFERENCE_PREFIX = config("SETTLEMENT_REFERENCE_PREFIX", default="CLM-SETTLE")

# Frontend used for payment callbacks
FRONTEND_URL = os.environ.get(
    "FRONTEND_URL", config("FRONTEND_URL", default="http://localhost:5173")
).rstrip("/")

DEFAULT_FROM_EMAIL = config("DEFAULT_FROM_EMAIL", default="settlements@claimpay.local")

# =============================================================================
# SECURITY SETTINGS (Common)
# =============================================================================

SESSION_COOKIE_AGE = 1800  # 30 minutes idle timeout
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
