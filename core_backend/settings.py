"""
Django settings for the restaurant POS backend.

Everything that differs between a developer laptop, the packaged desktop
build and the test suite is read from the environment.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "true").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "channels",
    "core_backend",
    "products",
    "orders",
    "payments",
    "settings",
    "printing",
    "notifications",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "core_backend.urls"
ASGI_APPLICATION = "core_backend.asgi.application"

if os.environ.get("DB_ENGINE", "sqlite") == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("DB_NAME", "pos"),
            "USER": os.environ.get("DB_USER", "pos"),
            "PASSWORD": os.environ.get("DB_PASSWORD", ""),
            "HOST": os.environ.get("DB_HOST", "localhost"),
            "PORT": os.environ.get("DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("DB_PATH", str(BASE_DIR / "pos.sqlite3")),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = os.environ.get("TIME_ZONE", "UTC")
LANGUAGE_CODE = "en-us"

REST_FRAMEWORK = {
    "COERCE_DECIMAL_TO_STRING": True,
}

# Real-time fan-out. Redis in production, in-memory for a single process.
if os.environ.get("REDIS_URL"):
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {"hosts": [os.environ["REDIS_URL"]]},
        }
    }
else:
    CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
    }

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "memory://")
CELERY_RESULT_BACKEND = os.environ.get("CELERY_RESULT_BACKEND", "cache+memory://")
CELERY_TASK_ALWAYS_EAGER = os.environ.get("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"
CELERY_BEAT_SCHEDULE = {
    "deliver-pending-outbox-events": {
        "task": "notifications.tasks.deliver_pending_events",
        "schedule": 30.0,
    },
}

# Print dispatch queue tunables (seconds).
POS_PRINTING = {
    "MAX_RETRIES": int(os.environ.get("PRINT_MAX_RETRIES", 3)),
    "RETRY_BASE_DELAY": float(os.environ.get("PRINT_RETRY_BASE_DELAY", 1.0)),
    "RETRY_MAX_DELAY": float(os.environ.get("PRINT_RETRY_MAX_DELAY", 10.0)),
    "INTER_JOB_DELAY": float(os.environ.get("PRINT_INTER_JOB_DELAY", 0.5)),
    "JOB_TIMEOUT": float(os.environ.get("PRINT_JOB_TIMEOUT", 15.0)),
    "FALLBACK_DIR": os.environ.get("PRINT_FALLBACK_DIR", str(BASE_DIR / "receipts")),
    "DEFAULT_NETWORK_PORT": 9100,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
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
        "level": os.environ.get("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django.db.backends": {"level": "WARNING"},
    },
}
