# catcafe/settings.py
#
# Purpose:
# - Django settings for the cat-café coworking booking site.
#
# Notes for developers:
# - Values come from environment variables; a local .env file is loaded first.
# - SQLite is the default database (dev/tests). Set DB_ENGINE=postgresql in
#   production so the slot exclusion constraint can be installed.
# - Booking rules live in CATCAFE_BOOKING. Business hours can also be
#   overridden at runtime with configmgr.SystemSetting rows
#   (BUSINESS_OPEN / BUSINESS_CLOSE).
#
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = _env_bool("DJANGO_DEBUG", "True")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "configmgr",
    "booking.apps.BookingConfig",
    "notifications.apps.NotificationsConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "catcafe.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# -------------------------
# Database
# -------------------------
DB_ENGINE = os.getenv("DB_ENGINE", "sqlite3")
if DB_ENGINE == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("DB_NAME", "catcafe"),
            "USER": os.getenv("DB_USER", "catcafe"),
            "PASSWORD": os.getenv("DB_PASSWORD", ""),
            "HOST": os.getenv("DB_HOST", "localhost"),
            "PORT": os.getenv("DB_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / os.getenv("DB_NAME", "db.sqlite3"),
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -------------------------
# Time zone: the venue's local time drives "today", month boundaries
# for the cancellation quota and the slot grid.
# -------------------------
LANGUAGE_CODE = "en"
LANGUAGES = [("en", "English"), ("zh-hant", "繁體中文")]
TIME_ZONE = os.getenv("VENUE_TIMEZONE", "Asia/Hong_Kong")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
MEDIA_URL = "media/"
MEDIA_ROOT = BASE_DIR / os.getenv("MEDIA_DIR", "media")

# -------------------------
# REST framework
# -------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
}

# -------------------------
# Email (operator notifications)
# -------------------------
EMAIL_BACKEND = os.getenv("EMAIL_BACKEND", "django.core.mail.backends.console.EmailBackend")
EMAIL_HOST = os.getenv("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "587"))
EMAIL_HOST_USER = os.getenv("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = _env_bool("EMAIL_USE_TLS", "True")
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "bookings@catcafe.local")
OPERATOR_EMAIL = os.getenv("OPERATOR_EMAIL", EMAIL_HOST_USER)

# -------------------------
# Booking rules
# -------------------------
CATCAFE_BOOKING = {
    "OPEN_HOUR": int(os.getenv("BOOKING_OPEN_HOUR", "10")),
    "CLOSE_HOUR": int(os.getenv("BOOKING_CLOSE_HOUR", "22")),
    "SLOT_MINUTES": 30,
    "MIN_BOOKING_MINUTES": 60,
    "SAME_DAY_BUFFER_MINUTES": int(os.getenv("SAME_DAY_BUFFER_MINUTES", "30")),
    "FREE_CANCELLATIONS_PER_MONTH": 3,
    "FREE_LATE_CANCELLATIONS_PER_MONTH": 1,
    "CANCELLATION_FEE_UNITS": 1,
    "EQUIPMENT_SURCHARGE": int(os.getenv("EQUIPMENT_SURCHARGE", "20")),
    "DP20_VALIDITY_DAYS": 90,
    "TOKEN_VALIDITY_DAYS": 180,
    "RECEIPT_MAX_BYTES": 5 * 1024 * 1024,
    "RECEIPT_CONTENT_TYPES": ["image/jpeg", "image/jpg", "image/png", "application/pdf"],
}

# -------------------------
# Logging
# -------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "catcafe": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "catcafe",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "booking": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "notifications": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "configmgr": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
