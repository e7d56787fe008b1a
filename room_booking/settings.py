# room_booking/settings.py
#
# Purpose:
# - Project settings for the room booking service.
# - Values come from environment variables (optionally loaded from a .env file
#   at the project root). Defaults are suitable for local development and tests.
#
# Booking settings:
# - BOOKING_TIME_SLOTS: fixed daily slots offered for every room.
# - BOOKING_RETRY: retry policy used for network-calling actions.
# - BOOKING_SOON_THRESHOLD_HOURS: room status switches to "soon" this close
#   to the next reservation.
# - BOOKING_API_BASE_URL / BOOKING_API_TIMEOUT: used by booking.client.
#
import os
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def get_env(var_name: str, default=None, required: bool = False):
    value = os.environ.get(var_name, default)
    if required and value in (None, ""):
        raise ImproperlyConfigured(f"Missing required environment variable: {var_name}")
    return value


# SECURITY
DEBUG = get_env("DJANGO_DEBUG", "True").lower() == "true"
SECRET_KEY = get_env(
    "DJANGO_SECRET_KEY",
    "dev-only-secret-key-change-me" if DEBUG else None,
    required=True,
)

allowed_hosts_env = get_env("DJANGO_ALLOWED_HOSTS", "")
if allowed_hosts_env:
    ALLOWED_HOSTS = [host.strip() for host in allowed_hosts_env.split(",") if host.strip()]
else:
    ALLOWED_HOSTS = ["localhost", "127.0.0.1", "[::1]", "testserver"]


# Application definition
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rooms",
    "booking",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "room_booking.urls"

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

WSGI_APPLICATION = "room_booking.wsgi.application"


# Database (SQLite by default; point DJANGO_DB_PATH elsewhere for a shared file)
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": get_env("DJANGO_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]


# Internationalization
# Reservation dates are plain local dates; TIME_ZONE decides what "today" is.
LANGUAGE_CODE = "en-us"
TIME_ZONE = get_env("DJANGO_TIME_ZONE", "Europe/Rome")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"


# REST framework: authentication itself is delegated to Django's auth.
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
}


# Booking
BOOKING_TIME_SLOTS = [
    {"id": "morning", "label": "Morning", "start": "09:00", "end": "13:00"},
    {"id": "afternoon", "label": "Afternoon", "start": "14:00", "end": "18:00"},
]

BOOKING_RETRY = {
    "MAX_ATTEMPTS": int(get_env("BOOKING_RETRY_MAX_ATTEMPTS", "3")),
    "BACKOFF_SECONDS": float(get_env("BOOKING_RETRY_BACKOFF_SECONDS", "1.0")),
}

BOOKING_SOON_THRESHOLD_HOURS = 2

BOOKING_API_BASE_URL = get_env("BOOKING_API_BASE_URL", "http://localhost:8000/api/")
BOOKING_API_TIMEOUT = float(get_env("BOOKING_API_TIMEOUT", "10"))


# Logging
LOG_LEVEL = get_env("DJANGO_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name}: {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "booking": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "rooms": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}
