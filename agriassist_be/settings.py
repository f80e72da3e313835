import os
from pathlib import Path
from urllib.parse import urlparse, unquote

import sentry_sdk
from dotenv import load_dotenv
from sentry_sdk.integrations.django import DjangoIntegration

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def _database_from_url(url: str) -> dict:
    """Translate a postgres:// DATABASE_URL into a Django DATABASES entry."""
    parsed = urlparse(url)
    return {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": unquote(parsed.path.lstrip("/")),
        "USER": unquote(parsed.username or ""),
        "PASSWORD": unquote(parsed.password or ""),
        "HOST": parsed.hostname or "",
        "PORT": str(parsed.port or ""),
        "CONN_MAX_AGE": 60,
    }


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-secret-key")
DEBUG = _env_bool("DJANGO_DEBUG")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.staticfiles",
    "rest_framework",
    "chat.apps.ChatConfig",
    "proxy",
    "notification",
]

MIDDLEWARE = [
    "agriassist_be.middleware.security.ProxyCorsMiddleware",
    "agriassist_be.middleware.security.RequestSizeLimitMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "agriassist_be.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {"context_processors": []},
    },
]

_database_url = os.getenv("DATABASE_URL")
if _database_url:
    DATABASES = {"default": _database_from_url(_database_url)}
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = "UTC"

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
    "EXCEPTION_HANDLER": "proxy.views.proxy_exception_handler",
}

# ---- Request limits ----
MAX_REQUEST_SIZE_MB = int(os.getenv("MAX_REQUEST_SIZE_MB", "10"))
DATA_UPLOAD_MAX_MEMORY_SIZE = MAX_REQUEST_SIZE_MB * 1024 * 1024

# ---- Gemini (server-held secret, never sent by clients) ----
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
GEMINI_TIMEOUT_S = int(os.getenv("GEMINI_TIMEOUT_S", "60"))
IMAGE_FETCH_TIMEOUT_S = int(os.getenv("IMAGE_FETCH_TIMEOUT_S", "10"))

# ---- Proxy ----
PROXY_CLIENT_TOKEN = os.getenv("PROXY_CLIENT_TOKEN", "")
PROXY_CORS_PATHS = ("/answer",)

# ---- Conversation controller ----
# Empty CHAT_PROXY_URL means the controller calls the proxy service in-process.
CHAT_PROXY_URL = os.getenv("CHAT_PROXY_URL", "")
CHAT_PROXY_TIMEOUT_S = int(os.getenv("CHAT_PROXY_TIMEOUT_S", "90"))
CHAT_BLOB_BACKEND = os.getenv("CHAT_BLOB_BACKEND", "supabase")
# absolute origin prefixed to local media URLs so the proxy can fetch them
CHAT_MEDIA_BASE_URL = os.getenv("CHAT_MEDIA_BASE_URL", "http://localhost:8000")

# ---- Live feed ----
# lifetime of signed SSE subscription tokens
SSE_TOKEN_MAX_AGE_S = int(os.getenv("SSE_TOKEN_MAX_AGE_S", "3600"))

# ---- Supabase storage ----
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
SUPABASE_BUCKET_IMAGES = os.getenv("SUPABASE_BUCKET_IMAGES", "chat-images")

# ---- Logging ----
LOG_LEVEL = os.getenv("DJANGO_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        "chat": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "proxy": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "notification": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
}

# ---- Sentry ----
SENTRY_DSN = os.getenv("SENTRY_DSN")
if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[DjangoIntegration()],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        send_default_pii=False,
    )
