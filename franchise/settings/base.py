from dotenv import load_dotenv
load_dotenv()

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-secret-key")
DEBUG = os.getenv("DEBUG", "false").lower() in ("1", "true", "yes")
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "*").split(",") if h.strip()]

APP_ENV = os.getenv("APP_ENV") or os.getenv("NODE_ENV") or "development"
BASE_URL = os.getenv("BASE_URL", "http://localhost:3000").rstrip("/")

INSTALLED_APPS = [
    "corsheaders",
    "payments",
    "enquiries",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ───────────── CORS ─────────────
# The landing page and simulation UI call the API from any origin
CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_ALLOW_HEADERS = ["content-type", "authorization", "x-requested-with", "accept"]

ROOT_URLCONF = "franchise.urls"
WSGI_APPLICATION = "franchise.wsgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {"context_processors": []},
    },
]

# Orders and enquiries live in process memory only
DATABASES = {}

USE_TZ = True
TIME_ZONE = "Asia/Kolkata"

# ---------- Instamojo ----------
_api_key = os.getenv("INSTAMOJO_API_KEY", "")
_auth_token = os.getenv("INSTAMOJO_AUTH_TOKEN", "")

INSTAMOJO = {
    "API_KEY": _api_key,
    "AUTH_TOKEN": _auth_token,
    "SALT": os.getenv("INSTAMOJO_SALT", ""),
    "API_URL": os.getenv("INSTAMOJO_API_URL", "https://api.instamojo.com/v2/"),
    "TIMEOUT": 30,
    "REDIRECT_URL": os.getenv("REDIRECT_URL") or f"{BASE_URL}/payment-success",
    "WEBHOOK_URL": os.getenv("WEBHOOK_URL") or f"{BASE_URL}/api/webhook",
    # Missing credentials force the simulated gateway
    "TEST_MODE": os.getenv("TEST_MODE", "").lower() == "true" or not (_api_key and _auth_token),
    # Accept webhooks without a MAC (or while no salt is set) and only log a warning
    "ALLOW_UNSIGNED_WEBHOOKS": os.getenv("ALLOW_UNSIGNED_WEBHOOKS", "true").lower() in ("1", "true", "yes"),
}

# ---------- Email ----------
EMAIL_BACKEND = "django.core.mail.backends.smtp.EmailBackend"
EMAIL_HOST = os.getenv("EMAIL_HOST", "smtp.gmail.com")
EMAIL_PORT = int(os.getenv("EMAIL_PORT", "587"))
EMAIL_USE_TLS = True
EMAIL_HOST_USER = os.getenv("EMAIL_USER", "")
EMAIL_HOST_PASSWORD = os.getenv("EMAIL_APP_PASSWORD", "")
EMAIL_ENABLED = bool(EMAIL_HOST_USER and EMAIL_HOST_PASSWORD)
EMAIL_TIMEOUT = 20
DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL") or (
    f"Franchise Registrations <{EMAIL_HOST_USER}>" if EMAIL_HOST_USER else "noreply@localhost"
)
PAYMENTS_ADMIN_EMAILS = os.getenv("PAYMENTS_ADMIN_EMAILS", "")

NOTIFICATIONS_SYNCHRONOUS = False
NOTIFICATION_WORKERS = int(os.getenv("NOTIFICATION_WORKERS", "4"))

# ---------- Logging ----------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

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
    },
}
