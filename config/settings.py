import os
from decimal import Decimal
from pathlib import Path

import dj_database_url

BASE_DIR = Path(__file__).resolve().parent.parent

# === Seguridad ===
SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-storefront-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "1") == "1"

ALLOWED_HOSTS = [h for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h]
CSRF_TRUSTED_ORIGINS = [o for o in os.environ.get("DJANGO_CSRF_TRUSTED_ORIGINS", "").split(",") if o]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "storefront",
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

ROOT_URLCONF = "config.urls"

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

WSGI_APPLICATION = "config.wsgi.application"

# === Base de datos ===
DATABASES = {
    "default": dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# === Idioma y zona horaria ===
LANGUAGE_CODE = "es-ar"
TIME_ZONE = "America/Argentina/Buenos_Aires"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

LOGIN_URL = "/admin/login/"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# === Email ===
EMAIL_BACKEND = os.environ.get("EMAIL_BACKEND", "django.core.mail.backends.smtp.EmailBackend")
EMAIL_HOST = os.environ.get("EMAIL_HOST", "localhost")
EMAIL_PORT = int(os.environ.get("EMAIL_PORT", "25"))
EMAIL_HOST_USER = os.environ.get("EMAIL_HOST_USER", "")
EMAIL_HOST_PASSWORD = os.environ.get("EMAIL_HOST_PASSWORD", "")
EMAIL_USE_TLS = os.environ.get("EMAIL_USE_TLS", "0") == "1"
DEFAULT_FROM_EMAIL = os.environ.get("DEFAULT_FROM_EMAIL", "Pedidos <pedidos@localhost>")
ORDER_PREP_EMAIL = os.environ.get("ORDER_PREP_EMAIL", "")

# === Mercado Pago ===
MP_ACCESS_TOKEN = os.environ.get("MP_ACCESS_TOKEN", "")
MP_NOTIFICATION_URL = os.environ.get("MP_NOTIFICATION_URL", "")
MP_STATEMENT_DESCRIPTOR = os.environ.get("MP_STATEMENT_DESCRIPTOR", "TIENDA ONLINE")
STOREFRONT_APP_URL = os.environ.get("STOREFRONT_APP_URL", "http://localhost:8000")

# === Asistente (OpenAI) ===
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")

# === Reglas de negocio ===
STOREFRONT_VAT_RATE = Decimal(os.environ.get("STOREFRONT_VAT_RATE", "0.21"))
STOREFRONT_SHIPPING_COST = Decimal(os.environ.get("STOREFRONT_SHIPPING_COST", "9800"))
STOREFRONT_FREE_SHIPPING_THRESHOLD = Decimal(os.environ.get("STOREFRONT_FREE_SHIPPING_THRESHOLD", "30000"))
STOREFRONT_TRANSFER_DISCOUNT = Decimal(os.environ.get("STOREFRONT_TRANSFER_DISCOUNT", "0.05"))
STOREFRONT_LOW_STOCK_PRODUCTS = int(os.environ.get("STOREFRONT_LOW_STOCK_PRODUCTS", "50"))
STOREFRONT_LOW_STOCK_SUPPLIES = int(os.environ.get("STOREFRONT_LOW_STOCK_SUPPLIES", "100"))

# === Logging ===
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "storefront": {
            "handlers": ["console"],
            "level": os.environ.get("STOREFRONT_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}
