import os
from decimal import Decimal
from pathlib import Path

import environ

BASE_DIR = Path(__file__).resolve().parent.parent.parent

env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1"]),
    CSRF_TRUSTED_ORIGINS=(list, []),
)
environ.Env.read_env(os.path.join(BASE_DIR, ".env"))


# ============================================
# Docker Secrets Support
# ============================================
def get_secret(secret_name, default=None):
    """
    Read secret from Docker secrets or fall back to environment variable.

    Docker secrets are mounted at /run/secrets/<secret_name> in containers.
    """
    secret_path = f"/run/secrets/{secret_name}"
    if os.path.exists(secret_path):
        with open(secret_path) as f:
            return f.read().strip()
    # Fall back to environment variable (uppercase with underscores)
    env_key = secret_name.upper().replace("-", "_")
    return os.environ.get(env_key, default)


# ============================================
# Core Django Settings
# ============================================
SECRET_KEY = get_secret("django_secret_key", env("SECRET_KEY", default="insecure-dev-key-change-in-production"))
DEBUG = env("DEBUG")
ALLOWED_HOSTS = env("ALLOWED_HOSTS")

SITE_URL = env("SITE_URL", default="http://localhost:8000")

_csrf_origins = env("CSRF_TRUSTED_ORIGINS", default=[])
if SITE_URL and SITE_URL not in _csrf_origins:
    _csrf_origins.insert(0, SITE_URL)
CSRF_TRUSTED_ORIGINS = _csrf_origins

AUTH_USER_MODEL = "accounts.User"

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Third party
    "django_q",
    # Local apps
    "apps.core",
    "apps.accounts",
    "apps.leases",
    "apps.billing",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
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

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ============================================
# Redis Configuration (optional)
# ============================================
REDIS_URL = env("REDIS_URL", default=None)

if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
            },
        }
    }
    SESSION_ENGINE = "django.contrib.sessions.backends.cache"
    SESSION_CACHE_ALIAS = "default"
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "rentflow",
        }
    }

# ============================================
# Django-Q2 Task Queue
# ============================================
# Settlement polling blocks a worker for up to
# SETTLEMENT_POLL_ATTEMPTS * SETTLEMENT_POLL_INTERVAL seconds.
Q_CLUSTER = {
    "name": "rentflow",
    "workers": env.int("Q_WORKERS", default=2),
    "recycle": 500,
    "timeout": 120,
    "retry": 180,
    "queue_limit": 50,
    "bulk": 10,
}

if REDIS_URL:
    Q_CLUSTER["redis"] = REDIS_URL
else:
    Q_CLUSTER["orm"] = "default"

# ============================================
# Payment Network (stablecoin transfers)
# ============================================
# "circle" talks to the Circle transfers API; "simulated" settles every
# transfer on the first status check and is the default when no API key is set.
PAYMENT_NETWORK_API_KEY = get_secret("payment_network_api_key", env("PAYMENT_NETWORK_API_KEY", default=""))
PAYMENT_NETWORK_PROVIDER = env(
    "PAYMENT_NETWORK_PROVIDER",
    default="circle" if PAYMENT_NETWORK_API_KEY else "simulated",
)
PAYMENT_NETWORK_URL = env("PAYMENT_NETWORK_URL", default="https://api-sandbox.circle.com")
PAYMENT_NETWORK_CHAIN = env("PAYMENT_NETWORK_CHAIN", default="SOL")
PAYMENT_NETWORK_TIMEOUT = env.int("PAYMENT_NETWORK_TIMEOUT", default=15)

MAX_TRANSFER_AMOUNT = Decimal(env("MAX_TRANSFER_AMOUNT", default="10000.00"))
SETTLEMENT_POLL_ATTEMPTS = env.int("SETTLEMENT_POLL_ATTEMPTS", default=10)
SETTLEMENT_POLL_INTERVAL = env.float("SETTLEMENT_POLL_INTERVAL", default=3.0)
# A claimed transfer with no transfer id after this long is re-sent by the sweep.
STALE_SUBMISSION_MINUTES = env.int("STALE_SUBMISSION_MINUTES", default=10)

# ============================================
# Lease Signing & Activation
# ============================================
WALLET_SIGNING_SECRET = get_secret("wallet_signing_secret", env("WALLET_SIGNING_SECRET", default=""))
SIGNATURE_MAX_AGE_MINUTES = env.int("SIGNATURE_MAX_AGE_MINUTES", default=15)
ACTIVATION_MAX_RETRIES = env.int("ACTIVATION_MAX_RETRIES", default=3)

# ============================================
# Obligation Scheduling
# ============================================
DEFAULT_RENT_DUE_DAY = env.int("DEFAULT_RENT_DUE_DAY", default=1)
PAYMENT_REMINDER_DAYS = [int(d) for d in env.list("PAYMENT_REMINDER_DAYS", default=["1", "3"])]

# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{levelname} {asctime} {module} {process:d} {thread:d} {message}",
            "style": "{",
        },
        "simple": {
            "format": "{levelname} {asctime} {module} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": env("DJANGO_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
        "django.security": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
        "apps": {
            "handlers": ["console"],
            "level": env("APPS_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
    },
}
