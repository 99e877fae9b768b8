from decimal import Decimal

from .base import *  # noqa: F401, F403

DEBUG = False

# File-backed so worker threads share one database; IMMEDIATE makes
# atomic blocks take the write lock up front, like SELECT ... FOR UPDATE.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "rentflow-test.sqlite3",  # noqa: F405
        "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
        "TEST": {"NAME": str(BASE_DIR / "rentflow-test.sqlite3")},  # noqa: F405
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

Q_CLUSTER = {
    "name": "rentflow-test",
    "sync": True,
    "orm": "default",
    "timeout": 120,
    "retry": 180,
}

PAYMENT_NETWORK_PROVIDER = "simulated"
PAYMENT_NETWORK_API_KEY = ""
WALLET_SIGNING_SECRET = "test-wallet-signing-secret"
MAX_TRANSFER_AMOUNT = Decimal("10000.00")
SETTLEMENT_POLL_ATTEMPTS = 3
SETTLEMENT_POLL_INTERVAL = 0
STALE_SUBMISSION_MINUTES = 10
SIGNATURE_MAX_AGE_MINUTES = 15
ACTIVATION_MAX_RETRIES = 3
DEFAULT_RENT_DUE_DAY = 1
PAYMENT_REMINDER_DAYS = [1, 3]
