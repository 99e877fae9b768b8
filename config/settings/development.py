from .base import *  # noqa: F401, F403

DEBUG = True

# ============================================
# Database Configuration
# Support both SQLite (local) and PostgreSQL (Docker)
# ============================================
if env("DATABASE_URL", default=None):  # noqa: F405
    DATABASES = {"default": env.db("DATABASE_URL")}  # noqa: F405
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
        }
    }

# WhiteNoise in dev serves files without collectstatic
STORAGES = {
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
    "staticfiles": {
        "BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage",
    },
}

# ============================================
# Development Convenience Settings
# ============================================
# Shorter polling so a local simulated transfer settles quickly
SETTLEMENT_POLL_INTERVAL = env.float("SETTLEMENT_POLL_INTERVAL", default=1.0)  # noqa: F405

# ============================================
# Debug Toolbar (if installed)
# ============================================
try:
    import debug_toolbar  # noqa: F401

    INSTALLED_APPS += ["debug_toolbar"]  # noqa: F405
    MIDDLEWARE.insert(0, "debug_toolbar.middleware.DebugToolbarMiddleware")  # noqa: F405
    INTERNAL_IPS = ["127.0.0.1", "localhost"]
except ImportError:
    pass
