from .base import *  # noqa

DEBUG = True

# Use SQLite for testing to avoid needing a running PostgreSQL instance.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "test_db.sqlite3",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

PASSWORD_HASHERS = [
    "django.contrib.auth.hashers.MD5PasswordHasher",
]

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

# The gateway runs simulated unless a test swaps it out.
PAYPAL_CLIENT_ID = ""
PAYPAL_CLIENT_SECRET = ""

ACEOS_PUBLIC_BASE_URL = "http://testserver"
