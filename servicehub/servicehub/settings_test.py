"""Settings used by the test suite: in-memory SQLite, locmem email, fast hashing."""
import tempfile
from pathlib import Path

from .settings import *  # noqa: F401,F403

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
DEFAULT_FROM_EMAIL = "no-reply@test.local"
EMAIL_OUTBOX_LOG = Path(tempfile.gettempdir()) / "servicehub-tests" / "email_outbox.jsonl"

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

LOGGING["root"]["handlers"] = ["console"]  # noqa: F405
LOGGING["root"]["level"] = "WARNING"  # noqa: F405
