import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "hausgeld-dev-key-nicht-produktiv")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS: list[str] = []

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "simple_history",
    "hausgeld.apps.HausgeldConfig",
]

MIDDLEWARE = [
    "simple_history.middleware.HistoryRequestMiddleware",
]

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [],
        },
    },
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("HAUSGELD_DB_PATH", str(BASE_DIR / "db.sqlite3")),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "de-de"
TIME_ZONE = "Europe/Berlin"
USE_I18N = True
USE_TZ = True

MEDIA_ROOT = BASE_DIR / "media"

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
        "hausgeld": {
            "handlers": ["console"],
            "level": os.environ.get("HAUSGELD_LOG_LEVEL", "INFO"),
        },
    },
}

# Ausgabeverzeichnis für den Batch-Befehl generate_hausgeldabrechnung
HAUSGELD_OUTPUT_DIR = BASE_DIR / "var" / "hausgeldabrechnung"

# Überschreibt einzelne Schlüssel der Standardkonfiguration in
# hausgeld.services.statement_config (Texte, Überschriften, Wirtschaftsplan).
HAUSGELD_STATEMENT: dict[str, object] = {
    "tax_deductible_accounts": [],
    "wirtschaftsplan": None,
}
