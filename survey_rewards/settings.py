"""Django settings for the survey reward engine.


This project runs the ledger-based reward/withdrawal core:
- Survey submission → one-time reward credit
- Withdrawal request → pending debit, settled later by the payout operator
- Referral registration → one-time referral bonus


Authentication, payout gateways and anti-fraud are handled by adjacent services.
"""

import os
from pathlib import Path
from decimal import Decimal


BASE_DIR = Path(__file__).resolve().parent.parent
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-only-insecure-key")
DEBUG = os.getenv("DEBUG", "1") in ("1", "true", "True", "yes")
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "*").split(",")
CSRF_TRUSTED_ORIGINS = os.getenv("CSRF_TRUSTED_ORIGINS", "").split(",") if os.getenv("CSRF_TRUSTED_ORIGINS") else []

def env_bool(name, default=""):
    v = os.getenv(name, default)
    return v.lower() in ("1", "true", "yes", "on")

def env_list(name):
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]

#######################
# Engine parameters (SystemConfig rows override these at runtime, see core.config)
MIN_WITHDRAWAL_AMOUNT = Decimal(os.getenv("MIN_WITHDRAWAL_AMOUNT", "5.00"))
MAX_WITHDRAWAL_AMOUNT = Decimal(os.getenv("MAX_WITHDRAWAL_AMOUNT", "1000.00"))
REFERRAL_BONUS_THRESHOLD = int(os.getenv("REFERRAL_BONUS_THRESHOLD", "10"))
REFERRAL_BONUS_AMOUNT = Decimal(os.getenv("REFERRAL_BONUS_AMOUNT", "10.00"))

# HMAC secret for the payout-operator settlement webhook (set in env)
PAYOUT_WEBHOOK_SECRET = os.getenv("PAYOUT_WEBHOOK_SECRET", "dev-secret-change-me")

# Optional IP allowlist for the payout webhook (CIDRs). Empty => allow all (dev).
PAYOUT_WEBHOOK_IP_ALLOWLIST = env_list("PAYOUT_WEBHOOK_IP_ALLOWLIST")

# Trust X-Forwarded-For for the submitter's origin (only behind a proxy you control)
USE_X_FORWARDED_FOR = env_bool("USE_X_FORWARDED_FOR")
#######################


INSTALLED_APPS = [
	"django.contrib.contenttypes",
	"django.contrib.auth",
	"django.contrib.sessions",
	"django.contrib.messages",
	"django.contrib.staticfiles",
	# local apps
	"core",
	"api",
]


MIDDLEWARE = [
	"django.middleware.security.SecurityMiddleware",
	"django.contrib.sessions.middleware.SessionMiddleware",
	"django.middleware.common.CommonMiddleware",
	"django.middleware.csrf.CsrfViewMiddleware",
	"django.contrib.auth.middleware.AuthenticationMiddleware",
	"django.contrib.messages.middleware.MessageMiddleware",
]


ROOT_URLCONF = "survey_rewards.urls"
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


WSGI_APPLICATION = "survey_rewards.wsgi.application"


DB_ENGINE = os.getenv("DB_ENGINE", "sqlite")
if DB_ENGINE == "postgres":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB", "survey_rewards"),
            "USER": os.getenv("POSTGRES_USER", "survey_rewards"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", "survey_rewards"),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
            # Lock waits and long statements surface as StorageFailure instead of hanging
            "OPTIONS": {
                "options": f"-c statement_timeout={os.getenv('POSTGRES_STATEMENT_TIMEOUT_MS', '5000')}",
            },
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.getenv("SQLITE_PATH", str(BASE_DIR / "db.sqlite3")),
            # IMMEDIATE: every transaction takes the write lock up front, so concurrent writers
            # queue on the busy timeout and then see each other's committed rows
            "OPTIONS": {"timeout": 20, "transaction_mode": "IMMEDIATE"},
            # Threads need a file-backed test database (in-memory shared cache fails fast on locks)
            "TEST": {"NAME": os.getenv("SQLITE_TEST_PATH", str(BASE_DIR / "test_db.sqlite3"))},
        }
    }


AUTH_PASSWORD_VALIDATORS = []


LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True


STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "[{levelname}] {asctime} {name}: {message}",
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
        "level": os.getenv("LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django.db.backends": {"level": "WARNING"},
    },
}
