"""Application configuration module.

Provides environment-specific settings with sane, secure defaults.
"""
import os
from pathlib import Path

from dotenv import load_dotenv

from .utils import env_bool, env_float, env_int

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = BASE_DIR.parent
INSTANCE_DIR = PROJECT_ROOT / "instance"
DEFAULT_DB_PATH = INSTANCE_DIR / "devpulse.sqlite"


def _normalize_db_url(url: str | None) -> str | None:
    if not url:
        return None
    cleaned = url.strip()
    # Hosted Postgres providers still hand out the legacy scheme
    if cleaned.startswith("postgres://"):
        cleaned = cleaned.replace("postgres://", "postgresql+psycopg2://", 1)
    return cleaned


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-me")
    SQLALCHEMY_DATABASE_URI = _normalize_db_url(os.environ.get("DATABASE_URL")) or f"sqlite:///{DEFAULT_DB_PATH}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    APP_NAME = "DevPulse"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    JSON_SORT_KEYS = False

    # Bearer tokens
    AUTH_TOKEN_MAX_AGE = env_int("AUTH_TOKEN_MAX_AGE", 7 * 24 * 3600)
    AUTH_TOKEN_SALT = "devpulse-auth"

    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000").rstrip("/")

    # GitHub integration
    GITHUB_CLIENT_ID = os.environ.get("GITHUB_CLIENT_ID", "")
    GITHUB_CLIENT_SECRET = os.environ.get("GITHUB_CLIENT_SECRET", "")
    GITHUB_API_URL = os.environ.get("GITHUB_API_URL", "https://api.github.com")
    GITHUB_OAUTH_TOKEN_URL = os.environ.get(
        "GITHUB_OAUTH_TOKEN_URL", "https://github.com/login/oauth/access_token"
    )
    GITHUB_USER_AGENT = os.environ.get("GITHUB_USER_AGENT", "DevPulse")
    GITHUB_REQUEST_TIMEOUT = env_float("GITHUB_REQUEST_TIMEOUT", 10.0)
    GITHUB_MAX_RETRIES = env_int("GITHUB_MAX_RETRIES", 3)
    GITHUB_RETRY_BASE_DELAY = env_float("GITHUB_RETRY_BASE_DELAY", 1.0)
    GITHUB_RETRY_MAX_DELAY = env_float("GITHUB_RETRY_MAX_DELAY", 30.0)
    GITHUB_OAUTH_EMAIL_FALLBACK = env_bool("GITHUB_OAUTH_EMAIL_FALLBACK", True)

    INVOICE_CURRENCY_SYMBOL = os.environ.get("INVOICE_CURRENCY_SYMBOL", "$")


class DevelopmentConfig(Config):
    DEBUG = True
    ENV = "development"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    DEBUG = False
    ENV = "production"


class TestingConfig(Config):
    TESTING = True
    ENV = "testing"
    SECRET_KEY = "testing-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    FRONTEND_URL = "http://frontend.test"
    GITHUB_CLIENT_ID = "test-client-id"
    GITHUB_CLIENT_SECRET = "test-client-secret"
    GITHUB_RETRY_BASE_DELAY = 0.0
    GITHUB_RETRY_MAX_DELAY = 0.0
