# backend/twsystem/config.py
from __future__ import annotations
import os
from datetime import timedelta


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Evaluated once at import; create_app() copies these into app.config
    APP_ENV = os.environ.get("APP_ENV", "development")
    APP_VERSION = os.environ.get("APP_VERSION", "1.0.0")

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/twsystem.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///twsystem.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Signed session tokens
    JWT_SECRET = os.environ.get("JWT_SECRET", "dev-jwt-secret-change-me")
    JWT_EXPIRES_IN = timedelta(days=int(os.environ.get("JWT_EXPIRES_IN_DAYS", "7")))
    JWT_REFRESH_SECRET = os.environ.get("JWT_REFRESH_SECRET", "dev-jwt-refresh-secret-change-me")
    JWT_REFRESH_EXPIRES_IN = timedelta(days=int(os.environ.get("JWT_REFRESH_EXPIRES_IN_DAYS", "30")))

    ALLOWED_ORIGINS = _env_list(
        "ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    )
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")

    # Fixed-window limiter applied to every /api request
    RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)
    RATE_LIMIT_WINDOW_SECONDS = int(os.environ.get("RATE_LIMIT_WINDOW_MS", "900000")) // 1000
    RATE_LIMIT_MAX_REQUESTS = int(os.environ.get("RATE_LIMIT_MAX_REQUESTS", "100"))
    AUTH_RATE_LIMIT_MAX_REQUESTS = int(os.environ.get("AUTH_RATE_LIMIT_MAX_REQUESTS", "10"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_FILE_SIZE", str(10 * 1024 * 1024)))
    UPLOAD_PATH = os.environ.get("UPLOAD_PATH", "uploads")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Outbound email (password reset, address verification)
    SMTP_HOST = os.environ.get("SMTP_HOST")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USER = os.environ.get("SMTP_USER")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
    SMTP_TIMEOUT_SECONDS = int(os.environ.get("SMTP_TIMEOUT_SECONDS", "10"))
    # smtp | console | memory; console only logs the message
    MAIL_BACKEND = os.environ.get("MAIL_BACKEND", "smtp" if SMTP_HOST else "console")
    MAIL_FROM_EMAIL = os.environ.get("FROM_EMAIL", "noreply@twsystem.local")
    MAIL_FROM_NAME = os.environ.get("FROM_NAME", "TW System")

    PASSWORD_RESET_EXPIRES_IN = timedelta(minutes=int(os.environ.get("PASSWORD_RESET_EXPIRES_MINUTES", "10")))


class TestConfig(Config):
    APP_ENV = "test"
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    BCRYPT_ROUNDS = 4
    RATE_LIMIT_ENABLED = False
    MAIL_BACKEND = "memory"
    LOG_LEVEL = "WARNING"
