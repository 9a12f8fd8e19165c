# -*- coding: utf-8 -*-
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def database_url():
    """Resolve the database URL from the environment, SQLite by default"""
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    pg_user = os.environ.get("DB_USER")
    pg_pass = os.environ.get("DB_PASSWORD")
    pg_host = os.environ.get("DB_HOST")
    pg_port = os.environ.get("DB_PORT")
    pg_name = os.environ.get("DB_NAME")
    if pg_user and pg_pass and pg_host and pg_port and pg_name:
        return f"postgresql+psycopg2://{pg_user}:{pg_pass}@{pg_host}:{pg_port}/{pg_name}"
    return "sqlite:///portfolio_admin.db"


class Config:
    # Security
    SECRET_KEY = os.environ.get("APP_SECRET", "super_secret_key_change_in_production")
    SESSION_TIMEOUT = int(os.environ.get("SESSION_TIMEOUT", 86400))  # 24 hours

    # Database
    SQLALCHEMY_DATABASE_URI = database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # One-time codes
    CODE_TTL_SECONDS = int(os.environ.get("CODE_TTL_SECONDS", 300))

    # Identity provider throttling
    MAX_LOGIN_ATTEMPTS = int(os.environ.get("MAX_LOGIN_ATTEMPTS", 5))
    LOGIN_ATTEMPT_WINDOW = int(os.environ.get("LOGIN_ATTEMPT_WINDOW", 900))
    RESET_TOKEN_MAX_AGE = int(os.environ.get("RESET_TOKEN_MAX_AGE", 3600))

    # Email
    SMTP_ENABLED = _env_bool("SMTP_ENABLED")
    SMTP_HOST = os.environ.get("SMTP_HOST", "localhost")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", 587))
    SMTP_USERNAME = os.environ.get("SMTP_USERNAME", "")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD", "")
    SMTP_FROM = os.environ.get("SMTP_FROM", "noreply@localhost")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", True)
    CODE_SUBJECT = os.environ.get("CODE_SUBJECT", "Your admin panel verification code")
    RESET_SUBJECT = os.environ.get("RESET_SUBJECT", "Reset your admin panel password")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
