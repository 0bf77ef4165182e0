# backend/storefront/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def engine_options_for(uri: str, timeout_seconds: int) -> dict:
    """
    Bound every store wait by the configured timeout.

    SQLite waits on its busy handler; server databases wait on the pool
    checkout and on the initial connect.
    """
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    return {
        "pool_timeout": timeout_seconds,
        "pool_pre_ping": True,
        "connect_args": {"connect_timeout": timeout_seconds},
    }


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///storefront.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    STORE_TIMEOUT_SECONDS = int(os.environ.get("STORE_TIMEOUT_SECONDS", "10"))
    SQLALCHEMY_ENGINE_OPTIONS = engine_options_for(SQLALCHEMY_DATABASE_URI, STORE_TIMEOUT_SECONDS)

    # Order lifecycle
    ORDER_MODIFICATION_WINDOW_DAYS = int(os.environ.get("ORDER_MODIFICATION_WINDOW_DAYS", "30"))

    # Low-stock alerting and restock forecasting
    LOW_STOCK_THRESHOLD_DEFAULT = int(os.environ.get("LOW_STOCK_THRESHOLD_DEFAULT", "5"))
    CRITICAL_STOCK_THRESHOLD_DEFAULT = int(os.environ.get("CRITICAL_STOCK_THRESHOLD_DEFAULT", "1"))
    RESTOCK_WINDOW_DAYS = int(os.environ.get("RESTOCK_WINDOW_DAYS", "30"))
    RESTOCK_COVERAGE_DAYS = int(os.environ.get("RESTOCK_COVERAGE_DAYS", "45"))
    RESTOCK_MINIMUM_UNITS = int(os.environ.get("RESTOCK_MINIMUM_UNITS", "10"))

    # Outbound notices (SMTP when MAIL_SERVER is set, application log otherwise)
    NOTIFICATIONS_ENABLED = _env_bool("NOTIFICATIONS_ENABLED", True)
    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "orders@storefront.local")
    NOTIFICATION_TIMEOUT_SECONDS = int(os.environ.get("NOTIFICATION_TIMEOUT_SECONDS", "5"))
    LOW_STOCK_ALERT_RECIPIENT = os.environ.get("LOW_STOCK_ALERT_RECIPIENT")

    ADMIN_SESSION_HOURS = int(os.environ.get("ADMIN_SESSION_HOURS", "24"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    EXPOSE_ERROR_DETAILS = _env_bool("EXPOSE_ERROR_DETAILS", False)
