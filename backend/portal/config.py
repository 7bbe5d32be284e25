# backend/portal/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/portal.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///portal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Header populated by the upstream identity provider with the signed-in email
    IDENTITY_HEADER = os.environ.get("IDENTITY_HEADER", "X-Authenticated-Email")

    # Notifications: "log" writes rendered messages to the app logger, "memory" keeps them in a list
    NOTIFICATION_CHANNEL = os.environ.get("NOTIFICATION_CHANNEL", "log")
    NOTIFY_ASYNC = _env_flag("NOTIFY_ASYNC")
    LOW_STOCK_RECIPIENTS = os.environ.get("LOW_STOCK_RECIPIENTS", "")
    PORTAL_BASE_URL = os.environ.get("PORTAL_BASE_URL", "")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
