# backend/supplyline/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///supplyline.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Writers wait for the SQLite write lock instead of failing immediately
    SQLITE_BUSY_TIMEOUT = int(os.environ.get("SQLITE_BUSY_TIMEOUT", "30"))

    # Order pricing (500 bps = 5% tax, 5000 poisha = 50 taka delivery)
    ORDER_TAX_RATE_BPS = int(os.environ.get("ORDER_TAX_RATE_BPS", "500"))
    ORDER_DELIVERY_CHARGE_CENTS = int(os.environ.get("ORDER_DELIVERY_CHARGE_CENTS", "5000"))
    ORDER_NUMBER_START = int(os.environ.get("ORDER_NUMBER_START", "1001"))

    ENFORCE_WORKER_AREA = _env_bool("ENFORCE_WORKER_AREA", False)

    # "database" stores Notification rows, "log" only writes to the app logger
    NOTIFICATION_SINK = os.environ.get("NOTIFICATION_SINK", "database")

    DB_RETRY_ATTEMPTS = int(os.environ.get("DB_RETRY_ATTEMPTS", "3"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    NOTIFICATION_SINK = "database"
    ENFORCE_WORKER_AREA = False
