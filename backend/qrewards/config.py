# backend/qrewards/config.py
from __future__ import annotations
import os


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/qrewards.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///qrewards.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Admin credential: plaintext secret or a bcrypt hash ("$2b$...").
    # Empty means every admin request is denied.
    ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "")

    # Base of the URL printed into each QR code
    PUBLIC_BASE_URL = os.environ.get("PUBLIC_BASE_URL", "http://localhost:5000")

    # Reward policy: fixed | tiered | random
    REWARD_POLICY = os.environ.get("REWARD_POLICY", "fixed")
    REWARD_AMOUNT_CENTS = _int_env("REWARD_AMOUNT_CENTS", 100)
    REWARD_TIERS = os.environ.get("REWARD_TIERS", "")  # "BATCH_A=100,BATCH_B=250"
    REWARD_CHOICES = os.environ.get("REWARD_CHOICES", "50,100,200")

    MAX_BATCH_SIZE = _int_env("MAX_BATCH_SIZE", 10_000)

    # Every store call is bounded by this (busy timeout / statement timeout)
    STORE_TIMEOUT_SECONDS = _float_env("STORE_TIMEOUT_SECONDS", 5.0)
    STORE_RETRY_ATTEMPTS = _int_env("STORE_RETRY_ATTEMPTS", 3)
    STORE_RETRY_BACKOFF = _float_env("STORE_RETRY_BACKOFF", 0.1)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


def engine_options(database_uri: str, timeout_seconds: float) -> dict:
    """
    SQLAlchemy engine options that bound every statement by timeout_seconds.

    SQLite: busy timeout for lock waits.
    PostgreSQL: connect timeout plus server-side statement_timeout.
    """
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    if database_uri.startswith("postgresql"):
        return {
            "pool_timeout": timeout_seconds,
            "pool_pre_ping": True,
            "connect_args": {
                "connect_timeout": max(1, int(timeout_seconds)),
                "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
            },
        }
    return {"pool_timeout": timeout_seconds, "pool_pre_ping": True}
