# backend/filmstock/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/filmstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///filmstock.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Bearer token for admin-only routes (stock adjustments, prices, product edits).
    # Empty disables admin routes entirely.
    ADMIN_TOKEN = os.environ.get("ADMIN_TOKEN", "")

    # Prices in FCFA per kg, used until an admin sets a catalog price
    DEFAULT_VIRGIN_PRICE = int(os.environ.get("DEFAULT_VIRGIN_PRICE", "1500"))
    DEFAULT_COLORED_PRICE = int(os.environ.get("DEFAULT_COLORED_PRICE", "1200"))

    # External cash ledger ("gestion de caisse")
    CASH_LEDGER_URL = os.environ.get("CASH_LEDGER_URL", "")
    CASH_LEDGER_API_KEY = os.environ.get("CASH_LEDGER_API_KEY", "")
    CASH_LEDGER_PROJECT_ID = os.environ.get("CASH_LEDGER_PROJECT_ID", "")
    CASH_LEDGER_USER_ID = os.environ.get("CASH_LEDGER_USER_ID", "")
    CASH_LEDGER_TIMEOUT = float(os.environ.get("CASH_LEDGER_TIMEOUT", "10"))
    CASH_LEDGER_RETRY_ATTEMPTS = int(os.environ.get("CASH_LEDGER_RETRY_ATTEMPTS", "3"))
    CASH_LEDGER_RETRY_BACKOFF = float(os.environ.get("CASH_LEDGER_RETRY_BACKOFF", "1.0"))
    # Dispatch attempts before an outbox row is marked FAILED
    CASH_LEDGER_MAX_ATTEMPTS = int(os.environ.get("CASH_LEDGER_MAX_ATTEMPTS", "10"))
    # httpx transport override; tests inject httpx.MockTransport
    CASH_LEDGER_TRANSPORT = None
