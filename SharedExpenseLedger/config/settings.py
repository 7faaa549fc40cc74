"""
Settings Module

Environment-driven configuration for the shared expense ledger service.

Variables (all optional):
    - LEDGER_LOG_LEVEL: logging level name or number (default INFO)
    - LEDGER_CURRENCY_SYMBOL: symbol used when formatting money (default ৳)
    - LEDGER_CACHE_ENABLED: "0"/"false" disables the period snapshot cache
    - FIREBASE_CREDENTIALS: path to a service-account JSON file
    - FIREBASE_PROJECT_ID: Firestore project override

A local ``.env`` file is loaded (without overriding the real environment)
the first time this module is imported.
"""

import os

from dotenv import load_dotenv


load_dotenv(override=False)


# Tolerance used for split sums and for dropping near-zero balances
MONEY_EPSILON = "0.01"

VALID_CATEGORIES = ("Food", "Transport", "Rent", "Utility", "Others")
VALID_ROLES = ("admin", "user")


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def get_log_level() -> str:
    return os.getenv("LEDGER_LOG_LEVEL", "INFO")


def get_currency_symbol() -> str:
    return os.getenv("LEDGER_CURRENCY_SYMBOL", "৳")


def cache_enabled() -> bool:
    return _env_flag("LEDGER_CACHE_ENABLED", True)


def get_firebase_credentials_path():
    return os.getenv("FIREBASE_CREDENTIALS") or None


def get_firebase_project_id():
    return os.getenv("FIREBASE_PROJECT_ID") or None
