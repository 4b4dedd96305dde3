# app/config.py
# Role: Environment-driven settings for the finance tracker.
#       Loads a local .env file (if any) and exposes typed settings
#       used by the database bootstrap, logging and the recurrence engine.

import os

from dotenv import load_dotenv

load_dotenv()

# Project root (one level above the app/ package)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Default SQLite location: <project_root>/database/finance.db
DEFAULT_DB_PATH = os.path.join(BASE_DIR, "database", "finance.db")


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    if v is None:
        return default
    v = v.strip().strip("'\"")
    return v or default


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or str(v).strip() == "":
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


DATABASE_URL = _env_str("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}")

LOG_LEVEL = _env_str("LOG_LEVEL", "INFO").upper()

# Upper bound on occurrences one template may produce in a single reconcile call
RECURRING_MAX_OCCURRENCES = max(1, _env_int("RECURRING_MAX_OCCURRENCES", 240))
