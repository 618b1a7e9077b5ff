# Configuration from environment variables (.env or deployment variables).

import os
from dotenv import load_dotenv

load_dotenv()


def _env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _env_int(key: str, default: int) -> int:
    try:
        return int(_env(key, str(default)))
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(_env(key, str(default)))
    except ValueError:
        return default


def _env_bool(key: str, default: bool = False) -> bool:
    return _env(key, "true" if default else "false").lower() in ("1", "true", "yes")


# ============================================================================
# Database
# ============================================================================
DATABASE_URL = _env("DATABASE_URL")
DATABASE_URL_FALLBACK = _env("DATABASE_URL_FALLBACK", "sqlite+aiosqlite:///./callhub.db")
DB_ECHO = _env_bool("DB_ECHO")

# Retry wrapper around transient driver errors
DB_RETRY_MAX = _env_int("DB_RETRY_MAX", 3)
DB_RETRY_BASE_DELAY = _env_float("DB_RETRY_BASE_DELAY", 0.1)
DB_RESET_DELAY = _env_float("DB_RESET_DELAY", 0.5)

# ============================================================================
# Background housekeeping
# ============================================================================
ENABLE_SCHEDULER = _env_bool("ENABLE_SCHEDULER")
SCHEDULER_INTERVAL_MINUTES = _env_int("SCHEDULER_INTERVAL_MINUTES", 60)

# ============================================================================
# Budgets
# ============================================================================
DEFAULT_CURRENCY = _env("DEFAULT_CURRENCY", "USD")
DEFAULT_BUDGET_AMOUNT = _env_float("DEFAULT_BUDGET_AMOUNT", 10000.0)

# Share of the default budget per category when an application is approved
DEFAULT_BUDGET_SPLIT = {
    "Operations": ("Day-to-day operational expenses", 0.4),
    "Marketing": ("Marketing and promotion expenses", 0.3),
    "Development": ("Product/service development", 0.2),
    "Miscellaneous": ("Other expenses", 0.1),
}

# ============================================================================
# Logging
# ============================================================================
LOG_LEVEL = _env("LOG_LEVEL", "INFO").upper()

# ============================================================================
# API client
# ============================================================================
API_URL = _env("API_URL", "http://localhost:8000")
API_TIMEOUT = _env_float("API_TIMEOUT", 30.0)
API_RETRIES = _env_int("API_RETRIES", 3)
API_RETRY_BACKOFF = _env_float("API_RETRY_BACKOFF", 0.5)
