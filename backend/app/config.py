import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


# -------------------------------------------------
# ENV HELPERS
# -------------------------------------------------
def get_required_env(name: str) -> str:
    value = os.getenv(name)
    if not value or not value.strip():
        raise RuntimeError(f"❌ Missing required env var: {name}")
    return value


def get_env_flag(name: str, default: bool = False) -> bool:
    """
    Reads a boolean feature flag.
    Accepts: 1/0, true/false, yes/no, on/off (case-insensitive).
    """
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise RuntimeError(f"❌ Env var {name} must be an integer, got {value!r}")


# -------------------------------------------------
# DATABASE (read lazily by app.db)
# -------------------------------------------------
def get_database_url() -> str:
    return get_required_env("DATABASE_URL")


# -------------------------------------------------
# METRICS SERVICE
# -------------------------------------------------
METRICS_SERVICE_URL: str = os.getenv("METRICS_SERVICE_URL", "http://localhost:8001").rstrip("/")
METRICS_PERIOD_DAYS: int = min(max(get_env_int("METRICS_PERIOD_DAYS", 90), 1), 365)
METRICS_TIMEOUT_SECONDS: float = float(os.getenv("METRICS_TIMEOUT_SECONDS", "10"))

# -------------------------------------------------
# PRICING FEATURE FLAGS
# -------------------------------------------------
PRICING_BRAND_RISK_ENABLED: bool = get_env_flag("PRICING_BRAND_RISK_ENABLED", False)
PRICING_CALIBRATION_ENABLED: bool = get_env_flag("PRICING_CALIBRATION_ENABLED", True)

# -------------------------------------------------
# TELEGRAM (optional chat surface)
# -------------------------------------------------
TELEGRAM_BOT_TOKEN: Optional[str] = os.getenv("TELEGRAM_BOT_TOKEN") or None

# -------------------------------------------------
# LOGGING
# -------------------------------------------------
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
