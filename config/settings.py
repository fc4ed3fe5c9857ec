# config/settings.py
"""
Environment-driven settings.

Everything is read once at import time; `.env` is loaded first so local
development works without exporting variables.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


# ─── Auth ──────────────────────────────────────────────────────────
# Load from env in prod; fall back only for local dev
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-in-prod")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = _int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 60)
REFRESH_TOKEN_EXPIRE_DAYS = _int_env("REFRESH_TOKEN_EXPIRE_DAYS", 7)

# ─── Market data / FX ──────────────────────────────────────────────
PRICE_FETCH_TIMEOUT_SEC = _float_env("PRICE_FETCH_TIMEOUT_SEC", 5.0)
FX_CACHE_TTL_SEC = _int_env("FX_CACHE_TTL_SEC", 60)
FX_API_URL = os.getenv("FX_API_URL", "https://api.frankfurter.app/latest")
COINGECKO_API_KEY = os.getenv("COINGECKO_API_KEY")

# ─── HTTP ──────────────────────────────────────────────────────────
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "60/minute")
RATE_LIMIT_AUTH = os.getenv("RATE_LIMIT_AUTH", "10/minute")
REDIS_URL = os.getenv("REDIS_URL")

# ─── Ledger defaults ───────────────────────────────────────────────
DEFAULT_BASE_CURRENCY = os.getenv("DEFAULT_BASE_CURRENCY", "SGD")
DEFAULT_POCKET_NAME = "Main"

# ─── Logging ───────────────────────────────────────────────────────
LOG_LEVEL = (os.getenv("LOG_LEVEL") or "INFO").upper()
LOG_JSON = os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")
