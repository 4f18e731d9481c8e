import os

from dotenv import load_dotenv

from sync_guesty.errors import ConfigError

load_dotenv()


def _int_env(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float_env(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _list_env(name: str) -> list[str]:
    raw = os.getenv(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"
# "json" for log shipping, "console" for a terminal; unset picks console only at DEBUG
LOG_FORMAT = os.getenv("LOG_FORMAT", "console" if DEBUG else "json").lower()
if LOG_FORMAT not in ("json", "console"):
    raise ConfigError(f"LOG_FORMAT must be json or console, got {LOG_FORMAT!r}")

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ConfigError("DATABASE_URL must be set in the environment")

# Upstream API
GUESTY_API_URL = os.getenv("GUESTY_API_URL", "https://open-api.guesty.com/v1")
GUESTY_OAUTH_URL = os.getenv("GUESTY_OAUTH_URL", "https://open-api.guesty.com/oauth2/token")
GUESTY_CLIENT_ID = os.getenv("GUESTY_CLIENT_ID", "")
GUESTY_CLIENT_SECRET = os.getenv("GUESTY_CLIENT_SECRET", "")

# Upstream publishes 15 req/sec and 15 concurrent; stay below both
GUESTY_MAX_RPS = _float_env("GUESTY_MAX_RPS", 10.0, minimum=0.1)
GUESTY_MAX_CONCURRENT = _int_env("GUESTY_MAX_CONCURRENT", 10, minimum=1)
GUESTY_REQUEST_TIMEOUT = _float_env("GUESTY_REQUEST_TIMEOUT", 30.0, minimum=1.0)

# Properties (multi-property mode when more than one id is configured)
PROPERTY_IDS: list[str] = _list_env("GUESTY_PROPERTY_IDS") or _list_env("GUESTY_PROPERTY_ID")
PROPERTY_TIMEZONE = os.getenv("PROPERTY_TIMEZONE", "Europe/Berlin")

# Freshness windows, in minutes
CACHE_LISTING_TTL = _int_env("CACHE_LISTING_TTL", 1440, minimum=1)
CACHE_AVAILABILITY_TTL = _int_env("CACHE_AVAILABILITY_TTL", 60, minimum=1)
CACHE_RESERVATION_TTL = _int_env("CACHE_RESERVATION_TTL", 60, minimum=1)

# Sync windows, in days relative to the property-local today
AVAILABILITY_PAST_DAYS = _int_env("AVAILABILITY_PAST_DAYS", 0)
AVAILABILITY_FUTURE_DAYS = _int_env("AVAILABILITY_FUTURE_DAYS", 365, minimum=1)
AVAILABILITY_RETENTION_DAYS = _int_env("AVAILABILITY_RETENTION_DAYS", 30)
INQUIRY_LOOKBACK_DAYS = _int_env("INQUIRY_LOOKBACK_DAYS", 365)

# Scheduler
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"
SCHEDULER_INTERVAL_MINUTES = _int_env(
    "SCHEDULER_INTERVAL_MINUTES", CACHE_AVAILABILITY_TTL, minimum=1
)
SCHEDULER_JITTER_PERCENT = _float_env("SCHEDULER_JITTER_PERCENT", 5.0)
if SCHEDULER_JITTER_PERCENT >= 100:
    raise ConfigError("SCHEDULER_JITTER_PERCENT must be below 100")

ALLOWED_ORIGINS: list[str] = _list_env("ALLOWED_ORIGINS") or ["*"]
