import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Values from a local .env file fill in whatever the environment leaves unset
load_dotenv()

# Base directory
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})")
    if value < 0:
        raise ValueError(f"{name} must not be negative (got {value})")
    return value


# Posture Thresholds (radians, deviation from neutral head position)
PITCH_THRESHOLD_RAD = _float_env("POSTURE_PITCH_THRESHOLD", 0.20)
ROLL_THRESHOLD_RAD = _float_env("POSTURE_ROLL_THRESHOLD", 0.20)

# Alerting
ALERT_CONFIRM_DELAY_SECONDS = _float_env("ALERT_CONFIRM_DELAY_SECONDS", 5.0)
NOTIFICATION_COOLDOWN_SECONDS = _float_env("NOTIFICATION_COOLDOWN_SECONDS", 60.0)
SOUND_ENABLED_DEFAULT = os.getenv("SOUND_ENABLED", "true").lower() == "true"
NOTIFICATIONS_ENABLED_DEFAULT = os.getenv("NOTIFICATIONS_ENABLED", "true").lower() == "true"
NOTIFICATION_TITLE = "Posture Alert"
NOTIFICATION_BODY = "Your posture needs attention! Sit up straight."

# Session accounting
SESSION_FLUSH_INTERVAL_SECONDS = _float_env("SESSION_FLUSH_INTERVAL_SECONDS", 5.0)
STALE_SAMPLE_CEILING_SECONDS = _float_env("STALE_SAMPLE_CEILING_SECONDS", 2.0)

# History storage (single JSON key/value file, one well-known key)
HISTORY_FILE = os.getenv("HISTORY_FILE", os.path.join(BASE_DIR, "data", "posture_store.json"))
HISTORY_KEY = "postureHistory"

# Data retention policy
# Daily records older than this are pruned on every save
DATA_RETENTION_DAYS = int(_float_env("DATA_RETENTION_DAYS", 90))
if DATA_RETENTION_DAYS < 1:
    raise ValueError("DATA_RETENTION_DAYS must be at least 1")

# WebSocket limits
WEBSOCKET_TIMEOUT = 60.0  # Seconds to wait for a message before pinging
MAX_MESSAGE_SIZE = 4096  # Samples are tiny, anything bigger is garbage
MAX_SAMPLES_PER_SECOND = int(_float_env("MAX_SAMPLES_PER_SECOND", 60))
MAX_CONNECTIONS_PER_IP = 5
TRUST_PROXY_HEADERS = os.getenv("TRUST_PROXY_HEADERS", "false").lower() == "true"

# CORS - Restrict in production
if ENVIRONMENT == "production":
    _origins = os.getenv("ALLOWED_ORIGINS", "")
    ALLOWED_ORIGINS = [o.strip() for o in _origins.split(",") if o.strip()]
else:
    # Development: allow all for testing
    ALLOWED_ORIGINS = ["*"]


@dataclass(frozen=True)
class Tunables:
    """The recognized posture tunables, grouped so components can be built with overrides."""
    threshold_pitch: float = PITCH_THRESHOLD_RAD
    threshold_roll: float = ROLL_THRESHOLD_RAD
    confirm_delay: float = ALERT_CONFIRM_DELAY_SECONDS
    cooldown: float = NOTIFICATION_COOLDOWN_SECONDS
    flush_interval: float = SESSION_FLUSH_INTERVAL_SECONDS
    stale_ceiling: float = STALE_SAMPLE_CEILING_SECONDS
    retention_days: int = DATA_RETENTION_DAYS


DEFAULT_TUNABLES = Tunables()
