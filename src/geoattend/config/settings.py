import os


def strtobool(val):
    """Convert a string representation of truth to true (1) or false (0)."""
    val = val.lower()
    if val in ('y', 'yes', 't', 'true', 'on', '1'):
        return 1
    elif val in ('n', 'no', 'f', 'false', 'off', '0'):
        return 0
    else:
        raise ValueError(f"invalid truth value {val!r}")


SECRET_KEY = os.getenv("SECRET_KEY", "default-secret-key-for-geoattend")
DEBUG = bool(strtobool(os.getenv("FLASK_DEBUG", "false")))

LOG_FILE_SIZE = os.getenv("LOG_FILE_SIZE", "10485760")
SENTRY_DSN = os.getenv("SENTRY_DSN", "")

SCHEDULER_ENABLED = bool(strtobool(os.getenv("SCHEDULER_ENABLED", "true")))
SYNC_INTERVAL_SECONDS = int(os.getenv("SYNC_INTERVAL_SECONDS", "60"))
NETWORK_CHECK_INTERVAL_SECONDS = int(os.getenv("NETWORK_CHECK_INTERVAL_SECONDS", "30"))

# Polling interval for server-side location sources
POSITION_POLL_INTERVAL = float(os.getenv("POSITION_POLL_INTERVAL", "5"))
