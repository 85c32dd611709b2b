import logging
import os
import sys
import tempfile
from logging.handlers import RotatingFileHandler

LOG_FILE_NAME = "geoattend.log"


class ColoredFormatter(logging.Formatter):
    """Console formatter: colored level names and highlighted component tags"""

    RESET = "\033[0m"
    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    TAG_COLORS = {
        "[CRON]": "\033[34m",
        "[SYNC]": "\033[95m",
        "[GEOFENCE]": "\033[96m",
        "[SSE]": "\033[90m",
    }

    def format(self, record):
        message = super().format(record)

        color = self.LEVEL_COLORS.get(record.levelname)
        if color:
            message = message.replace(
                record.levelname, f"{color}\033[1m{record.levelname}{self.RESET}", 1
            )

        for tag, tag_color in self.TAG_COLORS.items():
            if tag in message:
                message = message.replace(tag, f"{tag_color}{tag}{self.RESET}")
        return message


def _candidate_log_dirs():
    override = os.getenv("GEOATTEND_LOG_DIR")
    if override:
        yield override

    home = os.path.expanduser("~")
    if os.name == "nt":
        appdata = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
        if appdata:
            yield os.path.join(appdata, "GeoAttend")
    else:
        yield os.path.join(home, ".local", "share", "GeoAttend")
    yield os.path.join(home, "geoattend_logs")
    yield tempfile.gettempdir()


def get_user_log_dir():
    """First writable log directory, falling back to the working directory"""
    for log_dir in _candidate_log_dirs():
        try:
            os.makedirs(log_dir, exist_ok=True)
        except OSError:
            continue
        if os.access(log_dir, os.W_OK):
            return log_dir
    return os.getcwd()


def create_log_handler():
    """Rotating file handler; LOG_FILE_SIZE bytes per file, 3 backups"""
    handler = RotatingFileHandler(
        os.path.join(get_user_log_dir(), LOG_FILE_NAME),
        maxBytes=int(os.getenv("LOG_FILE_SIZE", 10485760)),
        backupCount=3,
    )
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s"))
    return handler


def create_console_handler():
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ColoredFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    return handler


# Shared logger, usable outside of the Flask app context
app_logger = logging.getLogger("geoattend")

if not app_logger.handlers:
    app_logger.addHandler(create_log_handler())
    app_logger.addHandler(create_console_handler())

app_logger.setLevel(logging.INFO)
app_logger.propagate = False
