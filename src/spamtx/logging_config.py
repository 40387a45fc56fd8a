import logging
import logging.config
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("SPAMTX_LOG_FILE", "/tmp/spamtx.log")

# one INFO line per request/hit otherwise
NOISY = ("httpx", "httpcore", "uvicorn.access")

HANDLERS = ["console", "file"]


def _quiet(level: str = "WARNING") -> dict:
    return {"level": level, "handlers": HANDLERS, "propagate": False}


def build_config(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE) -> dict:
    """dictConfig for the ``spamtx`` tree. ``log_file=None`` logs to stdout only."""
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "short",
            "stream": sys.stdout,
        },
    }
    if log_file:
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "long",
            "filename": log_file,
            "mode": "a",
        }
    else:
        handlers["file"] = {"class": "logging.NullHandler"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "short": {"format": "%(asctime)s %(levelname)-6s %(message)s", "datefmt": "%H:%M:%S"},
            "long": {
                "format": "%(asctime)s %(levelname)-6s %(name)s:%(lineno)d %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": handlers,
        "loggers": {
            "spamtx": _quiet(level),
            **{name: _quiet() for name in NOISY},
        },
        "root": {"level": "WARNING", "handlers": HANDLERS},
    }


def setup_logging(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE):
    logging.config.dictConfig(build_config(level.upper(), log_file))
    os.environ.setdefault("PYTHONUNBUFFERED", "1")
