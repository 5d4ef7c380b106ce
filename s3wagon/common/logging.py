import json
import logging
import threading
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any

TRANSFER_LOGGER = "s3wagon.transfer"
TRANSFER_FORMAT = "[%(levelname)s] %(message)s"

# Third-party loggers that log every request at INFO or DEBUG
NOISY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")


def build_logging_config(level: str = "INFO", *, json_console: bool = True) -> dict[str, Any]:
    """dictConfig payload: structured root output, plain transfer lines."""
    loggers: dict[str, Any] = {
        TRANSFER_LOGGER: {
            "handlers": ["transfer"],
            "level": level,
            "propagate": False,
        },
    }
    for name in NOISY_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {"()": JsonFormatter},
            "transfer": {"format": TRANSFER_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "structured" if json_console else "transfer",
            },
            "transfer": {
                "class": "logging.StreamHandler",
                "formatter": "transfer",
            },
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": loggers,
    }


def setup_logging(level: str | None = None, *, json_console: bool | None = None) -> None:
    """Configure logging, falling back to LOG_LEVEL and LOG_JSON from settings."""
    if level is None or json_console is None:
        from s3wagon.common.config import get_settings

        settings = get_settings()
        level = level or settings.LOG_LEVEL
        json_console = settings.LOG_JSON if json_console is None else json_console
    dictConfig(build_logging_config(level.upper(), json_console=json_console))


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra={"extra": {...}}`` is merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Part uploads run on worker threads
        if record.thread != threading.main_thread().ident:
            payload["thread"] = record.threadName
        fields = getattr(record, "extra", None)
        if isinstance(fields, dict):
            payload.update(fields)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
