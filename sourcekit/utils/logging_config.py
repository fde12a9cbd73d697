import json
import logging
import logging.config
import os
import uuid
from dataclasses import asdict, is_dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel

# LogRecord attributes that are never copied into the JSON payload
_RESERVED_ATTRS = frozenset(
    [
        "timestamp",
        "level",
        "message",
        "logger",
        "request_id",
        "exc_info",
        "extra",
        "args",
        "exc_text",
        "stack_info",
        "created",
        "msecs",
        "relativeCreated",
        "levelno",
        "levelname",
        "name",
        "msg",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "processName",
        "process",
        "threadName",
        "thread",
        "taskName",
        "req_id",
    ]
)


class JSONFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__()

    def _serialize_object(self, obj: Any) -> Any:
        if isinstance(obj, BaseModel):
            return obj.model_dump()
        if is_dataclass(obj) and not isinstance(obj, type):
            return asdict(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Exception):
            return str(obj)
        if isinstance(obj, (list, dict, str, int, float, bool)) or obj is None:
            return obj
        return str(obj)

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "request_id": getattr(record, "req_id", str(uuid.uuid4())),
        }

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        # Everything passed through ``extra=`` lands on the record itself
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_record[key] = self._serialize_object(value)

        return json.dumps(log_record, default=self._serialize_object)


def generate_request_id() -> str:
    return str(uuid.uuid4())


def setup_logging(level: str | None = None) -> None:
    """Configure logging for the harness.

    Logs are written to stderr so the test report on stdout stays readable.
    Setting ``SOURCEKIT_LOG_FILE`` adds a JSON file handler as well.
    """
    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stderr",
        },
    }

    log_file = os.getenv("SOURCEKIT_LOG_FILE")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "json",
            "filename": log_file,
            "mode": "a",
        }

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "sourcekit.utils.logging_config.JSONFormatter",
            }
        },
        "handlers": handlers,
        "root": {
            "level": (level or os.getenv("LOG_LEVEL", "WARNING")).upper(),
            "handlers": list(handlers),
        },
    }

    root = logging.getLogger()
    root.handlers = []  # Remove any existing handlers

    logging.config.dictConfig(logging_config)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    This will return a logger that inherits settings from the root logger,
    including log level and handlers.
    """
    return logging.getLogger(name)
