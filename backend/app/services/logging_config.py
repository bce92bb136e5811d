"""
Structured logging for the RAB Estimator.

Production emits one JSON object per line; local runs (LOG_FORMAT=text) get a
readable line with the same calculation / request extras appended as
``key=value`` pairs.
"""
import logging
import json
import sys
from datetime import datetime, timezone
from typing import IO, Optional

# extra= fields lifted out of the LogRecord when present
EXTRA_FIELDS = (
    "calculation_id", "duration_ms", "request_id",
    "http_method", "http_path", "http_status",
    "shape", "rab", "sub_works", "job_type_id",
)

_NOISY_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "sqlalchemy.engine", "aiosqlite")

TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def _extras(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in EXTRA_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """JSON structured log formatter for production."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            **_extras(record),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        # Decimal / datetime extras are stringified rather than dropped
        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self) -> None:
        super().__init__(TEXT_FORMAT)

    def format(self, record):
        line = super().format(record)
        extras = " ".join(f"{k}={v}" for k, v in _extras(record).items())
        return f"{line} | {extras}" if extras else line


def setup_logging(level: str = "INFO", json_output: bool = True, stream: Optional[IO] = None):
    """Configure the root logger with a single stdout handler."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
    root.handlers = [handler]

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
