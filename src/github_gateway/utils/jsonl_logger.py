"""
Structured logging for the GitHub gateway.

Records under the ``github_gateway`` logger are written as one JSON object per
line: to ``<log_dir>/<service>/<service>.jsonl`` (rotated at midnight into
``YYYY-MM-DD.jsonl``) and to stderr.

Extra fields travel on the record: ``route``, ``error``, ``context`` and
``json_data``, whose keys are merged into the top level of the entry.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .request_id_middleware import get_current_request_id

LOGGER_NAME = "github_gateway"
RETAINED_DAYS = 30


class JSONLFormatter(logging.Formatter):
    def __init__(self, service: str | None = None):
        super().__init__()
        self.service = service or "unknown"

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "ts": created.strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "request_id": getattr(record, "req_id", None) or get_current_request_id(),
            "route": getattr(record, "route", None),
            "msg": record.getMessage(),
        }

        for field in ("error", "context"):
            value = getattr(record, field, None)
            if value:
                entry[field] = value
        if record.exc_info:
            entry["stack"] = self.formatException(record.exc_info)

        entry.update(getattr(record, "json_data", None) or {})
        entry.update(file=record.filename, line=record.lineno, func=record.funcName)

        return json.dumps(entry, ensure_ascii=False, default=str)


def _dated_name(default_name: str) -> str:
    # "<dir>/svc.jsonl.2024-05-01" -> "<dir>/2024-05-01.jsonl"
    path = Path(default_name)
    return str(path.parent / f"{path.suffix.lstrip('.')}.jsonl")


class JSONLHandler(TimedRotatingFileHandler):
    """Midnight-rotating JSONL file for one service."""

    def __init__(self, log_dir: str, service: str, level: int = logging.INFO):
        service_dir = Path(log_dir) / service
        service_dir.mkdir(parents=True, exist_ok=True)
        super().__init__(
            filename=str(service_dir / f"{service}.jsonl"),
            when="midnight",
            backupCount=RETAINED_DAYS,
            encoding="utf-8",
            utc=True,
        )
        self.namer = _dated_name
        self.setFormatter(JSONLFormatter(service=service))
        self.setLevel(level)


def setup_jsonl_logger(
    service: str,
    log_dir: Optional[str] = "logs",
    level: int | str = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """
    Configure the package logger; module loggers propagate to it.

    Calling this again replaces the previous handlers. ``log_dir=None``
    disables the file handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if log_dir:
        logger.addHandler(JSONLHandler(log_dir, service, logger.level))
    if console:
        stderr = logging.StreamHandler(sys.stderr)
        stderr.setFormatter(JSONLFormatter(service=service))
        logger.addHandler(stderr)

    logger.propagate = False
    return logger


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    request_id: str | None = None,
    route: str | None = None,
    error: str | None = None,
    context: dict[str, Any] | None = None,
    **fields,
) -> None:
    """Log ``message`` with the gateway's structured fields; ``fields`` go top-level."""
    extra = {
        "req_id": request_id,
        "route": route,
        "error": error,
        "context": context,
        "json_data": fields,
    }
    logger.log(level, message, extra={k: v for k, v in extra.items() if v})
