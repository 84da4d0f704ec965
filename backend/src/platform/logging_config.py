"""
JSON logging for the PharOS backend.

Records are emitted as one JSON object per line. Fields passed through
``extra=`` are merged into the payload after secret redaction, so call sites
can keep using ``logger.warning("...", extra={...})``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from src.config.settings import get_log_level
from src.platform.audit import PIIRedactor

# Attributes present on every LogRecord; anything else came from ``extra=``
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonLogFormatter(logging.Formatter):
    """Format log records as JSON payloads for downstream ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        payload.update(PIIRedactor.redact(extras))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Install the JSON handler on the root logger.

    Does nothing when the root logger already has handlers (pytest's
    capture handler, or a second call from a reloaded app).
    """
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    level_name = log_level or get_log_level()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonLogFormatter())
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))
    root_logger.addHandler(handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
