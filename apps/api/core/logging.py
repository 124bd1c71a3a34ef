"""
Structured logging configuration.

JSON lines in production, plain text locally. Structured context travels in
`extra={"extra_fields": {...}}`; `scoring_fields` builds that payload for the
scoring pipeline so every model call can be traced back to its slot.
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from core.config import settings


def scoring_fields(
    spot_id: Any = None,
    sport: Optional[str] = None,
    slot_id: Any = None,
    user_id: Optional[str] = None,
    **fields: Any,
) -> Dict[str, Dict[str, Any]]:
    """`extra` payload for a scoring log line. None values are dropped."""
    context = {"spot_id": spot_id, "sport": sport, "slot_id": slot_id, "user_id": user_id, **fields}
    return {"extra_fields": {k: (str(v) if k.endswith("_id") else v) for k, v in context.items() if v is not None}}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines with structured fields appended as key=value."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "extra_fields", None)
        if fields:
            line += " [" + " ".join(f"{k}={v}" for k, v in fields.items()) + "]"
        return line


def setup_logging():
    """
    Configure application-wide logging for the API, worker and scripts.

    Idempotent: existing root handlers are replaced.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Model SDK and HTTP client chatter
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("celery").setLevel(logging.INFO)

    return root_logger
