"""
Structured JSON logging with request and viewer context
"""
import logging
import sys
from typing import Optional
from datetime import datetime, timezone
import json
from contextvars import ContextVar

from app.config import settings

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
viewer_id_var: ContextVar[Optional[str]] = ContextVar('viewer_id', default=None)


class StructuredFormatter(logging.Formatter):
    """Formats records as one JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        viewer_id = viewer_id_var.get()
        if viewer_id:
            log_data["viewer_id"] = viewer_id

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextualLogger:
    """Logger wrapper taking an event name plus keyword fields"""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _log(self, level: int, event: str, exc_info=None, **fields):
        if not self.logger.isEnabledFor(level):
            return

        record = self.logger.makeRecord(
            name=self.logger.name,
            level=level,
            fn="",
            lno=0,
            msg=event,
            args=(),
            exc_info=exc_info
        )
        record.extra_fields = fields

        self.logger.handle(record)

    def debug(self, event: str, **fields):
        self._log(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields):
        self._log(logging.INFO, event, **fields)

    def warning(self, event: str, **fields):
        self._log(logging.WARNING, event, **fields)

    def error(self, event: str, **fields):
        self._log(logging.ERROR, event, **fields)

    def exception(self, event: str, **fields):
        """Log at ERROR with the active exception attached"""
        self._log(logging.ERROR, event, exc_info=sys.exc_info(), **fields)

    def critical(self, event: str, **fields):
        self._log(logging.CRITICAL, event, **fields)


def setup_logging():
    """Configure structured logging for the application"""

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if settings.LOG_FORMAT.lower() == "json":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)
    # The Supabase client logs every HTTP exchange at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)


def get_logger(name: str) -> ContextualLogger:
    """Get a contextual logger instance"""
    return ContextualLogger(logging.getLogger(name))


def set_request_context(request_id: str, viewer_id: Optional[str] = None):
    """Set request context for logging"""
    request_id_var.set(request_id)
    if viewer_id:
        viewer_id_var.set(viewer_id)


def set_viewer_context(viewer_id: Optional[str]):
    viewer_id_var.set(viewer_id)


def clear_request_context():
    """Clear request context"""
    request_id_var.set(None)
    viewer_id_var.set(None)
