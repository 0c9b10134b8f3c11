"""
Shared logging infrastructure for the Grand Plaza voice concierge.

Both the concierge API and the concierge client log through this module so
every line is one JSON object that can be correlated by session_id.

Features:
- JSON-formatted structured logs
- Configurable log levels
- Session ID correlation across all logs
- Component tagging
- PII-aware helpers for guest utterances
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class Component(str, Enum):
    """System components for log tagging."""
    CONCIERGE_API = "concierge_api"
    RESPONDER = "responder"
    CONVERSATION_LOG = "conversation_log"
    CONCIERGE_CLIENT = "concierge_client"


# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName", "component", "session_id", "message",
})


class JSONFormatter(logging.Formatter):
    """
    Render a LogRecord as a single JSON line.

    Output keys: timestamp (ISO8601, UTC), severity, component, message,
    session_id when known, then any extra fields passed to the logger.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "severity": record.levelname.lower(),
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }

        if getattr(record, "session_id", None):
            log_data["session_id"] = record.session_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class StructuredLogger:
    """
    Wrapper around Python's logging with structured fields.

    Usage:
        logger = StructuredLogger(Component.CONCIERGE_API, session_id="session-1")
        logger.info("Turn answered", intent="greeting", latency_ms=3)
        logger.debug_pii("Utterance received", user_message="hello")
    """

    def __init__(
        self,
        component: str | Component,
        session_id: Optional[str] = None,
        logger_name: Optional[str] = None
    ):
        self.component = component.value if isinstance(component, Component) else component
        self.session_id = session_id
        self.logger = logging.getLogger(logger_name or self.component)

    def _log(
        self,
        level: int,
        message: str,
        pii: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        exc_info = kwargs.pop("exc_info", None)
        stack_info = kwargs.pop("stack_info", None)
        stacklevel = kwargs.pop("stacklevel", 1)

        extra = {
            "component": self.component,
            **kwargs
        }
        if self.session_id:
            extra["session_id"] = self.session_id
        if pii:
            # Kept in its own field so guest text can be filtered downstream
            extra["pii"] = pii

        self.logger.log(
            level,
            message,
            exc_info=exc_info,
            stack_info=stack_info,
            stacklevel=stacklevel,
            extra=extra
        )

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log an error with the active exception attached."""
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, message, **kwargs)

    def debug_pii(self, message: str, **pii_fields):
        """
        Log debug with guest-provided fields explicitly marked.

        Example:
            logger.debug_pii("Utterance received", user_message="hi there")
        """
        self._log(logging.DEBUG, message, pii=pii_fields)

    def with_session(self, session_id: str) -> "StructuredLogger":
        """Create a new logger instance bound to a session ID."""
        return StructuredLogger(
            self.component,
            session_id=session_id,
            logger_name=self.logger.name
        )


def _env_flag(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def setup_logging(
    level: Optional[str] = None,
    use_json: Optional[bool] = None,
    include_timestamp: bool = True
) -> None:
    """
    Configure the root logger. Call once at process startup.

    Args:
        level: Log level name; defaults to LOG_LEVEL or INFO
        use_json: JSON lines (True) or plain text (False); defaults to LOG_JSON or True
        include_timestamp: Prefix plain-text lines with a timestamp
    """
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    if use_json is None:
        use_json = _env_flag("LOG_JSON", True)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if use_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        format_str = "%(levelname)s - %(name)s - %(message)s"
        if include_timestamp:
            format_str = "%(asctime)s - " + format_str
        formatter = logging.Formatter(format_str)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(
    component: str | Component,
    session_id: Optional[str] = None
) -> StructuredLogger:
    """
    Get a structured logger for a component.

    Example:
        logger = get_logger(Component.RESPONDER)
        logger.debug("Rule matched", intent="pool")
    """
    return StructuredLogger(component, session_id=session_id)
