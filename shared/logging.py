"""
Structured logging for all components.

Every module gets a logger bound to a component and module name:

    log = get_logger("annotator", "planner")
    log.info("annotator.planner.marker_inserted", path="content.0", ref="ann-1")

Events are dotted names; keyword arguments become ``key=value`` fields.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_session_id: Optional[str] = None

ROOT_LOGGER = "tutor"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"


def _format_value(value: Any) -> str:
    text = str(value)
    if " " in text or not text:
        return repr(text)
    return text


def _render(event: str, fields: dict) -> str:
    parts = [event]
    correlation = _correlation_id.get()
    if correlation:
        parts.append(f"correlation_id={correlation}")
    if _session_id:
        parts.append(f"session_id={_session_id}")
    for key, value in fields.items():
        parts.append(f"{key}={_format_value(value)}")
    return " ".join(parts)


class StructuredLogger:
    """Thin wrapper that renders an event name plus fields on a stdlib logger."""

    def __init__(self, component: str, module: str):
        self.component = component
        self.module = module
        self._logger = logging.getLogger(f"{ROOT_LOGGER}.{component}.{module}")

    def debug(self, event: str, **fields):
        if self._logger.isEnabledFor(logging.DEBUG):
            self._logger.debug(_render(event, fields))

    def info(self, event: str, **fields):
        self._logger.info(_render(event, fields))

    def warning(self, event: str, **fields):
        self._logger.warning(_render(event, fields))

    def error(self, event: str, **fields):
        self._logger.error(_render(event, fields))

    def exception(self, error: BaseException, event: str, context: Optional[dict] = None):
        """Log an exception with its traceback and optional context fields."""
        fields = dict(context or {})
        fields["error_type"] = type(error).__name__
        fields["error"] = str(error)
        self._logger.error(
            _render(event, fields),
            exc_info=(type(error), error, error.__traceback__),
        )


def get_logger(component: str, module: str) -> StructuredLogger:
    """Get a structured logger for a component module."""
    return StructuredLogger(component, module)


def set_session_id(session_id: Optional[str] = None) -> str:
    """Tag every subsequent record with a session id (generated if omitted)."""
    global _session_id
    _session_id = session_id or uuid.uuid4().hex[:8]
    return _session_id


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """Attach a correlation id to all records emitted inside the block."""
    token = _correlation_id.set(correlation_id or uuid.uuid4().hex[:12])
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None):
    """Install console (and optional file) handlers on the root project logger."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.propagate = False
    return root
