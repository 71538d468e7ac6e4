"""
JSON-line logger for the dispatch pipeline.

Every record is one JSON object carrying a LogEvent name and a metadata
mapping. Loggers can be bound to context (backend name, broker address, the
event being fanned out) so that context appears in every record without the
caller rebuilding it:

    log = create_logger("dispatcher").bind(backend="mqtt", action="play")
    log.warning(LogEvent.BACKEND_SEND_FAILED, "Backend reported delivery failure")

    {"timestamp": "...", "level": "WARNING", "component": "dispatcher",
     "event": "backend.send.failed", "message": "...",
     "metadata": {"backend": "mqtt", "action": "play"}}

Per-call metadata wins over bound context on key collision.
"""

import copy
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from .events import LogEvent


class StructuredLogger:
    """
    Component logger writing JSON lines through the stdlib logging module.

    Bound copies share the underlying logging.Logger, so set_level() on any
    of them applies to all.
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ):
        self.component = component
        self.logger_name = logger_name or f"vesper_telemetry.{component}"
        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(level)
        self.context: Dict[str, Any] = dict(context or {})

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter("%(message)s"))
            self.logger.addHandler(handler)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Return a logger that adds context to every record's metadata."""
        bound = copy.copy(self)
        bound.context = {**self.context, **context}
        return bound

    def _emit(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Mapping[str, Any]],
        exc_info: Optional[BaseException] = None,
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        record: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
            'event': event.value,
            'message': message,
        }

        merged = {**self.context, **(metadata or {})}
        if merged:
            record['metadata'] = merged

        if exc_info is not None:
            record['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }

        # Metadata values come from call sites and may not be JSON-native
        self.logger.log(level, json.dumps(record, default=str), exc_info=exc_info)

    def debug(self, event: LogEvent, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        self._emit(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        self._emit(logging.INFO, event, message, metadata)

    def warning(self, event: LogEvent, message: str, metadata: Optional[Mapping[str, Any]] = None) -> None:
        self._emit(logging.WARNING, event, message, metadata)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Mapping[str, Any]] = None,
        exc_info: Optional[BaseException] = None,
    ) -> None:
        """Log at ERROR; exc_info adds an "exception" field and the traceback."""
        self._emit(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


def create_logger(component: str, level: int = logging.INFO, **context: Any) -> StructuredLogger:
    """Create a component logger, optionally bound to default context."""
    return StructuredLogger(component=component, level=level, context=context)
