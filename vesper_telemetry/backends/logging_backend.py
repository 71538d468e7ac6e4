"""
Logging Backend
===============

Debug sink: writes every enriched event to the structured log instead of a
network transport. Useful on development devices and for verifying what the
MQTT backend would publish.
"""

from typing import Optional

from .base import Backend
from .mqtt import format_payload
from ..schemas import EnrichedEvent
from ..logging import StructuredLogger, LogEvent, create_logger


class LoggingBackend(Backend):
    """Backend that logs each event's flattened payload at INFO level."""

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or create_logger("event_log")

    @property
    def name(self) -> str:
        return "log"

    def send(self, event: EnrichedEvent) -> bool:
        self.logger.info(
            event=LogEvent.BACKEND_EVENT_LOGGED,
            message=f"Telemetry event {event.category}/{event.action}",
            metadata={
                'payload': format_payload(event),
                'timestamp': event.timestamp.value,
            }
        )
        return True
