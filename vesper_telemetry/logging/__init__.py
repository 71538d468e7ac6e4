"""
Structured logging for the dispatch pipeline: dispatcher lifecycle, backend
failures tagged with the backend name, MQTT transport state.

    >>> from vesper_telemetry.logging import create_logger, LogEvent
    >>> log = create_logger("dispatcher").bind(action="play")
    >>> log.info(LogEvent.FANOUT_COMPLETED, "Fan-out completed", {'backends': 2})
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
