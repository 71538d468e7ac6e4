"""
Base Telemetry Backend
======================

Bounded Context: Delivery Targets

This module provides the abstract base class for telemetry backends.

Architecture:
    Backend (abstract)
        ↓
    MqttTrackingBackend, LoggingBackend (concrete)

Contract:
- send() is synchronous from the dispatcher's point of view. A backend with
  internal asynchrony must finish (or bound) it before returning.
- send() returns True for delivered AND for "nothing to do" (disabled, not
  configured). It returns False, or raises, only for genuine failures.
- The EnrichedEvent is shared with the other backends of the same fan-out:
  read it, never mutate or keep it.
- Backends are only ever invoked by EventDispatcher. Invoking one directly
  skips fan-out serialization and failure isolation.
"""

from abc import ABC, abstractmethod

from ..schemas import EnrichedEvent


class Backend(ABC):
    """
    Abstract base class for telemetry delivery backends.

    Subclasses must implement send(). close() is optional and is called once
    at runtime shutdown, after the dispatcher has drained.
    """

    @property
    def name(self) -> str:
        """Backend identity used in failure logs."""
        return type(self).__name__

    @abstractmethod
    def send(self, event: EnrichedEvent) -> bool:
        """
        Deliver one enriched event.

        Args:
            event: Enriched event (read-only, do not retain)

        Returns:
            True if delivered or intentionally skipped, False on failure
        """
        raise NotImplementedError("Subclasses must implement send()")

    def close(self) -> None:
        """Release backend resources (default: nothing to release)."""
