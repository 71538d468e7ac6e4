"""
Tracking command handlers

Bounded Context: Runtime control of MQTT tracking settings
Responsibilities:
  - Translate control commands into TrackingSettingsStore updates
  - Report the resulting settings on the status topic

The MQTT backend reads the store on every send, so a command takes effect
from the next dispatched event on. Dispatcher enablement and the backend list
are not controllable here; they are fixed for the process lifetime.

Commands:
  enable_tracking   {}
  disable_tracking  {}
  set_topic         {"topic": "vesper/telemetry/tv"}   (null → fallback topic)
  set_qos           {"qos": 1}
  get_tracking      {}
"""

import logging
from typing import Any, Callable, Dict, Optional

from vesper_telemetry.settings import TrackingSettingsStore

from .registry import CommandRegistry

logger = logging.getLogger(__name__)

StatusPublisher = Callable[[str, Optional[Dict[str, Any]]], None]


class TrackingCommandHandler:
    """Handlers for the tracking commands (run in the control plane thread)."""

    def __init__(self, store: TrackingSettingsStore, publish_status: StatusPublisher):
        self.store = store
        self.publish_status = publish_status

    def _snapshot(self) -> Dict[str, Any]:
        settings = self.store.get()
        return {"tracking": settings.to_dict() if settings else None}

    def _apply(self, status: str, **changes: Any) -> None:
        try:
            settings = self.store.update(**changes)
        except (TypeError, ValueError) as e:
            logger.warning(f"Rejected tracking update {changes}: {e}")
            self.publish_status("tracking_update_rejected", {"error": str(e), **self._snapshot()})
            return

        logger.info(f"Tracking settings changed: {settings}")
        self.publish_status(status, self._snapshot())

    def enable_tracking(self, command: Dict[str, Any]) -> None:
        self._apply("tracking_enabled", tracking_enabled=True)

    def disable_tracking(self, command: Dict[str, Any]) -> None:
        self._apply("tracking_disabled", tracking_enabled=False)

    def set_topic(self, command: Dict[str, Any]) -> None:
        self._apply("topic_changed", topic=command.get("topic") or None)

    def set_qos(self, command: Dict[str, Any]) -> None:
        try:
            qos = int(command["qos"])
        except (KeyError, TypeError, ValueError):
            logger.warning(f"set_qos requires an integer 'qos', got {command.get('qos')!r}")
            self.publish_status("tracking_update_rejected", {"error": "invalid qos", **self._snapshot()})
            return
        self._apply("qos_changed", qos=qos)

    def get_tracking(self, command: Dict[str, Any]) -> None:
        self.publish_status("tracking_info", self._snapshot())


def register_tracking_commands(
    registry: CommandRegistry,
    store: TrackingSettingsStore,
    publish_status: StatusPublisher,
) -> TrackingCommandHandler:
    """Register all tracking commands; returns the handler for introspection."""
    handler = TrackingCommandHandler(store, publish_status)

    registry.register("enable_tracking", handler.enable_tracking, "Resume MQTT event publishing")
    registry.register("disable_tracking", handler.disable_tracking, "Stop MQTT event publishing")
    registry.register("set_topic", handler.set_topic, "Change the MQTT event topic")
    registry.register("set_qos", handler.set_qos, "Change the MQTT event QoS (0-2)")
    registry.register("get_tracking", handler.get_tracking, "Report current tracking settings")

    logger.info("Tracking control handlers registered")
    return handler
