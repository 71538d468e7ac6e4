"""
MQTT Tracking Backend
=====================

Bounded Context: Analytics Event Delivery over MQTT

Message Flow:
    EventDispatcher → EnrichedEvent → MqttTrackingBackend → MqttTransport → Broker

Settings are resolved on every send (never cached), because the control
plane may switch tracking off or move the topic between two events.

Payload shape (flat JSON object, consumed by existing subscribers):
    {
        "<attribute>": <value>,      # every merged attribute
        ...,
        "event_action": "play",      # always present
        "category": "player"         # omitted when the event has no category
    }

The reserved keys are written last and overwrite attributes of the same name.
"""

from typing import Any, Callable, Dict, Optional

from .base import Backend
from ..config import TrackingSettings
from ..schemas import EnrichedEvent
from ..logging import StructuredLogger, LogEvent, create_logger


DEFAULT_TOPIC = "vesper/telemetry/events"
ACTION_KEY = "event_action"
CATEGORY_KEY = "category"

SettingsProvider = Callable[[], Optional[TrackingSettings]]


def format_payload(event: EnrichedEvent) -> Dict[str, Any]:
    """
    Flatten an enriched event into the MQTT payload mapping.

    Example:
        >>> format_payload(enriched)
        {'session': 'abc', 'assetId': '42', 'event_action': 'play', 'category': 'player'}
    """
    payload = dict(event.attributes)
    payload[ACTION_KEY] = event.action
    if event.category is not None:
        payload[CATEGORY_KEY] = event.category
    return payload


class MqttTrackingBackend(Backend):
    """
    Backend that publishes enriched events to an MQTT topic.

    Attributes:
        transport: Object with publish(topic, payload, qos) -> bool
            (normally an MqttTransport)
        settings_provider: Zero-arg callable returning the current
            TrackingSettings, or None when the transport is not configured
        default_topic: Topic used when the settings leave it unset

    Example:
        >>> store = TrackingSettingsStore(TrackingSettings(qos=1))
        >>> backend = MqttTrackingBackend(transport, store.get)
    """

    def __init__(
        self,
        transport,
        settings_provider: SettingsProvider,
        logger: Optional[StructuredLogger] = None,
        default_topic: str = DEFAULT_TOPIC
    ):
        self.transport = transport
        self.settings_provider = settings_provider
        self.default_topic = default_topic
        self.logger = logger or create_logger("mqtt_backend")

    @property
    def name(self) -> str:
        return "mqtt"

    def resolve_topic(self, settings: TrackingSettings) -> str:
        return settings.topic or self.default_topic

    def send(self, event: EnrichedEvent) -> bool:
        """
        Publish the event if tracking is enabled and configured.

        Returns:
            True when published or skipped (disabled/unconfigured),
            otherwise the transport's outcome
        """
        settings = self.settings_provider()

        if settings is None:
            self.logger.debug(
                event=LogEvent.BACKEND_SKIPPED,
                message="MQTT tracking not configured, skipping event",
                metadata={'action': event.action}
            )
            return True

        if not settings.tracking_enabled:
            self.logger.debug(
                event=LogEvent.BACKEND_SKIPPED,
                message="MQTT tracking disabled, skipping event",
                metadata={'action': event.action}
            )
            return True

        return self.transport.publish(
            self.resolve_topic(settings),
            format_payload(event),
            qos=settings.qos,
        )

    def close(self) -> None:
        # The transport is owned by the runtime, which disconnects it
        pass
