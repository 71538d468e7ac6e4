"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for the telemetry pipeline's own logs.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable in log aggregators (Elasticsearch, CloudWatch Insights)

Event Naming Convention:
    <component>.<category>.<action>

    component: dispatch, backend, mqtt, error
    category: event, fanout, publish
    action: submitted, completed, failed

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, metadata.backend, metadata.action
    | filter event = "backend.send.failed"
    | stats count() by metadata.backend, bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - dispatch.*: Dispatcher lifecycle and fan-out
    - backend.*: Per-backend delivery outcomes
    - mqtt.*: MQTT broker interactions
    - error.*: Error conditions
    """

    # ========== Dispatch Events ==========
    DISPATCHER_STARTED = "dispatch.started"
    """Dispatcher worker pool created."""

    DISPATCHER_STOPPED = "dispatch.stopped"
    """Dispatcher shut down (drained or abandoned)."""

    EVENT_SUBMITTED = "dispatch.event.submitted"
    """Event handed to the worker pool."""

    EVENT_DROPPED = "dispatch.event.dropped"
    """Event discarded because the dispatcher is shut down."""

    FANOUT_COMPLETED = "dispatch.fanout.completed"
    """All backends were invoked for one event."""

    # ========== Backend Events ==========
    BACKEND_SEND_SUCCESS = "backend.send.success"
    """Backend accepted the event."""

    BACKEND_SEND_FAILED = "backend.send.failed"
    """Backend reported a delivery failure."""

    BACKEND_SKIPPED = "backend.skipped"
    """Backend is disabled or not configured; nothing sent."""

    BACKEND_EVENT_LOGGED = "backend.event.logged"
    """Event written by the logging backend."""

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Error Events ==========
    BACKEND_ERROR = "error.backend"
    """Backend raised while sending."""

    ENRICHMENT_ERROR = "error.enrichment"
    """Attribute enricher raised; dispatch continued without attributes."""

    SUBMIT_ERROR = "error.submit"
    """Worker pool refused the event."""

    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize payload to JSON."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""


# Event categories for filtering
DISPATCH_EVENTS = {
    LogEvent.DISPATCHER_STARTED,
    LogEvent.DISPATCHER_STOPPED,
    LogEvent.EVENT_SUBMITTED,
    LogEvent.EVENT_DROPPED,
    LogEvent.FANOUT_COMPLETED,
}

BACKEND_EVENTS = {
    LogEvent.BACKEND_SEND_SUCCESS,
    LogEvent.BACKEND_SEND_FAILED,
    LogEvent.BACKEND_SKIPPED,
    LogEvent.BACKEND_EVENT_LOGGED,
}

MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
}

ERROR_EVENTS = {
    LogEvent.BACKEND_ERROR,
    LogEvent.ENRICHMENT_ERROR,
    LogEvent.SUBMIT_ERROR,
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
}
