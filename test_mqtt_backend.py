"""
MQTT Backend Tests (Without Real Broker)
========================================

Covers the MQTT tracking backend's settings resolution and payload shape,
and the MqttTransport publish path with the paho client mocked out.

Usage:
    pytest test_mqtt_backend.py
"""

import json
import logging
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt

from vesper_telemetry import Event, EnrichedEvent, TrackingSettings, TrackingSettingsStore
from vesper_telemetry.backends.mqtt import DEFAULT_TOPIC, MqttTrackingBackend, format_payload
from vesper_telemetry.backends.transport import MqttTransport


class FakeTransport:
    """Stands in for MqttTransport; records publishes."""

    def __init__(self, result=True):
        self.result = result
        self.published = []

    def publish(self, topic, payload, qos=0):
        self.published.append((topic, payload, qos))
        return self.result


def enriched(category="player", action="play", parameters=None, enrichment=None):
    event = Event.create(category, action, parameters or {"assetId": "42"})
    return EnrichedEvent.merge(event, enrichment or {"session": "abc"})


def test_payload_is_flat_with_action_and_category():
    payload = format_payload(enriched())

    assert payload == {
        "session": "abc",
        "assetId": "42",
        "event_action": "play",
        "category": "player",
    }


def test_payload_omits_missing_category():
    payload = format_payload(enriched(category=None))

    assert "category" not in payload
    assert payload["event_action"] == "play"


def test_reserved_keys_win_over_attributes():
    payload = format_payload(
        enriched(parameters={"event_action": "spoofed", "category": "spoofed"})
    )

    assert payload["event_action"] == "play"
    assert payload["category"] == "player"


def test_tracking_disabled_is_silent_success():
    transport = FakeTransport()
    store = TrackingSettingsStore(TrackingSettings(tracking_enabled=False, topic="tv/events"))
    backend = MqttTrackingBackend(transport, store.get)

    assert backend.send(enriched()) is True
    assert transport.published == []


def test_missing_settings_is_silent_success():
    transport = FakeTransport()
    backend = MqttTrackingBackend(transport, lambda: None)

    assert backend.send(enriched()) is True
    assert transport.published == []


def test_publishes_to_configured_topic_and_qos():
    transport = FakeTransport()
    store = TrackingSettingsStore(TrackingSettings(topic="tv/events", qos=1))
    backend = MqttTrackingBackend(transport, store.get)

    assert backend.send(enriched()) is True

    topic, payload, qos = transport.published[0]
    assert topic == "tv/events"
    assert qos == 1
    assert payload["event_action"] == "play"


def test_unset_topic_falls_back_to_default():
    transport = FakeTransport()
    backend = MqttTrackingBackend(transport, TrackingSettingsStore(TrackingSettings()).get)

    backend.send(enriched())

    assert transport.published[0][0] == DEFAULT_TOPIC


def test_settings_are_resolved_on_every_send():
    transport = FakeTransport()
    store = TrackingSettingsStore(TrackingSettings(topic="tv/a"))
    backend = MqttTrackingBackend(transport, store.get)

    backend.send(enriched(action="one"))
    store.update(topic="tv/b", qos=2)
    backend.send(enriched(action="two"))
    store.update(tracking_enabled=False)
    backend.send(enriched(action="three"))

    assert [(t, p["event_action"], q) for t, p, q in transport.published] == [
        ("tv/a", "one", 0),
        ("tv/b", "two", 2),
    ]


def test_transport_failure_is_reported():
    backend = MqttTrackingBackend(
        FakeTransport(result=False),
        TrackingSettingsStore(TrackingSettings()).get,
    )

    assert backend.send(enriched()) is False


# ─────────────────────────────────────────────────────────────────────────────
# MqttTransport
# ─────────────────────────────────────────────────────────────────────────────

def make_transport():
    transport = MqttTransport(broker_host="localhost", client_id="test_transport")
    transport.client = MagicMock()
    return transport


def test_transport_refuses_when_not_connected():
    transport = make_transport()

    assert transport.publish("tv/events", {"a": 1}) is False
    transport.client.publish.assert_not_called()
    assert transport.get_stats()['failure_count'] == 1


def test_transport_publishes_json_payload():
    transport = make_transport()
    transport._connected.set()
    transport.client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)

    assert transport.publish("tv/events", {"event_action": "play"}, qos=0) is True

    kwargs = transport.client.publish.call_args.kwargs
    assert kwargs['topic'] == "tv/events"
    assert json.loads(kwargs['payload']) == {"event_action": "play"}
    assert kwargs['qos'] == 0
    assert transport.get_stats()['message_count'] == 1


def test_transport_waits_for_ack_on_qos1():
    transport = make_transport()
    transport._connected.set()
    info = MagicMock(rc=mqtt.MQTT_ERR_SUCCESS)
    info.is_published.return_value = False
    transport.client.publish.return_value = info

    assert transport.publish("tv/events", {"a": 1}, qos=1) is False
    info.wait_for_publish.assert_called_once_with(timeout=transport.publish_timeout)


def test_transport_reports_error_codes():
    transport = make_transport()
    transport._connected.set()
    transport.client.publish.return_value = MagicMock(rc=mqtt.MQTT_ERR_NO_CONN)

    assert transport.publish("tv/events", {"a": 1}) is False


def test_transport_converts_exceptions_to_failure():
    transport = make_transport()
    transport._connected.set()
    transport.client.publish.side_effect = OSError("socket closed")

    assert transport.publish("tv/events", {"a": 1}) is False


def test_transport_connection_callbacks_track_state():
    transport = make_transport()

    transport._on_connect(transport.client, None, {}, MagicMock(is_failure=False), None)
    assert transport.is_connected()

    transport._on_disconnect(transport.client, None, {}, MagicMock(is_failure=True), None)
    assert not transport.is_connected()


def test_transport_logs_carry_broker_identity(caplog):
    transport = make_transport()

    with caplog.at_level(logging.WARNING, logger="vesper_telemetry.mqtt_transport"):
        transport.publish("tv/events", {"a": 1})

    entry = json.loads(caplog.records[-1].getMessage())
    assert entry['event'] == "mqtt.publish.failed"
    assert entry['metadata'] == {
        'broker': "localhost:1883",
        'client_id': "test_transport",
        'topic': "tv/events",
    }
