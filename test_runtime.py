"""
Runtime, Wiring and CLI Tests
=============================

Usage:
    pytest test_runtime.py
"""

import pytest

import vesper_telemetry
from vesper_telemetry import (
    StaticAttributeEnricher,
    TelemetryConfig,
    build_dispatcher,
)
from vesper_telemetry.backends import Backend
from vesper_cli.cli import build_parser, parse_parameters, send_event


class RecordingBackend(Backend):
    def __init__(self):
        self.events = []
        self.closed = False

    def send(self, event):
        self.events.append(event)
        return True

    def close(self):
        self.closed = True


class FakeTransport:
    def __init__(self, connect_result=True):
        self.connect_result = connect_result
        self.published = []
        self.connected = False
        self.disconnected = False

    def connect(self, timeout=10.0):
        self.connected = self.connect_result
        return self.connect_result

    def disconnect(self):
        self.disconnected = True

    def publish(self, topic, payload, qos=0):
        self.published.append((topic, payload, qos))
        return self.connected


@pytest.fixture(autouse=True)
def clean_process_runtime():
    vesper_telemetry.shutdown()
    yield
    vesper_telemetry.shutdown()


def make_config(**overrides):
    data = {
        "service_id": "tv",
        "tracking": {"topic": "vesper/telemetry/tv", "qos": 1},
    }
    data.update(overrides)
    return TelemetryConfig.from_dict(data)


def test_build_orders_backends_mqtt_log_extras():
    extra = RecordingBackend()
    runtime = build_dispatcher(
        make_config(logging_backend=True),
        enricher=StaticAttributeEnricher(),
        transport=FakeTransport(),
        extra_backends=[extra],
    )

    assert list(runtime.dispatcher.backend_names) == ["mqtt", "log", "RecordingBackend"]
    runtime.stop()


def test_config_without_mqtt_has_no_mqtt_backend():
    runtime = build_dispatcher(make_config(), enricher=StaticAttributeEnricher())

    assert not hasattr(runtime, "transport")
    assert list(runtime.dispatcher.backend_names) == []
    assert runtime.start() is True
    runtime.stop()


def test_end_to_end_publish_through_fake_transport():
    transport = FakeTransport()
    extra = RecordingBackend()
    runtime = build_dispatcher(
        make_config(),
        enricher=StaticAttributeEnricher({"session": "abc"}),
        transport=transport,
        extra_backends=[extra],
    )

    assert runtime.start() is True
    runtime.log_event("player", "play", {"assetId": "42"})
    runtime.stop()

    assert transport.published == [(
        "vesper/telemetry/tv",
        {"session": "abc", "assetId": "42", "event_action": "play", "category": "player"},
        1,
    )]
    assert len(extra.events) == 1
    assert extra.closed is True
    assert transport.disconnected is True


def test_unreachable_broker_does_not_block_other_backends():
    transport = FakeTransport(connect_result=False)
    extra = RecordingBackend()
    runtime = build_dispatcher(
        make_config(),
        enricher=StaticAttributeEnricher(),
        transport=transport,
        extra_backends=[extra],
    )

    assert runtime.start() is False
    runtime.log_event("settings", "open")
    runtime.stop()

    assert len(extra.events) == 1
    assert runtime.dispatcher.get_stats()['backend_failures'] == 1


def test_null_tracking_section_makes_mqtt_backend_a_silent_noop():
    transport = FakeTransport()
    runtime = build_dispatcher(
        make_config(tracking=None),
        enricher=StaticAttributeEnricher(),
        transport=transport,
    )
    runtime.start()

    runtime.log_event("player", "play")
    runtime.stop()

    assert transport.published == []
    assert runtime.dispatcher.get_stats()['backend_failures'] == 0


def test_backends_package_exposes_only_the_contract():
    import vesper_telemetry.backends as backends

    assert backends.__all__ == ['Backend']
    assert not hasattr(vesper_telemetry, "MqttTrackingBackend")


def test_tracking_change_takes_effect_on_next_event():
    transport = FakeTransport()
    runtime = build_dispatcher(make_config(), enricher=StaticAttributeEnricher(), transport=transport)
    runtime.start()

    runtime.settings_store.update(tracking_enabled=False)
    runtime.log_event("player", "play")
    runtime.stop()

    assert transport.published == []


def test_disabled_dispatcher_from_config():
    extra = RecordingBackend()
    runtime = build_dispatcher(
        make_config(dispatcher={"enabled": False}),
        enricher=StaticAttributeEnricher(),
        extra_backends=[extra],
    )

    for _ in range(100):
        runtime.log_event("player", "play")
    runtime.stop()

    assert extra.events == []


def test_process_wide_install_and_log_event():
    extra = RecordingBackend()
    runtime = build_dispatcher(make_config(), enricher=StaticAttributeEnricher(), extra_backends=[extra])

    vesper_telemetry.install(runtime)
    assert vesper_telemetry.current() is runtime

    with pytest.raises(RuntimeError):
        vesper_telemetry.install(runtime)

    vesper_telemetry.log_event("login", "success", {"method": "pin"})
    vesper_telemetry.shutdown()

    assert vesper_telemetry.current() is None
    assert [e.action for e in extra.events] == ["success"]
    assert runtime.dispatcher.is_running() is False


def test_log_event_without_runtime_is_noop():
    vesper_telemetry.log_event("player", "play")
    assert vesper_telemetry.current() is None


def test_stop_is_idempotent():
    runtime = build_dispatcher(make_config(), enricher=StaticAttributeEnricher())
    runtime.stop()
    runtime.stop()


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def test_parse_parameters():
    assert parse_parameters(["assetId=42", "title=a=b"]) == {"assetId": "42", "title": "a=b"}
    assert parse_parameters(None) == {}

    with pytest.raises(ValueError):
        parse_parameters(["novalue"])
    with pytest.raises(ValueError):
        parse_parameters(["=value"])


def test_cli_parser_commands():
    parser = build_parser()

    args = parser.parse_args(["--service-id", "tv", "set-qos", "1"])
    assert (args.service_id, args.command, args.qos) == ("tv", "set-qos", 1)

    args = parser.parse_args([
        "send-event", "--config", "c.yaml", "--action", "play",
        "--category", "player", "-p", "assetId=42",
    ])
    assert args.params == ["assetId=42"]

    with pytest.raises(SystemExit):
        parser.parse_args(["set-qos", "5"])


def test_send_event_with_logging_backend(tmp_path):
    path = tmp_path / "telemetry.yaml"
    path.write_text('service_id: "cli_test"\nlogging_backend: true\n')

    stats = send_event(path, "player", "play", {"assetId": "42"})

    assert stats['backends'] == ["log"]
    assert stats['dispatched'] == 1
    assert stats['backend_failures'] == 0
