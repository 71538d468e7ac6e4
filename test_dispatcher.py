"""
EventDispatcher Tests
=====================

Exercises the dispatch core with in-process backends (no broker needed):
asynchrony, disabled no-op, enrichment precedence, failure isolation and
fan-out serialization.

Usage:
    pytest test_dispatcher.py
"""

import json
import logging
import threading
import time

from vesper_telemetry import (
    CallableAttributeEnricher,
    EventDispatcher,
    StaticAttributeEnricher,
)
from vesper_telemetry.backends import Backend


class RecordingBackend(Backend):
    """Records every event; optionally appends start/end markers to a shared log."""

    def __init__(self, name="recording", journal=None, delay=0.0):
        self._name = name
        self.journal = journal
        self.delay = delay
        self.events = []

    @property
    def name(self):
        return self._name

    def send(self, event):
        if self.journal is not None:
            self.journal.append((self._name, event.action, "start"))
        if self.delay:
            time.sleep(self.delay)
        self.events.append(event)
        if self.journal is not None:
            self.journal.append((self._name, event.action, "end"))
        return True


class ExplodingBackend(Backend):
    def __init__(self):
        self.calls = 0

    @property
    def name(self):
        return "exploding"

    def send(self, event):
        self.calls += 1
        raise ConnectionError("broker unreachable")


class RefusingBackend(Backend):
    def __init__(self):
        self.calls = 0

    @property
    def name(self):
        return "refusing"

    def send(self, event):
        self.calls += 1
        return False


class BlockingBackend(Backend):
    """Blocks inside send() until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()
        self.finished = threading.Event()

    def send(self, event):
        self.entered.set()
        self.release.wait(timeout=10)
        self.finished.set()
        return True


def test_log_event_returns_before_backend_runs():
    """The caller is never blocked by a slow backend."""
    backend = BlockingBackend()
    dispatcher = EventDispatcher(backends=[backend])

    start = time.monotonic()
    dispatcher.log_event("player", "play", {"assetId": "42"})
    elapsed = time.monotonic() - start

    assert elapsed < 1.0
    assert not backend.finished.is_set()

    assert backend.entered.wait(timeout=5)
    backend.release.set()
    dispatcher.shutdown(wait=True)
    assert backend.finished.is_set()


def test_backend_runs_on_worker_thread():
    seen = []

    class ThreadRecorder(Backend):
        def send(self, event):
            seen.append(threading.current_thread().name)
            return True

    dispatcher = EventDispatcher(backends=[ThreadRecorder()])
    dispatcher.log_event(None, "tick")
    dispatcher.shutdown(wait=True)

    assert len(seen) == 1
    assert seen[0].startswith("TelemetryDispatch")


def test_disabled_dispatcher_never_calls_backends():
    backend = RecordingBackend()
    dispatcher = EventDispatcher(backends=[backend], enabled=False)

    for i in range(100):
        dispatcher.log_event("player", "play", {"n": i})
    dispatcher.shutdown(wait=True)

    assert backend.events == []
    assert dispatcher.get_stats()['submitted'] == 0
    assert dispatcher.is_running() is False


def test_player_play_scenario():
    backend = RecordingBackend()
    dispatcher = EventDispatcher(
        backends=[backend],
        enricher=StaticAttributeEnricher({"session": "abc"}),
    )

    dispatcher.log_event("player", "play", {"assetId": "42"})
    dispatcher.shutdown(wait=True)

    assert len(backend.events) == 1
    event = backend.events[0]
    assert dict(event.attributes) == {"session": "abc", "assetId": "42"}
    assert event.action == "play"
    assert event.category == "player"


def test_event_parameters_override_enrichment():
    first = RecordingBackend("first")
    second = RecordingBackend("second")
    dispatcher = EventDispatcher(
        backends=[first, second],
        enricher=StaticAttributeEnricher({"session": "abc", "screen": "home"}),
    )

    dispatcher.log_event("detail", "open", {"screen": "detail", "assetId": "7"})
    dispatcher.shutdown(wait=True)

    expected = {"session": "abc", "screen": "detail", "assetId": "7"}
    assert dict(first.events[0].attributes) == expected
    # One EnrichedEvent per fan-out, shared by every backend
    assert first.events[0] is second.events[0]


def test_enricher_called_once_per_dispatch():
    calls = []

    def attributes():
        calls.append(1)
        return {"seq": len(calls)}

    backends = [RecordingBackend("a"), RecordingBackend("b")]
    dispatcher = EventDispatcher(
        backends=backends,
        enricher=CallableAttributeEnricher(attributes),
    )

    for _ in range(3):
        dispatcher.log_event("settings", "change")
    dispatcher.shutdown(wait=True)

    assert len(calls) == 3
    assert [e.attributes["seq"] for e in backends[0].events] == [1, 2, 3]


def test_failing_enricher_does_not_stop_delivery():
    def broken():
        raise RuntimeError("session store unavailable")

    backend = RecordingBackend()
    dispatcher = EventDispatcher(
        backends=[backend],
        enricher=CallableAttributeEnricher(broken),
    )

    dispatcher.log_event("login", "success", {"method": "pin"})
    dispatcher.shutdown(wait=True)

    assert dict(backend.events[0].attributes) == {"method": "pin"}


def test_backend_failures_are_isolated():
    exploding = ExplodingBackend()
    refusing = RefusingBackend()
    recording = RecordingBackend()
    dispatcher = EventDispatcher(backends=[exploding, refusing, recording])

    dispatcher.log_event("player", "play")
    dispatcher.log_event("player", "pause")
    dispatcher.shutdown(wait=True)

    assert exploding.calls == 2
    assert refusing.calls == 2
    assert [e.action for e in recording.events] == ["play", "pause"]

    stats = dispatcher.get_stats()
    assert stats['dispatched'] == 2
    assert stats['backend_failures'] == 4


def test_backend_failure_logged_with_backend_name(caplog):
    dispatcher = EventDispatcher(backends=[ExplodingBackend(), RecordingBackend()])

    with caplog.at_level(logging.INFO):
        dispatcher.log_event("player", "play")
        dispatcher.shutdown(wait=True)

    entries = [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name == "vesper_telemetry.dispatcher"
    ]
    errors = [e for e in entries if e['event'] == "error.backend"]
    assert len(errors) == 1
    assert errors[0]['metadata']['backend'] == "exploding"
    assert errors[0]['metadata']['action'] == "play"
    assert errors[0]['metadata']['category'] == "player"
    assert errors[0]['exception']['type'] == "ConnectionError"


def test_backends_called_in_registration_order():
    journal = []
    backends = [RecordingBackend(name, journal) for name in ("a", "b", "c")]
    dispatcher = EventDispatcher(backends=backends)

    dispatcher.log_event(None, "boot")
    dispatcher.shutdown(wait=True)

    assert [entry[0] for entry in journal if entry[2] == "start"] == ["a", "b", "c"]


def test_concurrent_dispatches_do_not_interleave():
    journal = []
    backends = [
        RecordingBackend("a", journal, delay=0.005),
        RecordingBackend("b", journal, delay=0.005),
    ]
    dispatcher = EventDispatcher(backends=backends, max_workers=4)

    event_count = 12
    barrier = threading.Barrier(event_count)

    def caller(i):
        barrier.wait()
        dispatcher.log_event("stress", f"event-{i}")

    threads = [threading.Thread(target=caller, args=(i,)) for i in range(event_count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    dispatcher.shutdown(wait=True)

    # Each fan-out is exactly a-start, a-end, b-start, b-end for one action
    assert len(journal) == event_count * 4
    seen = []
    for i in range(0, len(journal), 4):
        block = journal[i:i + 4]
        action = block[0][1]
        assert block == [
            ("a", action, "start"),
            ("a", action, "end"),
            ("b", action, "start"),
            ("b", action, "end"),
        ]
        seen.append(action)
    assert sorted(seen) == sorted(f"event-{i}" for i in range(event_count))


def test_empty_backend_list_is_legal():
    dispatcher = EventDispatcher(backends=[], enricher=StaticAttributeEnricher({"k": "v"}))
    dispatcher.log_event("player", "play")
    dispatcher.shutdown(wait=True)

    assert dispatcher.get_stats()['dispatched'] == 1
    assert dispatcher.get_stats()['backend_failures'] == 0


def test_log_event_after_shutdown_is_dropped_silently():
    backend = RecordingBackend()
    dispatcher = EventDispatcher(backends=[backend])
    dispatcher.shutdown(wait=True)

    dispatcher.log_event("player", "play")
    dispatcher.shutdown(wait=True)  # idempotent

    assert backend.events == []
    assert dispatcher.get_stats()['dropped'] == 1


def test_malformed_parameters_do_not_raise():
    backend = RecordingBackend()
    dispatcher = EventDispatcher(backends=[backend])

    dispatcher.log_event("player", "play", ["not", "a", "mapping"])
    dispatcher.log_event("player", "pause")
    dispatcher.shutdown(wait=True)

    assert [e.action for e in backend.events] == ["pause"]
    assert dispatcher.get_stats()['dropped'] == 1


def test_caller_mutation_after_logging_is_not_observed():
    backend = BlockingBackend()
    recording = RecordingBackend()
    dispatcher = EventDispatcher(backends=[backend, recording])

    params = {"assetId": "42"}
    dispatcher.log_event("player", "play", params)
    params["assetId"] = "changed"
    params["extra"] = True

    backend.release.set()
    dispatcher.shutdown(wait=True)

    assert dict(recording.events[0].attributes) == {"assetId": "42"}


def test_shutdown_can_abandon_pending_events():
    blocking = BlockingBackend()
    recording = RecordingBackend()
    dispatcher = EventDispatcher(backends=[blocking, recording])

    dispatcher.log_event(None, "first")
    assert blocking.entered.wait(timeout=5)
    for i in range(5):
        dispatcher.log_event(None, f"pending-{i}")

    releaser = threading.Timer(0.05, blocking.release.set)
    releaser.start()
    dispatcher.shutdown(wait=True, cancel_pending=True)
    releaser.join()

    assert [e.action for e in recording.events] == ["first"]
