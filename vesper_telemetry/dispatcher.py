"""
EventDispatcher - single entry point for application telemetry

Bounded Context: Event dispatch (call site → backends)
Responsibilities:
  - Accept events from any thread without blocking the caller
  - Own the one asynchronous hop (a long-lived worker pool)
  - Serialize fan-outs so two events never interleave at the backends
  - Merge enrichment attributes once per dispatch
  - Isolate backend failures (log, count, continue)

Threading Model:
  - Caller threads: build the Event, submit one work item, return
  - Worker pool threads ("TelemetryDispatch"): run fan-outs, one at a time,
    under the fan-out lock

Ordering:
  Within one fan-out, backends run in registration order. Across fan-outs,
  the lock guarantees no interleaving, but with max_workers > 1 the order in
  which two racing events take the lock is first-acquire-wins, not
  first-submitted-wins. Event timestamps are taken at the call site, so
  consumers should order by timestamp rather than by arrival. With the
  default max_workers=1 the pool runs work items in submission order.

Liveness:
  A backend that hangs holds the fan-out lock and stalls every later
  dispatch. Backends must bound their own latency (see MqttTransport's
  publish_timeout).
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Mapping, Optional, Sequence

from .backends.base import Backend
from .enrichment import AttributeEnricher
from .schemas import Event, EnrichedEvent
from .logging import StructuredLogger, LogEvent, create_logger


class EventDispatcher:
    """
    Fire-and-forget telemetry dispatcher.

    Example:
        dispatcher = EventDispatcher(
            backends=[mqtt_backend],
            enricher=SessionAttributeEnricher(app_version="4.2.0"),
        )
        dispatcher.log_event("player", "play", {"assetId": "42"})
        ...
        dispatcher.shutdown()  # at process exit

    Thread Safety:
      - log_event(): safe from any thread, never blocks on backends
      - Backend registry: immutable tuple, read-only after construction
      - _fanout_lock: held for a complete fan-out, owned by the dispatcher
      - Stats: protected by _stats_lock
    """

    def __init__(
        self,
        backends: Sequence[Backend],
        enricher: Optional[AttributeEnricher] = None,
        enabled: bool = True,
        max_workers: int = 1,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            backends: Ordered backends (fixed for the dispatcher's lifetime,
                may be empty)
            enricher: Source of common attributes, called once per dispatch
            enabled: When False, log_event() is a complete no-op and no
                worker pool is created
            max_workers: Worker pool size (fan-outs are serialized regardless)
            logger: Structured logger (default: "dispatcher" component)
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")

        self._backends = tuple(backends)
        self._enricher = enricher
        self._enabled = enabled
        self.logger = logger or create_logger("dispatcher")

        self._fanout_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._shutdown = False

        self._submitted = 0
        self._dispatched = 0
        self._backend_failures = 0
        self._dropped = 0

        self._executor: Optional[ThreadPoolExecutor] = None
        if enabled:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers,
                thread_name_prefix="TelemetryDispatch",
            )

        self.logger.info(
            event=LogEvent.DISPATCHER_STARTED,
            message="Event dispatcher initialized",
            metadata={
                'enabled': enabled,
                'backends': list(self.backend_names),
                'max_workers': max_workers,
            }
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def backend_names(self) -> Sequence[str]:
        return tuple(backend.name for backend in self._backends)

    def is_running(self) -> bool:
        """True while events are being accepted."""
        with self._state_lock:
            return self._enabled and not self._shutdown

    # ─────────────────────────────────────────────────────────────────────
    # Caller side
    # ─────────────────────────────────────────────────────────────────────

    def log_event(
        self,
        category: Optional[str],
        action: str,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Log a telemetry event (fire-and-forget).

        Returns immediately; delivery happens on the worker pool. Nothing is
        raised to the caller and there is no delivery signal.

        Args:
            category: Event category (e.g., "player"), may be None
            action: Event action (e.g., "play")
            parameters: Event-specific key/value pairs
        """
        if not self._enabled:
            return

        with self._state_lock:
            shutdown = self._shutdown
        if shutdown:
            self._drop(action, "dispatcher is shut down")
            return

        try:
            event = Event.create(category, action, parameters)
            self._executor.submit(self._dispatch, event)
        except Exception as e:
            # RuntimeError when shutdown() won the race; TypeError/ValueError
            # for a malformed parameters argument
            with self._stats_lock:
                self._dropped += 1
            self.logger.error(
                event=LogEvent.SUBMIT_ERROR,
                message="Could not schedule telemetry event",
                exc_info=e,
                metadata={'category': category, 'action': action}
            )
            return

        with self._stats_lock:
            self._submitted += 1

    def _drop(self, action: Optional[str], reason: str) -> None:
        with self._stats_lock:
            self._dropped += 1
        self.logger.warning(
            event=LogEvent.EVENT_DROPPED,
            message=f"Event dropped: {reason}",
            metadata={'action': action}
        )

    # ─────────────────────────────────────────────────────────────────────
    # Worker side
    # ─────────────────────────────────────────────────────────────────────

    def _dispatch(self, event: Event) -> None:
        """Run one complete fan-out (worker thread, under the fan-out lock)."""
        log = self.logger.bind(category=event.category, action=event.action)
        with self._fanout_lock:
            enriched = EnrichedEvent.merge(event, self._enrich(log))

            failures = 0
            for backend in self._backends:
                if not self._send(backend, enriched, log.bind(backend=backend.name)):
                    failures += 1

            with self._stats_lock:
                self._dispatched += 1
                self._backend_failures += failures

            log.debug(
                event=LogEvent.FANOUT_COMPLETED,
                message="Fan-out completed",
                metadata={'backends': len(self._backends), 'failures': failures}
            )

    def _enrich(self, log: StructuredLogger) -> Dict[str, Any]:
        if self._enricher is None:
            return {}
        try:
            return dict(self._enricher.get_attributes())
        except Exception as e:
            log.error(
                event=LogEvent.ENRICHMENT_ERROR,
                message="Attribute enricher failed, dispatching without attributes",
                exc_info=e
            )
            return {}

    def _send(self, backend: Backend, enriched: EnrichedEvent, log: StructuredLogger) -> bool:
        """Invoke one backend; a failure is logged here and never escapes."""
        try:
            delivered = backend.send(enriched)
        except Exception as e:
            log.error(
                event=LogEvent.BACKEND_ERROR,
                message="Backend raised during send",
                exc_info=e
            )
            return False

        if not delivered:
            log.warning(
                event=LogEvent.BACKEND_SEND_FAILED,
                message="Backend reported delivery failure"
            )
            return False

        return True

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """
        Stop accepting events and tear down the worker pool.

        Args:
            wait: Block until running (and, unless cancelled, pending)
                fan-outs finish
            cancel_pending: Abandon fan-outs that have not started yet

        Safe to call multiple times.
        """
        with self._state_lock:
            if self._shutdown:
                return
            self._shutdown = True

        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)

        self.logger.info(
            event=LogEvent.DISPATCHER_STOPPED,
            message="Event dispatcher stopped",
            metadata=self.get_stats()
        )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get dispatcher statistics.

        Returns:
            Dictionary with submitted/dispatched/dropped counts and the
            number of failed backend sends
        """
        with self._stats_lock:
            return {
                'enabled': self._enabled,
                'submitted': self._submitted,
                'dispatched': self._dispatched,
                'dropped': self._dropped,
                'backend_failures': self._backend_failures,
                'backends': list(self.backend_names),
            }
