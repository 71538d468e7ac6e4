"""
Telemetry runtime - explicit wiring and process-wide lifecycle.

Bounded Context: Composition root for the dispatch pipeline
Responsibilities:
  - Build the ordered backend list from configuration (no discovery)
  - Own the transport, settings store and dispatcher as one unit
  - Expose the process-wide call-site API: log_event()

Lifecycle:
    runtime = build_dispatcher(config)   # once, at startup
    runtime.start()                      # connect transport
    install(runtime)                     # becomes the process-wide runtime
    log_event("player", "play", {...})   # from any call site
    shutdown()                           # at exit (also registered with atexit)

Call sites only ever see log_event(); backends are created here and handed to
the dispatcher, which is the only component that invokes them.
"""

import atexit
import logging
import threading
from typing import Any, Mapping, Optional, Sequence

from .backends.base import Backend
from .backends.logging_backend import LoggingBackend
from .backends.mqtt import MqttTrackingBackend
from .backends.transport import MqttTransport
from .config import TelemetryConfig
from .dispatcher import EventDispatcher
from .enrichment import AttributeEnricher, SessionAttributeEnricher
from .settings import TrackingSettingsStore

logger = logging.getLogger(__name__)


class TelemetryRuntime:
    """
    Dispatcher plus the resources it depends on.

    Attributes:
        config: Telemetry configuration
        dispatcher: The EventDispatcher (sole entry point to backends)
        settings_store: Live tracking settings read by the MQTT backend
        enricher: Attribute enricher used by the dispatcher

    The transport is held privately; events reach it only through the
    dispatcher and the MQTT backend.
    """

    def __init__(
        self,
        config: TelemetryConfig,
        dispatcher: EventDispatcher,
        settings_store: TrackingSettingsStore,
        enricher: Optional[AttributeEnricher],
        transport: Optional[Any] = None,
        backends: Sequence[Backend] = (),
    ):
        self.config = config
        self.dispatcher = dispatcher
        self.settings_store = settings_store
        self.enricher = enricher
        self._transport = transport
        self._backends = tuple(backends)
        self._stopped = False

    def start(self, connect_timeout: float = 10.0) -> bool:
        """
        Connect the transport (if any).

        A failed connection is not fatal: the MQTT backend then reports
        failures per event and the rest of the pipeline keeps working.

        Returns:
            True if there is no transport or it connected
        """
        if self._transport is None or not self.config.dispatcher.enabled:
            return True

        connected = self._transport.connect(timeout=connect_timeout)
        if not connected:
            logger.warning("MQTT transport not connected; events will fail until it is")
        return connected

    def log_event(
        self,
        category: Optional[str],
        action: str,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.dispatcher.log_event(category, action, parameters)

    def stop(self) -> None:
        """
        Shut down in dependency order: dispatcher, backends, transport.

        Draining follows config.dispatcher.drain_on_shutdown. Safe to call
        multiple times.
        """
        if self._stopped:
            return
        self._stopped = True

        drain = self.config.dispatcher.drain_on_shutdown
        self.dispatcher.shutdown(wait=True, cancel_pending=not drain)

        for backend in self._backends:
            try:
                backend.close()
            except Exception as e:
                logger.error(f"Error closing backend {backend.name}: {e}", exc_info=True)

        if self._transport is not None:
            self._transport.disconnect()


def build_dispatcher(
    config: TelemetryConfig,
    enricher: Optional[AttributeEnricher] = None,
    settings_store: Optional[TrackingSettingsStore] = None,
    transport: Optional[Any] = None,
    extra_backends: Sequence[Backend] = (),
) -> TelemetryRuntime:
    """
    Build a TelemetryRuntime from configuration.

    Backend order: MQTT (when config.mqtt is set or a transport is given),
    logging (when config.logging_backend), then extra_backends.

    Args:
        config: Telemetry configuration
        enricher: Attribute enricher (default: SessionAttributeEnricher)
        settings_store: Tracking settings store (default: seeded from
            config.tracking)
        transport: Transport override (tests, custom clients); default is an
            MqttTransport built from config.mqtt
        extra_backends: Additional backends appended after the built-in ones

    Returns:
        Unstarted TelemetryRuntime
    """
    if enricher is None:
        enricher = SessionAttributeEnricher(
            app_version=config.app_version,
            device_id=config.device_id,
        )

    if settings_store is None:
        settings_store = TrackingSettingsStore(config.tracking)

    if transport is None and config.mqtt is not None:
        mqtt_config = config.mqtt
        transport = MqttTransport(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            client_id=mqtt_config.client_id or f"vesper_telemetry_{config.service_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
            keepalive=mqtt_config.keepalive,
            publish_timeout=mqtt_config.publish_timeout,
        )

    backends = []
    if transport is not None:
        backends.append(MqttTrackingBackend(transport, settings_store.get))
    if config.logging_backend:
        backends.append(LoggingBackend())
    backends.extend(extra_backends)

    dispatcher = EventDispatcher(
        backends=backends,
        enricher=enricher,
        enabled=config.dispatcher.enabled,
        max_workers=config.dispatcher.max_workers,
    )

    return TelemetryRuntime(
        config=config,
        dispatcher=dispatcher,
        settings_store=settings_store,
        enricher=enricher,
        transport=transport,
        backends=backends,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Process-wide runtime
# ─────────────────────────────────────────────────────────────────────────────

_runtime: Optional[TelemetryRuntime] = None
_runtime_lock = threading.Lock()
_atexit_registered = False


def install(runtime: TelemetryRuntime) -> None:
    """
    Make runtime the process-wide telemetry runtime.

    Raises:
        RuntimeError: If a runtime is already installed
    """
    global _runtime, _atexit_registered
    with _runtime_lock:
        if _runtime is not None:
            raise RuntimeError("A telemetry runtime is already installed")
        _runtime = runtime
        if not _atexit_registered:
            atexit.register(shutdown)
            _atexit_registered = True
    logger.info(f"Telemetry runtime installed (service_id={runtime.config.service_id})")


def current() -> Optional[TelemetryRuntime]:
    with _runtime_lock:
        return _runtime


def log_event(
    category: Optional[str],
    action: str,
    parameters: Optional[Mapping[str, Any]] = None,
) -> None:
    """
    Log a telemetry event through the process-wide runtime.

    Fire-and-forget; a no-op when no runtime is installed.
    """
    runtime = current()
    if runtime is None:
        logger.debug(f"No telemetry runtime installed, dropping event {category}/{action}")
        return
    runtime.log_event(category, action, parameters)


def shutdown() -> None:
    """Stop and uninstall the process-wide runtime (no-op if none)."""
    global _runtime
    with _runtime_lock:
        runtime, _runtime = _runtime, None
    if runtime is not None:
        runtime.stop()
