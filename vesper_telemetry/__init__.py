"""
Vesper Telemetry Package
========================

Bounded Context: Application analytics event dispatch

Accepts analytics events from any call site (player, settings, login, detail
screens, ...) and delivers them to one or more transport backends without
blocking the caller, without letting one backend's failure affect another,
and through exactly one asynchronous hop.

Architecture:
- schemas/: Immutable Event / EnrichedEvent
- backends/: Backend contract, MQTT tracking backend, logging backend
- enrichment: Attribute enrichers (session, device, network)
- dispatcher: EventDispatcher (worker pool + serialized fan-out)
- config / settings: YAML configuration and live tracking settings
- runtime: Explicit wiring and the process-wide log_event()
- logging/: Structured JSON logging for observability

Data Flow:
    call site → log_event() → [worker pool] → fan-out lock
        → enrich once → backend 1 → backend 2 → ... (failures logged, skipped)

Example:
    >>> from vesper_telemetry import TelemetryConfig, build_dispatcher, install, log_event
    >>> config = TelemetryConfig.from_yaml("config/telemetry.yaml")
    >>> runtime = build_dispatcher(config)
    >>> runtime.start()
    >>> install(runtime)
    >>> log_event("player", "play", {"assetId": "42"})
"""

# Version
__version__ = "1.0.0"

from .schemas import Event, EnrichedEvent, Timestamp

from .config import DispatcherConfig, MQTTConfig, TelemetryConfig, TrackingSettings
from .settings import TrackingSettingsStore

from .enrichment import (
    AttributeEnricher,
    CallableAttributeEnricher,
    CompositeAttributeEnricher,
    SessionAttributeEnricher,
    StaticAttributeEnricher,
)

from .dispatcher import EventDispatcher

from .runtime import (
    TelemetryRuntime,
    build_dispatcher,
    current,
    install,
    log_event,
    shutdown,
)

from .logging import LogEvent, StructuredLogger, create_logger

__all__ = [
    '__version__',
    # Schemas
    'Event',
    'EnrichedEvent',
    'Timestamp',
    # Configuration
    'DispatcherConfig',
    'MQTTConfig',
    'TelemetryConfig',
    'TrackingSettings',
    'TrackingSettingsStore',
    # Enrichment
    'AttributeEnricher',
    'CallableAttributeEnricher',
    'CompositeAttributeEnricher',
    'SessionAttributeEnricher',
    'StaticAttributeEnricher',
    # Dispatch
    'EventDispatcher',
    'TelemetryRuntime',
    'build_dispatcher',
    'current',
    'install',
    'log_event',
    'shutdown',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
