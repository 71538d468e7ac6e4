"""
TrackingSettingsStore - live transport settings for the MQTT backend

Bounded Context: Runtime configuration
Responsibilities:
  - Hold the current TrackingSettings (or None when unconfigured)
  - Serve them to the MQTT backend on every send
  - Accept updates from the control plane

Threading: Thread-safe (lock around every read and write). Readers get an
immutable TrackingSettings snapshot, never a shared mutable object.
"""

import threading
from typing import Any, Optional

from .config import TrackingSettings


class TrackingSettingsStore:
    """
    Thread-safe holder of the current tracking settings.

    The store instance's get() is the settings provider handed to the MQTT
    backend, so every send sees the latest value.

    Example:
        store = TrackingSettingsStore(TrackingSettings(topic="tv/events"))
        runtime = build_dispatcher(config, settings_store=store)

        store.update(tracking_enabled=False)   # next send is a no-op
    """

    def __init__(self, initial: Optional[TrackingSettings] = None):
        self._settings = initial
        self._lock = threading.Lock()

    def get(self) -> Optional[TrackingSettings]:
        """Current settings snapshot, or None when not configured."""
        with self._lock:
            return self._settings

    def set(self, settings: Optional[TrackingSettings]) -> None:
        """Replace settings entirely (None marks the transport unconfigured)."""
        with self._lock:
            self._settings = settings

    def update(self, **changes: Any) -> TrackingSettings:
        """
        Change individual fields, starting from defaults when unconfigured.

        Raises:
            ValueError: If the resulting settings are invalid (store unchanged)
        """
        with self._lock:
            current = self._settings or TrackingSettings()
            self._settings = current.with_changes(**changes)
            return self._settings

    def clear(self) -> None:
        self.set(None)
