"""
Configuration schema for the telemetry pipeline.

This module defines the configuration structure for the event dispatcher,
the MQTT transport, and the initial tracking settings of the MQTT backend.

Dispatcher settings (enablement, worker count, backend list) are static for
the process lifetime. Tracking settings are only the starting point: the MQTT
backend reads them through a TrackingSettingsStore on every send, so the
control plane can change them while the process runs.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional
import yaml


VALID_QOS = {0, 1, 2}


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    client_id: Optional[str] = None
    keepalive: int = 60
    publish_timeout: float = 5.0  # Wait bound for QoS 1/2 acknowledgement

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("MQTT broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.keepalive <= 0:
            raise ValueError(
                f"MQTT keepalive must be > 0, got {self.keepalive}"
            )

        if self.publish_timeout <= 0:
            raise ValueError(
                f"publish_timeout must be > 0, got {self.publish_timeout}"
            )


@dataclass(frozen=True)
class TrackingSettings:
    """
    Transport settings resolved by the MQTT backend at send time.

    A topic of None (or empty) means "use the backend's fallback topic".
    """

    tracking_enabled: bool = True
    topic: Optional[str] = None
    qos: int = 0

    def __post_init__(self):
        """Validate tracking settings."""
        # bool is an int subclass; True would pass as QoS 1
        if isinstance(self.qos, bool) or self.qos not in VALID_QOS:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

    def with_changes(self, **changes: Any) -> "TrackingSettings":
        """Return a copy with the given fields replaced (validated)."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tracking_enabled": self.tracking_enabled,
            "topic": self.topic,
            "qos": self.qos,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackingSettings":
        if not isinstance(data, dict):
            raise ValueError("tracking section must be a mapping")

        qos = data.get("qos", 0)
        if isinstance(qos, bool):
            raise ValueError(f"MQTT QoS must be 0, 1, or 2, got {qos}")
        try:
            qos = int(qos)
        except (TypeError, ValueError):
            raise ValueError(f"MQTT QoS must be 0, 1, or 2, got {qos!r}")

        return cls(
            tracking_enabled=bool(data.get("tracking_enabled", True)),
            topic=data.get("topic") or None,
            qos=qos,
        )


@dataclass(frozen=True)
class DispatcherConfig:
    """Event dispatcher configuration (static for process lifetime)."""

    enabled: bool = True
    max_workers: int = 1
    drain_on_shutdown: bool = True

    def __post_init__(self):
        """Validate dispatcher configuration."""
        if self.max_workers < 1:
            raise ValueError(
                f"max_workers must be >= 1, got {self.max_workers}"
            )


def _build_section(section_cls, name: str, data: Any):
    """Construct a config section, reporting unknown or malformed keys as ValueError."""
    if not isinstance(data, dict):
        raise ValueError(f"{name} section must be a mapping, got {type(data).__name__}")
    try:
        return section_cls(**data)
    except TypeError as e:
        raise ValueError(f"Invalid {name} config: {e}")


@dataclass(frozen=True)
class TelemetryConfig:
    """
    Main configuration for the telemetry runtime.

    This configuration is loaded from YAML and validated at startup.
    Immutable after construction (frozen dataclass).
    """

    # Service identification (used for client ids and control topics)
    service_id: str

    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)

    # MQTT transport; None disables the MQTT backend entirely
    mqtt: Optional[MQTTConfig] = None
    # None (an empty "tracking:" section) leaves the MQTT backend unconfigured:
    # every send is a silent no-op until the control plane sets a value
    tracking: Optional[TrackingSettings] = field(default_factory=TrackingSettings)

    # Enrichment context
    app_version: str = "0.0.0"
    device_id: Optional[str] = None

    # Optional extras
    logging_backend: bool = False
    control_enabled: bool = True

    def __post_init__(self):
        """Validate telemetry configuration."""
        if not self.service_id:
            raise ValueError("service_id cannot be empty")

    @property
    def command_topic(self) -> str:
        return f"vesper/control/{self.service_id}/commands"

    @property
    def status_topic(self) -> str:
        return f"vesper/control/{self.service_id}/status"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TelemetryConfig":
        """
        Build configuration from a parsed YAML/JSON mapping.

        A missing tracking section means default TrackingSettings; an
        explicitly empty one (tracking: null) means no settings at all.

        Raises:
            ValueError: If required keys are missing, unknown keys are
                present, or values are invalid
        """
        if not isinstance(data, dict):
            raise ValueError("Telemetry configuration must be a mapping")

        if "service_id" not in data:
            raise ValueError("Missing required field: service_id")

        dispatcher = _build_section(DispatcherConfig, "dispatcher", data.get("dispatcher") or {})

        mqtt_data = data.get("mqtt")
        mqtt_config = _build_section(MQTTConfig, "mqtt", mqtt_data) if mqtt_data else None

        if "tracking" not in data:
            tracking = TrackingSettings()
        elif data["tracking"] is None:
            tracking = None
        else:
            tracking = TrackingSettings.from_dict(data["tracking"])

        return cls(
            service_id=data["service_id"],
            dispatcher=dispatcher,
            mqtt=mqtt_config,
            tracking=tracking,
            app_version=str(data.get("app_version", "0.0.0")),
            device_id=data.get("device_id"),
            logging_backend=bool(data.get("logging_backend", False)),
            control_enabled=bool(data.get("control_enabled", True)),
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "TelemetryConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            service_id: "living_room_tv"
            app_version: "4.2.0"

            dispatcher:
              enabled: true
              max_workers: 1
              drain_on_shutdown: true

            mqtt:
              broker: "localhost"
              port: 1883
              username: null
              password: null

            tracking:
              tracking_enabled: true
              topic: "vesper/telemetry/living_room_tv"
              qos: 1

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If YAML is invalid or fails validation
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        try:
            with open(yaml_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {yaml_path}: {e}")

        return cls.from_dict(data or {})
