"""
vesper_control - Control Plane for the telemetry runtime

Bounded Context: MQTT-based command-and-control
Responsibilities:
  - MQTT connection management (Control Plane)
  - Command registration and validation
  - Tracking settings commands (enable/disable, topic, QoS)

Architecture:
  - CommandRegistry: Explicit registration pattern
  - MQTTControlPlane: MQTT client + command reception
  - register_tracking_commands: binds commands to a TrackingSettingsStore
  - QoS 1 for control commands (at-least-once delivery)
"""

from .registry import CommandRegistry, CommandNotAvailableError
from .plane import MQTTControlPlane
from .tracking import TrackingCommandHandler, register_tracking_commands

__all__ = [
    "CommandRegistry",
    "CommandNotAvailableError",
    "MQTTControlPlane",
    "TrackingCommandHandler",
    "register_tracking_commands",
]
