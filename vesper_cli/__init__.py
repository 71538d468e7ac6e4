"""
Vesper CLI - Command-line interface for telemetry control.

This package provides a CLI for sending MQTT control commands to a telemetry
runtime without manually writing JSON, and for firing test events.

Usage:
    vesper-cli disable-tracking
    vesper-cli set-topic vesper/telemetry/lab
    vesper-cli send-event --config config/telemetry.yaml --action play
"""

__version__ = "1.0.0"
