#!/usr/bin/env python3
"""
Telemetry Agent - Entry Point
=============================

This script starts a Vesper telemetry runtime as a standalone process, which:
- Builds the event dispatcher and its backends from YAML
- Connects the MQTT transport
- Installs the runtime as the process-wide log_event() target
- Responds to tracking control commands via the MQTT control plane
- Emits lifecycle events (agent started / stopped)

Usage:
    python run_telemetry_agent.py --config config/telemetry.yaml

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Build runtime (dispatcher, backends, settings store)
    4. Create control plane and register tracking commands
    5. Start runtime, install it, connect control plane
    6. Wait for stop signal (Ctrl+C or SIGTERM)
    7. Graceful shutdown (drain dispatcher, disconnect)
"""

import argparse
import signal
import sys
import logging
import threading
from pathlib import Path
from typing import Optional

import vesper_telemetry
from vesper_telemetry import TelemetryConfig, TelemetryRuntime, build_dispatcher
from vesper_control import MQTTControlPlane, register_tracking_commands


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the agent.

    Args:
        log_file: Optional path to log file

    Returns:
        Logger instance for the agent
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class TelemetryAgentApp:
    """
    Application wrapper for a TelemetryRuntime.

    Handles:
    - Configuration loading
    - Component initialization (runtime, control plane)
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None):
        self.config_path = config_path
        self.log_file = log_file
        self.logger = setup_logging(log_file)

        # Components (initialized in setup())
        self.config: Optional[TelemetryConfig] = None
        self.runtime: Optional[TelemetryRuntime] = None
        self.control_plane: Optional[MQTTControlPlane] = None

        self._stop_event = threading.Event()
        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Build runtime (dispatcher + backends)
        3. Create control plane bound to the runtime's settings store
        """
        self.logger.info(f"Loading configuration: {self.config_path}")
        self.config = TelemetryConfig.from_yaml(self.config_path)
        self.logger.info(f"Configuration loaded (service_id={self.config.service_id})")

        self.runtime = build_dispatcher(self.config)
        self.logger.info(
            f"Dispatcher built (enabled={self.config.dispatcher.enabled}, "
            f"backends={list(self.runtime.dispatcher.backend_names)})"
        )

        if self.config.control_enabled and self.config.mqtt is not None:
            mqtt_config = self.config.mqtt
            self.control_plane = MQTTControlPlane(
                broker_host=mqtt_config.broker,
                broker_port=mqtt_config.port,
                command_topic=self.config.command_topic,
                status_topic=self.config.status_topic,
                client_id=f"vesper_control_{self.config.service_id}",
                username=mqtt_config.username,
                password=mqtt_config.password,
            )
            register_tracking_commands(
                self.control_plane.command_registry,
                self.runtime.settings_store,
                self.control_plane.publish_status,
            )
            self.logger.info(f"Control plane listening on {self.config.command_topic}")

    def run(self):
        """
        Run the agent. Blocks until shutdown is requested.
        """
        if not self.runtime:
            raise RuntimeError("Runtime not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        self.runtime.start()
        vesper_telemetry.install(self.runtime)

        if self.control_plane and not self.control_plane.connect(timeout=5.0):
            self.logger.warning("Control plane not connected; tracking cannot be changed remotely")

        vesper_telemetry.log_event(
            "agent", "started", {"service_id": self.config.service_id}
        )
        self.logger.info("Telemetry agent running. Press Ctrl+C to stop")

        self._stop_event.wait()
        self.shutdown()

    def shutdown(self):
        """
        Graceful shutdown of all components.

        Order:
        1. Log the stop event (still dispatched, the dispatcher drains)
        2. Disconnect control plane
        3. Stop and uninstall the runtime
        """
        if self._shutdown_requested:
            return
        self._shutdown_requested = True

        self.logger.info("Shutting down telemetry agent")

        vesper_telemetry.log_event(
            "agent", "stopped", {"service_id": self.config.service_id}
        )

        if self.control_plane:
            try:
                self.control_plane.disconnect()
            except Exception as e:
                self.logger.error(f"Error disconnecting control plane: {e}")

        vesper_telemetry.shutdown()
        self.logger.info("Shutdown complete")

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received signal {signal_name} ({signum})")
        self._stop_event.set()


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    parser = argparse.ArgumentParser(
        description="Vesper Telemetry Agent - event dispatch + MQTT control plane",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_telemetry_agent.py --config config/telemetry.yaml
  python run_telemetry_agent.py --config config/telemetry.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to telemetry configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/telemetry_agent.log'),
        help='Path to log file (default: logs/telemetry_agent.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    return parser.parse_args()


def main():
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"❌ Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = TelemetryAgentApp(config_path=args.config, log_file=log_file)

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"❌ Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
