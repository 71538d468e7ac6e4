"""
Vesper CLI - Main entry point.

Provides a command-line interface for controlling a running telemetry runtime
over MQTT and for firing one-off test events through the dispatch pipeline.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Any, List, Optional

from vesper_telemetry import TelemetryConfig, build_dispatcher

from .mqtt_client import MQTTCommandClient


def parse_parameters(pairs: Optional[List[str]]) -> Dict[str, str]:
    """
    Parse repeated key=value arguments into a dict.

    Raises:
        ValueError: If an item has no '=' or an empty key
    """
    parameters: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{pair}', expected key=value")
        parameters[key] = value
    return parameters


def send_command(
    command: Dict[str, Any],
    service_id: str = "vesper",
    broker: str = "localhost",
    port: int = 1883
) -> None:
    """
    Send command to a telemetry runtime via MQTT.

    Args:
        command: Command dictionary
        service_id: Target service ID
        broker: MQTT broker host
        port: MQTT broker port
    """
    topic = f"vesper/control/{service_id}/commands"

    client = MQTTCommandClient(broker=broker, port=port)
    client.send_command(topic, command, qos=1)
    print(f"✅ Command sent: {command.get('command', 'unknown')}")


def send_event(
    config_path: Path,
    category: Optional[str],
    action: str,
    parameters: Dict[str, str]
) -> Dict[str, Any]:
    """
    Build a runtime from YAML, log one event, drain and stop.

    Returns:
        Dispatcher statistics after the drain
    """
    config = TelemetryConfig.from_yaml(config_path)
    runtime = build_dispatcher(config)
    runtime.start(connect_timeout=5.0)
    try:
        runtime.log_event(category, action, parameters)
    finally:
        runtime.stop()
    return runtime.dispatcher.get_stats()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vesper-cli",
        description="Vesper CLI - Control telemetry tracking and send test events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Toggle MQTT tracking on a running device
  vesper-cli --service-id living_room_tv disable-tracking
  vesper-cli --service-id living_room_tv enable-tracking

  # Move events to another topic / QoS
  vesper-cli set-topic vesper/telemetry/lab
  vesper-cli set-qos 1

  # Ask the device to report its tracking settings
  vesper-cli get-tracking

  # Fire one event through the full pipeline
  vesper-cli send-event --config config/telemetry.yaml \\
      --category player --action play -p assetId=42
"""
    )

    # Global arguments
    parser.add_argument(
        "--service-id",
        default="vesper",
        help="Target service ID (default: vesper)"
    )
    parser.add_argument(
        "--broker",
        default="localhost",
        help="MQTT broker host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=1883,
        help="MQTT broker port (default: 1883)"
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('enable-tracking', help='Resume MQTT event publishing')
    subparsers.add_parser('disable-tracking', help='Stop MQTT event publishing')
    subparsers.add_parser('get-tracking', help='Report current tracking settings')

    set_topic = subparsers.add_parser('set-topic', help='Change the MQTT event topic')
    set_topic.add_argument('topic', help="New topic ('' resets to the fallback topic)")

    set_qos = subparsers.add_parser('set-qos', help='Change the MQTT event QoS')
    set_qos.add_argument('qos', type=int, choices=[0, 1, 2], help='QoS level')

    send = subparsers.add_parser('send-event', help='Log one event via the dispatch pipeline')
    send.add_argument('--config', type=Path, required=True, help='Path to telemetry config YAML')
    send.add_argument('--category', default=None, help='Event category')
    send.add_argument('--action', required=True, help='Event action')
    send.add_argument(
        '-p', '--param',
        action='append',
        dest='params',
        metavar='KEY=VALUE',
        help='Event parameter (repeatable)'
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command in ('enable-tracking', 'disable-tracking', 'get-tracking'):
            command = {'command': args.command.replace('-', '_')}
            send_command(command, args.service_id, args.broker, args.port)

        elif args.command == 'set-topic':
            command = {'command': 'set_topic', 'topic': args.topic or None}
            send_command(command, args.service_id, args.broker, args.port)

        elif args.command == 'set-qos':
            command = {'command': 'set_qos', 'qos': args.qos}
            send_command(command, args.service_id, args.broker, args.port)

        elif args.command == 'send-event':
            logging.basicConfig(level=logging.WARNING)
            parameters = parse_parameters(args.params)
            stats = send_event(args.config, args.category, args.action, parameters)
            print(
                f"✅ Event dispatched: {args.category}/{args.action} "
                f"(backends={stats['backends']}, failures={stats['backend_failures']})"
            )

    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
