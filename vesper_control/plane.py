"""
MQTTControlPlane - remote control of the telemetry runtime

Bounded Context: MQTT connection management + command reception
Responsibilities:
  - MQTT connection lifecycle (connect, disconnect)
  - Command message reception (subscribe to command topic)
  - Status publishing (publish to status topic)
  - Command delegation to CommandRegistry

QoS Policy:
  - Commands: QoS 1 (at-least-once delivery)
  - Status: QoS 1 + retained (last status persisted)

Threading:
  - MQTT client runs own background thread (loop_start/loop_stop)
  - Callbacks (_on_connect, _on_message) run in MQTT thread
  - Command handlers run in MQTT thread (keep them fast!)
"""

import json
import logging
from datetime import datetime, timezone
from threading import Event
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from .registry import CommandRegistry, CommandNotAvailableError

logger = logging.getLogger(__name__)


class MQTTControlPlane:
    """
    MQTT Control Plane for receiving commands and publishing status.

    Example:
        control_plane = MQTTControlPlane(
            broker_host="localhost",
            broker_port=1883,
            command_topic="vesper/control/living_room_tv/commands",
            status_topic="vesper/control/living_room_tv/status",
            client_id="vesper_control_living_room_tv"
        )
        register_tracking_commands(
            control_plane.command_registry,
            runtime.settings_store,
            control_plane.publish_status,
        )
        control_plane.connect(timeout=5.0)
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        command_topic: str,
        status_topic: str,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        """
        Initialize MQTT Control Plane.

        Args:
            broker_host: MQTT broker hostname
            broker_port: MQTT broker port (typically 1883)
            command_topic: Topic for receiving commands (subscribe)
            status_topic: Topic for publishing status (publish)
            client_id: MQTT client identifier
            username: Optional MQTT authentication username
            password: Optional MQTT authentication password
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.command_topic = command_topic
        self.status_topic = status_topic
        self.client_id = client_id

        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.client.on_disconnect = self._on_disconnect

        if username and password:
            self.client.username_pw_set(username, password)

        # Connection synchronization
        self._connected = Event()
        self._running = False

        self.command_registry = CommandRegistry()

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to MQTT broker with timeout.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            logger.info(f"Connecting control plane to {self.broker_host}:{self.broker_port}")
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
            self.client.loop_start()
            self._running = True

            if self._connected.wait(timeout=timeout):
                logger.info("MQTT Control Plane connected")
                return True

            logger.error(f"Control plane connection timeout after {timeout}s")
            return False

        except Exception as e:
            logger.error(f"Error connecting control plane: {e}")
            return False

    def disconnect(self) -> None:
        """Disconnect from MQTT broker. Safe to call multiple times."""
        if self._running:
            logger.info("Disconnecting control plane")
            self.publish_status("disconnected")
            self.client.loop_stop()
            self.client.disconnect()
            self._running = False
            self._connected.clear()

    def publish_status(self, status: str, data: Optional[Dict[str, Any]] = None) -> None:
        """
        Publish status update to status topic.

        Args:
            status: Status string (e.g., "connected", "tracking_disabled")
            data: Optional extra fields merged into the message

        QoS: 1 (at-least-once), retained
        """
        message = {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "client_id": self.client_id,
        }
        if data:
            message.update(data)

        try:
            self.client.publish(
                self.status_topic,
                json.dumps(message),
                qos=1,
                retain=True,
            )
            logger.debug(f"Status published: {status}")
        except Exception as e:
            logger.error(f"Error publishing status: {e}")

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if not reason_code.is_failure:
            logger.info(f"Control plane connected to broker ({reason_code})")
            client.subscribe(self.command_topic, qos=1)
            logger.info(f"Subscribed to: {self.command_topic} (QoS 1)")
            self.publish_status("connected")
            self._connected.set()
        else:
            logger.error(f"Control plane connection failed ({reason_code})")
            self._connected.clear()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning(f"Unexpected control plane disconnection ({reason_code})")
        else:
            logger.info("Control plane disconnected from broker")
        self._connected.clear()

    def _on_message(self, client, userdata, msg):
        """Command message received. Keep this fast."""
        self.handle_payload(msg.payload)

    def handle_payload(self, raw: bytes) -> None:
        """
        Decode one command payload and execute it via the registry.

        Errors are logged, never raised into the paho network thread.
        """
        try:
            command_data = json.loads(raw.decode('utf-8'))
            command = str(command_data.get('command', '')).lower()

            if not command:
                logger.warning("Empty command received")
                return

            logger.info(f"Executing command: {command}")
            try:
                self.command_registry.execute(command, command_data)
            except CommandNotAvailableError as e:
                logger.warning(str(e))

        except (UnicodeDecodeError, json.JSONDecodeError, AttributeError) as e:
            logger.error(f"Error decoding command payload {raw!r}: {e}")
        except Exception as e:
            logger.error(f"Error processing command: {e}", exc_info=True)
