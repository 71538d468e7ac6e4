"""
MQTT client wrapper for sending control commands to a telemetry runtime.

Handles MQTT connection, publishing, and disconnection.
"""

import json
import paho.mqtt.client as mqtt
from typing import Dict, Any, Optional


class MQTTCommandClient:
    """
    MQTT client for sending commands to the telemetry control plane.

    Publishes commands to the control plane topic with QoS 1.
    """

    def __init__(
        self,
        broker: str = "localhost",
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 5.0
    ):
        """
        Initialize MQTT command client.

        Args:
            broker: MQTT broker host
            port: MQTT broker port
            username: Optional MQTT username
            password: Optional MQTT password
            timeout: Seconds to wait for the broker to acknowledge a command
        """
        self.broker = broker
        self.port = port
        self.timeout = timeout

        self.client = mqtt.Client(callback_api_version=mqtt.CallbackAPIVersion.VERSION2)

        if username and password:
            self.client.username_pw_set(username, password)

    def send_command(
        self,
        topic: str,
        command: Dict[str, Any],
        qos: int = 1
    ) -> None:
        """
        Send command to MQTT topic.

        Args:
            topic: MQTT topic (e.g., "vesper/control/living_room_tv/commands")
            command: Command dictionary (will be JSON serialized)
            qos: Quality of Service (default: 1 for control commands)

        Raises:
            ConnectionError: If unable to connect to MQTT broker
            ValueError: If command serialization fails
            RuntimeError: If the command was not acknowledged
        """
        try:
            payload = json.dumps(command)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid command data: {e}")

        try:
            self.client.connect(self.broker, self.port, keepalive=60)
        except (ConnectionRefusedError, OSError) as e:
            raise ConnectionError(
                f"Unable to connect to MQTT broker at {self.broker}:{self.port}: {e}"
            )

        self.client.loop_start()
        try:
            result = self.client.publish(topic, payload, qos=qos)
            result.wait_for_publish(timeout=self.timeout)
            if not result.is_published():
                raise RuntimeError(
                    f"Command not acknowledged within {self.timeout}s"
                )
        finally:
            self.client.disconnect()
            self.client.loop_stop()
