"""
MQTT Transport
==============

Bounded Context: MQTT Infrastructure

This module wraps the paho-mqtt client used by the MQTT tracking backend.

Design:
- Connection management (connect, disconnect)
- Topic and QoS chosen per publish (settings are resolved by the backend)
- QoS > 0 publishes wait for broker acknowledgement, bounded by
  publish_timeout, so the backend stays synchronous for the dispatcher
- Thread-safe (paho-mqtt network loop runs in its own thread)
- Structured logging integration

Responsibilities:
- MQTT connection lifecycle
- JSON serialization and publication of payloads
- NOT responsible for: payload shape, topic choice (MqttTrackingBackend)
"""

import json
import threading
from typing import Dict, Any, Optional
import paho.mqtt.client as mqtt

from ..logging import StructuredLogger, LogEvent, create_logger


class MqttTransport:
    """
    paho-mqtt client wrapper with connection tracking and statistics.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        client_id: MQTT client identifier
        keepalive: Keepalive interval in seconds
        publish_timeout: Max seconds to wait for QoS 1/2 acknowledgement
        logger: Structured logger instance

    Thread Safety:
        Thread-safe via paho-mqtt's loop_start() and threading.Event
    """

    def __init__(
        self,
        broker_host: str,
        client_id: str,
        logger: Optional[StructuredLogger] = None,
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 60,
        publish_timeout: float = 5.0
    ):
        """
        Initialize MQTT transport.

        Args:
            broker_host: MQTT broker hostname
            client_id: Unique client identifier
            logger: Structured logger (default: "mqtt_transport" component)
            broker_port: MQTT broker port (default: 1883)
            username: MQTT authentication username (optional)
            password: MQTT authentication password (optional)
            keepalive: Keepalive interval in seconds
            publish_timeout: Acknowledgement wait bound for QoS 1/2
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.client_id = client_id
        self.keepalive = keepalive
        self.publish_timeout = publish_timeout
        self.logger = (logger or create_logger("mqtt_transport")).bind(
            broker=f"{broker_host}:{broker_port}", client_id=client_id
        )

        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
        )
        if username and password:
            self.client.username_pw_set(username, password)

        # Callbacks
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        # Connection state
        self._connected = threading.Event()
        self._message_count = 0
        self._failure_count = 0
        self._stats_lock = threading.Lock()

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        """Callback when connection established (paho network thread)."""
        if not reason_code.is_failure:
            self._connected.set()
            self.logger.info(
                event=LogEvent.MQTT_CONNECTED,
                message="Connected to MQTT broker",
            )
        else:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker ({reason_code})"
            )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        """Callback when disconnected from broker (paho network thread)."""
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={'reason_code': str(reason_code)}
        )

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to MQTT broker.

        Args:
            timeout: Connection timeout in seconds

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port, keepalive=self.keepalive)
            self.client.loop_start()

            if self._connected.wait(timeout=timeout):
                return True

            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Connection timeout",
                metadata={'timeout': timeout}
            )
            return False

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e
            )
            return False

    def disconnect(self) -> None:
        """Stop the network loop and disconnect the client."""
        try:
            self.client.loop_stop()
            self.client.disconnect()
            self._connected.clear()
            self.logger.info(
                event=LogEvent.MQTT_DISCONNECTED,
                message="Disconnected from broker",
                metadata={'message_count': self._message_count}
            )
        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Error during disconnect",
                exc_info=e
            )

    def is_connected(self) -> bool:
        """Check if currently connected to broker."""
        return self._connected.is_set()

    def publish(
        self,
        topic: str,
        payload: Dict[str, Any],
        qos: int = 0,
        retain: bool = False
    ) -> bool:
        """
        Publish a payload to the broker.

        Args:
            topic: Destination topic
            payload: JSON-serializable dictionary
            qos: Quality of Service (0, 1 or 2)
            retain: MQTT retain flag

        Returns:
            True if published (acknowledged for QoS > 0), False otherwise
        """
        if not self._connected.is_set():
            self._record_failure()
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Cannot publish: not connected to broker",
                metadata={'topic': topic}
            )
            return False

        try:
            json_message = json.dumps(payload, default=str)
        except (TypeError, ValueError) as e:
            self._record_failure()
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Failed to serialize payload",
                exc_info=e,
                metadata={'topic': topic}
            )
            return False

        try:
            result = self.client.publish(
                topic=topic,
                payload=json_message,
                qos=qos,
                retain=retain
            )

            if result.rc == mqtt.MQTT_ERR_SUCCESS and qos > 0:
                result.wait_for_publish(timeout=self.publish_timeout)
                if not result.is_published():
                    self._record_failure()
                    self.logger.warning(
                        event=LogEvent.MQTT_PUBLISH_FAILED,
                        message="Publish not acknowledged in time",
                        metadata={'topic': topic, 'qos': qos, 'timeout': self.publish_timeout}
                    )
                    return False

            if result.rc == mqtt.MQTT_ERR_SUCCESS:
                with self._stats_lock:
                    self._message_count += 1
                    message_count = self._message_count

                self.logger.debug(
                    event=LogEvent.MQTT_PUBLISH_SUCCESS,
                    message="Published message",
                    metadata={'topic': topic, 'message_count': message_count, 'qos': qos}
                )
                return True

            self._record_failure()
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message=f"Publish failed (rc={result.rc})",
                metadata={'topic': topic}
            )
            return False

        except Exception as e:
            self._record_failure()
            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Error publishing message",
                exc_info=e,
                metadata={'topic': topic}
            )
            return False

    def _record_failure(self) -> None:
        with self._stats_lock:
            self._failure_count += 1

    def get_stats(self) -> Dict[str, Any]:
        """
        Get transport statistics.

        Returns:
            Dictionary with message/failure counts and connection status
        """
        with self._stats_lock:
            return {
                'message_count': self._message_count,
                'failure_count': self._failure_count,
                'connected': self._connected.is_set(),
                'broker': self.broker,
            }
