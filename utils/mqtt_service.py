#!/usr/bin/env python3.12
"""Base MQTT service class for the garage door services.

This module provides a base class for MQTT-connected services, handling:
- Connection management with exponential backoff
- Thread-safe message publishing
- Last Will Testament (LWT) setup
- Topic prefix support
- Automatic reconnection handling
"""

import os
import json
import time
import logging
import threading
from typing import Optional, Callable, Any, List
import paho.mqtt.client as mqtt

from .safe_logging import SafeLoggingMixin


class MQTTService(SafeLoggingMixin):
    """Base class for MQTT-connected services.

    Provides standardized MQTT functionality including connection management,
    reconnection with exponential backoff, thread-safe publishing, and
    Last Will Testament support.

    Attributes:
        service_name: Name of the service for identification
        config: Configuration object with MQTT settings (SharedMQTTConfig)
        logger: Logger instance for this service
    """

    def __init__(self, service_name: str, config: Any):
        """Initialize MQTT service base.

        Args:
            service_name: Unique name for this service
            config: Configuration object with MQTT settings
        """
        self.service_name = service_name
        self.config = config
        self.logger = logging.getLogger(service_name)

        # MQTT state
        self._mqtt_client: Optional[mqtt.Client] = None
        self._mqtt_connected = False
        self._mqtt_lock = threading.Lock()
        self._reconnect_delay = 1.0
        self._max_reconnect_delay = 60.0
        self._shutdown = False

        topic_prefix = getattr(config, 'topic_prefix', '')

        # Validate prefix to prevent invalid characters
        if topic_prefix:
            invalid_chars = ['#', '+', '\n', '\r', '\0']
            if any(char in topic_prefix for char in invalid_chars):
                raise ValueError(f"Invalid characters in TOPIC_PREFIX: {topic_prefix}")

        self._topic_prefix = topic_prefix
        if self._topic_prefix and not self._topic_prefix.endswith('/'):
            self._topic_prefix += '/'

        # Callbacks
        self._on_message_callback: Optional[Callable[[str, Any], None]] = None
        self._subscriptions: List[str] = []

    def setup_mqtt(self,
                   on_message: Optional[Callable[[str, Any], None]] = None,
                   subscriptions: Optional[List[str]] = None) -> None:
        """Setup MQTT client with callbacks and subscriptions.

        Args:
            on_message: Optional callback ``(topic, payload)`` for received
                messages; the topic has the prefix stripped
            subscriptions: List of topics to subscribe to (prefix is added)
        """
        self._on_message_callback = on_message
        self._subscriptions = subscriptions or []

        client_id = os.environ.get('MQTT_CLIENT_ID') or f"{self.service_name}_{os.getpid()}"

        self._mqtt_client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=True,
            protocol=mqtt.MQTTv311
        )

        self._mqtt_client.on_connect = self._on_mqtt_connect
        self._mqtt_client.on_disconnect = self._on_mqtt_disconnect
        self._mqtt_client.on_message = self._on_mqtt_message
        self._mqtt_client.reconnect_delay_set(
            min_delay=int(self._reconnect_delay),
            max_delay=int(self._max_reconnect_delay)
        )

        # Configure authentication if provided
        if getattr(self.config, 'mqtt_username', ''):
            self._mqtt_client.username_pw_set(
                self.config.mqtt_username,
                getattr(self.config, 'mqtt_password', '')
            )

        if getattr(self.config, 'mqtt_tls', False):
            self._setup_tls()

        # Set Last Will Testament
        self._mqtt_client.will_set(
            self._lwt_topic(),
            payload="offline",
            qos=1,
            retain=True
        )

    def _lwt_topic(self) -> str:
        return f"system/{self.service_name}/lwt"

    def _setup_tls(self) -> None:
        """Configure TLS for MQTT connection (CA certificate only)."""
        self._mqtt_client.tls_set(
            ca_certs=self.config.tls_ca_path,
            certfile=None,
            keyfile=None,
            cert_reqs=mqtt.ssl.CERT_REQUIRED,
            tls_version=mqtt.ssl.PROTOCOL_TLSv1_2
        )

    def connect(self) -> None:
        """Connect to the MQTT broker and start the network loop."""
        if self._mqtt_client and not self._shutdown:
            self._safe_log('info', f"Target broker: {self.config.mqtt_broker}:{self.config.mqtt_port}")
            # Start connection in background thread to avoid blocking
            threading.Thread(target=self._connect_with_retry, daemon=True).start()

    def _connect_with_retry(self) -> None:
        """Connect to MQTT broker with exponential backoff."""
        delay = self._reconnect_delay

        while not self._shutdown:
            try:
                self._safe_log('info', f"Connecting to MQTT broker at {self.config.mqtt_broker}:{self.config.mqtt_port}")
                self._mqtt_client.connect(self.config.mqtt_broker, self.config.mqtt_port, 60)
                self._mqtt_client.loop_start()
                break
            except OSError as e:
                self._safe_log('error', f"MQTT connection failed: {e}")
                self._safe_log('info', f"Retrying in {delay}s...")
                time.sleep(delay)
                delay = min(delay * 2, self._max_reconnect_delay)

    def _on_mqtt_connect(self, client, userdata, flags, reason_code, properties=None):
        """Handle MQTT connection events."""
        if reason_code == 0:
            self._safe_log('info', "Connected to MQTT broker")
            with self._mqtt_lock:
                self._mqtt_connected = True

            client.publish(self._lwt_topic(), "online", qos=1, retain=True)

            # Subscriptions are lost on a clean session, so renew them on every connect
            for topic in self._subscriptions:
                formatted_topic = self._format_topic(topic)
                client.subscribe(formatted_topic)
                self._safe_log('debug', f"Subscribed to {formatted_topic}")

            self.on_connected()
        else:
            self._safe_log('error', f"Failed to connect to MQTT broker: {reason_code}")
            with self._mqtt_lock:
                self._mqtt_connected = False

    def on_connected(self) -> None:
        """Hook for subclasses, called after every successful (re)connect."""

    def _on_mqtt_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        """Handle MQTT disconnection events; paho's loop reconnects on its own."""
        with self._mqtt_lock:
            self._mqtt_connected = False

        if reason_code != 0 and not self._shutdown:
            self._safe_log('warning', f"Unexpected MQTT disconnection: {reason_code}")

    def _on_mqtt_message(self, client, userdata, msg):
        """Handle received MQTT messages."""
        try:
            topic = msg.topic
            if self._topic_prefix and topic.startswith(self._topic_prefix):
                topic = topic[len(self._topic_prefix):]

            # Parse JSON payload if possible
            try:
                payload = json.loads(msg.payload.decode('utf-8'))
            except (json.JSONDecodeError, UnicodeDecodeError):
                payload = msg.payload

            if self._on_message_callback:
                self._on_message_callback(topic, payload)

        except Exception as e:
            # Never let a bad message kill paho's network thread
            self._safe_log('error', f"Error processing message on {msg.topic}: {e}", exc_info=True)

    def _format_topic(self, topic: str) -> str:
        """Format topic with prefix if configured."""
        if self._topic_prefix:
            return f"{self._topic_prefix}{topic}"
        return topic

    def publish_message(self, topic: str, payload: Any,
                        retain: bool = False, qos: int = 0) -> bool:
        """Thread-safe message publishing.

        Args:
            topic: Topic to publish to (will be prefixed if configured)
            payload: Message payload (will be JSON encoded if dict)
            retain: Whether to retain the message
            qos: Quality of Service level (0, 1, or 2)

        Returns:
            True if published successfully, False otherwise
        """
        with self._mqtt_lock:
            if not self._mqtt_connected:
                self._safe_log('debug', f"Cannot publish to {topic} - not connected")
                return False

            full_topic = self._format_topic(topic)

            if isinstance(payload, dict):
                encoded_payload = json.dumps(payload)
            elif isinstance(payload, str):
                encoded_payload = payload
            else:
                encoded_payload = str(payload)

            try:
                result = self._mqtt_client.publish(
                    full_topic,
                    encoded_payload,
                    qos=qos,
                    retain=retain
                )
            except (ValueError, OSError) as e:
                self._safe_log('error', f"Exception publishing to {full_topic}: {e}")
                return False

            if result.rc == mqtt.MQTT_ERR_SUCCESS:
                self._safe_log('debug', f"Published to {full_topic}")
                return True
            self._safe_log('error', f"Failed to publish to {full_topic}: {mqtt.error_string(result.rc)}")
            return False

    def shutdown(self) -> None:
        """Gracefully shutdown MQTT connection."""
        self._safe_log('info', f"Shutting down {self.service_name} MQTT service")
        self._shutdown = True

        if self._mqtt_client:
            try:
                self._mqtt_client.publish(self._lwt_topic(), "offline", qos=1, retain=True)
                self._mqtt_client.loop_stop()
                self._mqtt_client.disconnect()
            except (ValueError, OSError) as e:
                self._safe_log('error', f"Error during MQTT shutdown: {e}")

        with self._mqtt_lock:
            self._mqtt_connected = False
        self._safe_log('info', f"{self.service_name} MQTT service shutdown complete")

    @property
    def is_connected(self) -> bool:
        """Check if MQTT is connected."""
        return self._mqtt_connected
