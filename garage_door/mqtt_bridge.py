#!/usr/bin/env python3.12
"""MQTT transport for the garage door accessory.

MQTT Topics (all under TOPIC_PREFIX, default ``garage/door``):
    Subscribed:
        - <prefix>/set: Target request; ``open``, ``close``/``closed``, ``0``/``1``
          or ``{"target": ...}``
        - <prefix>/get: Republish current and target state

    Published:
        - <prefix>/current: Current door state name (retained)
        - <prefix>/target: Target door state name (retained)
        - <prefix>/telemetry: JSON events with a state snapshot
        - system/garage_door/lwt: online/offline (retained, last will)
"""
import socket
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from utils.mqtt_service import MQTTService
from .accessory import Characteristic, GarageDoorAccessory
from .actuator import HardwareIOError
from .states import DoorState, TargetState

logger = logging.getLogger(__name__)

SERVICE_NAME = 'garage_door'

SET_TOPIC = 'set'
GET_TOPIC = 'get'
CURRENT_TOPIC = 'current'
TARGET_TOPIC = 'target'
TELEMETRY_TOPIC = 'telemetry'

_TARGET_WORDS = {
    'open': TargetState.OPEN,
    'close': TargetState.CLOSED,
    'closed': TargetState.CLOSED,
}


def parse_target(payload: Any) -> TargetState:
    """Interpret a ``set`` payload as a target state.

    Raises:
        ValueError: If the payload does not name a target state
    """
    if isinstance(payload, dict):
        if 'target' not in payload:
            raise ValueError("JSON payload needs a 'target' field")
        payload = payload['target']
        if isinstance(payload, dict):
            raise ValueError("'target' must be a string or integer")

    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode('utf-8')
        except UnicodeDecodeError as e:
            raise ValueError("payload is not UTF-8 text") from e

    if isinstance(payload, bool):
        raise ValueError(f"unsupported target {payload!r}")

    if isinstance(payload, str):
        word = payload.strip().lower()
        if word in _TARGET_WORDS:
            return _TARGET_WORDS[word]
        if word.isdigit():
            payload = int(word)
        else:
            raise ValueError(f"unsupported target '{payload}'")

    if isinstance(payload, int):
        try:
            return TargetState(payload)
        except ValueError as e:
            raise ValueError(f"unsupported target {payload}") from e

    raise ValueError(f"unsupported target {payload!r}")


class GarageDoorMQTTService(MQTTService):
    """Exposes a GarageDoorAccessory over MQTT."""

    def __init__(self, config: Any, engine: Any, accessory: Optional[GarageDoorAccessory] = None):
        super().__init__(SERVICE_NAME, config)
        self.engine = engine
        self.accessory = accessory or engine.accessory

        self._unsubscribe = self.accessory.subscribe(self._on_characteristic_change)
        engine.add_error_listener(self._on_timer_error)

        self.setup_mqtt(
            on_message=self._handle_message,
            subscriptions=[SET_TOPIC, GET_TOPIC]
        )

    def _now_iso(self) -> str:
        """Get current UTC timestamp in ISO format"""
        return datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')

    def _publish_event(self, action: str, extra_data: Optional[Dict] = None) -> bool:
        """Publish telemetry event"""
        payload = {
            'host': socket.gethostname(),
            'timestamp': self._now_iso(),
            'action': action,
            'accessory': self.accessory.name,
            'system_state': self.engine.snapshot(),
        }
        if extra_data:
            payload.update(extra_data)

        self._safe_log('info', f"Event: {action} | State: {payload['system_state']['state']}")
        return self.publish_message(TELEMETRY_TOPIC, payload, qos=1)

    def publish_state(self) -> None:
        """Publish current and reported target state (retained)."""
        current = self.engine.current_state
        target = self.engine.reported_target_state()
        self.publish_message(CURRENT_TOPIC, current.name.lower(), retain=True, qos=1)
        self.publish_message(TARGET_TOPIC, target.name.lower(), retain=True, qos=1)

    def on_connected(self) -> None:
        self.publish_state()
        self._publish_event('service_online')

    def _handle_message(self, topic: str, payload: Any) -> None:
        if topic == SET_TOPIC:
            self.handle_set(payload)
        elif topic == GET_TOPIC:
            self.publish_state()
        else:
            self._safe_log('debug', f"Ignoring message on unexpected topic {topic}")

    def handle_set(self, payload: Any) -> None:
        """Apply a target request received on the ``set`` topic."""
        try:
            target = parse_target(payload)
        except ValueError as e:
            self._safe_log('warning', f"Rejected set payload {payload!r}: {e}")
            self._publish_event('command_rejected', {'payload': repr(payload), 'reason': str(e)})
            return

        try:
            self.accessory.set_target_state(target)
        except HardwareIOError as e:
            self._safe_log('error', f"Hardware failure handling target {target.name}: {e}")
            self._publish_event('hardware_error', {'target': target.name, 'error': str(e)})
            return

        self._publish_event('target_requested', {'target': target.name})

    def _on_characteristic_change(self, characteristic: Characteristic, value: Any) -> None:
        if characteristic is self.accessory.current_state:
            state = DoorState(value)
            self.publish_message(CURRENT_TOPIC, state.name.lower(), retain=True, qos=1)
            self._publish_event(f"door_{state.name.lower()}")
        elif characteristic is self.accessory.target_state:
            self.publish_message(TARGET_TOPIC, TargetState(value).name.lower(), retain=True, qos=1)

    def _on_timer_error(self, timer_name: str, error: Exception) -> None:
        action = 'hardware_error' if isinstance(error, HardwareIOError) else 'timer_error'
        self._publish_event(action, {'timer': timer_name, 'error': str(error)})

    def shutdown(self) -> None:
        self._unsubscribe()
        self._publish_event('service_shutdown')
        super().shutdown()
