#!/usr/bin/env python3.12
"""Tests for the MQTT transport of the garage door accessory.

The paho client is replaced by a MagicMock after setup so no broker is
needed; inbound messages are fed through the real on_message callback.
"""
import json
import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock

import paho.mqtt.client as mqtt

from garage_door.mqtt_bridge import GarageDoorMQTTService, parse_target
from garage_door.states import DoorState, TargetState

# Test tier markers for organization
pytestmark = [
    pytest.mark.unit,
]


@pytest.fixture
def bridge(make_engine):
    engine = make_engine(mqtt_enabled=True, topic_prefix='garage/door')
    service = GarageDoorMQTTService(engine.config, engine)

    client = MagicMock()
    client.publish.return_value.rc = mqtt.MQTT_ERR_SUCCESS
    service._mqtt_client = client
    service._mqtt_connected = True

    yield service

    service._mqtt_connected = False
    engine.shutdown()


def deliver(service, topic, payload: bytes):
    message = SimpleNamespace(topic=topic, payload=payload)
    service._on_mqtt_message(service._mqtt_client, None, message)


def published(service, topic):
    """Payloads published to ``topic`` in order."""
    return [c.args[1] for c in service._mqtt_client.publish.call_args_list if c.args[0] == topic]


def events(service):
    return [json.loads(p) for p in published(service, 'garage/door/telemetry')]


class TestParseTarget:

    @pytest.mark.parametrize("payload,expected", [
        (b'open', TargetState.OPEN),
        (b'CLOSE', TargetState.CLOSED),
        (b' closed\n', TargetState.CLOSED),
        ('open', TargetState.OPEN),
        (0, TargetState.OPEN),
        (1, TargetState.CLOSED),
        ('1', TargetState.CLOSED),
        ({'target': 'open'}, TargetState.OPEN),
        ({'target': 1}, TargetState.CLOSED),
    ])
    def test_valid(self, payload, expected):
        assert parse_target(payload) is expected

    @pytest.mark.parametrize("payload", [
        b'ajar', 2, True, 1.0, None, {'state': 'open'}, {'target': {'x': 1}}, [0], b'\xff\xfe',
    ])
    def test_invalid(self, payload):
        with pytest.raises(ValueError):
            parse_target(payload)


class TestCommands:

    def test_set_open(self, bridge):
        deliver(bridge, 'garage/door/set', b'open')

        assert bridge.engine.current_state == DoorState.OPENING
        assert published(bridge, 'garage/door/current') == ['opening']
        assert published(bridge, 'garage/door/target') == ['open']
        actions = [e['action'] for e in events(bridge)]
        assert actions == ['door_opening', 'target_requested']

    def test_state_publishes_are_retained(self, bridge):
        deliver(bridge, 'garage/door/set', b'1')

        calls = [c for c in bridge._mqtt_client.publish.call_args_list
                 if c.args[0] == 'garage/door/current']
        assert calls[-1].kwargs == {'qos': 1, 'retain': True}
        assert bridge.engine.current_state == DoorState.CLOSING

    def test_json_payload(self, bridge):
        deliver(bridge, 'garage/door/set', b'{"target": "open"}')
        assert bridge.engine.current_state == DoorState.OPENING

    def test_motion_completion_is_published(self, bridge, scheduler):
        deliver(bridge, 'garage/door/set', b'open')
        scheduler.advance(15)

        assert published(bridge, 'garage/door/current') == ['opening', 'open']
        event = events(bridge)[-1]
        assert event['action'] == 'door_open'
        assert event['system_state']['state'] == 'OPEN'
        assert event['accessory'] == 'SimpleGarageDoorOpener'
        assert 'host' in event and 'timestamp' in event

    def test_invalid_payload_is_rejected(self, bridge):
        deliver(bridge, 'garage/door/set', b'sideways')

        assert bridge.engine.current_state == DoorState.CLOSED
        rejected = events(bridge)[-1]
        assert rejected['action'] == 'command_rejected'
        assert 'sideways' in rejected['reason']

    def test_hardware_error_is_reported(self, bridge):
        actuator = bridge.engine.actuator
        actuator.gpio.setup(actuator.pin, actuator.gpio.IN)

        deliver(bridge, 'garage/door/set', b'open')

        assert bridge.engine.current_state == DoorState.CLOSED
        error = events(bridge)[-1]
        assert error['action'] == 'hardware_error'
        assert error['target'] == 'OPEN'

    def test_timer_hardware_error_is_reported(self, make_engine, scheduler):
        engine = make_engine(mqtt_enabled=True, auto_closing_mode='force', auto_closing_delay=5)
        service = GarageDoorMQTTService(engine.config, engine)
        service._mqtt_client = MagicMock()
        service._mqtt_client.publish.return_value.rc = mqtt.MQTT_ERR_SUCCESS
        service._mqtt_connected = True

        engine.request_open()
        scheduler.advance(15)
        engine.actuator.gpio.setup(engine.actuator.pin, engine.actuator.gpio.IN)
        scheduler.advance(5)

        error = events(service)[-1]
        assert error['action'] == 'hardware_error'
        assert error['timer'] == 'auto_close'
        engine.shutdown()

    def test_get_republishes_reported_state(self, bridge):
        deliver(bridge, 'garage/door/get', b'')
        assert published(bridge, 'garage/door/current') == ['closed']
        assert published(bridge, 'garage/door/target') == ['closed']

    def test_unknown_topic_is_ignored(self, bridge):
        deliver(bridge, 'garage/door/other', b'open')
        assert bridge.engine.current_state == DoorState.CLOSED


class TestConnection:

    def test_subscribes_on_connect(self, bridge):
        client = bridge._mqtt_client
        bridge._on_mqtt_connect(client, None, None, 0)

        subscribed = [c.args[0] for c in client.subscribe.call_args_list]
        assert subscribed == ['garage/door/set', 'garage/door/get']
        assert published(bridge, 'system/garage_door/lwt') == ['online']
        assert events(bridge)[-1]['action'] == 'service_online'

    def test_failed_connect(self, bridge):
        bridge._on_mqtt_connect(bridge._mqtt_client, None, None, 5)
        assert bridge.is_connected is False

    def test_no_publish_while_disconnected(self, bridge):
        bridge._mqtt_connected = False
        assert bridge.publish_message('current', 'open') is False
        bridge._mqtt_client.publish.assert_not_called()

    def test_invalid_topic_prefix(self, make_engine):
        engine = make_engine(mqtt_enabled=True, topic_prefix='garage/#')
        with pytest.raises(ValueError):
            GarageDoorMQTTService(engine.config, engine)

    def test_shutdown(self, bridge):
        client = bridge._mqtt_client
        bridge.shutdown()

        assert events(bridge)[-1]['action'] == 'service_shutdown'
        client.loop_stop.assert_called_once()
        client.disconnect.assert_called_once()
        assert published(bridge, 'system/garage_door/lwt')[-1] == 'offline'

        # Accessory changes no longer reach MQTT
        client.publish.reset_mock()
        bridge.engine.request_open()
        client.publish.assert_not_called()
