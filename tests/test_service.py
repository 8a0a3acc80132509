#!/usr/bin/env python3.12
"""Tests for service wiring and the entry point."""
import os
import pytest
from unittest.mock import patch

from garage_door.actuator import HardwareIOError
from garage_door.service import GarageDoorService, main
from garage_door.states import DoorState, TargetState

# Test tier markers for organization
pytestmark = [
    pytest.mark.unit,
    pytest.mark.smoke,
]


@pytest.fixture
def service(make_config, gpio, clock, scheduler, sleep_recorder):
    svc = GarageDoorService(make_config(door_switch_pin=16, initial_gpio_value='low'),
                            gpio=gpio, clock=clock, timer_factory=scheduler, sleep=sleep_recorder)
    yield svc
    svc.cleanup()


class TestWiring:

    def test_pin_is_set_up(self, service, gpio):
        assert gpio.getmode() == gpio.BOARD
        assert gpio.gpio_function(16) == gpio.OUT
        assert gpio.input(16) == gpio.LOW

    def test_mqtt_disabled(self, service):
        assert service.mqtt is None

    def test_remote_open_cycle(self, service, scheduler):
        service.accessory.set_target_state(TargetState.OPEN)
        assert service.accessory.get_current_state() == DoorState.OPENING

        scheduler.advance(15)
        assert service.accessory.get_current_state() == DoorState.OPEN
        assert service.actuator.pulse_count == 1

    def test_simulation_backend_from_config(self, make_config):
        svc = GarageDoorService(make_config(), sleep=lambda s: None)
        try:
            assert type(svc.gpio).__name__ == 'SimulatedGPIO'
        finally:
            svc.cleanup()

    def test_cleanup_releases_pin_and_timers(self, service, gpio):
        service.engine.request_open()
        service.cleanup()

        assert service.engine.timers.get_active_timers() == []
        assert gpio.gpio_function(16) == gpio.IN

    def test_verbose_logs_config(self, make_config, gpio, caplog):
        with caplog.at_level('INFO'):
            svc = GarageDoorService(make_config(verbose=True), gpio=gpio, sleep=lambda s: None)
        svc.cleanup()
        assert 'Autoclosing mode: none' in caplog.text

    def test_mqtt_bridge_created_when_enabled(self, make_config, gpio):
        svc = GarageDoorService(make_config(mqtt_enabled=True), gpio=gpio, sleep=lambda s: None)
        try:
            assert svc.mqtt is not None
            assert svc.mqtt.accessory is svc.accessory
        finally:
            svc.engine.shutdown()


class TestMain:

    @patch('garage_door.service.setup_logging')
    @patch('garage_door.service.load_dotenv')
    def test_invalid_config_exits_with_error(self, mock_dotenv, mock_logging):
        with patch.dict(os.environ, {'GPIO_OPEN_ACTIONS': '[{"type": "write", "value": "input"}]'}):
            assert main() == 1
        mock_dotenv.assert_called_once()

    @patch('garage_door.service.setup_logging')
    @patch('garage_door.service.load_dotenv')
    def test_missing_hardware_exits_with_error(self, mock_dotenv, mock_logging):
        with patch.dict(os.environ, {'GPIO_SIMULATION': 'false', 'MQTT_ENABLED': 'false'}), \
                patch('garage_door.service.load_gpio_backend',
                      side_effect=HardwareIOError("no RPi.GPIO")):
            assert main() == 1

    @patch('garage_door.service.setup_logging')
    @patch('garage_door.service.load_dotenv')
    @patch('garage_door.service.time')
    def test_runs_until_interrupted(self, mock_time, mock_dotenv, mock_logging):
        mock_time.sleep.side_effect = KeyboardInterrupt
        with patch.dict(os.environ, {
            'GPIO_SIMULATION': 'true',
            'MQTT_ENABLED': 'false',
            'GPIO_ACTION_DELAY': '0',
        }), patch.object(GarageDoorService, 'cleanup', autospec=True) as mock_cleanup:
            assert main() == 0
        mock_cleanup.assert_called_once()
