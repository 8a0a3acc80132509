#!/usr/bin/env python3.12
"""Tests for the door switch actuator and GPIO backends."""
import sys
import pytest
from unittest.mock import MagicMock, patch

from garage_door.actuator import (
    DEFAULT_OPEN_ACTIONS, ActuatorDriver, GPIOAction, HardwareIOError, load_gpio_backend
)
from utils.gpio_simulation import SimulatedGPIO

# Test tier markers for organization
pytestmark = [
    pytest.mark.unit,
]


class TestGPIOAction:

    def test_valid_pairs(self):
        assert GPIOAction('write', 'high').value == 'high'
        assert GPIOAction('mode', 'input').kind == 'mode'

    @pytest.mark.parametrize("kind,value", [
        ('write', 'input'),
        ('mode', 'high'),
        ('toggle', 'high'),
    ])
    def test_invalid_pairs(self, kind, value):
        with pytest.raises(ValueError):
            GPIOAction(kind, value)

    def test_is_immutable(self):
        action = GPIOAction('write', 'low')
        with pytest.raises(AttributeError):
            action.value = 'high'


class TestActuatorDriver:

    def test_setup_uses_board_numbering(self, gpio):
        driver = ActuatorDriver(gpio, 12, initial_mode='output', initial_value='low')
        driver.setup()

        assert gpio.getmode() == gpio.BOARD
        assert gpio.gpio_function(12) == gpio.OUT
        assert gpio.input(12) == gpio.LOW

    def test_setup_as_input(self, gpio):
        driver = ActuatorDriver(gpio, 7, initial_mode='input')
        driver.setup()
        assert gpio.gpio_function(7) == gpio.IN

    def test_default_pulse(self, gpio, sleep_recorder):
        driver = ActuatorDriver(gpio, 12, sleep=sleep_recorder)
        driver.setup()
        gpio.operations.clear()

        driver.pulse()

        assert gpio.operations == [('output', 12, gpio.HIGH), ('output', 12, gpio.LOW)]
        assert sleep_recorder.calls == [0.5, 0.5]
        assert driver.pulse_count == 1
        assert driver.actions == DEFAULT_OPEN_ACTIONS

    def test_mode_actions(self, gpio, sleep_recorder):
        actions = [
            GPIOAction('mode', 'output'),
            GPIOAction('write', 'low'),
            GPIOAction('mode', 'input'),
        ]
        driver = ActuatorDriver(gpio, 16, actions=actions, action_delay=0.25,
                                initial_mode='input', sleep=sleep_recorder)
        driver.setup()
        gpio.operations.clear()

        driver.pulse()
        driver.pulse()

        expected = [('setup', 16, gpio.OUT), ('output', 16, gpio.LOW), ('setup', 16, gpio.IN)]
        assert gpio.operations == expected * 2
        assert sleep_recorder.calls == [0.25] * 6

    def test_write_failure_is_wrapped(self, sleep_recorder):
        gpio = SimulatedGPIO()
        driver = ActuatorDriver(gpio, 12, sleep=sleep_recorder)
        # setup() never called: the pin is not an output

        with pytest.raises(HardwareIOError) as exc_info:
            driver.pulse()

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert sleep_recorder.calls == []
        assert driver.pulse_count == 0

    def test_setup_failure_is_wrapped(self):
        gpio = MagicMock()
        gpio.setup.side_effect = OSError("/dev/gpiomem: permission denied")
        driver = ActuatorDriver(gpio, 12)

        with pytest.raises(HardwareIOError):
            driver.setup()

    def test_mode_failure_is_wrapped(self):
        gpio = MagicMock()
        gpio.setup.side_effect = RuntimeError("busy")
        driver = ActuatorDriver(gpio, 12, actions=[GPIOAction('mode', 'output')], sleep=lambda s: None)

        with pytest.raises(HardwareIOError):
            driver.pulse()


class TestBackendSelection:

    def test_simulation_backend(self):
        assert isinstance(load_gpio_backend(True), SimulatedGPIO)

    def test_missing_rpi_gpio_raises(self):
        with patch.dict(sys.modules, {'RPi': None, 'RPi.GPIO': None}):
            with pytest.raises(HardwareIOError, match="GPIO_SIMULATION"):
                load_gpio_backend(False)

    def test_rpi_gpio_is_used_when_present(self):
        fake_rpi = MagicMock()
        with patch.dict(sys.modules, {'RPi': fake_rpi, 'RPi.GPIO': fake_rpi.GPIO}):
            assert load_gpio_backend(False) is fake_rpi.GPIO
