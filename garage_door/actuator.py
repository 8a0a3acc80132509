#!/usr/bin/env python3.12
"""Door switch actuator.

The opener's wall switch is wired to a single GPIO line. A "pulse" is a short,
ordered list of pin operations (by default: drive HIGH, then LOW) with a fixed
sleep after each one. The driver is synchronous: ``pulse()`` returns only after
the last action's delay has elapsed.

GPIO Backends:
    - RPi.GPIO in BOARD numbering, so pin numbers are physical header pins
    - utils.gpio_simulation.SimulatedGPIO, selected with GPIO_SIMULATION=true

Any exception raised by the backend is wrapped in HardwareIOError.
"""
import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Tuple

from utils.gpio_simulation import SimulatedGPIO

logger = logging.getLogger(__name__)

ACTION_KINDS = ('write', 'mode')
LEVELS = ('high', 'low')
MODES = ('input', 'output')


class HardwareIOError(Exception):
    """Raised when a GPIO operation fails or no GPIO backend is usable."""
    pass


@dataclass(frozen=True)
class GPIOAction:
    """One step of a switch pulse.

    Attributes:
        kind: 'write' sets the pin level, 'mode' sets the pin direction
        value: 'high'/'low' for writes, 'input'/'output' for mode changes
    """
    kind: str
    value: str

    def __post_init__(self):
        if self.kind not in ACTION_KINDS:
            raise ValueError(f"Unknown GPIO action type '{self.kind}', expected one of {ACTION_KINDS}")
        allowed = LEVELS if self.kind == 'write' else MODES
        if self.value not in allowed:
            raise ValueError(f"GPIO action '{self.kind}' takes one of {allowed}, got '{self.value}'")

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"


DEFAULT_OPEN_ACTIONS: Tuple[GPIOAction, ...] = (
    GPIOAction('write', 'high'),
    GPIOAction('write', 'low'),
)


def load_gpio_backend(simulation: bool) -> Any:
    """Return the GPIO module to drive the door switch with.

    Args:
        simulation: Use the in-process simulated GPIO instead of RPi.GPIO

    Raises:
        HardwareIOError: If real GPIO was requested but RPi.GPIO is unusable
    """
    if simulation:
        logger.warning("GPIO simulation enabled - no hardware will be driven")
        return SimulatedGPIO()

    try:
        import RPi.GPIO as GPIO
    except (ImportError, RuntimeError) as e:
        raise HardwareIOError(
            f"RPi.GPIO is not available ({e}); install the 'hardware' extra "
            f"or set GPIO_SIMULATION=true"
        ) from e
    return GPIO


class ActuatorDriver:
    """Issues the configured switch pulse on one GPIO pin.

    Attributes:
        gpio: RPi.GPIO-compatible module
        pin: Physical (BOARD) pin number of the switch relay
        actions: Ordered pulse actions
        action_delay: Seconds slept after every action
    """

    def __init__(self,
                 gpio: Any,
                 pin: int,
                 actions: Iterable[GPIOAction] = DEFAULT_OPEN_ACTIONS,
                 action_delay: float = 0.5,
                 initial_mode: str = 'output',
                 initial_value: str = 'high',
                 sleep: Callable[[float], None] = time.sleep):
        self.gpio = gpio
        self.pin = pin
        self.actions = tuple(actions)
        self.action_delay = action_delay
        self.initial_mode = initial_mode
        self.initial_value = initial_value
        self._sleep = sleep
        self.pulse_count = 0

    def _level(self, value: str) -> int:
        return self.gpio.HIGH if value == 'high' else self.gpio.LOW

    def _direction(self, value: str) -> int:
        return self.gpio.OUT if value == 'output' else self.gpio.IN

    def setup(self) -> None:
        """Open the switch pin with its initial direction and level."""
        try:
            self.gpio.setwarnings(False)
            self.gpio.setmode(self.gpio.BOARD)
            if self.initial_mode == 'output':
                self.gpio.setup(self.pin, self.gpio.OUT, initial=self._level(self.initial_value))
            else:
                self.gpio.setup(self.pin, self.gpio.IN)
        except Exception as e:
            raise HardwareIOError(f"Failed to set up GPIO pin {self.pin}: {e}") from e
        logger.info(f"Door switch on pin {self.pin} ({self.initial_mode}, {self.initial_value})")

    def set_mode(self, pin: int, mode: str) -> None:
        try:
            if mode == 'output':
                self.gpio.setup(pin, self.gpio.OUT)
            else:
                self.gpio.setup(pin, self.gpio.IN)
        except Exception as e:
            raise HardwareIOError(f"Failed to set pin {pin} to {mode}: {e}") from e

    def write(self, pin: int, level: str) -> None:
        try:
            self.gpio.output(pin, self._level(level))
        except Exception as e:
            raise HardwareIOError(f"Failed to write {level} to pin {pin}: {e}") from e

    def pulse(self) -> None:
        """Run every action in order, sleeping ``action_delay`` after each.

        Raises:
            HardwareIOError: If any pin operation fails; later actions are skipped
        """
        logger.debug(f"Pulsing pin {self.pin}: {', '.join(str(a) for a in self.actions)}")
        for action in self.actions:
            if action.kind == 'write':
                self.write(self.pin, action.value)
            else:
                self.set_mode(self.pin, action.value)
            self._sleep(self.action_delay)
        self.pulse_count += 1
