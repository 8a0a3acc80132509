#!/usr/bin/env python3.12
"""GPIO simulation module for running without Raspberry Pi hardware.

This module provides a simulated GPIO interface that mimics the RPi.GPIO API,
allowing tests and development to run on systems without actual GPIO hardware.
The simulation keeps per-pin mode and level, plus an ordered journal of every
operation so callers can check exactly which electrical pulses were issued.

Usage:
    from utils.gpio_simulation import SimulatedGPIO
    GPIO = SimulatedGPIO()

    # Use like RPi.GPIO
    GPIO.setmode(GPIO.BOARD)
    GPIO.setup(12, GPIO.OUT, initial=GPIO.HIGH)
    GPIO.output(12, GPIO.LOW)
"""

import threading
from typing import List, Optional, Tuple


class SimulatedGPIO:
    """Simulated GPIO module for testing on non-Pi hardware.

    This class mimics the RPi.GPIO interface. Writes to a pin that is not
    configured as an output raise RuntimeError, as RPi.GPIO does.
    """

    # Constants matching RPi.GPIO
    OUT = 0
    IN = 1
    HIGH = 1
    LOW = 0
    PUD_UP = 22
    PUD_DOWN = 21
    PUD_OFF = 20
    BCM = 11
    BOARD = 10

    def __init__(self):
        """Initialize the simulated GPIO module."""
        self._lock = threading.RLock()
        self._state = {}  # Pin states (HIGH/LOW)
        self._mode = {}   # Pin modes (IN/OUT)
        self._warnings = True
        self._numbering_mode = None
        self.operations: List[Tuple[str, int, int]] = []

    def setmode(self, mode):
        """Set the pin numbering mode."""
        with self._lock:
            self._numbering_mode = mode

    def getmode(self) -> Optional[int]:
        return self._numbering_mode

    def setwarnings(self, warnings):
        """Enable/disable warnings."""
        self._warnings = warnings

    def setup(self, channel, direction, initial=None, pull_up_down=None):
        """Setup a GPIO channel.

        Args:
            channel: Pin number
            direction: IN or OUT
            initial: Initial value for output pins (HIGH/LOW)
            pull_up_down: Pull resistor setting (PUD_UP/PUD_DOWN/PUD_OFF)
        """
        with self._lock:
            if self._numbering_mode is None:
                raise RuntimeError("Please set pin numbering mode using GPIO.setmode(GPIO.BOARD) or GPIO.setmode(GPIO.BCM)")
            self._mode[channel] = direction
            self.operations.append(('setup', channel, direction))

            if direction == self.OUT:
                # Keep the latched level when switching back to output
                if initial is not None:
                    self._state[channel] = initial
                else:
                    self._state.setdefault(channel, self.LOW)
            else:
                # Input pins read their pull resistor
                self._state[channel] = self.HIGH if pull_up_down == self.PUD_UP else self.LOW

    def output(self, channel, value):
        """Set output value for a channel.

        Args:
            channel: Pin number
            value: HIGH/LOW
        """
        with self._lock:
            if self._mode.get(channel) != self.OUT:
                raise RuntimeError(f"The GPIO channel {channel} has not been set up as an OUTPUT")
            level = self.HIGH if value else self.LOW
            self._state[channel] = level
            self.operations.append(('output', channel, level))

    def input(self, channel):
        """Read the current level of a channel."""
        with self._lock:
            return self._state.get(channel, self.LOW)

    def gpio_function(self, channel):
        """Return the configured direction of a channel (IN if never set up)."""
        with self._lock:
            return self._mode.get(channel, self.IN)

    def cleanup(self, channel=None):
        """Cleanup GPIO resources.

        Args:
            channel: Specific channel to cleanup, or None for all
        """
        with self._lock:
            if channel is None:
                self._state.clear()
                self._mode.clear()
            else:
                self._state.pop(channel, None)
                self._mode.pop(channel, None)
