"""
Simulated garage door opener driven by a GPIO switch pulse
"""

from .states import DoorState, TargetState, AutoClosingMode
from .actuator import ActuatorDriver, GPIOAction, HardwareIOError, load_gpio_backend
from .config import GarageDoorConfig
from .accessory import Characteristic, GarageDoorAccessory
from .opener import GarageDoorOpener, MotionRecord

__all__ = [
    'DoorState', 'TargetState', 'AutoClosingMode',
    'ActuatorDriver', 'GPIOAction', 'HardwareIOError', 'load_gpio_backend',
    'GarageDoorConfig',
    'Characteristic', 'GarageDoorAccessory',
    'GarageDoorOpener', 'MotionRecord',
]
