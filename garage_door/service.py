#!/usr/bin/env python3.12
"""Garage door opener service entry point.

Wires the GPIO backend, switch actuator, accessory facade, motion engine and
MQTT bridge together and runs until interrupted.

Example:
    Run standalone:
        $ python3.12 -m garage_door

    Test in simulation mode without a broker:
        $ GPIO_SIMULATION=true MQTT_ENABLED=false python3.12 -m garage_door
"""
import time
import logging
from typing import Any, Callable, Optional

from dotenv import load_dotenv

from utils.config_base import ConfigValidationError
from utils.logging_config import setup_logging, apply_common_filters
from .accessory import GarageDoorAccessory
from .actuator import ActuatorDriver, HardwareIOError, load_gpio_backend
from .config import GarageDoorConfig
from .mqtt_bridge import GarageDoorMQTTService
from .opener import GarageDoorOpener

logger = logging.getLogger(__name__)


class GarageDoorService:
    """One garage door: hardware, engine, facade and optional MQTT bridge."""

    def __init__(self,
                 config: Optional[GarageDoorConfig] = None,
                 gpio: Any = None,
                 clock: Callable[[], float] = time.time,
                 timer_factory: Optional[Callable] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.config = config or GarageDoorConfig()
        if self.config.verbose:
            self.config.log_config()

        self.gpio = gpio if gpio is not None else load_gpio_backend(self.config.gpio_simulation)
        self.actuator = ActuatorDriver(
            self.gpio,
            self.config.door_switch_pin,
            actions=self.config.gpio_actions,
            action_delay=self.config.gpio_action_delay,
            initial_mode=self.config.initial_gpio_mode,
            initial_value=self.config.initial_gpio_value,
            sleep=sleep,
        )
        self.actuator.setup()

        self.accessory = GarageDoorAccessory(self.config)
        self.engine = GarageDoorOpener(self.config, self.actuator, self.accessory,
                                       clock=clock, timer_factory=timer_factory)

        self.mqtt: Optional[GarageDoorMQTTService] = None
        if self.config.mqtt_enabled:
            self.mqtt = GarageDoorMQTTService(self.config, self.engine, self.accessory)
        else:
            logger.info("MQTT disabled - accessory is only reachable in-process")

    def start(self) -> None:
        if self.mqtt:
            self.mqtt.connect()
        logger.info(f"Garage door '{self.config.name}' ready on pin {self.config.door_switch_pin}")

    def cleanup(self) -> None:
        """Clean shutdown of the service"""
        logger.info("Cleaning up garage door service")
        self.engine.shutdown()
        if self.mqtt:
            self.mqtt.shutdown()
        try:
            self.gpio.cleanup(self.config.door_switch_pin)
        except Exception as e:
            logger.debug(f"Error during GPIO cleanup: {e}")


# ─────────────────────────────────────────────────────────────
# Main Entry Point
# ─────────────────────────────────────────────────────────────
def main() -> int:
    load_dotenv()
    setup_logging("garage_door")
    apply_common_filters()

    try:
        config = GarageDoorConfig()
    except ConfigValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    service = None
    try:
        service = GarageDoorService(config)
        service.start()

        # Keep running
        while True:
            time.sleep(1)

    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    except HardwareIOError as e:
        logger.error(f"Hardware unavailable: {e}")
        return 1
    finally:
        if service:
            service.cleanup()
        logger.info("Garage door service stopped")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
