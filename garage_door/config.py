#!/usr/bin/env python3.12
"""Configuration for the garage door opener service.

All settings are read from environment variables named after the upper-cased
schema key (``SIMULATE_TIME_OPENING``, ``DOOR_SWITCH_PIN``, ...). An explicit
overrides mapping wins over the environment; it accepts the schema keys as
well as the camelCase keys of older accessory config files
(``simulateTimeOpening``, ``GPIOOpenActions``, ...).
"""
import logging
from typing import Any, Iterable, Mapping, Optional, Tuple

from utils.config_base import ConfigSchema, ConfigValidationError, SharedMQTTConfig
from .actuator import DEFAULT_OPEN_ACTIONS, GPIOAction
from .states import AutoClosingMode

logger = logging.getLogger(__name__)


class GarageDoorConfig(SharedMQTTConfig):
    """Configuration for the simulated garage door opener.

    Durations are seconds and may be 0. Enumerated settings are
    case-insensitive and fall back to their default when unrecognized. A
    malformed ``gpio_open_actions`` list raises ConfigValidationError.
    """

    SCHEMA = {
        **SharedMQTTConfig.SCHEMA,

        # Accessory
        'name': ConfigSchema(str, default='SimpleGarageDoorOpener',
                             description="Accessory display name"),
        'verbose': ConfigSchema(bool, default=False,
                                description="Log the effective configuration at startup"),

        # Motion simulation
        'simulate_time_opening': ConfigSchema(float, default=15.0, min=0.0, aliases=('simulateTimeOpening',),
                                              description="Full opening duration (seconds)"),
        'simulate_time_closing': ConfigSchema(float, default=15.0, min=0.0, aliases=('simulateTimeClosing',),
                                              description="Full closing duration (seconds)"),
        'auto_closing_delay': ConfigSchema(float, default=30.0, min=0.0, aliases=('autoClosingDelay',),
                                           description="Delay after fully open before auto-close (seconds)"),
        'auto_closing_mode': ConfigSchema(str, default='none', choices=[m.value for m in AutoClosingMode],
                                          aliases=('autoClosingMode',),
                                          description="Auto-close behaviour: none, self or force"),

        # GPIO
        'door_switch_pin': ConfigSchema(int, default=12, min=1, max=40, aliases=('doorSwitchPin',),
                                        description="Physical (BOARD) pin of the door switch"),
        'initial_gpio_mode': ConfigSchema(str, default='output', choices=['input', 'output'],
                                          aliases=('initialGPIOMode',),
                                          description="Pin direction at startup"),
        'initial_gpio_value': ConfigSchema(str, default='high', choices=['high', 'low'],
                                           aliases=('initialGPIOValue',),
                                           description="Pin level at startup"),
        'gpio_action_delay': ConfigSchema(float, default=0.5, min=0.0, aliases=('GPIOActionDelay',),
                                          description="Sleep after each pulse action (seconds)"),
        'gpio_open_actions': ConfigSchema(list, default=[{'type': 'write', 'value': 'high'},
                                                         {'type': 'write', 'value': 'low'}],
                                          aliases=('GPIOOpenActions',),
                                          description="Ordered pulse actions (JSON array)"),
        'gpio_simulation': ConfigSchema(bool, default=False,
                                        description="Use simulated GPIO instead of RPi.GPIO"),

        # Topics
        'topic_prefix': ConfigSchema(str, default='garage/door',
                                     description="Prefix for command, state and telemetry topics"),
    }

    def __init__(self, overrides: Optional[Mapping[str, Any]] = None, env_prefix: str = ""):
        self.gpio_actions: Tuple[GPIOAction, ...] = DEFAULT_OPEN_ACTIONS
        super().__init__(env_prefix=env_prefix, overrides=overrides)

    def validate(self):
        """Validate MQTT settings and parse the pulse action list."""
        super().validate()
        self.gpio_actions = parse_gpio_actions(self.gpio_open_actions)
        if not self.gpio_actions:
            logger.warning("GPIO_OPEN_ACTIONS is empty - the door switch will never be pulsed")

    @property
    def auto_closing(self) -> AutoClosingMode:
        return AutoClosingMode(self.auto_closing_mode)

    def log_config(self, log: Optional[logging.Logger] = None) -> None:
        """Log the effective settings (used when ``verbose`` is on)."""
        log = log or logger
        log.info(f"Verbose logging: {self.verbose}")
        log.info(f"Opening door time duration (sec): {self.simulate_time_opening}")
        log.info(f"Closing door time duration (sec): {self.simulate_time_closing}")
        log.info(f"Delay before autoclosing (sec): {self.auto_closing_delay}")
        log.info(f"Autoclosing mode: {self.auto_closing_mode}")
        log.info(f"Door switch pin: {self.door_switch_pin}")
        log.info(f"Initial GPIO mode: {self.initial_gpio_mode}")
        log.info(f"Initial GPIO value: {self.initial_gpio_value}")
        log.info(f"Delay between GPIO actions (sec): {self.gpio_action_delay}")
        log.info(f"Open door GPIO actions: {[str(a) for a in self.gpio_actions]}")


def parse_gpio_actions(items: Iterable[Any]) -> Tuple[GPIOAction, ...]:
    """Convert a JSON-style action list into GPIOAction records.

    Each item is ``{"type": "write", "value": "HIGH"}`` or the short form
    ``{"write": "HIGH"}``. Names are case-insensitive.

    Raises:
        ConfigValidationError: On any malformed item
    """
    if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
        raise ConfigValidationError(f"GPIO_OPEN_ACTIONS must be a list, got {items!r}")

    actions = []
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ConfigValidationError(f"GPIO_OPEN_ACTIONS[{index}] must be an object, got {item!r}")

        if 'type' in item or 'value' in item:
            kind, value = item.get('type'), item.get('value')
        elif len(item) == 1:
            kind, value = next(iter(item.items()))
        else:
            raise ConfigValidationError(f"GPIO_OPEN_ACTIONS[{index}] needs 'type' and 'value': {item!r}")

        if not isinstance(kind, str) or not isinstance(value, str):
            raise ConfigValidationError(f"GPIO_OPEN_ACTIONS[{index}] type and value must be strings: {item!r}")

        try:
            actions.append(GPIOAction(kind.strip().lower(), value.strip().lower()))
        except ValueError as e:
            raise ConfigValidationError(f"GPIO_OPEN_ACTIONS[{index}]: {e}") from e
    return tuple(actions)
