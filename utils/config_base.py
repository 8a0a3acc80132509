#!/usr/bin/env python3.12
"""Base configuration management for the garage door services.

This module provides a base class and utilities for consistent configuration
management. It handles:
- Environment variable loading with type conversion
- Explicit override mappings (config files, tests) taking precedence over env
- Value sanitization with min/max clamping and allowed-value fallbacks
- Configuration export for debugging and backup

Key Features:
    - Schema-based validation with detailed error messages
    - Automatic type conversion from environment strings
    - Support for complex types (lists, dicts) via JSON parsing
    - Legacy key aliases so older camelCase config files keep working
    - Export to JSON/YAML for documentation and debugging

Thread Safety:
    All configuration classes are immutable after initialization and thread-safe
    for read access. Configuration should not be modified at runtime.
"""

import os
import json
import math
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union, Type
from abc import ABC
import yaml

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


# Name used by the door engine and service entry point
ConfigurationError = ConfigValidationError


_MISSING = object()


class ConfigSchema:
    """Schema definition for configuration values.

    Attributes:
        type: Python type (str, int, float, bool, list, dict)
        required: Whether the value must be provided
        default: Default value if not provided
        min: Minimum value (for numeric types)
        max: Maximum value (for numeric types)
        choices: List of allowed values; anything else falls back to default
        aliases: Alternative keys accepted in override mappings
        description: Human-readable description
    """

    def __init__(self,
                 type: Type,
                 required: bool = False,
                 default: Any = None,
                 min: Optional[Union[int, float]] = None,
                 max: Optional[Union[int, float]] = None,
                 choices: Optional[List[Any]] = None,
                 aliases: Sequence[str] = (),
                 description: str = ""):
        self.type = type
        self.required = required
        self.default = default
        self.min = min
        self.max = max
        self.choices = choices
        self.aliases = tuple(aliases)
        self.description = description


class ConfigBase(ABC):
    """Base class for service configuration.

    Subclasses should:
    1. Define a SCHEMA class variable with ConfigSchema definitions
    2. Call super().__init__() in their __init__ method
    3. Optionally override validate() for structural checks

    Example:
        class MyServiceConfig(ConfigBase):
            SCHEMA = {
                'mqtt_broker': ConfigSchema(str, required=True, description="MQTT broker host"),
                'mqtt_port': ConfigSchema(int, default=1883, min=1, max=65535),
                'mode': ConfigSchema(str, default='none', choices=['none', 'self', 'force'])
            }
    """

    SCHEMA: Dict[str, ConfigSchema] = {}

    def __init__(self, env_prefix: str = "", overrides: Optional[Mapping[str, Any]] = None):
        """Initialize configuration from overrides and environment variables.

        Args:
            env_prefix: Optional prefix for environment variables (e.g., "GARAGE_")
            overrides: Optional mapping of values that win over the environment.
                Keys may be schema keys or any of their aliases.

        Raises:
            ConfigValidationError: If required values missing or validation fails
        """
        self.env_prefix = env_prefix
        self._overrides = dict(overrides or {})
        self._values = {}

        # Load and sanitize all schema-defined values
        for key, schema in self.SCHEMA.items():
            env_key = f"{env_prefix}{key.upper()}"
            value = self._load_value(env_key, schema, self._override_for(key, schema))
            self._values[key] = value
            # Set as instance attribute for easy access
            setattr(self, key, value)

        # Run validation
        self.validate()

    def _override_for(self, key: str, schema: ConfigSchema) -> Any:
        for candidate in (key, *schema.aliases):
            if candidate in self._overrides:
                return self._overrides[candidate]
        return _MISSING

    def _load_value(self, env_key: str, schema: ConfigSchema, override: Any = _MISSING) -> Any:
        """Load and convert a single configuration value.

        Args:
            env_key: Environment variable name
            schema: Schema definition for this value
            override: Value from the override mapping, if any

        Returns:
            Converted and sanitized value

        Raises:
            ConfigValidationError: If value cannot be converted
        """
        raw_value = os.getenv(env_key) if override is _MISSING else override

        # Handle required values
        if raw_value is None:
            if schema.required:
                raise ConfigValidationError(
                    f"Required configuration '{env_key}' not provided"
                )
            return schema.default

        value = self._convert(env_key, schema, raw_value)

        # Validate numeric ranges
        if schema.min is not None and value < schema.min:
            logger.warning(f"{env_key} value {value} below minimum {schema.min}, using minimum")
            value = schema.min
        if schema.max is not None and value > schema.max:
            logger.warning(f"{env_key} value {value} above maximum {schema.max}, using maximum")
            value = schema.max

        # Enumerated values fall back to the documented default
        if schema.choices is not None:
            if isinstance(value, str):
                value = value.strip().lower()
            if value not in schema.choices:
                if schema.default is None:
                    raise ConfigValidationError(
                        f"{env_key} value '{value}' not in allowed choices: {schema.choices}"
                    )
                logger.warning(
                    f"{env_key} value '{value}' not in allowed choices {schema.choices}, "
                    f"using default '{schema.default}'"
                )
                value = schema.default

        return value

    @staticmethod
    def _convert(env_key: str, schema: ConfigSchema, raw_value: Any) -> Any:
        try:
            if isinstance(raw_value, str):
                if schema.type == bool:
                    return raw_value.lower() in ('true', '1', 'yes', 'on')
                if schema.type in (list, dict):
                    value = json.loads(raw_value) if raw_value else schema.type()
                else:
                    value = schema.type(raw_value)
            elif schema.type in (int, float) and isinstance(raw_value, bool):
                raise ValueError("booleans are not numbers")
            elif schema.type in (list, dict):
                value = raw_value
            else:
                value = schema.type(raw_value)

            # JSON text and override mappings can both carry the wrong container
            if schema.type in (list, dict) and not isinstance(value, schema.type):
                raise ValueError(f"expected {schema.type.__name__}, got {type(value).__name__}")
            if schema.type == float and not math.isfinite(value):
                raise ValueError("value must be a finite number")
            return value
        except (ValueError, TypeError, json.JSONDecodeError) as e:
            raise ConfigValidationError(
                f"Cannot convert '{env_key}' value '{raw_value}' to {schema.type.__name__}: {e}"
            ) from e

    def validate(self):
        """Validate all configuration values.

        Subclasses should override this to add custom validation logic.
        This base implementation is called automatically during __init__.

        Raises:
            ConfigValidationError: If validation fails
        """
        pass

    def export(self, format: str = 'json', include_defaults: bool = True) -> str:
        """Export configuration in specified format.

        Args:
            format: 'json' or 'yaml'
            include_defaults: Include values that match defaults

        Returns:
            Serialized configuration string
        """
        export_data = {
            'service': self.__class__.__name__,
            'values': {}
        }

        for key, schema in self.SCHEMA.items():
            value = self._values[key]
            if include_defaults or value != schema.default:
                export_data['values'][key] = {
                    'value': value,
                    'type': schema.type.__name__,
                    'description': schema.description
                }

        if format == 'yaml':
            return yaml.dump(export_data, default_flow_style=False)
        else:
            return json.dumps(export_data, indent=2)

    def get_diff(self, other: 'ConfigBase') -> Dict[str, tuple]:
        """Get differences between this config and another.

        Args:
            other: Another ConfigBase instance to compare

        Returns:
            Dict of key -> (this_value, other_value) for differing values
        """
        diffs = {}
        for key in self.SCHEMA:
            if key in other.SCHEMA:
                this_val = self._values[key]
                other_val = other._values[key]
                if this_val != other_val:
                    diffs[key] = (this_val, other_val)
        return diffs


class SharedMQTTConfig(ConfigBase):
    """Shared MQTT configuration for MQTT-connected services."""

    SCHEMA = {
        'mqtt_enabled': ConfigSchema(
            bool,
            default=True,
            description="Connect to an MQTT broker"
        ),
        'mqtt_broker': ConfigSchema(
            str,
            default='localhost',
            description="MQTT broker hostname or IP"
        ),
        'mqtt_port': ConfigSchema(
            int,
            default=1883,
            min=1,
            max=65535,
            description="MQTT broker port"
        ),
        'mqtt_tls': ConfigSchema(
            bool,
            default=False,
            description="Enable TLS encryption for MQTT"
        ),
        'tls_ca_path': ConfigSchema(
            str,
            default='/mnt/data/certs/ca.crt',
            description="Path to CA certificate for TLS"
        ),
        'mqtt_username': ConfigSchema(
            str,
            default='',
            description="MQTT username (empty for anonymous)"
        ),
        'mqtt_password': ConfigSchema(
            str,
            default='',
            description="MQTT password"
        )
    }

    def validate(self):
        """Validate MQTT configuration."""
        # If TLS enabled, ensure CA path exists
        if self.mqtt_tls and not os.path.exists(self.tls_ca_path):
            logger.warning(f"TLS enabled but CA certificate not found at {self.tls_ca_path}")

        # Port 8883 is standard for MQTT over TLS
        if self.mqtt_tls and self.mqtt_port == 1883:
            logger.info("TLS enabled with standard non-TLS port 1883, consider using 8883")
