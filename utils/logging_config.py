#!/usr/bin/env python3
"""Process-wide logging setup for the garage door service.

``main()`` calls :func:`setup_logging` once before the configuration is
built, so warnings raised while sanitizing env values are already visible,
and then :func:`apply_common_filters` to quiet the MQTT client library.

Attributes:
    DEFAULT_LOG_FORMAT: Line format shared by every handler
    DEFAULT_LOG_LEVEL: Level used when LOG_LEVEL is unset or invalid
"""

import os
import sys
import logging
from typing import Dict, List, Optional
from logging import Logger, Handler, StreamHandler


DEFAULT_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

DEFAULT_LOG_LEVEL = "INFO"

# Third-party loggers that flood the output at INFO/DEBUG
NOISY_LOGGERS: Dict[str, str] = {
    "paho.mqtt": "WARNING",
}


def _resolve_level(name: str) -> Optional[int]:
    level = getattr(logging, name.upper(), None)
    return level if isinstance(level, int) else None


def setup_logging(
    service_name: str,
    log_level: Optional[str] = None,
    format_string: Optional[str] = None,
    force_unbuffered: bool = True,
    handlers: Optional[List[Handler]] = None
) -> Logger:
    """Configure the root logger and return the service logger.

    Args:
        service_name: Logger name for the service, e.g. "garage_door"
        log_level: Level name; falls back to LOG_LEVEL, then INFO
        format_string: Format for the default stdout handler
        force_unbuffered: Switch stdout to line buffering so a supervisor
            sees door transitions as they happen
        handlers: Replace the default stdout handler

    Returns:
        The logger named ``service_name``
    """
    requested = log_level or os.environ.get('LOG_LEVEL', DEFAULT_LOG_LEVEL)
    numeric_level = _resolve_level(requested)
    if numeric_level is None:
        print(f"Warning: Invalid log level '{requested}', using {DEFAULT_LOG_LEVEL}", file=sys.stderr)
        numeric_level = _resolve_level(DEFAULT_LOG_LEVEL)

    format_string = format_string or DEFAULT_LOG_FORMAT
    if handlers is None:
        handler = StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(format_string))
        handlers = [handler]

    logging.basicConfig(level=numeric_level, format=format_string, handlers=handlers, force=True)

    logger = logging.getLogger(service_name)
    logger.setLevel(numeric_level)

    if force_unbuffered and hasattr(sys.stdout, 'reconfigure'):
        try:
            sys.stdout.reconfigure(line_buffering=True)
        except (ValueError, OSError):
            # Streams replaced by test runners may not support it
            pass

    logger.info(f"Logging configured for {service_name} at {logging.getLevelName(numeric_level)} level")
    return logger


def apply_common_filters(levels: Optional[Dict[str, str]] = None) -> None:
    """Raise the level of noisy library loggers.

    Args:
        levels: Logger name to level name; defaults to NOISY_LOGGERS
    """
    for module_name, level in (levels or NOISY_LOGGERS).items():
        numeric_level = _resolve_level(level)
        if numeric_level is None:
            logging.warning(f"Invalid log level '{level}' for module {module_name}")
            continue
        logging.getLogger(module_name).setLevel(numeric_level)
