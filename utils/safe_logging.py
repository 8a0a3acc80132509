#!/usr/bin/env python3.12
"""Safe logging utilities for timer threads and service shutdown.

Timer callbacks and MQTT network threads can outlive the handlers they log
to: at interpreter exit, or when pytest tears down its capture streams, a
plain ``logger.info`` from a daemon thread raises "I/O operation on closed
file". The helpers here check that a usable handler exists somewhere up the
logger hierarchy before emitting, and swallow logging errors during shutdown.
"""

import logging
import sys
import threading
from typing import Iterator, Optional


# Thread-local storage to prevent recursive logging during shutdown
_thread_local = threading.local()


def _is_handler_usable(handler: logging.Handler) -> bool:
    """Check if a logging handler is usable and not closed.

    Args:
        handler: The logging handler to check

    Returns:
        True if the handler can be safely used, False otherwise
    """
    try:
        # StreamHandler and FileHandler
        if hasattr(handler, 'stream'):
            stream = getattr(handler, 'stream', None)
            if stream is None:
                return False
            if getattr(stream, 'closed', False):
                return False
            if stream not in (sys.stdout, sys.stderr) and hasattr(stream, 'writable'):
                return stream.writable()
            return True

        # NullHandler
        if isinstance(handler, logging.NullHandler):
            return True

        # Unknown handler type - assume usable if it has emit method
        return callable(getattr(handler, 'emit', None))

    except (ValueError, OSError):
        # If any check fails, consider handler unusable
        return False


def _effective_handlers(logger: logging.Logger) -> Iterator[logging.Handler]:
    current: Optional[logging.Logger] = logger
    while current is not None:
        yield from current.handlers
        if not current.propagate:
            return
        current = current.parent


def safe_log(logger: Optional[logging.Logger], level: str, message: str,
             exc_info: bool = False) -> None:
    """Safely log a message with comprehensive checks.

    Args:
        logger: Logger instance to use (or None)
        level: Log level as string (e.g., 'info', 'debug', 'error')
        message: Message to log
        exc_info: Whether to include exception information
    """
    # Prevent recursive logging attempts during shutdown
    if getattr(_thread_local, 'in_safe_log', False):
        return

    _thread_local.in_safe_log = True

    try:
        if not isinstance(logger, logging.Logger) or logger.disabled:
            return

        # Check if logging level would actually log this message
        numeric_level = getattr(logging, level.upper(), logging.INFO)
        if not logger.isEnabledFor(numeric_level):
            return

        # lastResort covers loggers with no handlers anywhere in the chain
        handlers = list(_effective_handlers(logger)) or [logging.lastResort]
        if not any(h is not None and _is_handler_usable(h) for h in handlers):
            return

        logger.log(numeric_level, message, exc_info=exc_info)

    except (ValueError, AttributeError, OSError, RuntimeError, KeyError):
        # ValueError: I/O operation on closed file
        # RuntimeError: dictionary changed size during iteration
        # KeyError: logger might have been removed from logging registry
        pass
    finally:
        _thread_local.in_safe_log = False


class SafeLoggingMixin:
    """Mixin class that provides safe logging capability to any class.

    Classes using this mixin should have a 'logger' attribute that is a
    logging.Logger instance.

    Example:
        class MyService(SafeLoggingMixin):
            def __init__(self):
                self.logger = logging.getLogger(__name__)

            def some_method(self):
                self._safe_log('info', 'This is a safe log message')
    """

    def _safe_log(self, level: str, message: str, exc_info: bool = False) -> None:
        """Safely log a message through ``self.logger``.

        Args:
            level: Log level as string (e.g., 'info', 'debug', 'error')
            message: Message to log
            exc_info: Whether to include exception information
        """
        logger = getattr(self, 'logger', None)
        safe_log(logger, level, message, exc_info)
