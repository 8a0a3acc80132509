"""
Utility modules for the garage door services
"""

from .safe_logging import safe_log, SafeLoggingMixin

from .logging_config import (
    setup_logging, apply_common_filters,
    DEFAULT_LOG_FORMAT
)

__all__ = [
    'safe_log', 'SafeLoggingMixin',
    'setup_logging', 'apply_common_filters',
    'DEFAULT_LOG_FORMAT'
]
