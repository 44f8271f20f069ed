"""Shared utilities: logging, conversions and argument validation"""

from .logger import get_logger, setup_logging, configure_from_settings, FetchProgress
from .validation import require_argument, require_ids, is_blank

__all__ = [
    'get_logger', 'setup_logging', 'configure_from_settings', 'FetchProgress',
    'require_argument', 'require_ids', 'is_blank',
]
