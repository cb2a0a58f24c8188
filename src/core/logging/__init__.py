"""
Structured logging module.

Provides JSON logging with context propagation across async boundaries.

Import directly from sub-modules:
    from core.logging.setup import get_logger, setup_logging
    from core.logging.utilities import log_with_context, log_exception
    from core.logging.context import set_log_context
"""

from core.logging.context import clear_log_context, get_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter
from core.logging.setup import generate_run_id, get_logger, setup_logging
from core.logging.utilities import LoggedClass, log_exception, log_with_context

__all__ = [
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "JSONFormatter",
    "ConsoleFormatter",
    "setup_logging",
    "get_logger",
    "generate_run_id",
    "log_with_context",
    "log_exception",
    "LoggedClass",
]
