"""
Structured logging configuration for the reconciler

Provides JSON-formatted or colored console logging with contextual
information (table, side, page) attached through ``extra``.

Usage:
    from utils.logging import setup_logging, get_logger

    # Setup logging (call once at application startup)
    setup_logging(level="INFO", log_file="/var/log/reconcile/app.log")

    logger = get_logger(__name__)
    logger.info("Page compared", extra={"table_name": "player", "page": 3})
"""

from .config import configure_from_env, get_logger, setup_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "get_logger",
    "configure_from_env",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
