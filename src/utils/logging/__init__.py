"""
Structured logging configuration for split-update

Provides console or JSON formatted logging with contextual information.

Usage:
    from utils.logging import ContextLogger, setup_logging

    # Setup logging (call once at application startup)
    setup_logging(level="INFO", log_file="/var/log/split-update/app.log")

    # Log with context
    logger = ContextLogger(__name__, database="shop")
    logger.info("Session start", table="orders")
"""

from .config import setup_logging, shutdown_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
