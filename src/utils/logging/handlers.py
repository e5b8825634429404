"""
Custom logging handlers and wrappers.

Provides ContextLogger for adding contextual information to log messages.
"""

import logging


class ContextLogger:
    """
    Logger wrapper that adds contextual information to all log messages

    Usage:
        logger = ContextLogger("split_update.runner", database="shop")
        logger.info("Session start", table="orders")
        # Output includes both database and table
    """

    def __init__(self, name: str, **context):
        """
        Initialize context logger

        Args:
            name: Logger name
            **context: Contextual key-value pairs to include in all logs
        """
        self.logger = logging.getLogger(name)
        self.context = context

    def _log(self, level: int, msg: str, *args, **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return

        extra = {**self.context, **kwargs}

        # stacklevel points the record at the caller of the level methods
        self.logger.log(level, msg, *args, extra=extra, stacklevel=3)

    def debug(self, msg: str, *args, **kwargs) -> None:
        """Log debug message with context"""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        """Log info message with context"""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        """Log warning message with context"""
        self._log(logging.WARNING, msg, *args, **kwargs)
