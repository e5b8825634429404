"""
Logging configuration for split-update.

Provides setup functions for configuring application-wide logging
with support for file rotation, console output, and JSON formatting.
"""

import logging
import logging.handlers
import os
import sys

from .formatters import ConsoleFormatter, JSONFormatter


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    console_output: bool = True,
    json_format: bool = False,
    app_name: str = "split-update",
    max_bytes: int = 100 * 1024 * 1024,  # 100MB
    backup_count: int = 5,
    stream=None,
) -> None:
    """
    Configure logging for the application

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (if None, file logging is disabled)
        console_output: Whether to output to console
        json_format: Use JSON format for both console and file logs
        app_name: Application name for log context
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated log files to keep
        stream: Console stream (default: sys.stderr)
    """
    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    if console_output:
        stream = stream if stream is not None else sys.stderr
        console_handler = logging.StreamHandler(stream)
        console_handler.setLevel(numeric_level)

        if json_format:
            console_handler.setFormatter(
                JSONFormatter(
                    include_timestamp=True,
                    include_hostname=True,
                    app_name=app_name,
                )
            )
        else:
            console_handler.setFormatter(ConsoleFormatter(use_colors=True, stream=stream))

        root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)

        if json_format:
            file_handler.setFormatter(
                JSONFormatter(
                    include_timestamp=True,
                    include_hostname=True,
                    app_name=app_name,
                )
            )
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )

        root_logger.addHandler(file_handler)

    # Set levels for noisy third-party libraries
    logging.getLogger("pymysql").setLevel(max(numeric_level, logging.WARNING))
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("opentelemetry").setLevel(logging.ERROR)

    logger = logging.getLogger(__name__)
    logger.debug(
        f"Logging initialized: level={level}, file={log_file or 'none'}, "
        f"console={console_output}, json={json_format}"
    )


def shutdown_logging() -> None:
    """
    Shutdown logging and release all file handles.

    Call this during application shutdown to close RotatingFileHandler
    file handles.
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.close()
        except OSError:
            pass
        root_logger.removeHandler(handler)

    logging.shutdown()
