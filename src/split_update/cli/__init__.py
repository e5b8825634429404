"""
Command-line interface for split updates.

Splits one large UPDATE statement into range-bounded transactions and runs
them against a MySQL-compatible server.
"""

import logging
import os
import sys

from utils.logging import shutdown_logging
from utils.tracing import initialize_tracing, shutdown_tracing

from split_update.errors import SplitUpdateError

from .commands import cmd_run, format_result, handle_error, run_split_update
from .credentials import create_runner, get_connection_config, get_log_level, setup_cli_logging
from .parser import create_parser

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the split-update CLI"""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_cli_logging(args)

    if os.getenv("OTLP_ENDPOINT"):
        initialize_tracing()

    try:
        exit_code = cmd_run(args)
    except SplitUpdateError as e:
        logger.error(str(e))
        exit_code = e.exit_code
    except Exception as e:
        logger.error(f"Split update failed: {e}")
        exit_code = 1
    finally:
        shutdown_tracing()
        shutdown_logging()

    sys.exit(exit_code)


__all__ = [
    'main',
    'cmd_run',
    'create_parser',
    'create_runner',
    'format_result',
    'get_connection_config',
    'get_log_level',
    'handle_error',
    'run_split_update',
    'setup_cli_logging',
]


if __name__ == '__main__':
    main()
