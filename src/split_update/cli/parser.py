"""
Command-line argument parser configuration.

This module sets up the argument parser for the split-update CLI tool.
Connection options follow the mysql command-line client, so ``-h`` is the
host and help is ``-?`` / ``--help``.
"""

import argparse

from split_update import __version__
from split_update.runner import DEFAULT_SPLIT_RANGE

DEFAULT_MY_CNF_PATH = "~/.my.cnf"


def create_parser() -> argparse.ArgumentParser:
    """
    Create and configure the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="split-update",
        usage="%(prog)s [--defaults-file CONF | -h HOST -u USER -p PASSWD] -D DATABASE -e QUERY",
        description="Split large update transaction query into small transaction queries.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
        epilog="""
Examples:
  # Update a large table 100000 rows at a time with 4 concurrent transactions
  split-update -h db1 -u admin -p secret -D shop -e "UPDATE orders SET archived = 1" --parallel 4

  # Read connection settings from ~/.my.cnf and only show the plan
  split-update -D shop -e "UPDATE orders SET archived = 1 WHERE created < '2020-01-01'" --dryrun -v

  # Use Vault for credentials, fall back to a single transaction if the table cannot be split
  split-update --use-vault -D shop -e "UPDATE settings SET enabled = 0" --fallback
        """
    )

    # ========== Connection ==========
    conn_group = parser.add_argument_group('connection')
    conn_group.add_argument(
        '-D', '--database',
        help='Database to use'
    )
    conn_group.add_argument(
        '-h', '--host',
        help='Connect to host (default: $MYSQL_HOST; without a host the defaults file is used)'
    )
    conn_group.add_argument(
        '-P', '--port',
        type=int,
        help='Port number to use for connection (default: $MYSQL_TCP_PORT or 3306)'
    )
    conn_group.add_argument(
        '-u', '--user',
        help='User for login (default: $MYSQL_USER)'
    )
    conn_group.add_argument(
        '-p', '--password',
        help='Password to use when connecting to server (default: $MYSQL_PWD)'
    )
    conn_group.add_argument(
        '--defaults-file',
        default=DEFAULT_MY_CNF_PATH,
        help=f'Read connection options from this file (default: {DEFAULT_MY_CNF_PATH})'
    )
    conn_group.add_argument(
        '--default-character-set',
        default='utf8mb4',
        help='Set the default character set (default: utf8mb4)'
    )
    conn_group.add_argument(
        '--use-vault',
        action='store_true',
        help='Fetch credentials from HashiCorp Vault (secret/database/mysql)'
    )

    # ========== Execution ==========
    exec_group = parser.add_argument_group('execution')
    exec_group.add_argument(
        '-e', '--execute',
        help='UPDATE query to execute'
    )
    exec_group.add_argument(
        '--parallel',
        type=int,
        default=1,
        help='Number of transactions executed concurrently (default: 1)'
    )
    exec_group.add_argument(
        '--max-retry',
        type=int,
        default=3,
        help='Maximum retry passes over failed ranges (default: 3)'
    )
    exec_group.add_argument(
        '--split',
        type=int,
        default=DEFAULT_SPLIT_RANGE,
        help=f'Width of each range of the split column (default: {DEFAULT_SPLIT_RANGE})'
    )
    exec_group.add_argument(
        '--shuffle',
        action='store_true',
        help='Execute the ranges in random order'
    )
    exec_group.add_argument(
        '-n', '--dryrun',
        action='store_true',
        help='Plan and report without sending any UPDATE'
    )
    exec_group.add_argument(
        '--fallback',
        action='store_true',
        help='Run the query as one transaction if it cannot be split. '
             'Unsafe on Galera / multi-primary clusters.'
    )

    # ========== Output ==========
    out_group = parser.add_argument_group('output')
    verbosity = out_group.add_mutually_exclusive_group()
    verbosity.add_argument(
        '--suppress',
        action='store_true',
        help='Only log errors; no progress bars'
    )
    verbosity.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Log every transaction'
    )
    verbosity.add_argument(
        '--debug',
        action='store_true',
        help='Debug logging'
    )
    verbosity.add_argument(
        '--trace',
        action='store_true',
        help='Debug logging including every SQL statement'
    )
    out_group.add_argument(
        '--log-json',
        action='store_true',
        help='Write logs as JSON lines'
    )
    out_group.add_argument(
        '--log-file',
        help='Also write logs to this file (rotated)'
    )
    out_group.add_argument(
        '--metrics-port',
        type=int,
        help='Expose Prometheus metrics on this port'
    )

    parser.add_argument(
        '-?', '--help',
        action='help',
        help='Print help message and exit'
    )
    parser.add_argument(
        '-V', '--version',
        action='version',
        version=f'%(prog)s {__version__}',
        help='Print only the version'
    )

    return parser
