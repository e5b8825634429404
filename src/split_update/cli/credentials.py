"""
Credential management and logging setup for CLI.

This module resolves MySQL connection settings from Vault, command-line
options, environment variables or a my.cnf defaults file, and configures
logging from the verbosity flags.
"""

import argparse
import logging
import os
from typing import Any

from utils.logging import setup_logging
from utils.vault_client import VaultClient

from split_update.errors import ConfigurationError
from split_update.runner import Runner

logger = logging.getLogger(__name__)


def get_log_level(args: argparse.Namespace) -> str:
    """Map the verbosity flags to a logging level name."""
    if args.suppress:
        return "ERROR"
    if args.trace or args.debug:
        return "DEBUG"
    if args.verbose:
        return "INFO"
    return "WARNING"


def show_progress(args: argparse.Namespace) -> bool:
    """Progress bars are drawn only at the default verbosity."""
    return not (args.suppress or args.verbose or args.debug or args.trace)


def setup_cli_logging(args: argparse.Namespace) -> None:
    """
    Setup logging configuration

    Args:
        args: Parsed command-line arguments
    """
    setup_logging(
        level=get_log_level(args),
        log_file=args.log_file,
        json_format=args.log_json,
    )


def get_connection_config(args: argparse.Namespace) -> dict[str, Any]:
    """
    Get MySQL connection settings from Vault or options/environment

    Args:
        args: Parsed command-line arguments

    Returns:
        Dictionary with database, charset and either host/port/user/password
        or defaults_file

    Raises:
        ConfigurationError: If required settings are missing
    """
    if args.use_vault:
        try:
            creds = VaultClient().get_mysql_credentials("mysql")
        except Exception as e:
            raise ConfigurationError(f"Failed to fetch credentials from Vault: {e}") from e

        config = {
            "database": args.database or creds.get("database"),
            "host": creds["host"],
            "port": creds["port"],
            "user": creds["username"],
            "password": creds["password"],
            "charset": creds.get("charset", args.default_character_set),
        }
        logger.info("Successfully fetched credentials from Vault")
    else:
        host = args.host or os.getenv("MYSQL_HOST")
        if host:
            config = {
                "database": args.database,
                "host": host,
                "port": int(args.port or os.getenv("MYSQL_TCP_PORT", "3306")),
                "user": args.user or os.getenv("MYSQL_USER"),
                "password": args.password or os.getenv("MYSQL_PWD"),
                "charset": args.default_character_set,
            }
            if not config["user"]:
                raise ConfigurationError("Database user not provided")
        else:
            defaults_file = os.path.expanduser(args.defaults_file)
            if not os.path.isfile(defaults_file):
                raise ConfigurationError(
                    f"No host given and defaults file not found: {defaults_file}"
                )
            config = {
                "database": args.database,
                "defaults_file": defaults_file,
                "charset": args.default_character_set,
            }

    if not config["database"]:
        raise ConfigurationError("Database name not provided (-D/--database)")

    return config


def create_runner(args: argparse.Namespace, config: dict[str, Any]) -> Runner:
    """Build a Runner from resolved connection settings and execution flags."""
    options = {
        "split_range": args.split,
        "dry_run": args.dryrun,
        "shuffle": args.shuffle,
        "trace_sql": args.trace,
    }
    if "defaults_file" in config:
        return Runner.from_defaults_file(
            config["database"],
            config["defaults_file"],
            charset=config["charset"],
            **options,
        )
    return Runner.from_options(
        config["database"],
        config["host"],
        port=config["port"],
        user=config["user"],
        password=config["password"],
        charset=config["charset"],
        **options,
    )
