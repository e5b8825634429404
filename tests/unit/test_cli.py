"""
Unit tests for CLI module

Tests for the command-line interface functionality including
argument parsing, credential handling, fallback and exit codes.
"""

from unittest.mock import MagicMock, patch

import pytest
from pymysql import err as mysql_errors

from conftest import SETTINGS_DDL, FakeMySQLServer
from split_update import __version__
from split_update.cli import (
    cmd_run,
    create_parser,
    create_runner,
    format_result,
    get_connection_config,
    get_log_level,
    handle_error,
    main,
)
from split_update.cli.credentials import show_progress
from split_update.errors import (
    ConfigurationError,
    InvalidUpdateQueryError,
    NoUsableColumnError,
    TransactionsFailedError,
)


def parse(*argv: str):
    return create_parser().parse_args(list(argv))


class TestParser:
    """Tests for create_parser"""

    def test_defaults(self):
        args = parse()

        assert args.parallel == 1
        assert args.max_retry == 3
        assert args.split == 100000
        assert args.defaults_file == "~/.my.cnf"
        assert args.default_character_set == "utf8mb4"
        assert args.port is None
        assert args.fallback is False
        assert args.dryrun is False
        assert args.use_vault is False

    def test_mysql_style_short_options(self):
        args = parse(
            "-h", "db1", "-P", "3307", "-u", "admin", "-p", "secret",
            "-D", "shop", "-e", "UPDATE orders SET archived = 1", "-n", "-v",
        )

        assert (args.host, args.port, args.user, args.password) == ("db1", 3307, "admin", "secret")
        assert args.database == "shop"
        assert args.execute == "UPDATE orders SET archived = 1"
        assert args.dryrun is True
        assert args.verbose is True

    def test_help_uses_question_mark(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse("-?")

        assert exc_info.value.code == 0
        assert "Split large update transaction query" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse("-V")

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_verbosity_flags_are_exclusive(self):
        with pytest.raises(SystemExit) as exc_info:
            parse("--debug", "--suppress")

        assert exc_info.value.code == 2


class TestVerbosity:
    """Tests for get_log_level and show_progress"""

    @pytest.mark.parametrize("flag, level, progress", [
        (None, "WARNING", True),
        ("--suppress", "ERROR", False),
        ("-v", "INFO", False),
        ("--debug", "DEBUG", False),
        ("--trace", "DEBUG", False),
    ])
    def test_mapping(self, flag, level, progress):
        args = parse(flag) if flag else parse()

        assert get_log_level(args) == level
        assert show_progress(args) is progress


class TestGetConnectionConfig:
    """Tests for get_connection_config"""

    def test_from_options(self):
        args = parse("-h", "db1", "-u", "admin", "-p", "secret", "-D", "shop")

        config = get_connection_config(args)

        assert config == {
            "database": "shop",
            "host": "db1",
            "port": 3306,
            "user": "admin",
            "password": "secret",
            "charset": "utf8mb4",
        }

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("MYSQL_HOST", "db2")
        monkeypatch.setenv("MYSQL_TCP_PORT", "3310")
        monkeypatch.setenv("MYSQL_USER", "envuser")
        monkeypatch.setenv("MYSQL_PWD", "envpass")

        config = get_connection_config(parse("-D", "shop"))

        assert (config["host"], config["port"]) == ("db2", 3310)
        assert (config["user"], config["password"]) == ("envuser", "envpass")

    def test_options_override_environment(self, monkeypatch):
        monkeypatch.setenv("MYSQL_HOST", "db2")
        monkeypatch.setenv("MYSQL_USER", "envuser")

        config = get_connection_config(parse("-h", "db1", "-u", "admin", "-P", "3307", "-D", "shop"))

        assert (config["host"], config["user"], config["port"]) == ("db1", "admin", 3307)

    def test_missing_user(self):
        with pytest.raises(ConfigurationError, match="user"):
            get_connection_config(parse("-h", "db1", "-D", "shop"))

    def test_defaults_file(self, tmp_path):
        my_cnf = tmp_path / "my.cnf"
        my_cnf.write_text("[client]\nhost=db1\nuser=admin\npassword=secret\n")

        config = get_connection_config(parse("--defaults-file", str(my_cnf), "-D", "shop"))

        assert config == {"database": "shop", "defaults_file": str(my_cnf), "charset": "utf8mb4"}

    def test_missing_defaults_file(self, tmp_path):
        missing = tmp_path / "nope.cnf"

        with pytest.raises(ConfigurationError) as exc_info:
            get_connection_config(parse("--defaults-file", str(missing), "-D", "shop"))

        assert exc_info.value.exit_code == 1
        assert str(missing) in str(exc_info.value)

    def test_missing_database(self):
        with pytest.raises(ConfigurationError, match="Database name"):
            get_connection_config(parse("-h", "db1", "-u", "admin"))

    @patch("split_update.cli.credentials.VaultClient")
    def test_from_vault(self, mock_vault_client_class):
        mock_vault_client = MagicMock()
        mock_vault_client_class.return_value = mock_vault_client
        mock_vault_client.get_mysql_credentials.return_value = {
            "host": "mysql.example.com",
            "port": 3306,
            "username": "vaultuser",
            "password": "vaultpass",
            "database": "shop",
        }

        config = get_connection_config(parse("--use-vault"))

        mock_vault_client.get_mysql_credentials.assert_called_once_with("mysql")
        assert config == {
            "database": "shop",
            "host": "mysql.example.com",
            "port": 3306,
            "user": "vaultuser",
            "password": "vaultpass",
            "charset": "utf8mb4",
        }

    @patch("split_update.cli.credentials.VaultClient")
    def test_vault_failure(self, mock_vault_client_class):
        mock_vault_client_class.return_value.get_mysql_credentials.side_effect = ValueError(
            "Secret not found at path: secret/data/database/mysql"
        )

        with pytest.raises(ConfigurationError, match="Failed to fetch credentials from Vault"):
            get_connection_config(parse("--use-vault", "-D", "shop"))


class TestCreateRunner:
    """Tests for create_runner"""

    @patch("split_update.runner.MySQLConnectionPool")
    def test_with_options(self, mock_pool_class):
        args = parse("--split", "5000", "--shuffle", "-n", "--trace")
        config = {
            "database": "shop", "host": "db1", "port": 3307,
            "user": "admin", "password": "secret", "charset": "latin1",
        }

        runner = create_runner(args, config)

        kwargs = mock_pool_class.call_args.kwargs
        assert (kwargs["host"], kwargs["port"], kwargs["user"]) == ("db1", 3307, "admin")
        assert kwargs["charset"] == "latin1"
        assert runner.split_range == 5000
        assert runner.shuffle is True
        assert runner.dry_run is True
        assert runner.trace_sql is True

    @patch("split_update.runner.MySQLConnectionPool")
    def test_with_defaults_file(self, mock_pool_class):
        config = {"database": "shop", "defaults_file": "/etc/my.cnf", "charset": "utf8mb4"}

        runner = create_runner(parse(), config)

        assert mock_pool_class.call_args.kwargs["defaults_file"] == "/etc/my.cnf"
        assert runner.database == "shop"

    @patch("split_update.runner.MySQLConnectionPool")
    def test_invalid_split_closes_pool(self, mock_pool_class):
        config = {"database": "shop", "defaults_file": "/etc/my.cnf", "charset": "utf8mb4"}

        with pytest.raises(ConfigurationError):
            create_runner(parse("--split", "0"), config)

        mock_pool_class.return_value.close.assert_called_once()


class TestHandleError:
    """Tests for handle_error"""

    def test_no_usable_column_without_fallback(self):
        runner = MagicMock()

        code = handle_error(runner, parse("-e", "UPDATE t SET x = 1"), NoUsableColumnError("shop.t"))

        assert code == 11
        runner.simple_update.assert_not_called()

    def test_invalid_query_without_fallback(self):
        code = handle_error(MagicMock(), parse(), InvalidUpdateQueryError("execute query has limit, its invalid"))

        assert code == 10

    @pytest.mark.parametrize("error", [
        NoUsableColumnError("shop.t"),
        InvalidUpdateQueryError("execute query has limit, its invalid"),
    ])
    def test_fallback_runs_simple_update(self, error):
        runner = MagicMock()

        code = handle_error(runner, parse("--fallback", "-e", "UPDATE t SET x = 1"), error)

        assert code == 0
        runner.simple_update.assert_called_once_with("UPDATE t SET x = 1")

    def test_fallback_failure(self):
        runner = MagicMock()
        runner.simple_update.side_effect = mysql_errors.OperationalError(1205, "Lock wait timeout")

        code = handle_error(runner, parse("--fallback", "-e", "UPDATE t SET x = 1"), NoUsableColumnError("shop.t"))

        assert code == 1

    def test_transactions_failed_never_falls_back(self):
        runner = MagicMock()
        error = TransactionsFailedError("shop.t", 2, retry_session=None)

        code = handle_error(runner, parse("--fallback", "-e", "UPDATE t SET x = 1"), error)

        assert code == 1
        runner.simple_update.assert_not_called()

    def test_unexpected_error(self):
        assert handle_error(MagicMock(), parse(), RuntimeError("pool exhausted")) == 1


class TestCmdRun:
    """Tests for cmd_run with an in-memory server"""

    def run(self, runner, *argv):
        args = parse("-D", "shop", "--suppress", *argv)
        with patch("split_update.cli.commands.get_connection_config", return_value={}), \
                patch("split_update.cli.commands.create_runner", return_value=runner):
            return cmd_run(args)

    def test_successful_run(self, make_runner, capsys):
        runner = make_runner()

        code = self.run(runner, "-e", "UPDATE orders SET archived = 1", "--parallel", "2")

        assert code == 0
        assert capsys.readouterr().out.strip() == (
            "RESULT: 3 queries affected and 250000 rows updated. 0 queries failed."
        )
        assert runner.pool.closed

    def test_retry_counts_in_result(self, make_runner, fake_server, capsys):
        fake_server.fail(
            lambda sql: "BETWEEN 100000 AND" in sql,
            mysql_errors.OperationalError(1213, "Deadlock found"),
        )
        runner = make_runner()

        code = self.run(runner, "-e", "UPDATE orders SET archived = 1", "--parallel", "3")

        assert code == 0
        assert len(runner.sessions) == 2
        assert capsys.readouterr().out.strip() == (
            "RESULT: 3 queries affected and 250000 rows updated. 0 queries failed."
        )

    def test_exhausted_retries(self, make_runner, fake_server, capsys):
        fake_server.fail(
            lambda sql: "BETWEEN 1 AND" in sql,
            mysql_errors.OperationalError(1213, "Deadlock found"),
            times=None,
        )
        runner = make_runner()

        code = self.run(runner, "-e", "UPDATE orders SET archived = 1", "--max-retry", "1")

        assert code == 1
        assert capsys.readouterr().out.strip() == (
            "RESULT: 2 queries affected and 150001 rows updated. 1 queries failed."
        )

    def test_fallback_to_simple_update(self, make_runner, capsys):
        runner = make_runner(FakeMySQLServer(ddl=SETTINGS_DDL, min_id=1, max_id=12))

        code = self.run(runner, "-e", "UPDATE settings SET enabled = 0", "--fallback")

        assert code == 0
        assert runner.pool.server.updates() == ["UPDATE settings SET enabled = 0"]
        assert len(runner.sessions) == 1
        assert runner.sessions[0].result().plan == 1
        assert capsys.readouterr().out.strip() == (
            "RESULT: 1 queries affected and 12 rows updated. 0 queries failed."
        )

    def test_no_usable_column_exit_code(self, make_runner, capsys):
        runner = make_runner(FakeMySQLServer(ddl=SETTINGS_DDL))

        code = self.run(runner, "-e", "UPDATE settings SET enabled = 0")

        assert code == 11
        assert runner.pool.server.updates() == []
        assert "RESULT: 0 queries affected" in capsys.readouterr().out

    def test_missing_query(self):
        with pytest.raises(ConfigurationError, match="No query given"):
            cmd_run(parse("-D", "shop"))

    @pytest.mark.parametrize("option, message", [
        ("--parallel=0", "--parallel must be at least 1, got 0"),
        ("--parallel=-2", "--parallel must be at least 1, got -2"),
        ("--max-retry=-1", "--max-retry must not be negative, got -1"),
    ])
    def test_invalid_limits_rejected_before_connecting(self, option, message):
        args = parse("-D", "shop", "-e", "UPDATE orders SET archived = 1", option)
        create_runner = MagicMock()

        with patch("split_update.cli.commands.get_connection_config") as get_config, \
                patch("split_update.cli.commands.create_runner", create_runner):
            with pytest.raises(ConfigurationError) as exc_info:
                cmd_run(args)

        assert str(exc_info.value) == message
        assert exc_info.value.exit_code == 1
        get_config.assert_not_called()
        create_runner.assert_not_called()

    def test_zero_retries_allowed(self, make_runner):
        code = self.run(make_runner(), "-e", "UPDATE orders SET archived = 1", "--max-retry", "0")

        assert code == 0

    @patch("split_update.cli.commands.start_metrics_server")
    def test_metrics_port(self, mock_start, make_runner):
        self.run(make_runner(), "-e", "UPDATE orders SET archived = 1", "--metrics-port", "9100")

        mock_start.assert_called_once_with(9100)


class TestFormatResult:

    def test_without_sessions(self, make_runner):
        assert format_result(make_runner()) == (
            "RESULT: 0 queries affected and 0 rows updated. 0 queries failed."
        )


@patch("split_update.cli.shutdown_logging")
@patch("split_update.cli.setup_cli_logging")
class TestMain:
    """Tests for main entry point"""

    @patch("split_update.cli.cmd_run", return_value=0)
    def test_success(self, mock_cmd_run, mock_setup, mock_shutdown):
        with pytest.raises(SystemExit) as exc_info:
            main(["-D", "shop", "-e", "UPDATE t SET x = 1"])

        assert exc_info.value.code == 0
        mock_setup.assert_called_once()
        mock_shutdown.assert_called_once()

    @patch("split_update.cli.cmd_run", side_effect=InvalidUpdateQueryError("execute query has limit, its invalid"))
    def test_split_update_error_exit_code(self, mock_cmd_run, mock_setup, mock_shutdown):
        with pytest.raises(SystemExit) as exc_info:
            main(["-D", "shop", "-e", "UPDATE t SET x = 1 LIMIT 1"])

        assert exc_info.value.code == 10

    @patch("split_update.cli.cmd_run", side_effect=ConfigurationError("Database name not provided"))
    def test_configuration_error(self, mock_cmd_run, mock_setup, mock_shutdown):
        with pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1

    @patch("split_update.cli.cmd_run", side_effect=mysql_errors.OperationalError(2003, "Can't connect"))
    def test_unexpected_error(self, mock_cmd_run, mock_setup, mock_shutdown):
        with pytest.raises(SystemExit) as exc_info:
            main(["-D", "shop", "-e", "UPDATE t SET x = 1"])

        assert exc_info.value.code == 1
