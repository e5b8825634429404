"""
Pytest configuration and fixtures for split-update tests.
Provides an in-memory MySQL double and a Runner bound to it.
"""

import os
import re
import threading
import time
from collections.abc import Callable
from pathlib import Path

import pytest

from split_update.runner import Runner
from utils.db_pool import BaseConnectionPool

ORDERS_DDL = """CREATE TABLE `orders` (
  `id` int(10) unsigned NOT NULL AUTO_INCREMENT,
  `customer_id` int(10) unsigned NOT NULL,
  `status` varchar(16) NOT NULL DEFAULT 'new',
  `archived` tinyint(1) NOT NULL DEFAULT '0',
  PRIMARY KEY (`id`),
  KEY `idx_customer` (`customer_id`)
) ENGINE=InnoDB AUTO_INCREMENT=250001 DEFAULT CHARSET=utf8mb4"""

SETTINGS_DDL = """CREATE TABLE `settings` (
  `name` varchar(64) NOT NULL,
  `value` text,
  `enabled` tinyint(1) NOT NULL DEFAULT '1'
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"""

BETWEEN = re.compile(r"BETWEEN (-?\d+) AND (-?\d+)")


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


class FakeMySQLServer:
    """
    Shared state behind every FakeConnection.

    Rows are the integers [min_id, max_id] of the split column. An UPDATE
    affects the rows inside its BETWEEN bounds (all rows when unbounded).
    """

    def __init__(self, ddl: str = ORDERS_DDL, min_id: int | None = 1, max_id: int | None = 250000):
        self.ddl = ddl
        self.min_id = min_id
        self.max_id = max_id
        self.statements: list[str] = []
        self.update_delay = 0.0
        self.failures: list[tuple[Callable[[str], bool], Exception, int | None]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.commits = 0
        self.rollbacks = 0
        self._lock = threading.Lock()

    def fail(self, predicate: Callable[[str], bool], error: Exception, times: int | None = 1) -> None:
        """Make UPDATEs matching predicate raise error (times=None: always)."""
        self.failures.append((predicate, error, times))

    def updates(self) -> list[str]:
        with self._lock:
            return [sql for sql in self.statements if sql.upper().startswith("UPDATE")]

    def _record(self, sql: str) -> None:
        with self._lock:
            self.statements.append(sql)

    def _check_failures(self, sql: str) -> None:
        with self._lock:
            for i, (predicate, error, times) in enumerate(self.failures):
                if not predicate(sql):
                    continue
                if times is None:
                    raise error
                if times > 0:
                    self.failures[i] = (predicate, error, times - 1)
                    raise error

    def rows_matching(self, sql: str) -> int:
        if self.min_id is None:
            return 0
        match = BETWEEN.search(sql)
        if not match:
            return self.max_id - self.min_id + 1
        start, end = int(match.group(1)), int(match.group(2))
        return max(0, min(end, self.max_id) - max(start, self.min_id) + 1)

    def run_update(self, sql: str) -> int:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.update_delay:
                time.sleep(self.update_delay)
            self._check_failures(sql)
            return self.rows_matching(sql)
        finally:
            with self._lock:
                self.in_flight -= 1


class FakeCursor:
    def __init__(self, server: FakeMySQLServer):
        self.server = server
        self._row = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, sql: str) -> int:
        self.server._record(sql)
        upper = sql.upper()
        if upper.startswith("SHOW CREATE TABLE"):
            self._row = ("table", self.server.ddl)
            return 1
        if upper.startswith("SELECT MIN"):
            self._row = (self.server.min_id, self.server.max_id)
            return 1
        return self.server.run_update(sql)

    def fetchone(self):
        return self._row


class FakeConnection:
    def __init__(self, server: FakeMySQLServer):
        self.server = server
        self.open = True

    def cursor(self) -> FakeCursor:
        return FakeCursor(self.server)

    def begin(self) -> None:
        pass

    def commit(self) -> None:
        with self.server._lock:
            self.server.commits += 1

    def rollback(self) -> None:
        with self.server._lock:
            self.server.rollbacks += 1

    def ping(self, reconnect: bool = False) -> None:
        pass

    def close(self) -> None:
        self.open = False


class FakeMySQLPool(BaseConnectionPool):
    """BaseConnectionPool handing out FakeConnections."""

    def __init__(self, server: FakeMySQLServer, **kwargs):
        self.server = server
        self.connections_created = 0
        super().__init__(**kwargs)

    def _create_connection(self):
        self.connections_created += 1
        return FakeConnection(self.server)

    def _is_connection_healthy(self, conn):
        return conn.open

    def _close_connection(self, conn):
        conn.close()

    def _get_db_type(self):
        return "fake"


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def fake_server() -> FakeMySQLServer:
    return FakeMySQLServer()


@pytest.fixture
def make_runner(fake_server):
    """Factory for Runners bound to the fake server; closed after the test."""
    runners = []

    def factory(server: FakeMySQLServer | None = None, **kwargs) -> Runner:
        pool = FakeMySQLPool(server or fake_server, min_size=1, max_size=1, pool_name="test")
        runner = Runner("shop", pool, **kwargs)
        runners.append(runner)
        return runner

    yield factory

    for runner in runners:
        runner.close()


@pytest.fixture(autouse=True)
def set_test_env_vars(monkeypatch) -> None:
    """Isolate tests from the caller's MySQL and Vault environment."""
    for key in ("MYSQL_HOST", "MYSQL_TCP_PORT", "MYSQL_USER", "MYSQL_PWD", "OTLP_ENDPOINT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("VAULT_ADDR", os.environ.get("VAULT_ADDR", "http://localhost:8200"))
    monkeypatch.setenv("VAULT_TOKEN", os.environ.get("VAULT_TOKEN", "dev-root-token"))
