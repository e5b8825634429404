"""MySQL connection pool implementation."""

import os
from typing import Any

import pymysql
import pymysql.connections
from opentelemetry import trace

from utils.tracing import trace_operation

from .base import BaseConnectionPool


class MySQLConnectionPool(BaseConnectionPool):
    """
    Connection pool for MySQL-compatible databases (MySQL, MariaDB, Galera).

    Connections are opened with autocommit disabled so that every statement
    runs inside an explicit transaction owned by the caller.
    """

    def __init__(
        self,
        database: str,
        host: str | None = None,
        port: int = 3306,
        user: str | None = None,
        password: str | None = None,
        charset: str = "utf8mb4",
        defaults_file: str | None = None,
        connect_timeout: int = 10,
        **kwargs: Any,
    ):
        """
        Initialize MySQL connection pool.

        Args:
            database: Database (schema) name
            host: MySQL host; when None, connection settings come from defaults_file
            port: MySQL port
            user: Username
            password: Password
            charset: Connection character set
            defaults_file: Path to a my.cnf style file whose [client] section
                supplies host/user/password
            connect_timeout: Connect timeout in seconds
            **kwargs: Additional arguments for BaseConnectionPool
        """
        self.database = database
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.charset = charset
        self.defaults_file = os.path.expanduser(defaults_file) if defaults_file else None
        self.connect_timeout = connect_timeout

        super().__init__(**kwargs)

    def _connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "database": self.database,
            "charset": self.charset,
            "autocommit": False,
            "connect_timeout": self.connect_timeout,
        }
        if self.defaults_file:
            kwargs["read_default_file"] = self.defaults_file
        if self.host:
            kwargs["host"] = self.host
            kwargs["port"] = self.port
        if self.user is not None:
            kwargs["user"] = self.user
        if self.password is not None:
            kwargs["password"] = self.password
        return kwargs

    def _create_connection(self) -> pymysql.connections.Connection:
        """Create a new MySQL connection."""
        with trace_operation(
            "mysql_connect",
            kind=trace.SpanKind.CLIENT,
            db_host=self.host or "defaults-file",
            db_name=self.database,
        ):
            return pymysql.connect(**self._connect_kwargs())

    def _is_connection_healthy(self, conn: pymysql.connections.Connection) -> bool:
        """Check if MySQL connection is healthy."""
        if conn is None or not conn.open:
            return False

        try:
            conn.ping(reconnect=False)
            return True
        except pymysql.MySQLError:
            return False

    def _close_connection(self, conn: pymysql.connections.Connection) -> None:
        """Close MySQL connection."""
        if conn is not None and conn.open:
            conn.close()

    def _get_db_type(self) -> str:
        """Get database type for metrics."""
        return "mysql"
