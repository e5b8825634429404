"""
Database connection pooling for MySQL-compatible servers.

Provides thread-safe connection pools with health checks, metrics,
optional connection recycling, and runtime resizing.
"""

from .base import (
    BaseConnectionPool,
    ConnectionPoolError,
    PoolClosedError,
    PooledConnection,
    PoolExhaustedError,
)
from .mysql import MySQLConnectionPool

__all__ = [
    "BaseConnectionPool",
    "MySQLConnectionPool",
    "PooledConnection",
    "ConnectionPoolError",
    "PoolExhaustedError",
    "PoolClosedError",
]
