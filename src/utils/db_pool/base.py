"""
Base classes and functionality for database connection pooling.

Provides thread-safe connection pools with health checks, metrics,
optional connection recycling, and runtime resizing so that the pool can
be matched to the degree of parallelism of the caller.
"""

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from queue import Empty, Full, Queue
from typing import Any

from opentelemetry import trace
from prometheus_client import Counter, Gauge, Histogram

from utils.tracing import trace_operation

logger = logging.getLogger(__name__)


# Metrics
CONNECTION_POOL_SIZE = Gauge(
    "db_connection_pool_size",
    "Current size of database connection pool",
    ["database_type", "pool_name"],
)

CONNECTION_POOL_ACTIVE = Gauge(
    "db_connection_pool_active",
    "Number of active connections in pool",
    ["database_type", "pool_name"],
)

CONNECTION_POOL_IDLE = Gauge(
    "db_connection_pool_idle",
    "Number of idle connections in pool",
    ["database_type", "pool_name"],
)

CONNECTION_POOL_WAITS = Counter(
    "db_connection_pool_waits_total",
    "Number of times a connection request had to wait",
    ["database_type", "pool_name"],
)

CONNECTION_POOL_TIMEOUTS = Counter(
    "db_connection_pool_timeouts_total",
    "Number of connection pool timeout errors",
    ["database_type", "pool_name"],
)

CONNECTION_POOL_ERRORS = Counter(
    "db_connection_pool_errors_total",
    "Number of connection pool errors",
    ["database_type", "pool_name", "error_type"],
)

CONNECTION_ACQUIRE_TIME = Histogram(
    "db_connection_acquire_seconds",
    "Time to acquire a connection from pool",
    ["database_type", "pool_name"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class PooledConnection:
    """Wrapper for a pooled database connection with metadata."""

    connection: Any
    created_at: datetime
    last_used: datetime
    use_count: int = 0
    is_healthy: bool = True

    def mark_used(self) -> None:
        """Mark connection as used and update timestamp."""
        self.last_used = _utcnow()
        self.use_count += 1


class ConnectionPoolError(Exception):
    """Base exception for connection pool errors."""

    pass


class PoolExhaustedError(ConnectionPoolError):
    """Raised when the connection pool is exhausted."""

    pass


class PoolClosedError(ConnectionPoolError):
    """Raised when attempting to use a closed pool."""

    pass


class BaseConnectionPool:
    """
    Base class for database connection pools.

    Provides common functionality for managing a pool of database connections
    with health checks and metrics. Lifetime and idle recycling are optional:
    passing None for max_lifetime / max_idle_time keeps connections open
    indefinitely.
    """

    def __init__(
        self,
        min_size: int = 1,
        max_size: int = 10,
        max_idle_time: int | None = 300,
        max_lifetime: int | None = 3600,
        health_check_interval: int = 60,
        acquire_timeout: float = 30.0,
        pool_name: str = "default",
    ):
        """
        Initialize connection pool.

        Args:
            min_size: Minimum number of connections to maintain
            max_size: Maximum number of connections allowed
            max_idle_time: Maximum idle time in seconds before recycling (None disables)
            max_lifetime: Maximum connection lifetime in seconds (None disables)
            health_check_interval: Interval for health checks in seconds
            acquire_timeout: Timeout for acquiring connection in seconds
            pool_name: Name of the pool for metrics
        """
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        if min_size < 0 or min_size > max_size:
            raise ValueError(
                f"min_size must be between 0 and max_size ({max_size}), got {min_size}"
            )

        self.min_size = min_size
        self.max_size = max_size
        self.max_idle_time = timedelta(seconds=max_idle_time) if max_idle_time is not None else None
        self.max_lifetime = timedelta(seconds=max_lifetime) if max_lifetime is not None else None
        self.health_check_interval = health_check_interval
        self.acquire_timeout = acquire_timeout
        self.pool_name = pool_name

        self._pool: Queue[PooledConnection] = Queue(maxsize=max_size)
        self._all_connections: list[PooledConnection] = []
        self._lock = threading.RLock()
        self._closed = False
        self._close_event = threading.Event()

        self._initialize_pool()

        self._health_check_thread = threading.Thread(
            target=self._health_check_worker, daemon=True
        )
        self._health_check_thread.start()

        logger.info(
            f"Initialized {self.__class__.__name__} '{pool_name}' "
            f"(min={min_size}, max={max_size})"
        )

    def _initialize_pool(self) -> None:
        """Initialize pool with minimum number of connections."""
        with self._lock:
            self._replenish(self.min_size, error_type="initialization")
            self._update_metrics()

    def _replenish(self, count: int, error_type: str) -> None:
        """Create up to count new idle connections. Caller holds the lock."""
        for _ in range(count):
            try:
                pooled_conn = self._new_pooled_connection()
                self._all_connections.append(pooled_conn)
                self._pool.put_nowait(pooled_conn)
            except Exception as e:
                logger.error(f"Failed to create connection ({error_type}): {e}")
                CONNECTION_POOL_ERRORS.labels(
                    database_type=self._get_db_type(),
                    pool_name=self.pool_name,
                    error_type=error_type,
                ).inc()

    def _new_pooled_connection(self) -> PooledConnection:
        now = _utcnow()
        return PooledConnection(
            connection=self._create_connection(),
            created_at=now,
            last_used=now,
        )

    def _create_connection(self) -> Any:
        """Create a new database connection. Must be implemented by subclasses."""
        raise NotImplementedError

    def _is_connection_healthy(self, conn: Any) -> bool:
        """Check if connection is healthy. Must be implemented by subclasses."""
        raise NotImplementedError

    def _close_connection(self, conn: Any) -> None:
        """Close a database connection. Must be implemented by subclasses."""
        raise NotImplementedError

    def _get_db_type(self) -> str:
        """Get database type for metrics. Must be implemented by subclasses."""
        raise NotImplementedError

    def _check_connection_health(self, pooled_conn: PooledConnection) -> bool:
        """
        Check if a pooled connection is healthy.

        Checks:
        - Connection has not exceeded max lifetime (when enabled)
        - Connection has not been idle too long (when enabled)
        - Connection passes the backend health check
        """
        now = _utcnow()

        if self.max_lifetime is not None and now - pooled_conn.created_at > self.max_lifetime:
            logger.debug("Connection exceeded max lifetime, recycling")
            return False

        if self.max_idle_time is not None and now - pooled_conn.last_used > self.max_idle_time:
            logger.debug("Connection exceeded max idle time, recycling")
            return False

        try:
            is_healthy = self._is_connection_healthy(pooled_conn.connection)
            pooled_conn.is_healthy = is_healthy
            return is_healthy
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            pooled_conn.is_healthy = False
            CONNECTION_POOL_ERRORS.labels(
                database_type=self._get_db_type(),
                pool_name=self.pool_name,
                error_type="health_check",
            ).inc()
            return False

    def _recycle_connection(self, pooled_conn: PooledConnection) -> None:
        """Close and remove a connection from the pool."""
        try:
            self._close_connection(pooled_conn.connection)
        except Exception as e:
            logger.warning(f"Error closing connection: {e}")
        finally:
            with self._lock:
                if pooled_conn in self._all_connections:
                    self._all_connections.remove(pooled_conn)

    def _drain_idle(self) -> list[PooledConnection]:
        """Take every idle connection out of the queue."""
        idle = []
        while True:
            try:
                idle.append(self._pool.get_nowait())
            except Empty:
                break
        return idle

    def _health_check_worker(self) -> None:
        """Background worker to perform periodic health checks."""
        while not self._close_event.wait(self.health_check_interval):
            try:
                self._perform_health_checks()
            except Exception as e:
                logger.error(f"Health check worker error: {e}")

    def _perform_health_checks(self) -> None:
        """Perform health checks on idle connections and maintain minimum size."""
        if self._closed:
            return

        with self._lock:
            idle = self._drain_idle()
            for pooled_conn in idle:
                if self._check_connection_health(pooled_conn):
                    self._pool.put_nowait(pooled_conn)
                else:
                    self._recycle_connection(pooled_conn)
                    logger.info("Recycled unhealthy connection")

            current_size = len(self._all_connections)
            if current_size < self.min_size:
                needed = self.min_size - current_size
                logger.info(f"Replenishing pool with {needed} connections")
                self._replenish(needed, error_type="replenishment")

            self._update_metrics()

    def _update_metrics(self) -> None:
        """Update Prometheus metrics."""
        with self._lock:
            total_size = len(self._all_connections)
            idle_size = self._pool.qsize()
            active_size = total_size - idle_size

            CONNECTION_POOL_SIZE.labels(
                database_type=self._get_db_type(), pool_name=self.pool_name
            ).set(total_size)

            CONNECTION_POOL_ACTIVE.labels(
                database_type=self._get_db_type(), pool_name=self.pool_name
            ).set(active_size)

            CONNECTION_POOL_IDLE.labels(
                database_type=self._get_db_type(), pool_name=self.pool_name
            ).set(idle_size)

    def resize(
        self,
        min_size: int,
        max_size: int,
        max_idle_time: int | None = None,
        max_lifetime: int | None = None,
    ) -> None:
        """
        Change the pool bounds and recycling policy.

        Idle connections beyond the new max_size are closed; connections that
        are checked out are closed on release if the pool is over capacity.
        Must not be called while other threads are blocked in acquire().

        Args:
            min_size: New minimum number of connections
            max_size: New maximum number of connections
            max_idle_time: Idle recycling in seconds (None disables)
            max_lifetime: Lifetime recycling in seconds (None disables)
        """
        if self._closed:
            raise PoolClosedError("Connection pool is closed")
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        if min_size < 0 or min_size > max_size:
            raise ValueError(
                f"min_size must be between 0 and max_size ({max_size}), got {min_size}"
            )

        with self._lock:
            idle = self._drain_idle()

            self.min_size = min_size
            self.max_size = max_size
            self.max_idle_time = timedelta(seconds=max_idle_time) if max_idle_time is not None else None
            self.max_lifetime = timedelta(seconds=max_lifetime) if max_lifetime is not None else None
            self._pool = Queue(maxsize=max_size)

            for pooled_conn in idle:
                if len(self._all_connections) > max_size:
                    self._recycle_connection(pooled_conn)
                else:
                    self._pool.put_nowait(pooled_conn)

            current_size = len(self._all_connections)
            if current_size < min_size:
                self._replenish(min_size - current_size, error_type="resize")

            self._update_metrics()

        logger.debug(
            f"Resized pool '{self.pool_name}' (min={min_size}, max={max_size}, "
            f"max_idle_time={max_idle_time}, max_lifetime={max_lifetime})"
        )

    def _release(self, pooled_conn: PooledConnection) -> None:
        """Return a connection to the pool, or close it when over capacity."""
        with self._lock:
            over_capacity = len(self._all_connections) > self.max_size
            if self._closed or over_capacity:
                self._recycle_connection(pooled_conn)
                self._update_metrics()
                return
            try:
                self._pool.put_nowait(pooled_conn)
            except Full:
                self._recycle_connection(pooled_conn)
            self._update_metrics()

    @contextmanager
    def acquire(self) -> Iterator[Any]:
        """
        Acquire a connection from the pool.

        Yields:
            Database connection

        Raises:
            PoolClosedError: If pool is closed
            PoolExhaustedError: If no connection available within timeout
        """
        if self._closed:
            raise PoolClosedError("Connection pool is closed")

        pooled_conn: PooledConnection | None = None
        start_time = time.time()

        with trace_operation(
            "db_pool_acquire",
            kind=trace.SpanKind.CLIENT,
            database_type=self._get_db_type(),
            pool_name=self.pool_name,
        ):
            while True:
                elapsed = time.time() - start_time
                if elapsed >= self.acquire_timeout:
                    CONNECTION_POOL_TIMEOUTS.labels(
                        database_type=self._get_db_type(),
                        pool_name=self.pool_name,
                    ).inc()
                    raise PoolExhaustedError(
                        f"No connection available within {self.acquire_timeout}s"
                    )

                try:
                    pooled_conn = self._pool.get(timeout=0.1)
                except Empty:
                    with self._lock:
                        if len(self._all_connections) < self.max_size:
                            try:
                                pooled_conn = self._new_pooled_connection()
                                self._all_connections.append(pooled_conn)
                                logger.debug("Created new connection for pool")
                            except Exception as e:
                                logger.error(f"Failed to create new connection: {e}")
                                CONNECTION_POOL_ERRORS.labels(
                                    database_type=self._get_db_type(),
                                    pool_name=self.pool_name,
                                    error_type="creation",
                                ).inc()
                                raise

                    if pooled_conn is None:
                        CONNECTION_POOL_WAITS.labels(
                            database_type=self._get_db_type(),
                            pool_name=self.pool_name,
                        ).inc()
                        continue

                if not self._check_connection_health(pooled_conn):
                    logger.info("Connection unhealthy, recycling and retrying")
                    self._recycle_connection(pooled_conn)
                    pooled_conn = None
                    continue

                break

            pooled_conn.mark_used()
            self._update_metrics()

            CONNECTION_ACQUIRE_TIME.labels(
                database_type=self._get_db_type(), pool_name=self.pool_name
            ).observe(time.time() - start_time)

        try:
            yield pooled_conn.connection
        finally:
            self._release(pooled_conn)

    def close(self) -> None:
        """Close all connections and shutdown the pool. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return

            logger.info(f"Closing connection pool '{self.pool_name}'")
            self._closed = True
            self._close_event.set()

            for pooled_conn in self._all_connections:
                try:
                    self._close_connection(pooled_conn.connection)
                except Exception as e:
                    logger.warning(f"Error closing connection: {e}")

            self._all_connections.clear()
            self._drain_idle()

        logger.info(f"Connection pool '{self.pool_name}' closed")

    @property
    def closed(self) -> bool:
        return self._closed

    def get_stats(self) -> dict[str, Any]:
        """Get pool statistics."""
        with self._lock:
            total_size = len(self._all_connections)
            idle_size = self._pool.qsize()
            active_size = total_size - idle_size

            return {
                "pool_name": self.pool_name,
                "total_connections": total_size,
                "idle_connections": idle_size,
                "active_connections": active_size,
                "min_size": self.min_size,
                "max_size": self.max_size,
                "closed": self._closed,
            }
