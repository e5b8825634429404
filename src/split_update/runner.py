"""
Split-update execution engine.

This module provides the Runner class, which turns one UPDATE statement into
a Session of range-bounded transactions and executes them concurrently using
ThreadPoolExecutor, with the shared connection pool sized to the requested
parallelism.
"""

import random
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

from opentelemetry import trace

from utils.db_pool import BaseConnectionPool, MySQLConnectionPool
from utils.logging import ContextLogger
from utils.tracing import add_span_attributes, trace_operation

from .column_selector import select_split_column
from .errors import (
    ConfigurationError,
    InvalidUpdateQueryError,
    TransactionsFailedError,
)
from .metrics import (
    ACTIVE_WORKERS,
    ROWS_AFFECTED,
    TRANSACTION_TIME,
    TRANSACTIONS_PROCESSED,
)
from .partition import TransactionUnit, build_transactions
from .query import (
    build_split_update_sql,
    get_update_table_name,
    is_update_query,
    normalize_query,
    validate_update_query,
)
from .result import Result
from .session import Session

# Lower than 131072, the default wsrep_max_ws_rows of Galera Cluster
DEFAULT_SPLIT_RANGE = 100000


class Runner:
    """
    Process-wide split-update context bound to one connection pool.

    The Runner owns its pool exclusively and closes it exactly once, either
    via close() or when used as a context manager.
    """

    def __init__(
        self,
        database: str,
        pool: BaseConnectionPool,
        split_range: int = DEFAULT_SPLIT_RANGE,
        dry_run: bool = False,
        shuffle: bool = False,
        trace_sql: bool = False,
        rng: random.Random | None = None,
    ):
        """
        Initialize runner.

        Args:
            database: Name of the database the pool is connected to
            pool: Connection pool owned by this runner
            split_range: Width of each range (positive integer)
            dry_run: Plan and time the run without sending UPDATE statements
            shuffle: Execute ranges in random order
            trace_sql: Log every statement at DEBUG level
            rng: Random source for shuffling (default: a new Random())
        """
        self.database = database
        self.pool = pool
        self.split_range = split_range
        self.dry_run = dry_run
        self.shuffle = shuffle
        self.trace_sql = trace_sql
        self.rng = rng or random.Random()
        self.sessions: list[Session] = []
        self.logger = ContextLogger(__name__, database=database)

    @classmethod
    def from_options(
        cls,
        database: str,
        host: str,
        port: int = 3306,
        user: str | None = None,
        password: str | None = None,
        charset: str = "utf8mb4",
        **kwargs: Any,
    ) -> "Runner":
        """Create a runner connected with explicit connection options."""
        pool = MySQLConnectionPool(
            database=database,
            host=host,
            port=port,
            user=user,
            password=password,
            charset=charset or "utf8mb4",
            min_size=1,
            max_size=1,
            pool_name=f"split-update-{database}",
        )
        return cls._bind(database, pool, kwargs)

    @classmethod
    def from_defaults_file(
        cls,
        database: str,
        defaults_file: str,
        charset: str = "utf8mb4",
        **kwargs: Any,
    ) -> "Runner":
        """Create a runner connected with the [client] section of a my.cnf file."""
        pool = MySQLConnectionPool(
            database=database,
            defaults_file=defaults_file,
            charset=charset or "utf8mb4",
            min_size=1,
            max_size=1,
            pool_name=f"split-update-{database}",
        )
        return cls._bind(database, pool, kwargs)

    @classmethod
    def _bind(cls, database: str, pool: BaseConnectionPool, options: dict[str, Any]) -> "Runner":
        try:
            return cls(database, pool, **options)
        except Exception:
            pool.close()
            raise

    @property
    def split_range(self) -> int:
        return self._split_range

    @split_range.setter
    def split_range(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigurationError(f"split range must be a positive integer, got {value!r}")
        self._split_range = value

    def connected(self) -> bool:
        """Check whether the database is reachable."""
        if self.pool.closed:
            return False
        try:
            with self.pool.acquire():
                return True
        except Exception as e:
            self.logger.debug(f"Connection check failed: {e}")
            return False

    def close(self) -> None:
        """Close the connection pool. Further calls are no-ops."""
        self.pool.close()

    def __enter__(self) -> "Runner":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _trace(self, msg: str, **context) -> None:
        if self.trace_sql:
            self.logger.debug(msg, **context)

    def _execute_update(self, sql: str) -> int:
        """
        Execute one statement in its own transaction.

        Returns:
            Number of rows affected (0 in dry-run mode)
        """
        self._trace(f"exec {sql}")
        if self.dry_run:
            return 0

        with self.pool.acquire() as conn:
            try:
                conn.begin()
                with conn.cursor() as cursor:
                    rows_affected = cursor.execute(sql)
                conn.commit()
            except Exception:
                try:
                    conn.rollback()
                except Exception as rollback_error:
                    self.logger.warning(f"Rollback failed: {rollback_error}")
                raise
        return rows_affected or 0

    def new_session(self, query: str) -> Session:
        """
        Create a split-update session from an UPDATE statement.

        The statement shape is validated before the database is touched.

        Raises:
            InvalidUpdateQueryError: If the statement cannot be split
            NoUsableColumnError: If the table has no usable split column or is empty
        """
        exec_query, table = validate_update_query(query)

        with trace_operation(
            "split_update_new_session",
            database=self.database,
            table=table,
        ):
            with self.pool.acquire() as conn:
                try:
                    with conn.cursor() as cursor:
                        column = select_split_column(cursor, self.database, table)
                finally:
                    # release the read snapshot held by the introspection queries
                    conn.rollback()

            self.logger.debug(
                f"[{self.database}.{table}] The column name to split is '{column.name}': "
                f"min '{column.min_value}' - max '{column.max_value}'"
            )

            transactions = build_transactions(
                column.min_value,
                column.max_value,
                self.split_range,
                shuffle=self.shuffle,
                rng=self.rng,
            )
            if self.shuffle:
                self.logger.debug(f"[{self.database}.{table}] This session enable shuffle mode.")

            session = Session(
                query=exec_query,
                database=self.database,
                table=table,
                split_column=column.name,
                min_value=column.min_value,
                max_value=column.max_value,
                split_range=self.split_range,
                transactions=transactions,
            )
            add_span_attributes(planned=len(transactions), split_column=column.name)

        self.logger.debug(
            f"[{self.database}.{table}] This session executes {len(transactions)} queries."
        )
        return session

    def _run_transaction(self, session: Session, tx: TransactionUnit) -> None:
        """Execute one range; failures are recorded on the unit, never raised."""
        sql = build_split_update_sql(session.query, session.split_column, tx.range_start, tx.range_end)
        self._trace(
            f"- ({tx.id}) update (range: {session.split_column} = "
            f"{tx.range_start} - {tx.range_end}) start"
        )

        ACTIVE_WORKERS.inc()
        start_time = time.monotonic()
        rows_affected = 0
        error = None
        try:
            with trace_operation(
                "split_update_transaction",
                kind=trace.SpanKind.CLIENT,
                table=session.table,
                transaction_id=tx.id,
                range_start=tx.range_start,
                range_end=tx.range_end,
            ):
                rows_affected = self._execute_update(sql)
        except Exception as e:
            error = e
        finally:
            ACTIVE_WORKERS.dec()
            TRANSACTION_TIME.labels(table=session.table).observe(time.monotonic() - start_time)

        if error is not None:
            tx.mark_failed(error)
            self.logger.warning(f"- ({tx.id}) ERROR: {error}", table=session.table)
            TRANSACTIONS_PROCESSED.labels(table=session.table, status="failed").inc()
        else:
            tx.mark_succeeded()
            status = "dryrun" if self.dry_run else "succeeded"
            TRANSACTIONS_PROCESSED.labels(table=session.table, status=status).inc()
            ROWS_AFFECTED.labels(table=session.table).inc(rows_affected)

        session.record_outcome(error, rows_affected)
        self.logger.info(
            f"[{tx.id}] - Affected {rows_affected} rows, "
            f"total {session.result().rows_affected} updated."
        )

    def run_parallel(self, session: Session, parallel: int) -> Session:
        """
        Execute every transaction of a session with at most `parallel` in flight.

        Blocks until all transactions have finished, successful or not.

        Args:
            session: Session to execute
            parallel: Maximum concurrent transactions (>= 1)

        Returns:
            The completed session when every transaction succeeded

        Raises:
            ConfigurationError: If parallel < 1
            TransactionsFailedError: If any transaction failed; carries a retry
                session holding only the failed ranges
        """
        if isinstance(parallel, bool) or not isinstance(parallel, int) or parallel < 1:
            raise ConfigurationError(f"parallel must be a positive integer, got {parallel!r}")

        self.sessions.append(session)

        # connections stay open for the whole run: no lifetime or idle recycling
        self.pool.resize(min_size=parallel, max_size=parallel, max_idle_time=None, max_lifetime=None)

        label = session.qualified_table
        self.logger.info(f"[{label}] Session start (planned {session.result().plan} queries)")

        with trace_operation(
            "split_update_run_parallel",
            database=session.database,
            table=session.table,
            parallel=parallel,
            planned=len(session.transactions),
        ):
            with ThreadPoolExecutor(
                max_workers=parallel, thread_name_prefix="split-update"
            ) as executor:
                futures = [
                    executor.submit(self._run_transaction, session, tx)
                    for tx in session.transactions
                ]
                for future in as_completed(futures):
                    future.result()

            result = session.result()
            add_span_attributes(
                executed=result.executed,
                succeeded=result.succeeded,
                failed=result.failed,
            )

        if result.failed > 0:
            raise TransactionsFailedError(label, result.failed, session.retry_session())

        self.logger.info(f"[{label}] Total {result.rows_affected} rows updated.")
        self.logger.info(
            f"[{label}] Executed {result.executed} queries: "
            f"{result.succeeded} succeeded, {result.failed} failed."
        )
        return session

    def simple_update(self, query: str) -> Result:
        """
        Execute an UPDATE statement unsplit, as a single transaction.

        Unsafe on Galera / multi-primary clusters with write-set limits: the
        whole statement becomes one unbounded transaction.

        Returns:
            Result of the one-statement session

        Raises:
            InvalidUpdateQueryError: If the statement is not an UPDATE ... SET
            Exception: Any database error raised by the statement
        """
        exec_query = normalize_query(query)
        if not is_update_query(exec_query):
            raise InvalidUpdateQueryError("execute query must start with 'UPDATE tablename SET ...'")

        session = Session(
            query=exec_query,
            database=self.database,
            table=get_update_table_name(exec_query),
            split_column="",
            min_value=0,
            max_value=0,
            split_range=0,
            _result=Result(plan=1),
        )
        self.sessions.append(session)

        with trace_operation("split_update_simple_update", database=self.database):
            try:
                rows_affected = self._execute_update(exec_query)
            except Exception as e:
                session.record_outcome(e)
                raise
            session.record_outcome(None, rows_affected)

        result = session.result()
        self.logger.info(f"[{self.database}] Total {result.rows_affected} rows updated.")
        self.logger.info(
            f"[{self.database}] Executed {result.executed} queries: "
            f"{result.succeeded} succeeded, {result.failed} failed."
        )
        return result

    def total_result(self) -> Result:
        """Sum of the results of every session run so far."""
        return Result.total(session.result() for session in self.sessions)
