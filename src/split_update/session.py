"""
Split-update session: the plan derived from one UPDATE statement.

A Session's identity (query, table, split column, bounds, width) never changes
after creation. Only its Result and the per-unit bookkeeping mutate while it
runs. Retrying produces a new, narrower Session via ``retry_session()``.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from .partition import TransactionUnit
from .result import Result


class ReadWriteLock:
    """
    Many-readers / single-writer lock.

    Writers are preferred: once a writer is waiting, new readers block until it
    has finished, so progress polling never starves the worker threads.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(eq=False)
class Session:
    """
    One split-update unit of work.

    Attributes:
        query: Trimmed original UPDATE statement
        database: Database name
        table: Target table name
        split_column: Column the ranges are bounded on ('' for a simple update)
        min_value: Column minimum observed at creation
        max_value: Column maximum observed at creation
        split_range: Range width in force
        transactions: Ordered transaction units
    """

    query: str
    database: str
    table: str
    split_column: str
    min_value: int
    max_value: int
    split_range: int
    transactions: list[TransactionUnit] = field(default_factory=list)
    _result: Result = field(default=None, repr=False)
    _lock: ReadWriteLock = field(default_factory=ReadWriteLock, repr=False)

    def __post_init__(self):
        if self._result is None:
            self._result = Result(plan=len(self.transactions))

    @property
    def qualified_table(self) -> str:
        if self.table:
            return f"{self.database}.{self.table}"
        return self.database

    def result(self) -> Result:
        """Point-in-time snapshot of the session's Result."""
        with self._lock.read():
            return self._result.copy()

    def record_outcome(self, error: BaseException | None, rows_affected: int = 0) -> None:
        """Count one executed statement."""
        with self._lock.write():
            self._result.executed += 1
            if error is not None:
                self._result.failed += 1
            else:
                self._result.succeeded += 1
                self._result.rows_affected += rows_affected

    def failed_transactions(self) -> list[TransactionUnit]:
        return [tx for tx in self.transactions if tx.completed and tx.failed]

    def retry_session(self) -> "Session":
        """New Session holding fresh copies of the failed units only."""
        return Session(
            query=self.query,
            database=self.database,
            table=self.table,
            split_column=self.split_column,
            min_value=self.min_value,
            max_value=self.max_value,
            split_range=self.split_range,
            transactions=[tx.fresh_copy() for tx in self.failed_transactions()],
        )
