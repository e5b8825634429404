"""
Error taxonomy for split updates.

Every error raised by the engine is a SplitUpdateError tagged with an
ErrorKind. Callers switch on ``error.kind`` (and read ``error.exit_code``)
instead of inspecting the exception class.
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .session import Session


class ErrorKind(Enum):
    """Kind of a split-update failure and the process exit code it maps to."""

    CONFIGURATION = ("configuration", 1)
    EXECUTION = ("execution", 1)
    INVALID_UPDATE_QUERY = ("invalid_update_query", 10)
    NO_USABLE_COLUMN = ("no_usable_column", 11)

    def __init__(self, label: str, exit_code: int):
        self.label = label
        self.exit_code = exit_code

    @property
    def fallback_eligible(self) -> bool:
        """True when an unsplit simple update may be used instead."""
        return self in (ErrorKind.INVALID_UPDATE_QUERY, ErrorKind.NO_USABLE_COLUMN)


class SplitUpdateError(Exception):
    """Base exception for split-update failures."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        table: str | None = None,
        hint: str | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.table = table
        self.hint = hint

    @property
    def exit_code(self) -> int:
        return self.kind.exit_code

    def __str__(self) -> str:
        return self.message


class ConfigurationError(SplitUpdateError):
    """Raised for invalid settings such as a non-positive split range or missing credentials."""

    def __init__(self, message: str):
        super().__init__(ErrorKind.CONFIGURATION, message)


class InvalidUpdateQueryError(SplitUpdateError):
    """Raised when a statement is not a splittable ``UPDATE <table> SET ...``."""

    def __init__(self, hint: str):
        super().__init__(ErrorKind.INVALID_UPDATE_QUERY, hint, hint=hint)


class NoUsableColumnError(SplitUpdateError):
    """Raised when a table has no integer key column to split on, or is empty."""

    def __init__(self, table: str | None = None):
        if table:
            message = f"Cannot detect any usable column for split update the table '{table}'"
        else:
            message = "Cannot detect any usable column for split update the table"
        super().__init__(ErrorKind.NO_USABLE_COLUMN, message, table=table)


class TransactionsFailedError(SplitUpdateError):
    """
    Raised after a full parallel pass in which some range transactions failed.

    ``retry_session`` is a new Session that holds only the failed ranges.
    """

    def __init__(self, table: str, failed: int, retry_session: "Session"):
        super().__init__(
            ErrorKind.EXECUTION,
            f"[{table}] {failed} transactions failed",
            table=table,
        )
        self.failed = failed
        self.retry_session = retry_session
