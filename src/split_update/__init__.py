"""
Split a large MySQL UPDATE into range-bounded transactions.

The statement is bounded on an integer key column and executed as many
small transactions with bounded parallelism, so no single transaction
exceeds write-set limits such as Galera's wsrep_max_ws_rows.
"""

__version__ = "1.0.0"

from .errors import (
    ConfigurationError,
    ErrorKind,
    InvalidUpdateQueryError,
    NoUsableColumnError,
    SplitUpdateError,
    TransactionsFailedError,
)
from .result import Result
from .retry import RetryOutcome, run_with_retry
from .runner import DEFAULT_SPLIT_RANGE, Runner
from .session import Session

__all__ = [
    "__version__",
    "DEFAULT_SPLIT_RANGE",
    "ConfigurationError",
    "ErrorKind",
    "InvalidUpdateQueryError",
    "NoUsableColumnError",
    "Result",
    "RetryOutcome",
    "Runner",
    "Session",
    "SplitUpdateError",
    "TransactionsFailedError",
    "run_with_retry",
]
