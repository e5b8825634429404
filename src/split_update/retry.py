"""
Retry controller for split-update sessions.

Each retry runs a new Session holding only the ranges that failed in the
previous pass. There is no backoff: a failed range is resubmitted as soon as
the whole previous pass has finished.

Usage:
    from split_update.retry import run_with_retry

    outcome = run_with_retry(runner, session, parallel=4, max_retry=3)
    print(outcome.retries)
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pymysql import err as mysql_errors

from utils.tracing import add_span_event

from .errors import TransactionsFailedError
from .metrics import RETRY_ATTEMPTS
from .session import Session

if TYPE_CHECKING:
    from .runner import Runner

logger = logging.getLogger(__name__)

# ER_BAD_FIELD_ERROR, ER_PARSE_ERROR, ER_NO_SUCH_TABLE, ER_SYNTAX_ERROR
DETERMINISTIC_ERROR_CODES = frozenset({1054, 1064, 1146, 1149})


@dataclass
class RetryOutcome:
    """Final session of a successful run and the number of retry passes it took."""

    session: Session
    retries: int


def mysql_error_code(exception: BaseException) -> int | None:
    """Return the MySQL error number carried by a PyMySQL exception, if any."""
    if isinstance(exception, mysql_errors.MySQLError) and exception.args:
        code = exception.args[0]
        if isinstance(code, int):
            return code
    return None


def is_retryable_db_exception(exception: BaseException) -> bool:
    """
    Determine if a failed range statement is worth running again

    Syntax errors, unknown columns and missing tables fail the same way every
    time. Everything else (deadlocks, lock wait timeouts, lost connections,
    write-set conflicts) may succeed on a later pass.

    Args:
        exception: The error recorded on the transaction unit

    Returns:
        True if the exception is retryable, False otherwise
    """
    if isinstance(exception, mysql_errors.ProgrammingError):
        return False
    return mysql_error_code(exception) not in DETERMINISTIC_ERROR_CODES


def has_retryable_failures(session: Session) -> bool:
    """True if at least one failed unit of the session failed transiently."""
    return any(
        tx.error is None or is_retryable_db_exception(tx.error)
        for tx in session.failed_transactions()
    )


def run_with_retry(
    runner: "Runner",
    session: Session,
    parallel: int,
    max_retry: int,
    on_retry: Callable[[int, TransactionsFailedError], None] | None = None,
) -> RetryOutcome:
    """
    Run a session, then re-run its failed ranges until none fail.

    Args:
        runner: Runner that executes each pass
        session: Initial session
        parallel: Maximum concurrent transactions per pass
        max_retry: Maximum number of retry passes after the first run
        on_retry: Callback(attempt, error) called before each retry pass

    Returns:
        RetryOutcome with the last (fully successful) session

    Raises:
        TransactionsFailedError: When retries are exhausted, or every failure
            of the last pass is deterministic
    """
    current = session
    retries = 0

    while True:
        try:
            runner.run_parallel(current, parallel)
            return RetryOutcome(session=current, retries=retries)
        except TransactionsFailedError as e:
            if not has_retryable_failures(current):
                logger.error(f"{e}: errors are not retryable, giving up")
                raise

            if retries >= max_retry:
                logger.error(f"{e}: max retries ({max_retry}) exceeded")
                raise

            retries += 1
            next_session = e.retry_session
            RETRY_ATTEMPTS.labels(table=next_session.table).inc()
            add_span_event("retry_started", attempt=retries, planned=next_session.result().plan)
            logger.warning(
                f"[{next_session.qualified_table}] Retry {retries}/{max_retry} "
                f"(planned {next_session.result().plan} queries)"
            )

            if on_retry:
                try:
                    on_retry(retries, e)
                except Exception as callback_error:
                    logger.error(f"Error in retry callback: {callback_error}")

            current = next_session
