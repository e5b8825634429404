"""
CLI command implementation.

The split update runs on a background thread so the main thread can draw
progress bars from Session result snapshots. Once it has finished, errors are
mapped to exit codes, the optional fallback to an unsplit update is applied
and the final RESULT line is printed.
"""

import argparse
import logging
import threading

from split_update.errors import ConfigurationError, SplitUpdateError
from split_update.metrics import start_metrics_server
from split_update.progress import ProgressReporter
from split_update.retry import RetryOutcome, run_with_retry
from split_update.runner import Runner

from .credentials import create_runner, get_connection_config, show_progress

logger = logging.getLogger(__name__)


class SplitUpdateJob:
    """Create a session for a query and run it with retries."""

    def __init__(self, runner: Runner, query: str, parallel: int, max_retry: int):
        self.runner = runner
        self.query = query
        self.parallel = parallel
        self.max_retry = max_retry
        self.outcome: RetryOutcome | None = None
        self.error: Exception | None = None

    def run(self) -> None:
        try:
            session = self.runner.new_session(self.query)
            self.outcome = run_with_retry(self.runner, session, self.parallel, self.max_retry)
        except Exception as e:
            self.error = e


def run_split_update(runner: Runner, args: argparse.Namespace) -> Exception | None:
    """
    Run the split update in a worker thread while drawing progress

    Returns:
        The error that ended the run, or None on success
    """
    job = SplitUpdateJob(runner, args.execute, args.parallel, args.max_retry)
    worker = threading.Thread(target=job.run, name="split-update-main", daemon=True)
    worker.start()

    with ProgressReporter(lambda: runner.sessions, enabled=show_progress(args)) as reporter:
        reporter.watch(worker)
        if job.error is None:
            reporter.complete()

    worker.join()
    return job.error


def handle_error(runner: Runner, args: argparse.Namespace, error: Exception) -> int:
    """
    Apply the fallback policy to a failed run

    Returns:
        Process exit code
    """
    if isinstance(error, SplitUpdateError) and error.kind.fallback_eligible:
        if args.fallback:
            logger.warning(f"{error}. Fallback to simple update.")
            try:
                runner.simple_update(args.execute)
            except Exception as e:
                logger.error(f"Simple update failed: {e}")
                return 1
            return 0
        logger.error(str(error))
        return error.exit_code

    logger.error(str(error))
    if isinstance(error, SplitUpdateError):
        return error.exit_code
    return 1


def format_result(runner: Runner) -> str:
    """
    Build the final RESULT line

    Totals are summed over every session; the failed count is taken from the
    last session, since earlier failures were retried.
    """
    total = runner.total_result()
    finally_failed = runner.sessions[-1].result().failed if runner.sessions else 0
    first_planned = runner.sessions[0].result().plan if runner.sessions else 0

    logger.debug(
        f"SESSIONS: Planned {first_planned} queries and {total.executed} executed - "
        f"{total.succeeded} succeeded / {total.failed} failed"
    )
    return (
        f"RESULT: {total.succeeded} queries affected and {total.rows_affected} rows updated. "
        f"{finally_failed} queries failed."
    )


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run a split update

    Args:
        args: Parsed command-line arguments

    Returns:
        Process exit code
    """
    if not args.execute:
        raise ConfigurationError("No query given (-e/--execute)")
    if args.parallel < 1:
        raise ConfigurationError(f"--parallel must be at least 1, got {args.parallel}")
    if args.max_retry < 0:
        raise ConfigurationError(f"--max-retry must not be negative, got {args.max_retry}")

    config = get_connection_config(args)

    if args.metrics_port:
        start_metrics_server(args.metrics_port)

    with create_runner(args, config) as runner:
        error = run_split_update(runner, args)
        exit_code = handle_error(runner, args, error) if error is not None else 0
        print(format_result(runner), flush=True)

    return exit_code
