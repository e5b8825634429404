"""
Terminal progress display for split-update runs.

The reporter polls Session result snapshots from the main thread while the
work runs on a background thread. One bar is shown per session.
"""

import random
import threading
from collections.abc import Callable

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .session import Session

MAX_POLL_INTERVAL = 0.2


class ProgressReporter:
    """Render one rich progress bar per session from Result snapshots."""

    def __init__(
        self,
        sessions: Callable[[], list[Session]],
        enabled: bool = True,
        console: Console | None = None,
        rng: random.Random | None = None,
    ):
        """
        Args:
            sessions: Callable returning the sessions run so far
            enabled: When False, poll() only waits and nothing is drawn
            console: Console to render to (default: stderr)
            rng: Random source for the poll interval
        """
        self._sessions = sessions
        self.enabled = enabled
        self.rng = rng or random.Random()
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=console or Console(stderr=True),
            disable=not enabled,
        )
        self._tasks: dict[int, TaskID] = {}

    def __enter__(self) -> "ProgressReporter":
        self._progress.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.stop()

    def refresh(self) -> None:
        """Update every bar from the current session snapshots."""
        for index, session in enumerate(list(self._sessions())):
            result = session.result()
            if result.plan <= 0:
                continue
            task_id = self._tasks.get(index)
            if task_id is None:
                task_id = self._progress.add_task(
                    f"[{index}] {session.qualified_table}", total=result.plan
                )
                self._tasks[index] = task_id
            self._progress.update(task_id, completed=result.executed)

    def complete(self) -> None:
        """Force every bar to 100%."""
        self.refresh()
        for task in self._progress.tasks:
            self._progress.update(task.id, completed=task.total)

    def watch(self, worker: threading.Thread) -> None:
        """Refresh until the worker thread has finished."""
        while worker.is_alive():
            self.refresh()
            worker.join(self.rng.uniform(0, MAX_POLL_INTERVAL))
        self.refresh()

