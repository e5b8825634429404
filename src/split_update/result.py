"""Execution tally for a split-update session."""

from dataclasses import dataclass, replace


@dataclass
class Result:
    """
    Counters describing one session (or an aggregate of sessions).

    Attributes:
        plan: Number of range statements planned
        executed: Number of statements sent (or simulated in dry-run)
        succeeded: Number of statements committed
        failed: Number of statements rolled back
        rows_affected: Rows changed by committed statements
    """

    plan: int = 0
    executed: int = 0
    succeeded: int = 0
    failed: int = 0
    rows_affected: int = 0

    def copy(self) -> "Result":
        """Return an independent snapshot."""
        return replace(self)

    def append(self, other: "Result") -> None:
        """Add another result's counters into this one."""
        self.plan += other.plan
        self.executed += other.executed
        self.succeeded += other.succeeded
        self.failed += other.failed
        self.rows_affected += other.rows_affected

    @classmethod
    def total(cls, results) -> "Result":
        """Sum an iterable of results into a new Result."""
        total = cls()
        for result in results:
            total.append(result)
        return total

    @property
    def pending(self) -> int:
        return self.plan - self.executed

    def to_dict(self) -> dict[str, int]:
        return {
            "plan": self.plan,
            "executed": self.executed,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "rows_affected": self.rows_affected,
        }
