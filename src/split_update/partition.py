"""
Range partitioning of a split column into transaction units.

Ranges are aligned to multiples of the split width: ``[i*w, (i+1)*w - 1]``,
clipped to the observed ``[min, max]``.
"""

import random
from dataclasses import dataclass


@dataclass
class TransactionUnit:
    """One range, one statement, one database transaction."""

    id: int
    range_start: int
    range_end: int
    completed: bool = False
    failed: bool = False
    error: BaseException | None = None

    def mark_succeeded(self) -> None:
        self.completed = True
        self.failed = False
        self.error = None

    def mark_failed(self, error: BaseException) -> None:
        self.completed = True
        self.failed = True
        self.error = error

    def fresh_copy(self) -> "TransactionUnit":
        """Pending copy of this unit's range, used to build a retry session."""
        return TransactionUnit(id=self.id, range_start=self.range_start, range_end=self.range_end)

    @property
    def bounds(self) -> tuple[int, int]:
        return self.range_start, self.range_end


def split_ranges(min_value: int, max_value: int, width: int) -> list[tuple[int, int]]:
    """
    Partition ``[min_value, max_value]`` into width-aligned closed ranges.

    Args:
        min_value: Smallest column value
        max_value: Largest column value
        width: Split width, must be positive

    Returns:
        Ordered list of (start, end) tuples; empty when max_value < min_value

    Raises:
        ValueError: If width is not positive
    """
    if width <= 0:
        raise ValueError(f"split width must be a positive integer, got {width}")

    ranges = []
    # floor division keeps negative minimums aligned to the same grid
    for i in range(min_value // width, max_value // width + 1):
        start = i * width
        end = (i + 1) * width - 1
        if end < min_value or start > max_value:
            continue
        ranges.append((max(start, min_value), min(end, max_value)))
    return ranges


def shuffle_transactions(
    transactions: list[TransactionUnit], rng: random.Random | None = None
) -> None:
    """In-place Fisher-Yates shuffle; every ordering is equally likely."""
    rng = rng or random.Random()
    for i in range(len(transactions) - 1, 0, -1):
        j = rng.randint(0, i)
        transactions[i], transactions[j] = transactions[j], transactions[i]


def build_transactions(
    min_value: int,
    max_value: int,
    width: int,
    shuffle: bool = False,
    rng: random.Random | None = None,
) -> list[TransactionUnit]:
    """Create numbered transaction units for the range, optionally shuffled."""
    transactions = [
        TransactionUnit(id=n, range_start=start, range_end=end)
        for n, (start, end) in enumerate(split_ranges(min_value, max_value, width), start=1)
    ]
    if shuffle:
        shuffle_transactions(transactions, rng)
    return transactions
