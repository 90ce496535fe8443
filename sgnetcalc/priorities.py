"""Flow priorities.

Rank 0 is the highest priority. Every per-priority array in the package
(edge servers, weights, quanta) is indexed by rank.
"""
from enum import Enum
from typing import Sequence

from .errors import ConfigurationError


class FlowPriority(Enum):
    # Members have to be declared in decreasing priority order.
    HIGH = 0
    MEDIUM = 1
    LOW = 2

    @property
    def rank(self) -> int:
        return self.value

    @classmethod
    def count(cls) -> int:
        return len(cls)

    @classmethod
    def ordered(cls) -> list["FlowPriority"]:
        """All priorities, highest first."""
        return sorted(cls, key=lambda p: p.rank)

    @classmethod
    def highest(cls) -> "FlowPriority":
        return cls.ordered()[0]

    @classmethod
    def lowest(cls) -> "FlowPriority":
        return cls.ordered()[-1]

    @classmethod
    def from_rank(cls, index: int) -> "FlowPriority":
        """Return the priority of rank *index*, clamped into [0, N-1]."""
        index = min(max(int(index), 0), cls.count() - 1)
        return cls(index)

    def __str__(self):
        return self.name


def validate_per_priority(name: str, values: Sequence, count: int | None = None) -> None:
    """Raise ConfigurationError unless *values* holds one entry per priority."""
    if count is None:
        count = FlowPriority.count()
    if len(values) != count:
        raise ConfigurationError(
            f"{name} must have exactly {count} entries (one per priority), "
            f"got {len(values)}: {list(values)}")
