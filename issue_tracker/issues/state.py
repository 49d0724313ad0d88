from __future__ import annotations

from enum import Enum


class IssueStatus(str, Enum):
    """Lifecycle states of a reported issue."""

    OPEN = "OPEN"
    RESOLVED = "RESOLVED"


class IssuePriority(str, Enum):
    """Supported priority levels."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]

    @property
    def allows_delay(self) -> bool:
        return self in DELAY_ELIGIBLE_PRIORITIES


PRIORITY_RANK: dict[IssuePriority, int] = {
    IssuePriority.CRITICAL: 0,
    IssuePriority.HIGH: 1,
    IssuePriority.MEDIUM: 2,
    IssuePriority.LOW: 3,
}

DELAY_ELIGIBLE_PRIORITIES: frozenset[IssuePriority] = frozenset(
    {IssuePriority.HIGH, IssuePriority.CRITICAL}
)
