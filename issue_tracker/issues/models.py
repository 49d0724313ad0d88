from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping

from .state import IssuePriority, IssueStatus

UPDATABLE_FIELDS: tuple[str, ...] = ("title", "status", "priority", "stage")


@dataclass(frozen=True, slots=True)
class Actor:
    """Authenticated identity performing a mutation."""

    id: str
    email: str | None = None


@dataclass(slots=True)
class WorkOrder:
    """Read-only reference to a work order owned by the wider application."""

    id: str
    ot: str
    client: str
    location: str


@dataclass(slots=True)
class IssueNote:
    """Immutable entry of an issue's notes thread."""

    id: str
    issue_id: str
    content: str
    created_at: datetime
    created_by: str
    user_email: str | None = None


@dataclass(slots=True)
class IssueDelay:
    """Delay window attached to a high or critical priority issue."""

    issue_id: str
    start_date: date
    end_date: date | None = None
    id: str | None = None

    @property
    def is_open(self) -> bool:
        return self.end_date is None


@dataclass(slots=True)
class Issue:
    """Issue reported against a work order, with its joined notes and delay."""

    id: str
    work_order_id: str
    title: str
    status: IssueStatus
    priority: IssuePriority
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str
    stage: str | None = None
    issue_notes: list[IssueNote] = field(default_factory=list)
    delay: IssueDelay | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status == IssueStatus.RESOLVED

    @property
    def latest_note(self) -> IssueNote | None:
        return self.issue_notes[-1] if self.issue_notes else None


@dataclass(slots=True)
class IssueDraft:
    """Fields accepted when reporting a new issue.

    ``notes`` is not stored on the issue row; a non-blank value becomes the
    first entry of the notes thread.
    """

    work_order_id: str
    title: str
    priority: IssuePriority = IssuePriority.MEDIUM
    status: IssueStatus = IssueStatus.OPEN
    stage: str | None = None
    notes: str | None = None


class DelayChangeKind(str, Enum):
    KEEP = "keep"
    SET = "set"
    REMOVE = "remove"


@dataclass(frozen=True, slots=True)
class DelayChange:
    """Requested change to an issue's delay record."""

    kind: DelayChangeKind = DelayChangeKind.KEEP
    start_date: date | None = None
    end_date: date | None = None

    def __post_init__(self) -> None:
        if self.kind == DelayChangeKind.SET and self.start_date is None:
            raise ValueError("A delay requires a start date")
        if (
            self.kind == DelayChangeKind.SET
            and self.end_date is not None
            and self.end_date < self.start_date  # type: ignore[operator]
        ):
            raise ValueError("A delay cannot end before it starts")

    @classmethod
    def keep(cls) -> "DelayChange":
        return cls()

    @classmethod
    def set(cls, start_date: date, end_date: date | None = None) -> "DelayChange":
        return cls(kind=DelayChangeKind.SET, start_date=start_date, end_date=end_date)

    @classmethod
    def remove(cls) -> "DelayChange":
        return cls(kind=DelayChangeKind.REMOVE)

    @property
    def is_present(self) -> bool:
        return self.kind != DelayChangeKind.KEEP


@dataclass(slots=True)
class UpdateIssueCommand:
    """Partial update of an issue, split into independent sub-operations.

    ``field_changes`` only holds the columns that were explicitly set, so a
    stage can be cleared by mapping it to ``None``. The delay change and the
    note are applied before the issue row is written.
    """

    field_changes: dict[str, Any] = field(default_factory=dict)
    delay_change: DelayChange = field(default_factory=DelayChange)
    note: str | None = None

    def __post_init__(self) -> None:
        unknown = set(self.field_changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unsupported issue fields: {', '.join(sorted(unknown))}")
        changes = dict(self.field_changes)
        if "status" in changes:
            changes["status"] = IssueStatus(changes["status"])
        if "priority" in changes:
            changes["priority"] = IssuePriority(changes["priority"])
        self.field_changes = changes

    @classmethod
    def from_partial(cls, updates: Mapping[str, Any]) -> "UpdateIssueCommand":
        """Build a command from a loose partial-issue mapping.

        A ``delay`` key holding a mapping sets the delay, ``None`` removes it.
        A ``notes`` key becomes a new note.
        """

        changes = {key: value for key, value in updates.items() if key in UPDATABLE_FIELDS}
        delay_change = DelayChange.keep()
        if "delay" in updates:
            delay = updates["delay"]
            if delay:
                delay_change = DelayChange.set(
                    _coerce_date(delay["start_date"]),
                    _coerce_date(delay.get("end_date")),
                )
            else:
                delay_change = DelayChange.remove()
        return cls(field_changes=changes, delay_change=delay_change, note=updates.get("notes"))

    @property
    def resolves(self) -> bool:
        return self.field_changes.get("status") == IssueStatus.RESOLVED

    @property
    def note_to_add(self) -> str | None:
        if self.note is None or not self.note.strip():
            return None
        return self.note

    @property
    def writes_issue(self) -> bool:
        return bool(self.field_changes)


def _coerce_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
