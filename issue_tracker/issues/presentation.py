"""Display helpers shared by the issue list, detail view and badges."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Literal, Sequence

from .models import Issue, IssueDelay, WorkOrder
from .state import IssuePriority, IssueStatus

IssueFilter = Literal["open", "resolved"]
IssueSort = Literal["date-asc", "date-desc", "priority"]

FILTER_LABELS: dict[str, str] = {
    "open": "Abiertos",
    "resolved": "Resueltos",
}

SORT_LABELS: dict[str, str] = {
    "date-desc": "Fecha ↓",
    "date-asc": "Fecha ↑",
    "priority": "Prioridad",
}

PRIORITY_LABELS: dict[IssuePriority, str] = {
    IssuePriority.LOW: "Baja",
    IssuePriority.MEDIUM: "Media",
    IssuePriority.HIGH: "Alta",
    IssuePriority.CRITICAL: "Crítica",
}

STATUS_LABELS: dict[IssueStatus, str] = {
    IssueStatus.OPEN: "Abierto",
    IssueStatus.RESOLVED: "Resuelto",
}

LOCATIONS: tuple[str, ...] = ("INCO", "ANTI")


@dataclass(frozen=True, slots=True)
class Badge:
    """Label plus colour pair rendered next to an issue title."""

    label: str
    color: str
    icon: str


_PRIORITY_BADGES: dict[IssuePriority, Badge] = {
    IssuePriority.LOW: Badge(PRIORITY_LABELS[IssuePriority.LOW], "gray", ":material/schedule:"),
    IssuePriority.MEDIUM: Badge(PRIORITY_LABELS[IssuePriority.MEDIUM], "blue", ":material/error:"),
    IssuePriority.HIGH: Badge(PRIORITY_LABELS[IssuePriority.HIGH], "orange", ":material/warning:"),
    IssuePriority.CRITICAL: Badge(PRIORITY_LABELS[IssuePriority.CRITICAL], "red", ":material/warning:"),
}

_STATUS_BADGES: dict[IssueStatus, Badge] = {
    IssueStatus.OPEN: Badge(STATUS_LABELS[IssueStatus.OPEN], "orange", ":material/error:"),
    IssueStatus.RESOLVED: Badge(STATUS_LABELS[IssueStatus.RESOLVED], "green", ":material/check_circle:"),
}


def priority_badge(priority: IssuePriority) -> Badge:
    return _PRIORITY_BADGES[priority]


def status_badge(status: IssueStatus) -> Badge:
    return _STATUS_BADGES[status]


def filter_issues(issues: Iterable[Issue], issue_filter: IssueFilter) -> list[Issue]:
    if issue_filter == "open":
        return [issue for issue in issues if issue.status != IssueStatus.RESOLVED]
    if issue_filter == "resolved":
        return [issue for issue in issues if issue.status == IssueStatus.RESOLVED]
    raise ValueError(f"Unknown issue filter: {issue_filter}")


def sort_issues(issues: Iterable[Issue], sort_by: IssueSort) -> list[Issue]:
    """Order issues for display; ties keep their incoming order."""

    if sort_by == "date-asc":
        return sorted(issues, key=lambda issue: issue.created_at)
    if sort_by == "date-desc":
        return sorted(issues, key=lambda issue: issue.created_at, reverse=True)
    if sort_by == "priority":
        return sorted(issues, key=lambda issue: issue.priority.rank)
    raise ValueError(f"Unknown sort order: {sort_by}")


def visible_issues(issues: Iterable[Issue], issue_filter: IssueFilter, sort_by: IssueSort) -> list[Issue]:
    return sort_issues(filter_issues(issues, issue_filter), sort_by)


def delay_days(delay: IssueDelay, today: date | None = None) -> int:
    """Inclusive number of days covered by a delay; open delays run until today."""

    end = delay.end_date or today or date.today()
    return (end - delay.start_date).days + 1


def delay_label(delay: IssueDelay, today: date | None = None) -> str:
    return f"{delay_days(delay, today)} días"


def format_date(value: date | datetime) -> str:
    return value.strftime("%d/%m/%Y")


def email_handle(email: str | None) -> str:
    if not email:
        return ""
    return email.split("@", 1)[0]


def latest_note_preview(issue: Issue) -> tuple[str, str] | None:
    note = issue.latest_note
    if note is None:
        return None
    return note.content, email_handle(note.user_email)


def work_orders_at(work_orders: Iterable[WorkOrder], location: str) -> list[WorkOrder]:
    return [work_order for work_order in work_orders if work_order.location == location]


def work_order_label(work_order_id: str, work_orders: Sequence[WorkOrder]) -> str:
    work_order = next((item for item in work_orders if item.id == work_order_id), None)
    if work_order is None:
        return "OT: -"
    return f"OT: {work_order.ot} - {work_order.client}"
