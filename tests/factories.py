from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

from issue_tracker.issues.models import Issue, IssueDelay, IssueNote
from issue_tracker.issues.state import IssuePriority, IssueStatus

BASE_TIME = datetime(2024, 1, 10, 8, 0, tzinfo=timezone.utc)


class DummyBackend:
    def __init__(self):
        self.list_issues = AsyncMock(return_value=[])
        self.get_issue = AsyncMock(return_value=None)
        self.get_priority = AsyncMock(return_value=None)
        self.insert_issue = AsyncMock()
        self.update_issue = AsyncMock()
        self.list_notes = AsyncMock(return_value=[])
        self.insert_note = AsyncMock(return_value="note-new")
        self.get_note_with_user = AsyncMock(return_value=None)
        self.list_delays = AsyncMock(return_value=[])
        self.get_delay = AsyncMock(return_value=None)
        self.get_open_delay = AsyncMock(return_value=None)
        self.insert_delay = AsyncMock()
        self.update_delay = AsyncMock()
        self.close_delay = AsyncMock()
        self.delete_delays = AsyncMock(return_value=0)


def make_issue(
    issue_id: str = "issue-1",
    *,
    work_order_id: str = "wo-1",
    title: str = "Fuga en bomba",
    status: IssueStatus = IssueStatus.OPEN,
    priority: IssuePriority = IssuePriority.MEDIUM,
    stage: str | None = None,
    created_offset: int = 0,
    issue_notes: list[IssueNote] | None = None,
    delay: IssueDelay | None = None,
) -> Issue:
    created_at = BASE_TIME + timedelta(hours=created_offset)
    return Issue(
        id=issue_id,
        work_order_id=work_order_id,
        title=title,
        status=status,
        priority=priority,
        stage=stage,
        created_at=created_at,
        created_by="user-1",
        updated_at=created_at,
        updated_by="user-1",
        issue_notes=list(issue_notes or []),
        delay=delay,
    )


def make_note(
    note_id: str = "note-1",
    *,
    issue_id: str = "issue-1",
    content: str = "Revisado",
    offset: int = 0,
    user_email: str | None = "ana@planta.example",
) -> IssueNote:
    return IssueNote(
        id=note_id,
        issue_id=issue_id,
        content=content,
        created_at=BASE_TIME + timedelta(minutes=offset),
        created_by="user-1",
        user_email=user_email,
    )


def make_delay(
    issue_id: str = "issue-1",
    *,
    start: date = date(2024, 1, 1),
    end: date | None = None,
    delay_id: str | None = "delay-1",
) -> IssueDelay:
    return IssueDelay(issue_id=issue_id, start_date=start, end_date=end, id=delay_id)
