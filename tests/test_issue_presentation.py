from datetime import date, datetime, timezone

import pytest

from issue_tracker.issues.models import WorkOrder
from issue_tracker.issues.presentation import (
    delay_days,
    delay_label,
    email_handle,
    filter_issues,
    format_date,
    latest_note_preview,
    priority_badge,
    sort_issues,
    status_badge,
    visible_issues,
    work_order_label,
    work_orders_at,
)
from issue_tracker.issues.state import IssuePriority, IssueStatus
from tests.factories import make_delay, make_issue, make_note


@pytest.fixture
def mixed_issues():
    return [
        make_issue("low", priority=IssuePriority.LOW, created_offset=0),
        make_issue("critical", priority=IssuePriority.CRITICAL, created_offset=1),
        make_issue("resolved", priority=IssuePriority.HIGH, status=IssueStatus.RESOLVED, created_offset=2),
        make_issue("medium", priority=IssuePriority.MEDIUM, created_offset=3),
        make_issue("high", priority=IssuePriority.HIGH, created_offset=4),
    ]


def test_filter_splits_open_and_resolved(mixed_issues):
    open_ids = [issue.id for issue in filter_issues(mixed_issues, "open")]
    resolved_ids = [issue.id for issue in filter_issues(mixed_issues, "resolved")]

    assert open_ids == ["low", "critical", "medium", "high"]
    assert resolved_ids == ["resolved"]


def test_filter_rejects_unknown_value(mixed_issues):
    with pytest.raises(ValueError):
        filter_issues(mixed_issues, "all")  # type: ignore[arg-type]


def test_sort_by_date(mixed_issues):
    ascending = [issue.id for issue in sort_issues(mixed_issues, "date-asc")]
    descending = [issue.id for issue in sort_issues(mixed_issues, "date-desc")]

    assert ascending == ["low", "critical", "resolved", "medium", "high"]
    assert descending == list(reversed(ascending))


def test_sort_by_priority_is_stable():
    issues = [
        make_issue("low", priority=IssuePriority.LOW),
        make_issue("high-a", priority=IssuePriority.HIGH),
        make_issue("critical", priority=IssuePriority.CRITICAL),
        make_issue("high-b", priority=IssuePriority.HIGH),
        make_issue("medium", priority=IssuePriority.MEDIUM),
    ]

    ordered = [issue.id for issue in sort_issues(issues, "priority")]

    assert ordered == ["critical", "high-a", "high-b", "medium", "low"]


def test_visible_issues_filters_then_sorts(mixed_issues):
    shown = [issue.id for issue in visible_issues(mixed_issues, "open", "priority")]

    assert shown == ["critical", "high", "medium", "low"]


def test_delay_days_counts_both_ends():
    delay = make_delay(start=date(2024, 1, 1), end=date(2024, 1, 5))

    assert delay_days(delay) == 5
    assert delay_label(delay) == "5 días"


def test_open_delay_runs_until_today():
    delay = make_delay(start=date(2024, 1, 1))

    assert delay_days(delay, today=date(2024, 1, 1)) == 1
    assert delay_days(delay, today=date(2024, 1, 10)) == 10


def test_badges_use_localized_labels():
    assert priority_badge(IssuePriority.CRITICAL).label == "Crítica"
    assert priority_badge(IssuePriority.CRITICAL).color == "red"
    assert priority_badge(IssuePriority.LOW).label == "Baja"
    assert status_badge(IssueStatus.OPEN).label == "Abierto"
    assert status_badge(IssueStatus.RESOLVED).color == "green"


def test_format_date_uses_day_first():
    assert format_date(datetime(2024, 3, 7, 15, 30, tzinfo=timezone.utc)) == "07/03/2024"
    assert format_date(date(2024, 12, 31)) == "31/12/2024"


def test_latest_note_preview_uses_email_local_part():
    issue = make_issue(
        issue_notes=[
            make_note("note-1", content="Primera"),
            make_note("note-2", content="Segunda", offset=1, user_email="luis.perez@planta.example"),
        ]
    )

    assert latest_note_preview(issue) == ("Segunda", "luis.perez")
    assert latest_note_preview(make_issue()) is None
    assert email_handle(None) == ""


def test_work_order_helpers():
    work_orders = [
        WorkOrder(id="wo-1", ot="1001", client="ACME", location="INCO"),
        WorkOrder(id="wo-2", ot="1002", client="Globex", location="ANTI"),
    ]

    assert [item.id for item in work_orders_at(work_orders, "ANTI")] == ["wo-2"]
    assert work_order_label("wo-1", work_orders) == "OT: 1001 - ACME"
    assert work_order_label("missing", work_orders) == "OT: -"
