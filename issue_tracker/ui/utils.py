from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

from issue_tracker.issues.models import Issue, IssueDelay, IssueNote, WorkOrder
from issue_tracker.issues.state import IssuePriority, IssueStatus


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_work_order(payload: Mapping[str, Any]) -> WorkOrder:
    """Convierte la respuesta JSON de una orden de trabajo."""

    return WorkOrder(
        id=str(payload["id"]),
        ot=str(payload.get("ot", "")),
        client=str(payload.get("client", "")),
        location=str(payload.get("location", "")),
    )


def parse_note(payload: Mapping[str, Any]) -> IssueNote:
    return IssueNote(
        id=str(payload["id"]),
        issue_id=str(payload["issue_id"]),
        content=str(payload.get("content", "")),
        created_at=_parse_datetime(payload["created_at"]),
        created_by=str(payload.get("created_by", "")),
        user_email=payload.get("user_email") or None,
    )


def parse_issue(payload: Mapping[str, Any]) -> Issue:
    """Convierte la respuesta JSON de un problema, con sus notas y demora."""

    delay_payload = payload.get("delay")
    delay = None
    if delay_payload:
        end_date = delay_payload.get("end_date")
        delay = IssueDelay(
            issue_id=str(payload["id"]),
            start_date=_parse_date(delay_payload["start_date"]),
            end_date=_parse_date(end_date) if end_date else None,
        )
    return Issue(
        id=str(payload["id"]),
        work_order_id=str(payload["work_order_id"]),
        title=str(payload.get("title", "")),
        status=IssueStatus(str(payload["status"])),
        priority=IssuePriority(str(payload["priority"])),
        stage=payload.get("stage") or None,
        created_at=_parse_datetime(payload["created_at"]),
        created_by=str(payload.get("created_by", "")),
        updated_at=_parse_datetime(payload["updated_at"]),
        updated_by=str(payload.get("updated_by", "")),
        issue_notes=[parse_note(item) for item in payload.get("issue_notes") or []],
        delay=delay,
    )


def build_delay_payload(start_date: date | None, end_date: date | None) -> dict[str, str | None] | None:
    """Valida el rango de la demora introducido en el formulario."""

    if start_date is None:
        if end_date is not None:
            raise ValueError("Indique la fecha de inicio de la demora")
        return None
    if end_date is not None and end_date < start_date:
        raise ValueError("La fecha de fin no puede ser anterior a la fecha de inicio")
    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat() if end_date else None,
    }
