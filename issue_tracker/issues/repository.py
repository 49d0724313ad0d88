from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Mapping, Sequence
from uuid import uuid4

import asyncpg

from .models import UPDATABLE_FIELDS, Issue, IssueDelay, IssueNote, WorkOrder
from .state import IssuePriority, IssueStatus


class IssueRepository:
    """Data access layer for issues, their notes thread and delay records."""

    _CREATE_USERS_SQL = """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE
    )
    """

    _CREATE_WORK_ORDERS_SQL = """
    CREATE TABLE IF NOT EXISTS work_orders (
        id TEXT PRIMARY KEY,
        ot TEXT NOT NULL,
        client TEXT NOT NULL,
        location TEXT NOT NULL
    )
    """

    _CREATE_ISSUES_SQL = """
    CREATE TABLE IF NOT EXISTS issues (
        id TEXT PRIMARY KEY,
        work_order_id TEXT NOT NULL,
        title TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'OPEN',
        priority TEXT NOT NULL,
        stage TEXT NULL,
        created_by TEXT NOT NULL,
        updated_by TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """

    _CREATE_NOTES_SQL = """
    CREATE TABLE IF NOT EXISTS issue_notes (
        id TEXT PRIMARY KEY,
        issue_id TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
        content TEXT NOT NULL,
        created_by TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """

    _CREATE_DELAYS_SQL = """
    CREATE TABLE IF NOT EXISTS issue_delays (
        id TEXT PRIMARY KEY,
        issue_id TEXT NOT NULL REFERENCES issues(id) ON DELETE CASCADE,
        start_date DATE NOT NULL,
        end_date DATE NULL,
        created_by TEXT NOT NULL,
        updated_by TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """

    _CREATE_NOTES_VIEW_SQL = """
    CREATE OR REPLACE VIEW issue_notes_with_users AS
    SELECT n.id, n.issue_id, n.content, n.created_by, n.created_at, u.email AS user_email
    FROM issue_notes n
    LEFT JOIN users u ON u.id = n.created_by
    """

    _ISSUE_COLUMNS = (
        "id, work_order_id, title, status, priority, stage, created_by, updated_by, created_at, updated_at"
    )

    _LIST_ISSUES_SQL = f"""
    SELECT {_ISSUE_COLUMNS}
    FROM issues
    WHERE work_order_id = ANY($1::text[])
    ORDER BY created_at DESC
    """

    _SELECT_ISSUE_SQL = f"""
    SELECT {_ISSUE_COLUMNS}
    FROM issues
    WHERE id = $1
    """

    _SELECT_PRIORITY_SQL = """
    SELECT priority FROM issues WHERE id = $1
    """

    _INSERT_ISSUE_SQL = f"""
    INSERT INTO issues (id, work_order_id, title, status, priority, stage, created_by, updated_by)
    VALUES ($1, $2, $3, $4, $5, $6, $7, $7)
    RETURNING {_ISSUE_COLUMNS}
    """

    _LIST_NOTES_SQL = """
    SELECT id, issue_id, content, created_by, created_at, user_email
    FROM issue_notes_with_users
    WHERE issue_id = ANY($1::text[])
    ORDER BY created_at ASC
    """

    _SELECT_NOTE_WITH_USER_SQL = """
    SELECT id, issue_id, content, created_by, created_at, user_email
    FROM issue_notes_with_users
    WHERE id = $1
    """

    _INSERT_NOTE_SQL = """
    INSERT INTO issue_notes (id, issue_id, content, created_by)
    VALUES ($1, $2, $3, $4)
    RETURNING id
    """

    _LIST_DELAYS_SQL = """
    SELECT id, issue_id, start_date, end_date
    FROM issue_delays
    WHERE issue_id = ANY($1::text[])
    ORDER BY start_date ASC
    """

    _SELECT_DELAY_SQL = """
    SELECT id, issue_id, start_date, end_date
    FROM issue_delays
    WHERE issue_id = $1
    ORDER BY start_date ASC
    LIMIT 1
    """

    _SELECT_OPEN_DELAY_SQL = """
    SELECT id, issue_id, start_date, end_date
    FROM issue_delays
    WHERE issue_id = $1 AND end_date IS NULL
    ORDER BY start_date ASC
    LIMIT 1
    """

    _INSERT_DELAY_SQL = """
    INSERT INTO issue_delays (id, issue_id, start_date, end_date, created_by, updated_by)
    VALUES ($1, $2, $3, $4, $5, $5)
    RETURNING id, issue_id, start_date, end_date
    """

    _UPDATE_DELAY_SQL = """
    UPDATE issue_delays
    SET start_date = $2,
        end_date = $3,
        updated_by = $4,
        updated_at = CURRENT_TIMESTAMP
    WHERE id = $1
    RETURNING id, issue_id, start_date, end_date
    """

    _CLOSE_DELAY_SQL = """
    UPDATE issue_delays
    SET end_date = $2,
        updated_by = $3,
        updated_at = CURRENT_TIMESTAMP
    WHERE id = $1
    RETURNING id, issue_id, start_date, end_date
    """

    _DELETE_DELAYS_SQL = """
    DELETE FROM issue_delays WHERE issue_id = $1
    """

    _LIST_WORK_ORDERS_SQL = """
    SELECT id, ot, client, location
    FROM work_orders
    ORDER BY ot ASC
    """

    _LIST_WORK_ORDERS_BY_LOCATION_SQL = """
    SELECT id, ot, client, location
    FROM work_orders
    WHERE location = $1
    ORDER BY ot ASC
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self._pool = pool

    async def ensure_schema(self) -> None:
        async with self._pool.acquire() as connection:
            await connection.execute(self._CREATE_USERS_SQL)
            await connection.execute(self._CREATE_WORK_ORDERS_SQL)
            await connection.execute(self._CREATE_ISSUES_SQL)
            await connection.execute(self._CREATE_NOTES_SQL)
            await connection.execute(self._CREATE_DELAYS_SQL)
            await connection.execute(self._CREATE_NOTES_VIEW_SQL)

    # Issues

    async def list_issues(self, work_order_ids: Sequence[str]) -> list[Issue]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._LIST_ISSUES_SQL, list(work_order_ids))
        return [self._row_to_issue(row) for row in rows]

    async def get_issue(self, issue_id: str) -> Issue | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._SELECT_ISSUE_SQL, issue_id)
        if row is None:
            return None
        return self._row_to_issue(row)

    async def get_priority(self, issue_id: str) -> IssuePriority | None:
        async with self._pool.acquire() as connection:
            value = await connection.fetchval(self._SELECT_PRIORITY_SQL, issue_id)
        if value is None:
            return None
        return IssuePriority(str(value))

    async def insert_issue(
        self,
        *,
        work_order_id: str,
        title: str,
        status: IssueStatus,
        priority: IssuePriority,
        stage: str | None,
        created_by: str,
    ) -> Issue:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(
                self._INSERT_ISSUE_SQL,
                str(uuid4()),
                work_order_id,
                title,
                status.value,
                priority.value,
                stage,
                created_by,
            )
        if row is None:
            raise RuntimeError("Failed to insert issue")
        return self._row_to_issue(row)

    async def update_issue(
        self,
        issue_id: str,
        changes: Mapping[str, Any],
        *,
        updated_by: str,
    ) -> Issue | None:
        columns = [column for column in UPDATABLE_FIELDS if column in changes]
        if not columns:
            raise ValueError("No issue fields to update")

        assignments = [f"{column} = ${index}" for index, column in enumerate(columns, start=2)]
        values = [_to_db_value(changes[column]) for column in columns]
        updated_by_index = len(columns) + 2
        statement = (
            "UPDATE issues SET "
            + ", ".join(assignments)
            + f", updated_by = ${updated_by_index}, updated_at = CURRENT_TIMESTAMP"
            + f" WHERE id = $1 RETURNING {self._ISSUE_COLUMNS}"
        )
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(statement, issue_id, *values, updated_by)
        if row is None:
            return None
        return self._row_to_issue(row)

    # Notes

    async def list_notes(self, issue_ids: Sequence[str]) -> list[IssueNote]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._LIST_NOTES_SQL, list(issue_ids))
        return [self._row_to_note(row) for row in rows]

    async def insert_note(self, *, issue_id: str, content: str, created_by: str) -> str:
        async with self._pool.acquire() as connection:
            note_id = await connection.fetchval(
                self._INSERT_NOTE_SQL,
                str(uuid4()),
                issue_id,
                content,
                created_by,
            )
        if note_id is None:
            raise RuntimeError("Failed to insert issue note")
        return str(note_id)

    async def get_note_with_user(self, note_id: str) -> IssueNote | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._SELECT_NOTE_WITH_USER_SQL, note_id)
        if row is None:
            return None
        return self._row_to_note(row)

    # Delays

    async def list_delays(self, issue_ids: Sequence[str]) -> list[IssueDelay]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._LIST_DELAYS_SQL, list(issue_ids))
        return [self._row_to_delay(row) for row in rows]

    async def get_delay(self, issue_id: str) -> IssueDelay | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._SELECT_DELAY_SQL, issue_id)
        if row is None:
            return None
        return self._row_to_delay(row)

    async def get_open_delay(self, issue_id: str) -> IssueDelay | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._SELECT_OPEN_DELAY_SQL, issue_id)
        if row is None:
            return None
        return self._row_to_delay(row)

    async def insert_delay(
        self,
        *,
        issue_id: str,
        start_date: date,
        end_date: date | None,
        created_by: str,
    ) -> IssueDelay:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(
                self._INSERT_DELAY_SQL,
                str(uuid4()),
                issue_id,
                start_date,
                end_date,
                created_by,
            )
        if row is None:
            raise RuntimeError("Failed to insert issue delay")
        return self._row_to_delay(row)

    async def update_delay(
        self,
        delay_id: str,
        *,
        start_date: date,
        end_date: date | None,
        updated_by: str,
    ) -> IssueDelay | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._UPDATE_DELAY_SQL, delay_id, start_date, end_date, updated_by)
        if row is None:
            return None
        return self._row_to_delay(row)

    async def close_delay(self, delay_id: str, *, end_date: date, updated_by: str) -> IssueDelay | None:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._CLOSE_DELAY_SQL, delay_id, end_date, updated_by)
        if row is None:
            return None
        return self._row_to_delay(row)

    async def delete_delays(self, issue_id: str) -> int:
        async with self._pool.acquire() as connection:
            result = await connection.execute(self._DELETE_DELAYS_SQL, issue_id)
        return _affected_rows(result)

    # Work orders

    async def list_work_orders(self, *, location: str | None = None) -> list[WorkOrder]:
        async with self._pool.acquire() as connection:
            if location is None:
                rows = await connection.fetch(self._LIST_WORK_ORDERS_SQL)
            else:
                rows = await connection.fetch(self._LIST_WORK_ORDERS_BY_LOCATION_SQL, location)
        return [self._row_to_work_order(row) for row in rows]

    @staticmethod
    def _row_to_issue(row: Mapping[str, Any]) -> Issue:
        stage = row.get("stage")
        return Issue(
            id=str(row["id"]),
            work_order_id=str(row["work_order_id"]),
            title=str(row["title"]),
            status=IssueStatus(str(row["status"])),
            priority=IssuePriority(str(row["priority"])),
            stage=str(stage) if stage is not None else None,
            created_by=str(row["created_by"]),
            updated_by=str(row["updated_by"]),
            created_at=_ensure_datetime(row["created_at"]),
            updated_at=_ensure_datetime(row["updated_at"]),
        )

    @staticmethod
    def _row_to_note(row: Mapping[str, Any]) -> IssueNote:
        email = row.get("user_email")
        return IssueNote(
            id=str(row["id"]),
            issue_id=str(row["issue_id"]),
            content=str(row["content"]),
            created_by=str(row["created_by"]),
            created_at=_ensure_datetime(row["created_at"]),
            user_email=str(email) if email else None,
        )

    @staticmethod
    def _row_to_delay(row: Mapping[str, Any]) -> IssueDelay:
        end_date = row.get("end_date")
        return IssueDelay(
            id=str(row["id"]),
            issue_id=str(row["issue_id"]),
            start_date=_ensure_date(row["start_date"]),
            end_date=_ensure_date(end_date) if end_date is not None else None,
        )

    @staticmethod
    def _row_to_work_order(row: Mapping[str, Any]) -> WorkOrder:
        return WorkOrder(
            id=str(row["id"]),
            ot=str(row["ot"]),
            client=str(row["client"]),
            location=str(row["location"]),
        )


def _to_db_value(value: Any) -> Any:
    if isinstance(value, (IssueStatus, IssuePriority)):
        return value.value
    return value


def _affected_rows(result: Any) -> int:
    if isinstance(result, str):
        tail = result.strip().rsplit(" ", 1)[-1]
        return int(tail) if tail.isdigit() else 0
    return int(result or 0)


def _ensure_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    return datetime.fromisoformat(str(value))


def _ensure_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
