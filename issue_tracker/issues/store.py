from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Protocol, Sequence

from issue_tracker.core.logging import traced

from .models import (
    Actor,
    DelayChangeKind,
    Issue,
    IssueDelay,
    IssueDraft,
    IssueNote,
    UpdateIssueCommand,
    WorkOrder,
)
from .state import IssuePriority, IssueStatus

logger = logging.getLogger(__name__)

DELAY_PRIORITY_MESSAGE = "Solo se pueden agregar demoras a problemas de prioridad alta o crítica"


class IssueStoreError(RuntimeError):
    """Base error for issue store operations."""


class UnauthenticatedError(IssueStoreError):
    """Raised when a mutation is attempted without an authenticated actor."""


class IssueValidationError(IssueStoreError):
    """Raised when a requested change violates an issue invariant."""


class IssueNotFoundError(IssueStoreError):
    """Raised when the referenced issue does not exist."""


class BackendError(IssueStoreError):
    """Raised when a call against the backend fails."""


class IssueBackend(Protocol):
    async def list_issues(self, work_order_ids: Sequence[str]) -> list[Issue]:
        ...

    async def get_issue(self, issue_id: str) -> Issue | None:
        ...

    async def get_priority(self, issue_id: str) -> IssuePriority | None:
        ...

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
        ...

    async def update_issue(self, issue_id: str, changes: Mapping[str, Any], *, updated_by: str) -> Issue | None:
        ...

    async def list_notes(self, issue_ids: Sequence[str]) -> list[IssueNote]:
        ...

    async def insert_note(self, *, issue_id: str, content: str, created_by: str) -> str:
        ...

    async def get_note_with_user(self, note_id: str) -> IssueNote | None:
        ...

    async def list_delays(self, issue_ids: Sequence[str]) -> list[IssueDelay]:
        ...

    async def get_delay(self, issue_id: str) -> IssueDelay | None:
        ...

    async def get_open_delay(self, issue_id: str) -> IssueDelay | None:
        ...

    async def insert_delay(
        self, *, issue_id: str, start_date: date, end_date: date | None, created_by: str
    ) -> IssueDelay:
        ...

    async def update_delay(
        self, delay_id: str, *, start_date: date, end_date: date | None, updated_by: str
    ) -> IssueDelay | None:
        ...

    async def close_delay(self, delay_id: str, *, end_date: date, updated_by: str) -> IssueDelay | None:
        ...

    async def delete_delays(self, issue_id: str) -> int:
        ...


def work_order_ids_of(work_orders: Iterable[WorkOrder | Mapping[str, Any] | str | None]) -> list[str]:
    """Extract the non-empty identifiers of a mixed collection of work orders."""

    identifiers: list[str] = []
    for item in work_orders:
        if isinstance(item, WorkOrder):
            value: Any = item.id
        elif isinstance(item, Mapping):
            value = item.get("id")
        else:
            value = item
        if value:
            identifiers.append(str(value))
    return identifiers


def _require_actor(actor: Actor | None) -> Actor:
    if actor is None:
        raise UnauthenticatedError("No authenticated user")
    return actor


class IssueStore:
    """In-memory snapshot of the issues of a set of work orders.

    Mutations write through to the backend and then reconcile the snapshot.
    Loads never raise: any failure publishes an empty list. Mutations raise
    and leave already committed backend writes in place.
    """

    def __init__(self, backend: IssueBackend, *, today: Callable[[], date] = date.today) -> None:
        self._backend = backend
        self._today = today
        self._work_order_ids: list[str] = []
        self.issues: list[Issue] = []
        self.loading = True

    @property
    def work_order_ids(self) -> list[str]:
        return list(self._work_order_ids)

    def get(self, issue_id: str) -> Issue | None:
        return next((issue for issue in self.issues if issue.id == issue_id), None)

    async def load(self, work_orders: Iterable[WorkOrder | Mapping[str, Any] | str | None]) -> list[Issue]:
        self._work_order_ids = work_order_ids_of(work_orders)
        return await self.reload()

    async def reload(self) -> list[Issue]:
        self.loading = True
        try:
            with traced("issue_store.load", {"work_orders": len(self._work_order_ids)}):
                self.issues = await self._fetch(self._work_order_ids)
        except Exception as exc:
            logger.error("Error loading issues: %s", exc, exc_info=True)
            self.issues = []
        finally:
            self.loading = False
        return self.issues

    async def _fetch(self, work_order_ids: Sequence[str]) -> list[Issue]:
        if not work_order_ids:
            return []

        try:
            issues = await self._backend.list_issues(work_order_ids)
        except Exception as exc:
            logger.error("Error fetching issues: %s", exc)
            return []
        if not issues:
            return []

        issue_ids = [issue.id for issue in issues]
        notes_result, delays_result = await asyncio.gather(
            self._backend.list_notes(issue_ids),
            self._backend.list_delays(issue_ids),
            return_exceptions=True,
        )

        notes: list[IssueNote]
        if isinstance(notes_result, BaseException):
            logger.warning("Error fetching notes: %s", notes_result)
            notes = []
        else:
            notes = list(notes_result or [])

        delays: list[IssueDelay]
        if isinstance(delays_result, BaseException):
            logger.warning("Error fetching delays: %s", delays_result)
            delays = []
        else:
            delays = list(delays_result or [])

        notes_by_issue: dict[str, list[IssueNote]] = {}
        for note in notes:
            notes_by_issue.setdefault(note.issue_id, []).append(note)

        delay_by_issue: dict[str, IssueDelay] = {}
        for delay in delays:
            delay_by_issue.setdefault(delay.issue_id, delay)

        return [
            replace(
                issue,
                issue_notes=notes_by_issue.get(issue.id, []),
                delay=delay_by_issue.get(issue.id),
            )
            for issue in issues
        ]

    async def create_issue(self, draft: IssueDraft, *, actor: Actor | None) -> Issue:
        try:
            user = _require_actor(actor)
            with traced("issue_store.create", {"work_order_id": draft.work_order_id}):
                issue = await self._backend.insert_issue(
                    work_order_id=draft.work_order_id,
                    title=draft.title,
                    status=draft.status,
                    priority=draft.priority,
                    stage=draft.stage,
                    created_by=user.id,
                )
                if draft.notes is not None and draft.notes.strip():
                    await self._backend.insert_note(issue_id=issue.id, content=draft.notes, created_by=user.id)
        except IssueStoreError as exc:
            logger.error("Error creating issue: %s", exc)
            raise
        except Exception as exc:
            logger.error("Error creating issue: %s", exc)
            raise BackendError(f"Error creating issue: {exc}") from exc

        self.issues = [issue, *self.issues]
        return issue

    async def update_issue(
        self,
        issue_id: str,
        command: UpdateIssueCommand,
        *,
        actor: Actor | None,
    ) -> Issue | None:
        try:
            user = _require_actor(actor)
            with traced("issue_store.update", {"issue_id": issue_id}):
                current = await self._backend.get_issue(issue_id)
                if current is None:
                    raise IssueNotFoundError("Issue not found")

                if command.resolves:
                    await self._close_open_delay(issue_id, user)
                if command.delay_change.is_present:
                    await self._apply_delay_change(issue_id, command, user)
                note = command.note_to_add
                if note is not None:
                    await self._backend.insert_note(issue_id=issue_id, content=note, created_by=user.id)

                if not command.writes_issue:
                    if not self._work_order_ids:
                        self._work_order_ids = [current.work_order_id]
                    await self.reload()
                    return None

                updated = await self._backend.update_issue(issue_id, command.field_changes, updated_by=user.id)
                if updated is None:
                    raise IssueNotFoundError("Issue not found")
        except IssueStoreError as exc:
            logger.error("Error updating issue: %s", exc)
            raise
        except Exception as exc:
            logger.error("Error updating issue: %s", exc)
            raise BackendError(f"Error updating issue: {exc}") from exc

        self.issues = [self._merge(issue, updated) if issue.id == issue_id else issue for issue in self.issues]
        return updated

    async def _close_open_delay(self, issue_id: str, actor: Actor) -> None:
        delay = await self._backend.get_open_delay(issue_id)
        if delay is None or delay.id is None:
            return
        await self._backend.close_delay(delay.id, end_date=self._today(), updated_by=actor.id)

    async def _apply_delay_change(self, issue_id: str, command: UpdateIssueCommand, actor: Actor) -> None:
        change = command.delay_change
        priority = await self._backend.get_priority(issue_id)
        if priority is None:
            raise IssueNotFoundError("Issue not found")

        if change.kind == DelayChangeKind.REMOVE:
            await self._backend.delete_delays(issue_id)
            return

        if not priority.allows_delay:
            raise IssueValidationError(DELAY_PRIORITY_MESSAGE)

        start_date = change.start_date
        if start_date is None:
            raise IssueValidationError("A delay requires a start date")
        existing = await self._backend.get_delay(issue_id)
        if existing is not None and existing.id is not None:
            await self._backend.update_delay(
                existing.id,
                start_date=start_date,
                end_date=change.end_date,
                updated_by=actor.id,
            )
        else:
            await self._backend.insert_delay(
                issue_id=issue_id,
                start_date=start_date,
                end_date=change.end_date,
                created_by=actor.id,
            )

    async def add_issue_note(self, issue_id: str, content: str, *, actor: Actor | None) -> IssueNote:
        try:
            user = _require_actor(actor)
            with traced("issue_store.add_note", {"issue_id": issue_id}):
                if await self._backend.get_issue(issue_id) is None:
                    raise IssueNotFoundError("Issue not found")
                note_id = await self._backend.insert_note(issue_id=issue_id, content=content, created_by=user.id)
                note = await self._backend.get_note_with_user(note_id)
            if note is None:
                raise BackendError(f"Note {note_id} is not readable")
        except IssueStoreError as exc:
            logger.error("Error adding issue note: %s", exc)
            raise
        except Exception as exc:
            logger.error("Error adding issue note: %s", exc)
            raise BackendError(f"Error adding issue note: {exc}") from exc

        self.issues = [
            replace(issue, issue_notes=[*issue.issue_notes, note]) if issue.id == issue_id else issue
            for issue in self.issues
        ]
        return note

    @staticmethod
    def _merge(current: Issue, updated: Issue) -> Issue:
        return replace(updated, issue_notes=current.issue_notes, delay=current.delay)
