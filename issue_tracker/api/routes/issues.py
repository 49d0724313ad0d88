from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field, model_validator

from issue_tracker.dependencies.auth import CurrentActor
from issue_tracker.dependencies.issues import get_issue_store
from issue_tracker.issues.models import UPDATABLE_FIELDS, DelayChange, Issue, IssueDraft, IssueNote, UpdateIssueCommand
from issue_tracker.issues.state import IssuePriority, IssueStatus
from issue_tracker.issues.store import (
    BackendError,
    IssueNotFoundError,
    IssueStore,
    IssueStoreError,
    IssueValidationError,
    UnauthenticatedError,
)

router = APIRouter(prefix="/issues", tags=["issues"])


class IssueNoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    issue_id: str
    content: str
    created_at: datetime
    created_by: str
    user_email: str | None = None


class IssueDelayPayload(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_date: date
    end_date: date | None = None

    @model_validator(mode="after")
    def _check_range(self) -> "IssueDelayPayload":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date cannot be earlier than start_date")
        return self


class IssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    work_order_id: str
    title: str
    status: IssueStatus
    priority: IssuePriority
    stage: str | None = None
    created_at: datetime
    created_by: str
    updated_at: datetime
    updated_by: str
    issue_notes: list[IssueNoteResponse] = Field(default_factory=list)
    delay: IssueDelayPayload | None = None


class IssueListResponse(BaseModel):
    issues: list[IssueResponse]
    loading: bool


class IssueCreateRequest(BaseModel):
    work_order_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=255)
    priority: IssuePriority = IssuePriority.MEDIUM
    status: IssueStatus = IssueStatus.OPEN
    stage: str | None = None
    notes: str | None = None

    def to_draft(self) -> IssueDraft:
        return IssueDraft(
            work_order_id=self.work_order_id,
            title=self.title,
            priority=self.priority,
            status=self.status,
            stage=self.stage,
            notes=self.notes,
        )


class IssueUpdateRequest(BaseModel):
    """Partial update; omitted fields are left untouched.

    ``stage: null`` clears the stage and ``delay: null`` removes the delay.
    """

    title: str | None = Field(default=None, min_length=1, max_length=255)
    status: IssueStatus | None = None
    priority: IssuePriority | None = None
    stage: str | None = None
    delay: IssueDelayPayload | None = None
    notes: str | None = None

    def to_command(self) -> UpdateIssueCommand:
        provided = self.model_fields_set
        if not provided:
            raise HTTPException(status_code=400, detail="No fields provided for update")

        changes = {}
        for name in UPDATABLE_FIELDS:
            if name not in provided:
                continue
            value = getattr(self, name)
            if value is None and name != "stage":
                raise HTTPException(status_code=422, detail=f"Field '{name}' cannot be null")
            changes[name] = value

        delay_change = DelayChange.keep()
        if "delay" in provided:
            if self.delay is None:
                delay_change = DelayChange.remove()
            else:
                delay_change = DelayChange.set(self.delay.start_date, self.delay.end_date)

        return UpdateIssueCommand(field_changes=changes, delay_change=delay_change, note=self.notes)


class IssueNoteCreateRequest(BaseModel):
    content: str = Field(..., min_length=1)


IssueStoreDep = Annotated[IssueStore, Depends(get_issue_store)]


def _to_response(issue: Issue) -> IssueResponse:
    return IssueResponse.model_validate(issue)


def _to_note_response(note: IssueNote) -> IssueNoteResponse:
    return IssueNoteResponse.model_validate(note)


def _raise_http_error(exc: IssueStoreError) -> NoReturn:
    if isinstance(exc, UnauthenticatedError):
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    if isinstance(exc, IssueNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, IssueValidationError):
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    if isinstance(exc, BackendError):
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    raise HTTPException(status_code=500, detail=str(exc)) from exc


@router.get("", response_model=IssueListResponse, summary="List issues of the given work orders")
async def list_issues(
    store: IssueStoreDep,
    work_order_ids: Annotated[list[str] | None, Query(alias="work_order_id")] = None,
) -> IssueListResponse:
    issues = await store.load(work_order_ids or [])
    return IssueListResponse(issues=[_to_response(issue) for issue in issues], loading=store.loading)


@router.post("", response_model=IssueResponse, status_code=status.HTTP_201_CREATED)
async def create_issue(payload: IssueCreateRequest, store: IssueStoreDep, actor: CurrentActor) -> IssueResponse:
    try:
        issue = await store.create_issue(payload.to_draft(), actor=actor)
    except IssueStoreError as exc:
        _raise_http_error(exc)
    return _to_response(issue)


@router.patch(
    "/{issue_id}",
    response_model=IssueResponse,
    responses={status.HTTP_204_NO_CONTENT: {"description": "Only delay or note changes were applied"}},
)
async def update_issue(
    issue_id: str,
    payload: IssueUpdateRequest,
    store: IssueStoreDep,
    actor: CurrentActor,
) -> IssueResponse | Response:
    command = payload.to_command()
    try:
        issue = await store.update_issue(issue_id, command, actor=actor)
    except IssueStoreError as exc:
        _raise_http_error(exc)
    if issue is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return _to_response(issue)


@router.post("/{issue_id}/notes", response_model=IssueNoteResponse, status_code=status.HTTP_201_CREATED)
async def add_issue_note(
    issue_id: str,
    payload: IssueNoteCreateRequest,
    store: IssueStoreDep,
    actor: CurrentActor,
) -> IssueNoteResponse:
    try:
        note = await store.add_issue_note(issue_id, payload.content, actor=actor)
    except IssueStoreError as exc:
        _raise_http_error(exc)
    return _to_note_response(note)
