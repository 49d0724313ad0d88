from __future__ import annotations

from fastapi import HTTPException, Request

from issue_tracker.issues.repository import IssueRepository
from issue_tracker.issues.store import IssueStore


def get_issue_repository(request: Request) -> IssueRepository:
    repository = getattr(request.app.state, "issue_repository", None)
    if repository is None:
        raise HTTPException(status_code=503, detail="Issue backend is not configured")
    return repository


async def get_issue_store(request: Request) -> IssueStore:
    """Build a request-scoped store over the shared repository."""

    return IssueStore(get_issue_repository(request))
