"""Issue tracking domain: models, persistence and the in-memory issue store."""

from .models import (
    Actor,
    DelayChange,
    DelayChangeKind,
    Issue,
    IssueDelay,
    IssueDraft,
    IssueNote,
    UpdateIssueCommand,
    WorkOrder,
)
from .state import IssuePriority, IssueStatus
from .store import (
    BackendError,
    IssueNotFoundError,
    IssueStore,
    IssueStoreError,
    IssueValidationError,
    UnauthenticatedError,
)

__all__ = [
    "Actor",
    "BackendError",
    "DelayChange",
    "DelayChangeKind",
    "Issue",
    "IssueDelay",
    "IssueDraft",
    "IssueNote",
    "IssueNotFoundError",
    "IssuePriority",
    "IssueStatus",
    "IssueStore",
    "IssueStoreError",
    "IssueValidationError",
    "UnauthenticatedError",
    "UpdateIssueCommand",
    "WorkOrder",
]
