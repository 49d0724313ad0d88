from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from issue_tracker.dependencies.issues import get_issue_repository
from issue_tracker.issues.repository import IssueRepository

router = APIRouter(prefix="/work-orders", tags=["work-orders"])


class WorkOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ot: str
    client: str
    location: str


IssueRepositoryDep = Annotated[IssueRepository, Depends(get_issue_repository)]


@router.get("", response_model=list[WorkOrderResponse], summary="List work orders, optionally by location")
async def list_work_orders(
    repository: IssueRepositoryDep,
    location: str | None = Query(default=None),
) -> list[WorkOrderResponse]:
    work_orders = await repository.list_work_orders(location=location)
    return [WorkOrderResponse.model_validate(item) for item in work_orders]
