"""Workflow definition management API endpoints."""

from typing import List, Optional
from uuid import UUID
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from docflow.api.deps import get_db
from docflow.core.exceptions import WorkflowError
from docflow.core.workflow.catalog import DefinitionSpec, WorkflowCatalog

router = APIRouter(prefix="/workflows", tags=["workflows"])


# Schemas
class ApprovalLevelResponse(BaseModel):
    level: int
    operation: Optional[str]
    approved_group_id: Optional[str]
    reverted_group_id: Optional[str]
    supervisory_group_id: Optional[str]
    init_group_id: Optional[str]
    email: bool
    scanning: bool

    class Config:
        from_attributes = True


class WorkflowResponse(BaseModel):
    id: UUID
    code: Optional[str]
    description: Optional[str]
    entity_type: str
    flow_type: str
    risk_rating: str
    channel_id: str
    purpose: str
    terminal_level: int
    created_by: Optional[str]
    updated_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    levels: List[ApprovalLevelResponse]

    class Config:
        from_attributes = True


class WorkflowListResponse(BaseModel):
    items: List[WorkflowResponse]
    total: int
    offset: int
    limit: int


def _http_error(e: WorkflowError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


# Endpoints
@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    db: Session = Depends(get_db),
    offset: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
):
    """List workflow definitions, newest first."""
    items, total = WorkflowCatalog(db).list(offset=offset, limit=limit)
    return WorkflowListResponse(
        items=[WorkflowResponse.model_validate(d) for d in items],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.get("/search", response_model=List[WorkflowResponse])
async def search_workflows(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """Search workflow definitions by code or description."""
    return [WorkflowResponse.model_validate(d) for d in WorkflowCatalog(db).search(q)]


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: UUID,
    db: Session = Depends(get_db),
):
    """Get a workflow definition with its levels."""
    try:
        definition = WorkflowCatalog(db).get(workflow_id)
    except WorkflowError as e:
        raise _http_error(e)
    return WorkflowResponse.model_validate(definition)


@router.post("", response_model=WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    spec: DefinitionSpec,
    db: Session = Depends(get_db),
):
    """Create a workflow definition."""
    try:
        definition = WorkflowCatalog(db).create(spec)
    except WorkflowError as e:
        raise _http_error(e)
    return WorkflowResponse.model_validate(definition)


@router.put("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: UUID,
    spec: DefinitionSpec,
    db: Session = Depends(get_db),
):
    """Update a workflow definition, replacing all of its levels."""
    try:
        definition = WorkflowCatalog(db).update(workflow_id, spec)
    except WorkflowError as e:
        db.rollback()
        raise _http_error(e)
    return WorkflowResponse.model_validate(definition)


@router.delete("/{workflow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workflow(
    workflow_id: UUID,
    db: Session = Depends(get_db),
):
    """Delete a workflow definition."""
    try:
        WorkflowCatalog(db).delete(workflow_id)
    except WorkflowError as e:
        raise _http_error(e)
