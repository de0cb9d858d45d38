"""Run-workflow API endpoints.

One endpoint per document type; all of them drive the same orchestrator.
Handlers are plain ``def`` because every run makes blocking calls to
other services.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from docflow.api.deps import get_collaborators, get_db
from docflow.core.exceptions import WorkflowError
from docflow.core.workflow import EntityType, WorkflowOrchestrator, WorkflowRunRequest
from docflow.services.collaborators import Collaborators

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wf-acc-cif", tags=["workflow-runs"])
remote_router = APIRouter(prefix="/wf-eacc-ecif", tags=["workflow-runs"])


class WorkflowRunResponse(BaseModel):
    message: str
    data: Dict[str, Any]


def run_workflow(
    entity_type: EntityType,
    document_id: str,
    request: WorkflowRunRequest,
    db: Session,
    collaborators: Collaborators,
) -> WorkflowRunResponse:
    """Run the orchestrator and translate its errors into HTTP answers."""
    try:
        snapshot = WorkflowOrchestrator(db, collaborators).run(entity_type, document_id, request)
    except WorkflowError as e:
        headers: Optional[Dict[str, str]] = None
        if e.retryable:
            headers = {"X-Retryable": "true"}
        if e.status_code >= 500:
            logger.error("%s run on %s failed: %s", entity_type.value, document_id, e.message)
        raise HTTPException(status_code=e.status_code, detail=e.message, headers=headers)
    return WorkflowRunResponse(message="Workflow updated", data=snapshot.to_payload())


# Endpoints
@router.put("/run-workflow-acc/{document_id}", response_model=WorkflowRunResponse)
def run_account_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the account-opening workflow."""
    return run_workflow(EntityType.ACCOUNT, document_id, request, db, collaborators)


@router.put("/run-workflow-cif/{document_id}", response_model=WorkflowRunResponse)
def run_cif_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the CIF workflow."""
    return run_workflow(EntityType.CIF, document_id, request, db, collaborators)


@router.put("/run-workflow-dao/{document_id}", response_model=WorkflowRunResponse)
def run_deposit_account_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the deposit account workflow."""
    return run_workflow(EntityType.DEPOSIT_ACCOUNT, document_id, request, db, collaborators)


@router.put("/run-workflow-rda/{document_id}", response_model=WorkflowRunResponse)
def run_recurring_deposit_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the recurring deposit account workflow."""
    return run_workflow(EntityType.RECURRING_DEPOSIT, document_id, request, db, collaborators)


@router.put("/run-workflow-cif-acc/{document_id}", response_model=WorkflowRunResponse)
def run_cif_and_account_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the combined CIF and account workflow."""
    return run_workflow(EntityType.CIF_AND_ACCOUNT, document_id, request, db, collaborators)


@router.put(
    "/run-workflow-cif-maintenance-acc-open/{document_id}",
    response_model=WorkflowRunResponse,
)
def run_cif_maintenance_account_open_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the workflow for an account opened on an existing customer."""
    return run_workflow(
        EntityType.CIF_MAINT_AND_ACCOUNT_OPEN, document_id, request, db, collaborators
    )


@remote_router.put("/run-workflow-eacc/{document_id}", response_model=WorkflowRunResponse)
def run_remote_account_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the digital-channel account workflow."""
    return run_workflow(EntityType.REMOTE_ACCOUNT, document_id, request, db, collaborators)


@remote_router.put("/run-workflow-ecif/{document_id}", response_model=WorkflowRunResponse)
def run_remote_cif_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the digital-channel CIF workflow."""
    return run_workflow(EntityType.REMOTE_CIF, document_id, request, db, collaborators)


@remote_router.put("/run-workflow-ecif-eacc/{document_id}", response_model=WorkflowRunResponse)
def run_remote_cif_and_account_workflow(
    document_id: str,
    request: WorkflowRunRequest = Body(...),
    db: Session = Depends(get_db),
    collaborators: Collaborators = Depends(get_collaborators),
):
    """Run the digital-channel combined CIF and account workflow."""
    return run_workflow(
        EntityType.REMOTE_CIF_AND_ACCOUNT, document_id, request, db, collaborators
    )
