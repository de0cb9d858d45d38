"""Workflow orchestrator.

Drives one action on one document end to end:

1. validate the request
2. fetch the document and derive its purpose
3. load the matching definition and its levels
4. read the execution record (no lock) and resolve the transition, looking
   up approver groups as needed
5. in one short ledger transaction: persist the transition and its history,
   failing with a retryable conflict if the record moved since step 4
6. fire completion effects and write the status back to the document's
   service
7. forward comments and record history (best effort)

No database lock is held while a collaborator is called. If step 6 fails,
a second ledger transaction puts the record back where step 4 found it.
When that is no longer possible the failure is reported with
``remote_applied`` set so the document can be reconciled.
"""

import logging
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from docflow.core.config import Settings, get_settings
from docflow.core.exceptions import InternalError, ValidationError, WorkflowError
from docflow.db.models import WorkflowDefinition
from docflow.services.collaborators import Collaborators

from .catalog import WorkflowCatalog
from .completion import CompletionGate
from .entities import EntityDescriptor, get_descriptor
from .ledger import ExecutionLedger, LedgerPosition
from .resolver import TransitionResolver, TransitionResult
from .snapshots import DocumentSnapshot
from .states import (
    ORIGIN_LEVEL,
    EntityType,
    HistoryOperation,
    Purpose,
    ResolvedRule,
    WorkflowAction,
    WORKFLOW_COMPLETE_MARKER,
)

logger = logging.getLogger(__name__)

# Service that owns the picked-by lock on deposit accounts
RELEASE_PICK_SOURCE = "acc_service_url"


class WorkflowRunRequest(BaseModel):
    """Body of a run-workflow call."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    workflow_type: Optional[str] = Field(
        None, validation_alias=AliasChoices("workflowType", "workflow", "workflow_type")
    )
    flow_type: Optional[str] = Field(None, alias="flowType")
    risk_rating: Optional[str] = Field(None, alias="riskRating")
    channel_id: Optional[str] = Field(None, alias="channelId")
    status: Optional[str] = None
    comments: Optional[Any] = None
    discrepancy: Optional[Any] = None
    updated_by: Optional[str] = Field(None, alias="updatedBy")

    REQUIRED: ClassVar[Tuple[Tuple[str, str], ...]] = (
        ("workflow_type", "workflowType"),
        ("flow_type", "flowType"),
        ("risk_rating", "riskRating"),
        ("channel_id", "channelId"),
    )

    def missing_fields(self) -> List[str]:
        return [name for attr, name in self.REQUIRED if not getattr(self, attr)]

    @property
    def action(self) -> WorkflowAction:
        return WorkflowAction.from_status(self.status)

    @property
    def has_notes(self) -> bool:
        return bool(self.comments) or bool(self.discrepancy)


class WorkflowOrchestrator:
    """
    Runs workflow actions for every entity type through one code path.

    Entity specifics (where the document lives, how its snapshot is nested,
    what completion does) come from :mod:`.entities`.
    """

    def __init__(
        self,
        db: Session,
        collaborators: Collaborators,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.collaborators = collaborators
        self.settings = settings or get_settings()
        self.catalog = WorkflowCatalog(db)
        self.ledger = ExecutionLedger(db)
        self.resolver = TransitionResolver(collaborators.directory)
        self.gate = CompletionGate(collaborators.exchange)

    def run(
        self,
        entity_type: EntityType,
        document_id: str,
        request: WorkflowRunRequest,
    ) -> DocumentSnapshot:
        """
        Apply the requested action to a document.

        Args:
            entity_type: Entry point the call came in on
            document_id: Id of the document in its system of record
            request: Selector fields, status and optional notes

        Returns:
            The document snapshot as written back to its service

        Raises:
            ValidationError: If a required field is missing or inconsistent
            NotFoundError: If the document or definition does not exist
            CollaboratorError: If a remote call fails or a document is malformed
            ConflictError: If a concurrent transition won the race
            InternalError: On any other failure
        """
        entity_type = EntityType(entity_type)
        self._validate(entity_type, request)
        descriptor = get_descriptor(entity_type)
        document_id = str(document_id)

        logger.info(
            "Running %s workflow on %s (action=%s)",
            entity_type.value, document_id, request.action.value,
        )

        try:
            return self._run(entity_type, descriptor, document_id, request)
        except WorkflowError:
            raise
        except Exception as e:
            logger.exception("Workflow run failed for %s %s", entity_type.value, document_id)
            raise InternalError(f"Workflow run failed: {e}") from e

    def _run(
        self,
        entity_type: EntityType,
        descriptor: EntityDescriptor,
        document_id: str,
        request: WorkflowRunRequest,
    ) -> DocumentSnapshot:
        action = request.action
        snapshot = self._fetch(descriptor, document_id)
        purpose = snapshot.purpose
        current_status = snapshot.status_for(purpose)

        definition = self.catalog.find_definition(
            entity_type, request.flow_type, request.risk_rating, request.channel_id, purpose
        )
        hierarchy = self.catalog.load_hierarchy(definition)

        prior = self.ledger.current(definition.id, document_id, purpose)
        stale = None
        if prior is not None and prior.current_level == ORIGIN_LEVEL:
            stale, prior = prior, None
        position = LedgerPosition.of(prior)

        result = self.resolver.resolve(definition, hierarchy, current_status, action, prior)

        written_version = None
        with self.ledger.transaction() as tx:
            self.ledger.delete_if_at_origin(tx, stale)
            if result.matched:
                record = self.ledger.apply(tx, definition, document_id, purpose, result, prior)
                written_version = record.version if record is not None else None
                self.ledger.record_history(
                    tx, definition, document_id, purpose, action, result,
                    from_level=position.level if position else None,
                    from_status=position.status_label if position else None,
                    actor=request.updated_by,
                    comment=request.comments if isinstance(request.comments, str) else None,
                )

        remote_applied = False
        try:
            remote_applied = self.gate.complete(
                descriptor, definition, result, snapshot,
                document_id=document_id,
                purpose=purpose,
                channel_id=request.channel_id,
                actor=request.updated_by,
            )
            self._write_back(
                snapshot, purpose, result,
                at_terminal=result.level == definition.terminal_level,
            )
            self.collaborators.documents.update(
                descriptor.status_source, descriptor.update_url(document_id), snapshot.to_payload()
            )
            remote_applied = True
            self._release_pick(descriptor, document_id)
        except Exception as e:
            if result.matched:
                self._compensate(
                    definition, document_id, purpose, action, result,
                    position, written_version, remote_applied, e,
                )
            elif remote_applied:
                logger.critical(
                    "Document update for %s failed after remote effects were applied", document_id
                )
            if remote_applied and not isinstance(e, WorkflowError):
                raise InternalError(
                    f"Workflow run failed after remote effects: {e}", remote_applied=True
                ) from e
            raise

        logger.info(
            "%s %s now at level %s (%s)%s",
            entity_type.value, document_id, result.level, result.status_label,
            " - workflow complete" if result.completed else "",
        )

        self._after_commit(entity_type, document_id, request, purpose, snapshot)
        return snapshot

    def _validate(self, entity_type: EntityType, request: WorkflowRunRequest) -> None:
        missing = request.missing_fields()
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}", field=missing[0]
            )
        if request.workflow_type != entity_type.value:
            raise ValidationError(
                f"workflowType {request.workflow_type} does not match {entity_type.value}",
                field="workflowType",
            )

    def _fetch(self, descriptor: EntityDescriptor, document_id: str) -> DocumentSnapshot:
        body = self.collaborators.documents.fetch(
            descriptor.source, descriptor.fetch_url(document_id)
        )
        return descriptor.extract(body)

    def _compensate(
        self,
        definition: WorkflowDefinition,
        document_id: str,
        purpose: Purpose,
        action: WorkflowAction,
        result: TransitionResult,
        position: Optional[LedgerPosition],
        written_version: Optional[int],
        remote_applied: bool,
        error: Exception,
    ) -> None:
        """Undo a committed transition whose remote effects did not all land."""
        restored = TransitionResult(
            position.status_label if position else None,
            position.level if position else ORIGIN_LEVEL,
            ResolvedRule.COMPENSATE,
        )
        try:
            with self.ledger.transaction() as tx:
                self.ledger.restore(
                    tx, definition, document_id, purpose,
                    written_version=written_version, position=position,
                )
                self.ledger.record_history(
                    tx, definition, document_id, purpose, action, restored,
                    from_level=result.level,
                    from_status=result.status_label,
                    metadata={"error": str(error), "remote_applied": remote_applied},
                )
        except Exception as restore_error:
            logger.critical(
                "Could not restore execution record for %s after failed update: %s",
                document_id, restore_error,
            )
            raise InternalError(
                f"Ledger for {document_id} is ahead of the document: {error}",
                remote_applied=remote_applied,
            ) from error

        if remote_applied:
            logger.critical(
                "Execution record for %s restored but remote effects were already applied",
                document_id,
            )
        else:
            logger.warning("Execution record for %s restored after failed update", document_id)

    @staticmethod
    def _write_back(
        snapshot: DocumentSnapshot,
        purpose: Purpose,
        result: TransitionResult,
        *,
        at_terminal: bool,
    ) -> None:
        snapshot.set_status(purpose, result.status_label)
        if purpose == Purpose.ONBOARDING:
            snapshot.workflow_complete = WORKFLOW_COMPLETE_MARKER if at_terminal else None
            snapshot.mark_permanent(at_terminal)
        snapshot.picked_by = None

    def _release_pick(self, descriptor: EntityDescriptor, document_id: str) -> None:
        if descriptor.release_pick_path:
            self.collaborators.documents.update(
                RELEASE_PICK_SOURCE, descriptor.release_pick_path.format(id=document_id), {}
            )

    def _after_commit(
        self,
        entity_type: EntityType,
        document_id: str,
        request: WorkflowRunRequest,
        purpose: Purpose,
        snapshot: DocumentSnapshot,
    ) -> None:
        if request.has_notes:
            notes = {
                "workflow": entity_type.value,
                "flowType": request.flow_type,
                "riskRating": request.risk_rating,
                "channelId": request.channel_id,
                "status": request.status,
                "purpose": purpose.value,
                "comments": request.comments,
                "discrepancy": request.discrepancy,
                "updatedBy": request.updated_by,
            }
            try:
                self.collaborators.comments.append(document_id, notes)
            except Exception:
                logger.exception("Failed to forward comments for %s", document_id)

        entity: Dict[str, Any] = {
            **snapshot.to_payload(),
            "purpose": purpose.value,
            "workflow": entity_type.value,
            "riskRating": request.risk_rating,
        }
        try:
            self.collaborators.history.record(
                entity,
                entity_type.value,
                HistoryOperation.MODIFIED.value,
                request.updated_by or self.settings.history_actor_id,
            )
        except Exception:
            logger.exception("Failed to record history for %s", document_id)
