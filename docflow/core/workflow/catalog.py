"""Workflow catalog: definitions and their approval levels.

Definitions are looked up by their selector tuple on every transition and
administered through create/update/delete. Updating a definition always
replaces its whole level set.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docflow.core.exceptions import ConflictError, NotFoundError, ValidationError
from docflow.db.models import ApprovalLevel, WorkflowDefinition

from .states import SUBMIT_OPERATION, EntityType, Purpose

logger = logging.getLogger(__name__)


class LevelSpec(BaseModel):
    """One approval level as supplied by an administrator."""

    model_config = ConfigDict(populate_by_name=True)

    level: int
    operation: Optional[str] = None
    approved_group_id: Optional[str] = Field(None, alias="approvedAssigneeGroupId")
    reverted_group_id: Optional[str] = Field(None, alias="revertedAssigneeGroupId")
    supervisory_group_id: Optional[str] = Field(None, alias="supervisoryGroupId")
    init_group_id: Optional[str] = Field(None, alias="initGroupId")
    email: bool = False
    scanning: bool = False


class DefinitionSpec(BaseModel):
    """A workflow definition with its full level set."""

    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    description: Optional[str] = None
    entity_type: EntityType = Field(..., alias="workflow")
    flow_type: str = Field(..., min_length=1, alias="flowType")
    risk_rating: str = Field(..., min_length=1, alias="riskRating")
    channel_id: str = Field(..., min_length=1, alias="channelId")
    purpose: Purpose = Purpose.ONBOARDING
    terminal_level: Optional[int] = Field(None, alias="level")
    levels: List[LevelSpec] = Field(default_factory=list, alias="groupDetails")
    created_by: Optional[str] = Field(None, alias="createdBy")
    updated_by: Optional[str] = Field(None, alias="updatedBy")

    @property
    def selector(self) -> Tuple[str, str, str, str, str]:
        return (
            self.entity_type.value,
            self.flow_type,
            self.risk_rating,
            self.channel_id,
            self.purpose.value,
        )


def validate_hierarchy(levels: List[LevelSpec], terminal_level: Optional[int] = None) -> int:
    """
    Check a level set and return its terminal level.

    Raises:
        ValidationError: If the levels do not form a valid chain
    """
    if not levels:
        raise ValidationError("A workflow needs at least one level", field="groupDetails")

    numbers = [lvl.level for lvl in levels]
    if any(n <= 0 for n in numbers):
        raise ValidationError("Level numbers must be positive", field="groupDetails")
    if len(set(numbers)) != len(numbers):
        raise ValidationError("Level numbers must be unique", field="groupDetails")

    for lvl in levels:
        if lvl.operation is not None and lvl.operation != SUBMIT_OPERATION:
            raise ValidationError(
                f"Unknown operation '{lvl.operation}' at level {lvl.level}",
                field="groupDetails",
            )

    submits = [lvl for lvl in levels if lvl.operation == SUBMIT_OPERATION]
    if len(submits) != 1:
        raise ValidationError(
            "Exactly one level must carry the Submit operation", field="groupDetails"
        )
    lowest = min(numbers)
    if submits[0].level != lowest:
        raise ValidationError("The Submit level must be the lowest level", field="groupDetails")
    if not submits[0].supervisory_group_id:
        raise ValidationError(
            "The Submit level needs a supervisory group", field="groupDetails"
        )

    highest = max(numbers)
    if sorted(numbers) != list(range(lowest, highest + 1)):
        raise ValidationError("Level numbers must be contiguous", field="groupDetails")

    if terminal_level is not None and terminal_level != highest:
        raise ValidationError(
            f"Terminal level {terminal_level} does not match the last level {highest}",
            field="level",
        )
    return highest


class WorkflowCatalog:
    """Storage and lookup of workflow definitions."""

    def __init__(self, db: Session):
        self.db = db

    def find_definition(
        self,
        entity_type: EntityType,
        flow_type: str,
        risk_rating: str,
        channel_id: str,
        purpose: Purpose,
    ) -> WorkflowDefinition:
        """
        Get the definition for a selector tuple.

        Raises:
            NotFoundError: If no definition matches
        """
        definition = self.db.query(WorkflowDefinition).filter(
            and_(
                WorkflowDefinition.entity_type == EntityType(entity_type).value,
                WorkflowDefinition.flow_type == flow_type,
                WorkflowDefinition.risk_rating == risk_rating,
                WorkflowDefinition.channel_id == channel_id,
                WorkflowDefinition.purpose == Purpose(purpose).value,
            )
        ).first()

        if not definition:
            raise NotFoundError(
                f"No {Purpose(purpose).value} workflow for {EntityType(entity_type).value} "
                f"(flowType={flow_type}, riskRating={risk_rating}, channelId={channel_id})"
            )
        return definition

    def load_hierarchy(self, definition: WorkflowDefinition) -> List[ApprovalLevel]:
        """Get the levels of a definition in ascending order."""
        return self.db.query(ApprovalLevel).filter(
            ApprovalLevel.definition_id == definition.id
        ).order_by(ApprovalLevel.level).all()

    def get(self, definition_id: UUID) -> WorkflowDefinition:
        definition = self.db.query(WorkflowDefinition).filter(
            WorkflowDefinition.id == definition_id
        ).first()
        if not definition:
            raise NotFoundError(f"Workflow {definition_id} not found")
        return definition

    def list(self, offset: int = 0, limit: int = 10) -> Tuple[List[WorkflowDefinition], int]:
        """Page through definitions, newest first."""
        query = self.db.query(WorkflowDefinition)
        total = query.count()
        items = query.order_by(
            WorkflowDefinition.created_at.desc()
        ).offset(offset).limit(limit).all()
        return items, total

    def search(self, term: str, limit: int = 50) -> List[WorkflowDefinition]:
        """Find definitions whose code or description contains ``term``."""
        pattern = f"%{term}%"
        return self.db.query(WorkflowDefinition).filter(
            or_(
                WorkflowDefinition.code.ilike(pattern),
                WorkflowDefinition.description.ilike(pattern),
            )
        ).order_by(WorkflowDefinition.code).limit(limit).all()

    def create(self, spec: DefinitionSpec) -> WorkflowDefinition:
        """
        Create a definition with its levels.

        Raises:
            ValidationError: If the level set is invalid
            ConflictError: If a definition already exists for the selector
        """
        terminal_level = validate_hierarchy(spec.levels, spec.terminal_level)
        self._ensure_unique(spec)

        definition = WorkflowDefinition(
            code=spec.code,
            description=spec.description,
            entity_type=spec.entity_type.value,
            flow_type=spec.flow_type,
            risk_rating=spec.risk_rating,
            channel_id=spec.channel_id,
            purpose=spec.purpose.value,
            terminal_level=terminal_level,
            created_by=spec.created_by,
            updated_by=spec.updated_by or spec.created_by,
        )
        definition.levels = [self._build_level(lvl) for lvl in spec.levels]
        self.db.add(definition)
        self._commit(spec)
        self.db.refresh(definition)

        logger.info("Created workflow %s %s", definition.id, spec.selector)
        return definition

    def update(self, definition_id: UUID, spec: DefinitionSpec) -> WorkflowDefinition:
        """
        Replace a definition's attributes and its whole level set.

        Raises:
            NotFoundError: If the definition does not exist
            ValidationError: If the level set is invalid
            ConflictError: If the new selector is taken by another definition
        """
        definition = self.get(definition_id)
        terminal_level = validate_hierarchy(spec.levels, spec.terminal_level)
        self._ensure_unique(spec, exclude_id=definition.id)

        definition.code = spec.code
        definition.description = spec.description
        definition.entity_type = spec.entity_type.value
        definition.flow_type = spec.flow_type
        definition.risk_rating = spec.risk_rating
        definition.channel_id = spec.channel_id
        definition.purpose = spec.purpose.value
        definition.terminal_level = terminal_level
        definition.updated_by = spec.updated_by

        # Old levels must be gone before the new ones hit the unique constraint
        definition.levels.clear()
        self.db.flush()
        definition.levels.extend(self._build_level(lvl) for lvl in spec.levels)
        self._commit(spec)
        self.db.refresh(definition)

        logger.info("Updated workflow %s with %d levels", definition.id, len(spec.levels))
        return definition

    def delete(self, definition_id: UUID) -> None:
        definition = self.get(definition_id)
        self.db.delete(definition)
        self.db.commit()
        logger.info("Deleted workflow %s", definition_id)

    def _ensure_unique(self, spec: DefinitionSpec, exclude_id: Optional[UUID] = None) -> None:
        query = self.db.query(WorkflowDefinition).filter(
            and_(
                WorkflowDefinition.entity_type == spec.entity_type.value,
                WorkflowDefinition.flow_type == spec.flow_type,
                WorkflowDefinition.risk_rating == spec.risk_rating,
                WorkflowDefinition.channel_id == spec.channel_id,
                WorkflowDefinition.purpose == spec.purpose.value,
            )
        )
        if exclude_id is not None:
            query = query.filter(WorkflowDefinition.id != exclude_id)
        if query.first():
            raise ConflictError(f"A workflow already exists for {spec.selector}")

    def _commit(self, spec: DefinitionSpec) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError(f"A workflow already exists for {spec.selector}") from e

    @staticmethod
    def _build_level(spec: LevelSpec) -> ApprovalLevel:
        return ApprovalLevel(
            level=spec.level,
            operation=spec.operation,
            approved_group_id=spec.approved_group_id,
            reverted_group_id=spec.reverted_group_id,
            supervisory_group_id=spec.supervisory_group_id,
            init_group_id=spec.init_group_id,
            email=spec.email,
            scanning=spec.scanning,
        )


def definition_to_dict(definition: WorkflowDefinition) -> Dict[str, Any]:
    """Serialize a definition the way administrators submit it."""
    return {
        "id": str(definition.id),
        "code": definition.code,
        "description": definition.description,
        "workflow": definition.entity_type,
        "flowType": definition.flow_type,
        "riskRating": definition.risk_rating,
        "channelId": definition.channel_id,
        "purpose": definition.purpose,
        "level": definition.terminal_level,
        "createdBy": definition.created_by,
        "updatedBy": definition.updated_by,
        "groupDetails": [
            {
                "level": lvl.level,
                "operation": lvl.operation,
                "approvedAssigneeGroupId": lvl.approved_group_id,
                "revertedAssigneeGroupId": lvl.reverted_group_id,
                "supervisoryGroupId": lvl.supervisory_group_id,
                "initGroupId": lvl.init_group_id,
                "email": lvl.email,
                "scanning": lvl.scanning,
            }
            for lvl in definition.levels
        ],
    }
