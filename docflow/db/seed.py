"""Database seeding for docflow.

Loads workflow definitions from a YAML file. Seeding is idempotent: a
definition whose selector already exists is left untouched.

File layout::

    workflows:
      - code: ACC-LOW-WEB
        workflow: ACCOUNT
        flowType: INDIVIDUAL
        riskRating: LOW
        channelId: web
        purpose: ONBOARDING
        groupDetails:
          - {level: 1, operation: Submit, supervisoryGroupId: g-supervisor, initGroupId: g-branch}
          - {level: 2, approvedAssigneeGroupId: g-compliance, revertedAssigneeGroupId: g-branch}
          - {level: 3, revertedAssigneeGroupId: g-supervisor}
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import ValidationError as SchemaError
from sqlalchemy import and_
from sqlalchemy.orm import Session

from docflow.core.exceptions import ValidationError
from docflow.core.workflow.catalog import DefinitionSpec, WorkflowCatalog
from docflow.db.models import WorkflowDefinition

logger = logging.getLogger(__name__)


def load_definitions(path: Union[str, Path]) -> List[DefinitionSpec]:
    """
    Read definition specs from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValidationError: If the file is not a list of valid definitions
    """
    seed_file = Path(path)
    if not seed_file.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    with seed_file.open("r") as f:
        data = yaml.safe_load(f) or {}

    if isinstance(data, dict):
        data = data.get("workflows", [])
    if not isinstance(data, list):
        raise ValidationError(
            f"Seed file root must be a list of workflows, got {type(data).__name__}"
        )

    specs = []
    for index, raw in enumerate(data):
        try:
            specs.append(DefinitionSpec.model_validate(raw))
        except SchemaError as e:
            raise ValidationError(f"Workflow #{index} in {path} is invalid: {e}") from e
    return specs


def seed_definitions(db: Session, specs: List[DefinitionSpec]) -> Dict[str, Any]:
    """
    Create every definition that does not exist yet.

    Returns:
        Counts of created and skipped definitions
    """
    catalog = WorkflowCatalog(db)
    created = skipped = 0

    for spec in specs:
        existing = db.query(WorkflowDefinition).filter(
            and_(
                WorkflowDefinition.entity_type == spec.entity_type.value,
                WorkflowDefinition.flow_type == spec.flow_type,
                WorkflowDefinition.risk_rating == spec.risk_rating,
                WorkflowDefinition.channel_id == spec.channel_id,
                WorkflowDefinition.purpose == spec.purpose.value,
            )
        ).first()

        if existing:
            skipped += 1
            continue

        catalog.create(spec)
        created += 1

    logger.info("Seeded workflows: %d created, %d already present", created, skipped)
    return {"created": created, "skipped": skipped}


def seed_definitions_from_yaml(db: Session, path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML seed file and create its missing definitions."""
    return seed_definitions(db, load_definitions(path))
