"""Execution ledger database models.

Stores each document's position in a chain and the history of its moves.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship

from docflow.db.base import Base


class ExecutionRecord(Base):
    """
    Current level and status of one document in one definition.

    One row per (definition, document, purpose).
    """
    __tablename__ = "workflow_executions"
    __table_args__ = (
        UniqueConstraint(
            "definition_id", "document_id", "purpose",
            name="uq_workflow_executions_key",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    definition_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workflow_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_id = Column(String(64), nullable=False, index=True)
    purpose = Column(String(20), nullable=False)

    # Denormalized for reporting
    entity_type = Column(String(50), nullable=True)
    flow_type = Column(String(100), nullable=True)

    current_level = Column(Integer, nullable=False, default=0)
    current_status_label = Column(String(255), nullable=True)

    # Bumped on every write; a stale UPDATE or DELETE raises StaleDataError
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    definition = relationship("WorkflowDefinition")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<ExecutionRecord {self.document_id} [{self.purpose}] "
            f"level={self.current_level} status={self.current_status_label}>"
        )


class TransitionHistory(Base):
    """
    Records every persisted transition.

    Rows survive the deletion of the execution record on a reset to origin.
    """
    __tablename__ = "workflow_transition_history"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    definition_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workflow_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_id = Column(String(64), nullable=False, index=True)
    purpose = Column(String(20), nullable=False)

    action = Column(String(20), nullable=False)
    rule = Column(String(20), nullable=True)
    from_level = Column(Integer, nullable=True)
    to_level = Column(Integer, nullable=False)
    from_status = Column(String(255), nullable=True)
    to_status = Column(String(255), nullable=True)
    completed = Column(Boolean, nullable=False, default=False)

    actor = Column(String(100), nullable=True)
    comment = Column(Text, nullable=True)
    extra_data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<TransitionHistory {self.document_id} {self.from_level} -> {self.to_level}>"
