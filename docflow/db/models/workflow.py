"""Workflow definition database models.

A definition is one configured approval chain for an
(entity type, flow type, risk rating, channel, purpose) combination;
its levels are the ordered steps of that chain.
"""

import uuid
from datetime import datetime
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import relationship

from docflow.db.base import Base


class WorkflowDefinition(Base):
    """
    Configured approval chain.

    At most one definition exists per
    (entity_type, flow_type, risk_rating, channel_id, purpose).
    """
    __tablename__ = "workflow_definitions"
    __table_args__ = (
        UniqueConstraint(
            "entity_type", "flow_type", "risk_rating", "channel_id", "purpose",
            name="uq_workflow_definitions_selector",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    code = Column(String(100), nullable=True, index=True)
    description = Column(Text, nullable=True)

    # Selector tuple
    entity_type = Column(String(50), nullable=False, index=True)
    flow_type = Column(String(100), nullable=False)
    risk_rating = Column(String(50), nullable=False)
    channel_id = Column(String(100), nullable=False)
    purpose = Column(String(20), nullable=False)

    # Level at which the chain is complete
    terminal_level = Column(Integer, nullable=False)

    created_by = Column(String(100), nullable=True)
    updated_by = Column(String(100), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    levels = relationship(
        "ApprovalLevel",
        back_populates="definition",
        order_by="ApprovalLevel.level",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowDefinition {self.entity_type}/{self.flow_type}/"
            f"{self.risk_rating}/{self.channel_id} [{self.purpose}]>"
        )


class ApprovalLevel(Base):
    """
    One step of an approval chain.

    Group references are opaque ids issued by the approver directory.
    A null ``approved_group_id`` marks the hand-off to the system of record.
    """
    __tablename__ = "approval_levels"
    __table_args__ = (
        UniqueConstraint("definition_id", "level", name="uq_approval_levels_definition_level"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    definition_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("workflow_definitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    level = Column(Integer, nullable=False)
    operation = Column(String(20), nullable=True)  # "Submit" on the origination level only

    approved_group_id = Column(String(64), nullable=True)
    reverted_group_id = Column(String(64), nullable=True)
    supervisory_group_id = Column(String(64), nullable=True)
    init_group_id = Column(String(64), nullable=True)

    # Stored for the front office, not interpreted by the resolver
    email = Column(Boolean, nullable=False, default=False)
    scanning = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    definition = relationship("WorkflowDefinition", back_populates="levels")

    def __repr__(self) -> str:
        return f"<ApprovalLevel {self.level} op={self.operation}>"
