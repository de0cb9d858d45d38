"""Initial workflow schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Tables added:
- workflow_definitions: Configured approval chains
- approval_levels: Ordered steps of each chain
- workflow_executions: Current position of each document in a chain
- workflow_transition_history: Audit trail of persisted transitions
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create workflow tables."""

    # --- workflow_definitions ---
    op.create_table(
        "workflow_definitions",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("flow_type", sa.String(100), nullable=False),
        sa.Column("risk_rating", sa.String(50), nullable=False),
        sa.Column("channel_id", sa.String(100), nullable=False),
        sa.Column("purpose", sa.String(20), nullable=False),
        sa.Column("terminal_level", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("updated_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_workflow_definitions"),
        sa.UniqueConstraint(
            "entity_type", "flow_type", "risk_rating", "channel_id", "purpose",
            name="uq_workflow_definitions_selector",
        ),
    )
    op.create_index("ix_workflow_definitions_code", "workflow_definitions", ["code"])
    op.create_index("ix_workflow_definitions_entity_type", "workflow_definitions", ["entity_type"])
    op.create_index("ix_workflow_definitions_created_at", "workflow_definitions", ["created_at"])

    # --- approval_levels ---
    op.create_table(
        "approval_levels",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("definition_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("level", sa.Integer(), nullable=False),
        sa.Column("operation", sa.String(20), nullable=True),
        sa.Column("approved_group_id", sa.String(64), nullable=True),
        sa.Column("reverted_group_id", sa.String(64), nullable=True),
        sa.Column("supervisory_group_id", sa.String(64), nullable=True),
        sa.Column("init_group_id", sa.String(64), nullable=True),
        sa.Column("email", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("scanning", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_approval_levels"),
        sa.ForeignKeyConstraint(
            ["definition_id"], ["workflow_definitions.id"],
            name="fk_approval_levels_definition_id", ondelete="CASCADE",
        ),
        sa.UniqueConstraint("definition_id", "level", name="uq_approval_levels_definition_level"),
    )
    op.create_index("ix_approval_levels_definition_id", "approval_levels", ["definition_id"])

    # --- workflow_executions ---
    op.create_table(
        "workflow_executions",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("definition_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("document_id", sa.String(64), nullable=False),
        sa.Column("purpose", sa.String(20), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("flow_type", sa.String(100), nullable=True),
        sa.Column("current_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_status_label", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_workflow_executions"),
        sa.ForeignKeyConstraint(
            ["definition_id"], ["workflow_definitions.id"],
            name="fk_workflow_executions_definition_id", ondelete="CASCADE",
        ),
        sa.UniqueConstraint(
            "definition_id", "document_id", "purpose", name="uq_workflow_executions_key",
        ),
    )
    op.create_index("ix_workflow_executions_definition_id", "workflow_executions", ["definition_id"])
    op.create_index("ix_workflow_executions_document_id", "workflow_executions", ["document_id"])
    op.create_index("ix_workflow_executions_created_at", "workflow_executions", ["created_at"])

    # --- workflow_transition_history ---
    op.create_table(
        "workflow_transition_history",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("definition_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("document_id", sa.String(64), nullable=False),
        sa.Column("purpose", sa.String(20), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("rule", sa.String(20), nullable=True),
        sa.Column("from_level", sa.Integer(), nullable=True),
        sa.Column("to_level", sa.Integer(), nullable=False),
        sa.Column("from_status", sa.String(255), nullable=True),
        sa.Column("to_status", sa.String(255), nullable=True),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("actor", sa.String(100), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("extra_data", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_workflow_transition_history"),
        sa.ForeignKeyConstraint(
            ["definition_id"], ["workflow_definitions.id"],
            name="fk_workflow_transition_history_definition_id", ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_workflow_transition_history_definition_id", "workflow_transition_history", ["definition_id"]
    )
    op.create_index(
        "ix_workflow_transition_history_document_id", "workflow_transition_history", ["document_id"]
    )
    op.create_index(
        "ix_workflow_transition_history_created_at", "workflow_transition_history", ["created_at"]
    )


def downgrade() -> None:
    """Drop workflow tables."""
    op.drop_table("workflow_transition_history")
    op.drop_table("workflow_executions")
    op.drop_table("approval_levels")
    op.drop_table("workflow_definitions")
