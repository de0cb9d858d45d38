"""Add a version counter to execution records

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

Columns added:
- workflow_executions.version: Incremented on every write so a transition
  computed from a stale read fails instead of overwriting a newer one
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add workflow_executions.version."""
    with op.batch_alter_table("workflow_executions") as batch_op:
        batch_op.add_column(
            sa.Column("version", sa.Integer(), nullable=False, server_default="1")
        )


def downgrade() -> None:
    """Drop workflow_executions.version."""
    with op.batch_alter_table("workflow_executions") as batch_op:
        batch_op.drop_column("version")
