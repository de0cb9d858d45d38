"""Database models for docflow."""

from docflow.db.models.workflow import WorkflowDefinition, ApprovalLevel
from docflow.db.models.execution import ExecutionRecord, TransitionHistory

__all__ = [
    "WorkflowDefinition",
    "ApprovalLevel",
    "ExecutionRecord",
    "TransitionHistory",
]
