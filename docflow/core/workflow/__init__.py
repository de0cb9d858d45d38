"""Approval workflow module for docflow.

Resolves document transitions through configured approval chains and
tracks where each document sits.
"""

from .states import EntityType, Purpose, WorkflowAction
from .resolver import TransitionResolver, TransitionResult
from .ledger import ExecutionLedger, LedgerTransaction
from .completion import CompletionGate
from .catalog import WorkflowCatalog
from .orchestrator import WorkflowOrchestrator, WorkflowRunRequest

__all__ = [
    "EntityType",
    "Purpose",
    "WorkflowAction",
    "TransitionResolver",
    "TransitionResult",
    "ExecutionLedger",
    "LedgerTransaction",
    "CompletionGate",
    "WorkflowCatalog",
    "WorkflowOrchestrator",
    "WorkflowRunRequest",
]
