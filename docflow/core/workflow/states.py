"""Workflow vocabulary: entity types, purposes, actions and status labels.

Chain traversal for one document and purpose:

    ┌──────────┐
    │  DRAFT   │ level 0, no status label
    └────┬─────┘
         │ Submit (document has no status yet)
    ┌────▼──────────────────────┐
    │ REQUEST_IS_AT_<group>     │ level N  ◄───┐
    └────┬───────────────┬──────┘              │
         │ APPROVED      │ REVERTED            │
         │ (N+1)         ├─ to another level ──┘
         │               └─ to initiator ──► DRAFT
    ┌────▼─────┐
    │ACTIVATED │ terminal level, completion effects fire once
    └──────────┘
"""

from enum import Enum
from typing import Dict, Optional


class EntityType(str, Enum):
    """Document kinds that can run through an approval chain.

    Values are the wire names used in requests and stored definitions.
    """

    ACCOUNT = "ACCOUNT"
    CIF = "CIF"
    DEPOSIT_ACCOUNT = "DAO"
    RECURRING_DEPOSIT = "RDA"
    CIF_AND_ACCOUNT = "CIF_AND_ACCOUNT"
    CIF_MAINT_AND_ACCOUNT_OPEN = "CIF_MAINTENANCE_AND_ACCOUNT_OPEN"
    REMOTE_ACCOUNT = "E_ACCOUNT"
    REMOTE_CIF = "E_CIF"
    REMOTE_CIF_AND_ACCOUNT = "E_CIF_AND_E_ACCOUNT"


class Purpose(str, Enum):
    """Why a document is in the chain; each purpose owns its own status field."""

    ONBOARDING = "ONBOARDING"
    MAINTENANCE = "MAINTENANCE"

    @property
    def status_field(self) -> str:
        """Snapshot attribute holding the workflow status for this purpose."""
        return _STATUS_FIELDS[self]

    @classmethod
    def for_document(cls, is_permanent: Optional[bool]) -> "Purpose":
        """A document whose number is already permanent is being maintained."""
        return cls.MAINTENANCE if is_permanent is True else cls.ONBOARDING


_STATUS_FIELDS: Dict[Purpose, str] = {
    Purpose.ONBOARDING: "wf_status",
    Purpose.MAINTENANCE: "wf_status_maint",
}


class WorkflowAction(str, Enum):
    """Actions a caller can request on a document."""

    SUBMIT = "SUBMIT"
    APPROVE = "APPROVED"
    REVERT = "REVERTED"

    @classmethod
    def from_status(cls, status: Optional[str]) -> "WorkflowAction":
        """Map the request's ``status`` field to an action.

        Anything other than APPROVED or REVERTED (including no status) is a
        submission.
        """
        if status is None:
            return cls.SUBMIT
        normalized = status.strip().upper()
        if normalized == cls.APPROVE.value:
            return cls.APPROVE
        if normalized == cls.REVERT.value:
            return cls.REVERT
        return cls.SUBMIT


class HistoryOperation(str, Enum):
    """Operation kinds understood by the history service."""

    CREATED = "CREATED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ACTIVE = "ACTIVATED"
    SUSPEND = "SUSPENDED"


class ResolvedRule(str, Enum):
    """Which resolver rule produced a transition."""

    SUBMIT = "submit"
    APPROVE = "approve"
    ACTIVATE = "activate"
    REVERT = "revert"
    RESET = "reset"
    # ledger put back after the document update failed
    COMPENSATE = "compensate"


# Level descriptor marker for the origination step
SUBMIT_OPERATION = "Submit"

# Terminal status once the last approver signs off
STATUS_ACTIVATED = "ACTIVATED"

# Prefix for "the request sits with group X" labels
STATUS_PREFIX = "REQUEST_IS_AT_"

# Completion marker written to the document payload
WORKFLOW_COMPLETE_MARKER = "workflow executed"

# Level a document returns to when reverted to its initiator
ORIGIN_LEVEL = 0


def status_label_for(group_name: str) -> str:
    """Build the status label for a request waiting on ``group_name``."""
    return f"{STATUS_PREFIX}{group_name}"
