"""Completion gate: one-time effects when a chain is fully traversed."""

import logging
from typing import Optional

from docflow.db.models import ExecutionRecord, WorkflowDefinition

from .entities import EntityDescriptor, TerminalEffect
from .payloads import provisional_account_headers
from .resolver import TransitionResult
from .snapshots import DocumentSnapshot, TrackingInfo
from .states import Purpose, WORKFLOW_COMPLETE_MARKER

logger = logging.getLogger(__name__)


class CompletionGate:
    """
    Fires terminal effects exactly once per crossing into the terminal level.

    Firing is keyed on the transition that crossed, never on the stored
    record, so re-reading an already terminal record does nothing.
    """

    def __init__(self, exchange):
        self.exchange = exchange

    @staticmethod
    def is_terminal(
        definition: WorkflowDefinition, record: Optional[ExecutionRecord]
    ) -> bool:
        return record is not None and record.current_level == definition.terminal_level

    def complete(
        self,
        descriptor: EntityDescriptor,
        definition: WorkflowDefinition,
        transition: TransitionResult,
        snapshot: DocumentSnapshot,
        *,
        document_id: str,
        purpose: Purpose,
        channel_id: str,
        actor: Optional[str] = None,
    ) -> bool:
        """
        Apply terminal effects for a transition.

        Onboarding pushes to core banking (or assigns a provisional account
        number), marks the document number permanent and sets the completion
        marker. Maintenance only repeats the core banking push; the number is
        already permanent and the marker belongs to onboarding.

        Returns:
            True if something outside this service was changed
        """
        if not transition.completed:
            return False

        purpose = Purpose(purpose)
        if descriptor.terminal_effect == TerminalEffect.ASSIGN_ACCOUNT_NUMBER:
            if purpose != Purpose.ONBOARDING:
                logger.info(
                    "Maintenance complete for %s %s, keeping its account number",
                    descriptor.entity_type.value, document_id,
                )
                return False
            teller = (snapshot.model_extra or {}).get("createdBy") or actor or ""
            account_number = self.exchange.generate_account_number(
                provisional_account_headers(channel_id, str(teller))
            )
            if isinstance(snapshot, TrackingInfo):
                snapshot.acc_number = account_number
            logger.info("Assigned account number %s to %s", account_number, document_id)
        else:
            pushed = []
            for endpoint, build_payload in descriptor.terminal_pushes:
                try:
                    self.exchange.push(endpoint, build_payload())
                except Exception:
                    if pushed:
                        logger.critical(
                            "Push %s failed for %s after %s succeeded",
                            endpoint, document_id, ", ".join(pushed),
                        )
                    raise
                pushed.append(endpoint)
                logger.info(
                    "Pushed %s for %s %s", endpoint, descriptor.entity_type.value, document_id
                )

        if purpose == Purpose.ONBOARDING:
            snapshot.mark_permanent(True)
            snapshot.workflow_complete = WORKFLOW_COMPLETE_MARKER
        logger.info(
            "Workflow complete for %s %s [%s] (definition %s)",
            descriptor.entity_type.value, document_id, purpose.value, definition.id,
        )
        return True
