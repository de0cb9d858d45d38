"""Approval transition resolver.

Given a definition's levels, the document's current status and the prior
ledger position, decides the next status label and level. The resolver
never touches the database; group display names come from the approver
directory passed in at construction.
"""

import logging
from typing import NamedTuple, Optional, Protocol, Sequence

from docflow.core.exceptions import CollaboratorError, ResolverError
from docflow.db.models import ApprovalLevel, ExecutionRecord, WorkflowDefinition

from .states import (
    ORIGIN_LEVEL,
    STATUS_ACTIVATED,
    SUBMIT_OPERATION,
    ResolvedRule,
    WorkflowAction,
    status_label_for,
)

logger = logging.getLogger(__name__)


class GroupDirectory(Protocol):
    """Anything that can resolve an approver group id to id and name."""

    def get_group(self, group_id: str): ...


class TransitionResult(NamedTuple):
    """Outcome of resolving one action."""

    status_label: Optional[str]
    level: int
    rule: Optional[ResolvedRule] = None
    completed: bool = False

    @property
    def matched(self) -> bool:
        return self.rule is not None

    @property
    def is_reset(self) -> bool:
        return self.rule == ResolvedRule.RESET


class TransitionResolver:
    """
    Walks a definition's levels in ascending order and applies the first
    rule that matches:

    - submit: the Submit level, when the document has no status yet
    - approve: the level right after the prior one, on APPROVED
    - revert: the level right after the prior one, on REVERTED, when it
      names a group to send the document back to

    When nothing matches, the prior position is returned unchanged.
    """

    def __init__(self, directory: GroupDirectory):
        self.directory = directory

    def resolve(
        self,
        definition: WorkflowDefinition,
        hierarchy: Sequence[ApprovalLevel],
        current_status: Optional[str],
        action: WorkflowAction,
        prior: Optional[ExecutionRecord] = None,
    ) -> TransitionResult:
        """
        Resolve the next position of a document in a chain.

        Args:
            definition: Definition the levels belong to
            hierarchy: Levels of the definition
            current_status: Document's status for the purpose being run
            action: Requested action
            prior: Ledger row for the document, if any

        Returns:
            TransitionResult, with ``rule`` None when no rule applied

        Raises:
            ResolverError: If a group lookup fails
        """
        levels = sorted(hierarchy, key=lambda lvl: lvl.level)
        prior_level = prior.current_level if prior is not None else None

        # Approve/revert only target the level after the recorded one
        next_level = (
            prior_level + 1 if current_status and prior_level is not None else None
        )

        result = None
        for level in levels:
            if level.operation == SUBMIT_OPERATION:
                if not current_status:
                    result = self._submit(level)
                    break
                # never an approve or revert source, whatever its groups
                continue

            if level.level != next_level:
                continue

            if action == WorkflowAction.APPROVE:
                result = self._approve(level)
                break

            if action == WorkflowAction.REVERT and level.reverted_group_id:
                # The revert rule ends the scan even without a target match
                result = self._revert(level, levels)
                break

        if result is None:
            logger.info(
                "No rule matched for %s at level %s (definition %s)",
                action.value, prior_level, definition.id,
            )
            return TransitionResult(
                status_label=prior.current_status_label if prior is not None else current_status,
                level=prior_level if prior_level is not None else ORIGIN_LEVEL,
            )

        completed = (
            result.level == definition.terminal_level
            and prior_level != definition.terminal_level
        )
        logger.debug(
            "Resolved %s: level %s -> %s (%s), status=%s",
            action.value, prior_level, result.level, result.rule.value, result.status_label,
        )
        return result._replace(completed=completed)

    def _submit(self, level: ApprovalLevel) -> TransitionResult:
        group = self._lookup(level.supervisory_group_id, level)
        return TransitionResult(
            status_label_for(group.name), level.level, ResolvedRule.SUBMIT
        )

    def _approve(self, level: ApprovalLevel) -> TransitionResult:
        if not level.approved_group_id:
            return TransitionResult(STATUS_ACTIVATED, level.level, ResolvedRule.ACTIVATE)
        group = self._lookup(level.approved_group_id, level)
        return TransitionResult(
            status_label_for(group.name), level.level, ResolvedRule.APPROVE
        )

    def _revert(
        self, level: ApprovalLevel, levels: Sequence[ApprovalLevel]
    ) -> Optional[TransitionResult]:
        group = self._lookup(level.reverted_group_id, level)
        target_id = str(group.id)

        for candidate in levels:
            if candidate.init_group_id == target_id:
                return TransitionResult(None, ORIGIN_LEVEL, ResolvedRule.RESET)
            if target_id in (candidate.approved_group_id, candidate.supervisory_group_id):
                return TransitionResult(
                    status_label_for(group.name), candidate.level, ResolvedRule.REVERT
                )

        logger.warning(
            "Revert target %s at level %s is not part of the chain", target_id, level.level
        )
        return None

    def _lookup(self, group_id: Optional[str], level: ApprovalLevel):
        if not group_id:
            raise ResolverError(
                f"Level {level.level} has no group to resolve", service="um-service"
            )
        try:
            return self.directory.get_group(group_id)
        except ResolverError:
            raise
        except CollaboratorError as e:
            raise ResolverError(
                f"Could not resolve group {group_id} at level {level.level}: {e.message}",
                service=e.service,
                upstream_status=e.upstream_status,
                retryable=e.retryable,
            ) from e
