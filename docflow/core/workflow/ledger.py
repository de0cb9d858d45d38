"""Execution ledger: where each document sits in its chain.

Reads take no lock. Every write goes through a :class:`LedgerTransaction`
and is checked against the record's ``version`` column, so a transition
resolved from a stale read fails with a retryable :class:`ConflictError`
instead of overwriting a newer one.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, NamedTuple, Optional
from uuid import UUID

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from docflow.core.exceptions import ConflictError, InternalError
from docflow.db.models import ExecutionRecord, TransitionHistory, WorkflowDefinition

from .resolver import TransitionResult
from .states import ORIGIN_LEVEL, Purpose, WorkflowAction

logger = logging.getLogger(__name__)


class LedgerPosition(NamedTuple):
    """Level and status of a record, detached from the session."""

    level: int
    status_label: Optional[str]

    @classmethod
    def of(cls, record: Optional[ExecutionRecord]) -> Optional["LedgerPosition"]:
        if record is None:
            return None
        return cls(record.current_level, record.current_status_label)


class LedgerTransaction:
    """Handle for one open ledger transaction."""

    def __init__(self, session: Session):
        self.session = session
        self.active = True

    def ensure_active(self) -> None:
        if not self.active:
            raise InternalError("Ledger transaction is no longer active")


class ExecutionLedger:
    """
    Data access for execution records.

    Usage::

        ledger = ExecutionLedger(db)
        prior = ledger.current(definition.id, document_id, purpose)
        ...
        with ledger.transaction() as tx:
            ledger.upsert(tx, definition, document_id, purpose, label, level, record=prior)
    """

    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def transaction(self) -> Iterator[LedgerTransaction]:
        """
        Open a ledger transaction.

        Commits when the block exits normally, rolls back on any exception.

        Raises:
            ConflictError: If the commit lost a race to another transition
            InternalError: If the commit fails for any other reason
        """
        tx = LedgerTransaction(self.session)
        try:
            yield tx
        except BaseException:
            tx.active = False
            self.session.rollback()
            raise

        try:
            self.session.commit()
        except (IntegrityError, StaleDataError) as e:
            self.session.rollback()
            raise ConflictError(
                "Concurrent transition for the same document", retryable=True
            ) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise InternalError("Ledger commit failed") from e
        finally:
            tx.active = False

    def _query(self, session: Session, definition_id: UUID, document_id: str, purpose: Purpose):
        return session.query(ExecutionRecord).filter(
            and_(
                ExecutionRecord.definition_id == definition_id,
                ExecutionRecord.document_id == str(document_id),
                ExecutionRecord.purpose == Purpose(purpose).value,
            )
        )

    def current(
        self, definition_id: UUID, document_id: str, purpose: Purpose
    ) -> Optional[ExecutionRecord]:
        """Read the record for a key without locking it."""
        return self._query(self.session, definition_id, document_id, purpose).first()

    def find(
        self,
        tx: LedgerTransaction,
        definition_id: UUID,
        document_id: str,
        purpose: Purpose,
        *,
        for_update: bool = False,
    ) -> Optional[ExecutionRecord]:
        """Get the record for a key inside a transaction, optionally row-locked."""
        tx.ensure_active()
        query = self._query(tx.session, definition_id, document_id, purpose)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def _flush(self, tx: LedgerTransaction, document_id: str, purpose: Purpose) -> None:
        try:
            tx.session.flush()
        except (IntegrityError, StaleDataError) as e:
            logger.warning(
                "Lost race writing execution record for %s [%s]", document_id, Purpose(purpose).value
            )
            raise ConflictError(
                f"Document {document_id} is already being transitioned", retryable=True
            ) from e

    def create(
        self,
        tx: LedgerTransaction,
        definition: WorkflowDefinition,
        document_id: str,
        purpose: Purpose,
        status_label: Optional[str],
        level: int,
    ) -> ExecutionRecord:
        """
        Insert the record for a key.

        Raises:
            ConflictError: If another transition created the record first
        """
        tx.ensure_active()
        record = ExecutionRecord(
            definition_id=definition.id,
            document_id=str(document_id),
            purpose=Purpose(purpose).value,
            entity_type=definition.entity_type,
            flow_type=definition.flow_type,
            current_level=level,
            current_status_label=status_label,
        )
        tx.session.add(record)
        self._flush(tx, document_id, purpose)
        return record

    def upsert(
        self,
        tx: LedgerTransaction,
        definition: WorkflowDefinition,
        document_id: str,
        purpose: Purpose,
        status_label: Optional[str],
        level: int,
        *,
        record: Optional[ExecutionRecord] = None,
    ) -> ExecutionRecord:
        """
        Create the record for a key or update it in place.

        Raises:
            ConflictError: If another transition created or moved the record first
        """
        tx.ensure_active()
        if record is None:
            record = self.find(tx, definition.id, document_id, purpose)
        if record is None:
            return self.create(tx, definition, document_id, purpose, status_label, level)

        record.current_level = level
        record.current_status_label = status_label
        self._flush(tx, document_id, purpose)
        return record

    def delete_if_at_origin(
        self, tx: LedgerTransaction, record: Optional[ExecutionRecord]
    ) -> Optional[ExecutionRecord]:
        """
        Remove a record left at level 0 so a new submission starts clean.

        Returns:
            The record if it was kept, None if there was none or it was removed
        """
        if record is not None and record.current_level == ORIGIN_LEVEL:
            logger.info("Removing stale origin record for %s", record.document_id)
            self.reset(tx, record)
            return None
        return record

    def reset(self, tx: LedgerTransaction, record: ExecutionRecord) -> None:
        """Delete a record after a revert to the initiator."""
        tx.ensure_active()
        document_id, purpose = record.document_id, record.purpose
        tx.session.delete(record)
        self._flush(tx, document_id, purpose)

    def apply(
        self,
        tx: LedgerTransaction,
        definition: WorkflowDefinition,
        document_id: str,
        purpose: Purpose,
        result: TransitionResult,
        prior: Optional[ExecutionRecord] = None,
    ) -> Optional[ExecutionRecord]:
        """
        Persist a resolved transition against the record it was resolved from.

        A reset deletes the record. With no prior record a new one is
        inserted; a row created meanwhile by someone else is a conflict,
        never an update.
        """
        if result.is_reset or result.level == ORIGIN_LEVEL:
            if prior is not None:
                self.reset(tx, prior)
            return None
        if prior is None:
            return self.create(
                tx, definition, document_id, purpose, result.status_label, result.level
            )
        return self.upsert(
            tx, definition, document_id, purpose,
            result.status_label, result.level, record=prior,
        )

    def restore(
        self,
        tx: LedgerTransaction,
        definition: WorkflowDefinition,
        document_id: str,
        purpose: Purpose,
        *,
        written_version: Optional[int],
        position: Optional[LedgerPosition],
    ) -> None:
        """
        Put a key back where it was before a committed transition.

        Args:
            written_version: Version the transition left on the record, None
                if it left no record
            position: Where the record was before, None if it did not exist

        Raises:
            ConflictError: If the record moved again since the transition
        """
        record = self.find(tx, definition.id, document_id, purpose, for_update=True)
        current_version = record.version if record is not None else None
        if current_version != written_version:
            raise ConflictError(
                f"Execution record for {document_id} changed after the transition"
            )

        if position is None:
            if record is not None:
                self.reset(tx, record)
        elif record is None:
            self.create(tx, definition, document_id, purpose, position.status_label, position.level)
        else:
            self.upsert(
                tx, definition, document_id, purpose,
                position.status_label, position.level, record=record,
            )

    def record_history(
        self,
        tx: LedgerTransaction,
        definition: WorkflowDefinition,
        document_id: str,
        purpose: Purpose,
        action: WorkflowAction,
        result: TransitionResult,
        *,
        from_level: Optional[int] = None,
        from_status: Optional[str] = None,
        actor: Optional[str] = None,
        comment: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TransitionHistory:
        """Append an audit row for a persisted transition."""
        tx.ensure_active()
        entry = TransitionHistory(
            definition_id=definition.id,
            document_id=str(document_id),
            purpose=Purpose(purpose).value,
            action=WorkflowAction(action).value,
            rule=result.rule.value if result.rule else None,
            from_level=from_level,
            to_level=result.level,
            from_status=from_status,
            to_status=result.status_label,
            completed=result.completed,
            actor=actor,
            comment=comment,
            extra_data=metadata or {},
        )
        tx.session.add(entry)
        tx.session.flush()
        return entry

    def history(
        self, definition_id: UUID, document_id: str, purpose: Optional[Purpose] = None
    ) -> list[TransitionHistory]:
        """List recorded transitions for a document, oldest first."""
        query = self.session.query(TransitionHistory).filter(
            and_(
                TransitionHistory.definition_id == definition_id,
                TransitionHistory.document_id == str(document_id),
            )
        )
        if purpose is not None:
            query = query.filter(TransitionHistory.purpose == Purpose(purpose).value)
        return query.order_by(TransitionHistory.created_at).all()
