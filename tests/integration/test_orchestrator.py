"""Integration tests for workflow runs against a real database.

Collaborator services are faked behind an httpx.MockTransport; the ledger
runs on in-memory SQLite.
"""

import pytest
from sqlalchemy.orm import Session

from docflow.core.exceptions import (
    CollaboratorError,
    ConflictError,
    InternalError,
    NotFoundError,
    ResolverError,
    ValidationError,
)
from docflow.core.workflow import EntityType, WorkflowOrchestrator, WorkflowRunRequest
from docflow.core.workflow.states import STATUS_ACTIVATED, WORKFLOW_COMPLETE_MARKER
from docflow.db.models import ExecutionRecord, TransitionHistory

from tests.factories import (
    account_document,
    cif_document,
    create_definition,
    create_execution,
    remote_account_document,
    run_request,
    tracking_document,
)
from tests.fakes import (
    ACC_URL,
    DAO_URL,
    EXCHANGE_URL,
    HISTORY_URL,
    PROVISIONAL_ACCOUNT_NUMBER,
    RDA_DAO_URL,
    UM_URL,
)

ACCOUNT_URL = f"{ACC_URL}acc-open/doc-1"
ACCOUNT_UPDATE_URL = f"{ACC_URL}acc-open/update-wf-status/doc-1"
PUSH_ACCOUNT_URL = f"{EXCHANGE_URL}push-account-to-cbs"
PUSH_CIF_URL = f"{EXCHANGE_URL}push-cif-to-cbs"

pytestmark = pytest.mark.integration


@pytest.fixture
def orchestrator(db_session, collaborators, settings):
    return WorkflowOrchestrator(db_session, collaborators, settings)


def run(orchestrator, entity_type, document_id, status=None, **overrides):
    request = WorkflowRunRequest.model_validate(
        run_request(EntityType(entity_type).value, status, **overrides)
    )
    return orchestrator.run(EntityType(entity_type), document_id, request)


def ledger_rows(session):
    session.expire_all()
    return session.query(ExecutionRecord).all()


def move_record(engine, level, status):
    """Callback that moves the only execution record from another session."""
    def move():
        with Session(engine) as other:
            record = other.query(ExecutionRecord).one()
            record.current_level = level
            record.current_status_label = status
            other.commit()
    return move


class TestApprovalChain:
    """Submit, approve to the end, and revert."""

    def test_full_chain_to_activation(self, orchestrator, db_session, upstream):
        create_definition(db_session)
        db_session.commit()

        upstream.documents[ACCOUNT_URL] = account_document()
        snapshot = run(orchestrator, "ACCOUNT", "doc-1")
        assert snapshot.wf_status == "REQUEST_IS_AT_G1"
        assert ledger_rows(db_session)[0].current_level == 1

        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G1")
        snapshot = run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")
        assert snapshot.wf_status == "REQUEST_IS_AT_G2"
        assert ledger_rows(db_session)[0].current_level == 2
        assert upstream.calls("POST", EXCHANGE_URL) == []

        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G2")
        snapshot = run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")
        assert snapshot.wf_status == STATUS_ACTIVATED
        assert snapshot.workflow_complete == WORKFLOW_COMPLETE_MARKER
        assert snapshot.is_account_no_permanent is True

        (record,) = ledger_rows(db_session)
        assert record.current_level == 3
        assert record.current_status_label == STATUS_ACTIVATED

        (push_url, _), = upstream.calls("POST", EXCHANGE_URL)
        assert push_url == PUSH_ACCOUNT_URL

        updates = upstream.calls("PUT", ACCOUNT_UPDATE_URL)
        assert len(updates) == 3
        final = updates[-1][1]
        assert final["wfStatus"] == STATUS_ACTIVATED
        assert final["workflowComplete"] == WORKFLOW_COMPLETE_MARKER
        assert final["isAccountNoPermanent"] is True
        assert final["pickedBy"] is None
        assert final["title"] == "Savings account"

        assert db_session.query(TransitionHistory).count() == 3

    def test_terminal_effects_fire_once(self, orchestrator, db_session, upstream):
        definition = create_definition(db_session)
        create_execution(db_session, definition, level=3, status=STATUS_ACTIVATED)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(wf_status=STATUS_ACTIVATED)

        snapshot = run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")

        assert snapshot.wf_status == STATUS_ACTIVATED
        assert snapshot.workflow_complete == WORKFLOW_COMPLETE_MARKER
        assert upstream.calls("POST", EXCHANGE_URL) == []
        assert db_session.query(TransitionHistory).count() == 0

    def test_revert_to_initiator_resets_ledger(self, orchestrator, db_session, upstream):
        definition = create_definition(db_session)
        create_execution(db_session, definition, level=2, status="REQUEST_IS_AT_G2")
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G2")

        snapshot = run(orchestrator, "ACCOUNT", "doc-1", "REVERTED")

        assert snapshot.wf_status is None
        assert ledger_rows(db_session) == []
        (_, body), = upstream.calls("PUT", ACCOUNT_UPDATE_URL)
        assert body["wfStatus"] is None

    def test_resubmit_after_reset(self, orchestrator, db_session, upstream):
        definition = create_definition(db_session)
        create_execution(db_session, definition, level=0, status=None)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document()

        snapshot = run(orchestrator, "ACCOUNT", "doc-1")

        assert snapshot.wf_status == "REQUEST_IS_AT_G1"
        (record,) = ledger_rows(db_session)
        assert record.current_level == 1


class TestRejectedRuns:
    """Requests that must not touch the ledger."""

    def test_missing_risk_rating(self, orchestrator, db_session, upstream):
        create_definition(db_session)
        db_session.commit()

        with pytest.raises(ValidationError) as exc_info:
            run(orchestrator, "ACCOUNT", "doc-1", riskRating=None)

        assert exc_info.value.field == "riskRating"
        assert ledger_rows(db_session) == []
        assert upstream.requests == []

    def test_workflow_type_mismatch(self, orchestrator, upstream):
        request = WorkflowRunRequest.model_validate(run_request("CIF"))

        with pytest.raises(ValidationError):
            orchestrator.run(EntityType.ACCOUNT, "doc-1", request)

        assert upstream.requests == []

    def test_definition_not_found(self, orchestrator, db_session, upstream):
        create_definition(db_session, risk_rating="HIGH")
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document()

        with pytest.raises(NotFoundError):
            run(orchestrator, "ACCOUNT", "doc-1")

        assert ledger_rows(db_session) == []
        assert upstream.calls("PUT") == []

    def test_document_not_found(self, orchestrator, db_session):
        create_definition(db_session)
        db_session.commit()

        with pytest.raises(NotFoundError):
            run(orchestrator, "ACCOUNT", "doc-404")

    def test_malformed_document(self, orchestrator, db_session, upstream):
        create_definition(db_session)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(isAccountNoPermanent={"value": True})

        with pytest.raises(CollaboratorError) as exc_info:
            run(orchestrator, "ACCOUNT", "doc-1")

        assert exc_info.value.service == "acc_service_url"
        assert ledger_rows(db_session) == []
        assert upstream.calls("PUT") == []

    def test_numeric_account_number_is_accepted(self, orchestrator, db_session, upstream):
        create_definition(db_session)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(accountNumber=1234567890)

        snapshot = run(orchestrator, "ACCOUNT", "doc-1")

        assert snapshot.wf_status == "REQUEST_IS_AT_G1"
        (_, body), = upstream.calls("PUT", ACCOUNT_UPDATE_URL)
        assert body["accountNumber"] == "1234567890"


class TestFailureHandling:
    """Rollback before commit, tolerance after it."""

    def test_write_back_failure_restores_ledger(self, orchestrator, db_session, upstream):
        create_definition(db_session)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document()
        upstream.fail("PUT", ACCOUNT_UPDATE_URL, 503)

        with pytest.raises(CollaboratorError) as exc_info:
            run(orchestrator, "ACCOUNT", "doc-1")

        assert exc_info.value.retryable
        assert ledger_rows(db_session) == []
        rules = [entry.rule for entry in db_session.query(TransitionHistory).all()]
        assert sorted(rules) == ["compensate", "submit"]
        assert upstream.calls("POST", HISTORY_URL) == []

    def test_terminal_push_failure_keeps_prior_level(self, orchestrator, db_session, upstream):
        definition = create_definition(db_session)
        create_execution(db_session, definition, level=2, status="REQUEST_IS_AT_G2")
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G2")
        upstream.fail("POST", PUSH_ACCOUNT_URL, 500)

        with pytest.raises(CollaboratorError):
            run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")

        (record,) = ledger_rows(db_session)
        assert record.current_level == 2
        assert upstream.calls("PUT") == []

    def test_group_lookup_failure_aborts(self, orchestrator, db_session, upstream):
        definition = create_definition(db_session)
        create_execution(db_session, definition, level=1)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G1")
        del upstream.groups["grp-2"]

        with pytest.raises(ResolverError):
            run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")

        (record,) = ledger_rows(db_session)
        assert record.current_level == 1

    def test_update_failure_after_push_restores_ledger(
        self, orchestrator, db_session, upstream, caplog
    ):
        definition = create_definition(db_session)
        create_execution(db_session, definition, level=2, status="REQUEST_IS_AT_G2")
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G2")
        upstream.fail("PUT", ACCOUNT_UPDATE_URL, 503)

        with pytest.raises(CollaboratorError):
            run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")

        (record,) = ledger_rows(db_session)
        assert record.current_level == 2
        assert len(upstream.calls("POST", PUSH_ACCOUNT_URL)) == 1
        assert "remote effects were already applied" in caplog.text

    def test_unexpected_failure_is_internal(self, orchestrator, db_session, upstream, monkeypatch):
        create_definition(db_session)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document()

        def broken(*args, **kwargs):
            raise RuntimeError("catalog unavailable")

        monkeypatch.setattr(orchestrator.catalog, "find_definition", broken)

        with pytest.raises(InternalError) as exc_info:
            run(orchestrator, "ACCOUNT", "doc-1")

        assert not exc_info.value.remote_applied
        assert upstream.calls("PUT") == []

    def test_history_failure_is_tolerated(self, orchestrator, db_session, upstream, caplog):
        create_definition(db_session)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document()
        upstream.fail("POST", f"{HISTORY_URL}/", 500)

        snapshot = run(orchestrator, "ACCOUNT", "doc-1")

        assert snapshot.wf_status == "REQUEST_IS_AT_G1"
        assert len(ledger_rows(db_session)) == 1
        assert "Failed to record history" in caplog.text

    def test_comments_are_forwarded_after_commit(self, orchestrator, db_session, upstream):
        create_definition(db_session)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document()

        run(orchestrator, "ACCOUNT", "doc-1", comments="KYC checked", updatedBy="user-3")

        (url, notes), = upstream.calls("POST", f"{ACC_URL}wf-comment-discrepancy/")
        assert url.endswith("/doc-1")
        assert notes["comments"] == "KYC checked"
        assert notes["purpose"] == "ONBOARDING"

        (_, history), = upstream.calls("POST", HISTORY_URL)
        assert history["userId"] == "user-3"
        assert history["type"] == "ACCOUNT"
        assert history["entityObj"]["workflow"] == "ACCOUNT"


class TestConcurrentRuns:
    """No lock is held across collaborator calls; stale writes lose."""

    def test_record_moved_during_group_lookup(self, orchestrator, db_session, upstream, engine):
        definition = create_definition(db_session)
        create_execution(db_session, definition, level=1)
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G1")
        upstream.on("GET", f"{UM_URL}group/grp-2", move_record(engine, 2, "REQUEST_IS_AT_G2"))

        with pytest.raises(ConflictError) as exc_info:
            run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")

        assert exc_info.value.retryable
        (record,) = ledger_rows(db_session)
        assert (record.current_level, record.current_status_label) == (2, "REQUEST_IS_AT_G2")
        assert db_session.query(TransitionHistory).count() == 0
        assert upstream.calls("PUT") == []
        assert upstream.calls("POST", EXCHANGE_URL) == []

    def test_record_created_during_group_lookup(self, orchestrator, db_session, upstream, engine):
        definition = create_definition(db_session)
        db_session.commit()
        definition_id = definition.id
        upstream.documents[ACCOUNT_URL] = account_document()

        def create_elsewhere():
            with Session(engine) as other:
                other.add(ExecutionRecord(
                    definition_id=definition_id,
                    document_id="doc-1",
                    purpose="ONBOARDING",
                    current_level=1,
                    current_status_label="REQUEST_IS_AT_G1",
                ))
                other.commit()

        upstream.on("GET", f"{UM_URL}group/grp-1", create_elsewhere)

        with pytest.raises(ConflictError) as exc_info:
            run(orchestrator, "ACCOUNT", "doc-1")

        assert exc_info.value.retryable
        assert len(ledger_rows(db_session)) == 1
        assert upstream.calls("PUT") == []

    def test_record_moved_before_restore(
        self, orchestrator, db_session, upstream, engine, caplog
    ):
        definition = create_definition(db_session)
        create_execution(db_session, definition, level=2, status="REQUEST_IS_AT_G2")
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G2")
        upstream.on("PUT", ACCOUNT_UPDATE_URL, move_record(engine, 1, "REQUEST_IS_AT_G1"))
        upstream.fail("PUT", ACCOUNT_UPDATE_URL, 503)

        with pytest.raises(InternalError) as exc_info:
            run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")

        assert exc_info.value.remote_applied
        (record,) = ledger_rows(db_session)
        assert record.current_level == 1
        assert "Could not restore execution record" in caplog.text


class TestEntityTypes:
    """Entity-specific sources and terminal effects."""

    def test_deposit_account_gets_provisional_number(self, orchestrator, db_session, upstream):
        definition = create_definition(db_session, entity_type="DAO")
        create_execution(db_session, definition, document_id="dao-1", level=2, status="REQUEST_IS_AT_G2")
        db_session.commit()
        upstream.documents[f"{DAO_URL}dao-1"] = tracking_document(wf_status="REQUEST_IS_AT_G2")

        snapshot = run(orchestrator, "DAO", "dao-1", "APPROVED")

        assert snapshot.acc_number == PROVISIONAL_ACCOUNT_NUMBER
        assert snapshot.is_acc_no_permanent is True
        assert upstream.calls("POST", PUSH_ACCOUNT_URL) == []

        (_, body), = upstream.calls("PUT", f"{RDA_DAO_URL}update-wf-status/dao-1")
        assert body["accNumber"] == PROVISIONAL_ACCOUNT_NUMBER
        (release_url, release_body), = upstream.calls("PUT", f"{ACC_URL}cif-acc/remove/picked-by/")
        assert release_url.endswith("/dao-1")
        assert release_body == {}

    def test_cif_and_account_pushes_both_in_order(self, orchestrator, db_session, upstream):
        definition = create_definition(db_session, entity_type="CIF_AND_ACCOUNT")
        create_execution(db_session, definition, level=2, status="REQUEST_IS_AT_G2")
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(wf_status="REQUEST_IS_AT_G2")

        run(orchestrator, "CIF_AND_ACCOUNT", "doc-1", "APPROVED")

        pushes = [url for url, _ in upstream.calls("POST", EXCHANGE_URL)]
        assert pushes == [PUSH_CIF_URL, PUSH_ACCOUNT_URL]

    def test_cif_submission(self, orchestrator, db_session, upstream):
        create_definition(db_session, entity_type="CIF")
        db_session.commit()
        upstream.documents[f"{ACC_URL}cif-open/cif-1"] = cif_document()

        snapshot = run(orchestrator, "CIF", "cif-1")

        assert snapshot.wf_status == "REQUEST_IS_AT_G1"
        (_, body), = upstream.calls("PUT", f"{ACC_URL}cif-open/update-wf-status/cif-1")
        assert body["fullName"] == "Test Customer"

    def test_remote_account_submission(self, orchestrator, db_session, upstream):
        create_definition(db_session, entity_type="E_ACCOUNT")
        db_session.commit()
        upstream.documents[f"{ACC_URL}eacc-open/eacc-1"] = remote_account_document()

        snapshot = run(orchestrator, "E_ACCOUNT", "eacc-1")

        assert snapshot.wf_status == "REQUEST_IS_AT_G1"
        (record,) = ledger_rows(db_session)
        assert record.entity_type == "E_ACCOUNT"

    def test_document_without_id_is_written_back_without_one(
        self, orchestrator, db_session, upstream
    ):
        create_definition(db_session)
        db_session.commit()
        document = account_document()
        del document["data"]["data"]["accountInfo"]["_id"]
        upstream.documents[ACCOUNT_URL] = document

        snapshot = run(orchestrator, "ACCOUNT", "doc-1")

        assert snapshot.id is None
        (_, body), = upstream.calls("PUT", ACCOUNT_UPDATE_URL)
        assert "_id" not in body
        (record,) = ledger_rows(db_session)
        assert record.document_id == "doc-1"


class TestMaintenance:
    """Documents with a permanent number run the maintenance chain."""

    def test_maintenance_uses_its_own_status_field(self, orchestrator, db_session, upstream):
        create_definition(db_session, purpose="MAINTENANCE")
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(
            wf_status=STATUS_ACTIVATED, permanent=True
        )

        snapshot = run(orchestrator, "ACCOUNT", "doc-1")

        assert snapshot.wf_status_maint == "REQUEST_IS_AT_G1"
        assert snapshot.wf_status == STATUS_ACTIVATED
        (record,) = ledger_rows(db_session)
        assert record.purpose == "MAINTENANCE"

        (_, body), = upstream.calls("PUT", ACCOUNT_UPDATE_URL)
        assert body["isAccountNoPermanent"] is True
        assert "workflowComplete" not in body

    def test_maintenance_without_definition(self, orchestrator, db_session, upstream):
        create_definition(db_session, purpose="ONBOARDING")
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(permanent=True)

        with pytest.raises(NotFoundError):
            run(orchestrator, "ACCOUNT", "doc-1")

    def test_account_maintenance_completion(self, orchestrator, db_session, upstream):
        definition = create_definition(db_session, purpose="MAINTENANCE")
        create_execution(
            db_session, definition, purpose="MAINTENANCE", level=2, status="REQUEST_IS_AT_G2"
        )
        db_session.commit()
        upstream.documents[ACCOUNT_URL] = account_document(
            wf_status=STATUS_ACTIVATED, wf_status_maint="REQUEST_IS_AT_G2", permanent=True
        )

        snapshot = run(orchestrator, "ACCOUNT", "doc-1", "APPROVED")

        assert snapshot.wf_status_maint == STATUS_ACTIVATED
        assert snapshot.workflow_complete is None
        (push_url, _), = upstream.calls("POST", EXCHANGE_URL)
        assert push_url == PUSH_ACCOUNT_URL

        (_, body), = upstream.calls("PUT", ACCOUNT_UPDATE_URL)
        assert body["wfStatusMaint"] == STATUS_ACTIVATED
        assert body["wfStatus"] == STATUS_ACTIVATED
        assert body["isAccountNoPermanent"] is True
        assert "workflowComplete" not in body

    def test_deposit_account_maintenance_keeps_its_number(
        self, orchestrator, db_session, upstream
    ):
        definition = create_definition(db_session, entity_type="DAO", purpose="MAINTENANCE")
        create_execution(
            db_session, definition, document_id="dao-1", purpose="MAINTENANCE",
            level=2, status="REQUEST_IS_AT_G2",
        )
        db_session.commit()
        upstream.documents[f"{DAO_URL}dao-1"] = tracking_document(
            wf_status=STATUS_ACTIVATED,
            permanent=True,
            wfStatusMaint="REQUEST_IS_AT_G2",
            accNumber="PERMANENT-001",
        )

        snapshot = run(orchestrator, "DAO", "dao-1", "APPROVED")

        assert snapshot.wf_status_maint == STATUS_ACTIVATED
        assert snapshot.acc_number == "PERMANENT-001"
        assert upstream.calls("POST", EXCHANGE_URL) == []

        (_, body), = upstream.calls("PUT", f"{RDA_DAO_URL}update-wf-status/dao-1")
        assert body["accNumber"] == "PERMANENT-001"
        assert body["isAccNoPermanent"] is True
        assert "workflowComplete" not in body
        (record,) = ledger_rows(db_session)
        assert record.current_level == 3
