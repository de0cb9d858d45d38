"""Entity descriptors: everything that differs between document types.

The orchestrator has one code path; where a document lives, how its
snapshot is nested and what happens on completion is looked up here.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Type

import pydantic

from docflow.core.exceptions import CollaboratorError, NotFoundError, ValidationError

from .payloads import account_push_payload, cif_push_payload
from .snapshots import (
    AccountInfo,
    DocumentSnapshot,
    EAccPersonalInfo,
    ECifCompanyInfo,
    PersonalInfo,
    TrackingInfo,
)
from .states import EntityType


PUSH_ACCOUNT_ENDPOINT = "push-account-to-cbs"
PUSH_CIF_ENDPOINT = "push-cif-to-cbs"

# Releases the account service's edit lock after a deposit account moves
RELEASE_PICK_PATH = "cif-acc/remove/picked-by/{id}"


class TerminalEffect(str, Enum):
    """What completing the chain does in core banking."""

    PUSH = "push"                          # send fixed-shape payload(s)
    ASSIGN_ACCOUNT_NUMBER = "account_no"   # request a provisional account number


TerminalPush = Tuple[str, Callable[[], Dict[str, Any]]]


@dataclass(frozen=True)
class EntityDescriptor:
    """How one document type is fetched, written back and completed."""

    entity_type: EntityType
    source: str                      # settings attribute of the owning service
    fetch_path: str
    snapshot_path: Tuple[str, ...]   # keys from response body to the sub-document
    snapshot_model: Type[DocumentSnapshot]
    update_path: str
    update_source: Optional[str] = None   # defaults to the fetch source
    terminal_effect: TerminalEffect = TerminalEffect.PUSH
    terminal_pushes: Tuple[TerminalPush, ...] = ()
    release_pick_path: Optional[str] = None

    @property
    def permanence_flag(self) -> str:
        return self.snapshot_model.permanence_attr

    def extract(self, body: Dict[str, Any]) -> DocumentSnapshot:
        """
        Pull the typed snapshot out of a fetch response body.

        Raises:
            NotFoundError: If the body has no sub-document at ``snapshot_path``
            CollaboratorError: If the sub-document does not fit the snapshot model
        """
        node: Any = body
        for key in self.snapshot_path:
            if not isinstance(node, dict) or node.get(key) is None:
                raise NotFoundError(
                    f"{self.entity_type.value} document has no '{'.'.join(self.snapshot_path)}'"
                )
            node = node[key]
        try:
            return self.snapshot_model.model_validate(node)
        except pydantic.ValidationError as e:
            raise CollaboratorError(
                f"{self.entity_type.value} document from {self.source} is malformed: "
                f"{e.error_count()} invalid field(s)",
                service=self.source,
            ) from e

    def fetch_url(self, document_id: str) -> str:
        return self.fetch_path.format(id=document_id)

    def update_url(self, document_id: str) -> str:
        return self.update_path.format(id=document_id)

    @property
    def status_source(self) -> str:
        return self.update_source or self.source


_ACCOUNT_PATH = ("data", "data", "accountInfo")
_REMOTE_ACCOUNT_PATH = ("data", "eAccPersonalInfo")

ENTITY_DESCRIPTORS: Dict[EntityType, EntityDescriptor] = {
    EntityType.ACCOUNT: EntityDescriptor(
        entity_type=EntityType.ACCOUNT,
        source="acc_service_url",
        fetch_path="acc-open/{id}",
        snapshot_path=_ACCOUNT_PATH,
        snapshot_model=AccountInfo,
        update_path="acc-open/update-wf-status/{id}",
        terminal_pushes=((PUSH_ACCOUNT_ENDPOINT, account_push_payload),),
    ),
    EntityType.CIF: EntityDescriptor(
        entity_type=EntityType.CIF,
        source="acc_service_url",
        fetch_path="cif-open/{id}",
        snapshot_path=("data", "personalInfo"),
        snapshot_model=PersonalInfo,
        update_path="cif-open/update-wf-status/{id}",
        terminal_pushes=((PUSH_CIF_ENDPOINT, cif_push_payload),),
    ),
    EntityType.DEPOSIT_ACCOUNT: EntityDescriptor(
        entity_type=EntityType.DEPOSIT_ACCOUNT,
        source="dao_service_url",
        fetch_path="{id}",
        snapshot_path=("data", "trackingInfo"),
        snapshot_model=TrackingInfo,
        update_path="update-wf-status/{id}",
        update_source="rda_dao_service_url",
        terminal_effect=TerminalEffect.ASSIGN_ACCOUNT_NUMBER,
        release_pick_path=RELEASE_PICK_PATH,
    ),
    EntityType.RECURRING_DEPOSIT: EntityDescriptor(
        entity_type=EntityType.RECURRING_DEPOSIT,
        source="rda_dao_service_url",
        fetch_path="rda/{id}",
        snapshot_path=("data", "trackingInfo"),
        snapshot_model=TrackingInfo,
        update_path="rda/update-wf-status/{id}",
        terminal_effect=TerminalEffect.ASSIGN_ACCOUNT_NUMBER,
        release_pick_path=RELEASE_PICK_PATH,
    ),
    EntityType.CIF_AND_ACCOUNT: EntityDescriptor(
        entity_type=EntityType.CIF_AND_ACCOUNT,
        source="acc_service_url",
        fetch_path="acc-open/{id}",
        snapshot_path=_ACCOUNT_PATH,
        snapshot_model=AccountInfo,
        update_path="acc-open/update-wf-status/{id}",
        terminal_pushes=(
            (PUSH_CIF_ENDPOINT, cif_push_payload),
            (PUSH_ACCOUNT_ENDPOINT, account_push_payload),
        ),
    ),
    EntityType.CIF_MAINT_AND_ACCOUNT_OPEN: EntityDescriptor(
        entity_type=EntityType.CIF_MAINT_AND_ACCOUNT_OPEN,
        source="acc_service_url",
        fetch_path="acc-open/{id}",
        snapshot_path=_ACCOUNT_PATH,
        snapshot_model=AccountInfo,
        update_path="acc-open/update-wf-status/{id}",
        # the customer already exists in core banking
        terminal_pushes=((PUSH_ACCOUNT_ENDPOINT, account_push_payload),),
    ),
    EntityType.REMOTE_ACCOUNT: EntityDescriptor(
        entity_type=EntityType.REMOTE_ACCOUNT,
        source="acc_service_url",
        fetch_path="eacc-open/{id}",
        snapshot_path=_REMOTE_ACCOUNT_PATH,
        snapshot_model=EAccPersonalInfo,
        update_path="eacc-open/update-wf-status/{id}",
        terminal_pushes=((PUSH_ACCOUNT_ENDPOINT, account_push_payload),),
    ),
    EntityType.REMOTE_CIF: EntityDescriptor(
        entity_type=EntityType.REMOTE_CIF,
        source="acc_service_url",
        fetch_path="ecif-open/{id}",
        snapshot_path=("data", "ecifCompanyInfo"),
        snapshot_model=ECifCompanyInfo,
        update_path="ecif-open/update-wf-status/{id}",
        terminal_pushes=((PUSH_CIF_ENDPOINT, cif_push_payload),),
    ),
    EntityType.REMOTE_CIF_AND_ACCOUNT: EntityDescriptor(
        entity_type=EntityType.REMOTE_CIF_AND_ACCOUNT,
        source="acc_service_url",
        fetch_path="eacc-open/{id}",
        snapshot_path=_REMOTE_ACCOUNT_PATH,
        snapshot_model=EAccPersonalInfo,
        update_path="eacc-open/update-wf-status/{id}",
        terminal_pushes=(
            (PUSH_CIF_ENDPOINT, cif_push_payload),
            (PUSH_ACCOUNT_ENDPOINT, account_push_payload),
        ),
    ),
}


def get_descriptor(entity_type: EntityType) -> EntityDescriptor:
    """Look up the descriptor for an entity type."""
    try:
        return ENTITY_DESCRIPTORS[EntityType(entity_type)]
    except (KeyError, ValueError):
        raise ValidationError(f"Unsupported entity type: {entity_type}", field="workflowType")
