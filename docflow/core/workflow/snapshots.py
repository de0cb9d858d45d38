"""Typed document snapshots returned by the systems of record.

Each entity family has its own model naming the workflow fields it carries.
Fields the workflow does not touch are kept as extras so the snapshot can be
written back to its service without losing data.
"""

from typing import Any, ClassVar, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .states import Purpose


class DocumentSnapshot(BaseModel):
    """Workflow-relevant view of a document."""

    # services send some numbers as JSON numbers, others as strings
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    # Attribute holding the "number is permanent" flag
    permanence_attr: ClassVar[str] = ""

    id: Optional[str] = Field(None, alias="_id")
    wf_status: Optional[str] = Field(None, alias="wfStatus")
    wf_status_maint: Optional[str] = Field(None, alias="wfStatusMaint")
    workflow_complete: Optional[str] = Field(None, alias="workflowComplete")
    picked_by: Optional[Any] = Field(None, alias="pickedBy")

    @property
    def is_permanent(self) -> bool:
        return getattr(self, self.permanence_attr) is True

    @property
    def purpose(self) -> Purpose:
        return Purpose.for_document(self.is_permanent)

    def status_for(self, purpose: Purpose) -> Optional[str]:
        return getattr(self, purpose.status_field)

    def set_status(self, purpose: Purpose, value: Optional[str]) -> None:
        setattr(self, purpose.status_field, value)

    def mark_permanent(self, value: bool = True) -> None:
        setattr(self, self.permanence_attr, value)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with the service's field names, extras included."""
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class PersonalInfo(DocumentSnapshot):
    """Customer identification (CIF) record."""

    permanence_attr: ClassVar[str] = "is_cif_no_permanent"

    is_cif_no_permanent: Optional[bool] = Field(None, alias="isCifNoPermanent")
    cif_number: Optional[str] = Field(None, alias="cifNumber")


class AccountInfo(DocumentSnapshot):
    """Account-opening record, also used by the CIF+account flows."""

    permanence_attr: ClassVar[str] = "is_account_no_permanent"

    is_account_no_permanent: Optional[bool] = Field(None, alias="isAccountNoPermanent")
    account_number: Optional[str] = Field(None, alias="accountNumber")


class TrackingInfo(DocumentSnapshot):
    """Deposit account (term or recurring) tracking record."""

    permanence_attr: ClassVar[str] = "is_acc_no_permanent"

    is_acc_no_permanent: Optional[bool] = Field(None, alias="isAccNoPermanent")
    acc_number: Optional[str] = Field(None, alias="accNumber")


class ECifCompanyInfo(DocumentSnapshot):
    """Remote (digital channel) CIF record."""

    permanence_attr: ClassVar[str] = "is_ecif_no_permanent"

    is_ecif_no_permanent: Optional[bool] = Field(None, alias="isEcifNoPermanent")


class EAccPersonalInfo(DocumentSnapshot):
    """Remote (digital channel) account record."""

    permanence_attr: ClassVar[str] = "is_eacc_no_permanent"

    is_eacc_no_permanent: Optional[bool] = Field(None, alias="isEaccNoPermanent")
