"""
Item request (requisition) models as exchanged with the inventory backend.

The backend speaks camelCase JSON; models here use snake_case attributes with
camelCase aliases so they parse backend payloads directly and serialize back
with ``model_dump(by_alias=True)``.
"""

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class RequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    FULFILLED = "FULFILLED"
    PARTIALLY_FULFILLED = "PARTIALLY_FULFILLED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


# Statuses that imply the named quantity has been set by the backend
_NEEDS_APPROVED_QTY = {
    RequestStatus.APPROVED,
    RequestStatus.FULFILLED,
    RequestStatus.PARTIALLY_FULFILLED,
    RequestStatus.CONFIRMED,
}
_NEEDS_FULFILLED_QTY = {
    RequestStatus.FULFILLED,
    RequestStatus.PARTIALLY_FULFILLED,
    RequestStatus.CONFIRMED,
}


class _CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class IdRef(_CamelModel):
    id: int


class OfficeRef(_CamelModel):
    id: int
    name: str
    code: Optional[str] = None


class ItemRef(_CamelModel):
    id: int
    name: str


class UserRef(_CamelModel):
    id: int
    username: str
    name: Optional[str] = None


class ItemRequest(_CamelModel):
    id: int
    requested_date: Optional[str] = None
    requested_quantity: float
    approved_quantity: Optional[float] = None
    fulfilled_quantity: Optional[float] = None
    status: str
    reason: Optional[str] = None
    remarks: Optional[str] = None
    confirmation_remarks: Optional[str] = None
    approved_date: Optional[str] = None
    rejected_date: Optional[str] = None
    fulfilled_date: Optional[str] = None
    confirmed_date: Optional[str] = None
    requesting_office: OfficeRef
    parent_office: OfficeRef
    item: ItemRef
    requested_by: Optional[UserRef] = None
    approved_by: Optional[UserRef] = None
    confirmed_by: Optional[UserRef] = None

    @property
    def remaining_quantity(self) -> float:
        return (self.approved_quantity or 0) - (self.fulfilled_quantity or 0)

    def quantity_violations(self) -> List[str]:
        """Describe any breach of the quantity/status invariants.

        The backend owns the record, so a breach is only reported (and
        logged by callers), never corrected here.
        """
        problems = []
        if self.approved_quantity is not None and self.approved_quantity > self.requested_quantity:
            problems.append("approved_quantity exceeds requested_quantity")
        if (
            self.approved_quantity is not None
            and self.fulfilled_quantity is not None
            and self.fulfilled_quantity > self.approved_quantity
        ):
            problems.append("fulfilled_quantity exceeds approved_quantity")
        try:
            status = RequestStatus(self.status)
        except ValueError:
            return problems
        if status in _NEEDS_APPROVED_QTY and self.approved_quantity is None:
            problems.append(f"status {status.value} without approved_quantity")
        if status in _NEEDS_FULFILLED_QTY and self.fulfilled_quantity is None:
            problems.append(f"status {status.value} without fulfilled_quantity")
        return problems


# ---------- Mutation payloads ----------

Quantity = Union[int, float]


class ItemRequestCreate(_CamelModel):
    item: IdRef
    requested_quantity: Quantity
    parent_office: IdRef
    reason: Optional[str] = None


class ApprovalPayload(_CamelModel):
    approved_quantity: Quantity = 0


class RejectionPayload(_CamelModel):
    remarks: str = ""


class FulfillmentPayload(_CamelModel):
    quantity: int = 0


class ConfirmationPayload(_CamelModel):
    remarks: Optional[str] = ""
