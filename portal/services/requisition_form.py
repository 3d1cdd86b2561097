"""
Draft state for the five requisition actions.

A form instance holds what the user has entered so far: the lines of a new
requisition, and the payload for approving, rejecting, fulfilling or
confirming the selected request. ``submit_*`` validates the draft locally and
only then calls the lifecycle client. A successful submit clears the draft;
a failed one leaves it untouched so the user can correct and resubmit.
"""

import math
from contextlib import asynccontextmanager
from typing import List, Optional

import structlog

from portal.schemas.item_request import (
    ApprovalPayload,
    ConfirmationPayload,
    FulfillmentPayload,
    ItemRequest,
    RejectionPayload,
)
from portal.services.item_request_service import (
    ItemRequestService,
    RequestLine,
    RequisitionValidationError,
)

logger = structlog.get_logger()

CREATE_INVALID = "Please add at least one item and select an office"
APPROVAL_INVALID = "Please enter approved quantity"
REJECTION_INVALID = "Please enter rejection reason"
FULFILLMENT_INVALID = "Please enter valid fulfillment quantity"
NO_REQUEST_SELECTED = "No request selected"


def remaining_balance(request: ItemRequest) -> float:
    return (request.approved_quantity or 0) - (request.fulfilled_quantity or 0)


class InFlightRegistry:
    """Actions currently being submitted, per viewer scope, shared by every request of the process."""

    def __init__(self):
        self._scopes: dict[str, set[str]] = {}

    def for_scope(self, scope: str) -> set[str]:
        return self._scopes.setdefault(scope, set())


class RequisitionForm:
    def __init__(self, service: ItemRequestService, in_flight: Optional[set[str]] = None):
        self.service = service
        self.lines: List[RequestLine] = []
        self.parent_office_id: Optional[int] = None
        self.reason: str = ""
        self.selected_request: Optional[ItemRequest] = None
        self.approval = ApprovalPayload()
        self.rejection = RejectionPayload()
        self.fulfillment = FulfillmentPayload()
        self.confirmation = ConfirmationPayload()
        self._in_flight: set[str] = in_flight if in_flight is not None else set()

    def is_submitting(self, action: str) -> bool:
        return action in self._in_flight

    @asynccontextmanager
    async def _submitting(self, action: str):
        if action in self._in_flight:
            raise RequisitionValidationError(f"A {action} request is already in progress", action)
        self._in_flight.add(action)
        try:
            yield
        finally:
            self._in_flight.discard(action)

    # ---------- Create draft ----------

    def add_item(self, item_id: int, item_name: Optional[str], quantity: float) -> None:
        self.lines.append(RequestLine(item_id=item_id, quantity=quantity, item_name=item_name))

    def remove_item(self, index: int) -> None:
        del self.lines[index]

    def update_item_quantity(self, index: int, quantity: float) -> None:
        self.lines[index].quantity = quantity

    def set_parent_office(self, office_id: Optional[int]) -> None:
        self.parent_office_id = office_id

    def set_reason(self, reason: str) -> None:
        self.reason = reason

    def validate_create(self) -> bool:
        if not self.lines or not self.parent_office_id:
            return False
        return all(line.quantity > 0 for line in self.lines)

    def reset_create(self) -> None:
        self.lines = []
        self.parent_office_id = None
        self.reason = ""

    async def submit_create(self) -> List[ItemRequest]:
        if not self.validate_create():
            raise RequisitionValidationError(CREATE_INVALID, "create")
        async with self._submitting("create"):
            created = await self.service.create(list(self.lines), self.parent_office_id, self.reason)
        self.reset_create()
        return created

    # ---------- Approve ----------

    def prepare_approval(self, request: ItemRequest) -> None:
        self.selected_request = request
        self.approval = ApprovalPayload(approved_quantity=request.requested_quantity)

    def set_approved_quantity(self, quantity: float) -> None:
        self.approval.approved_quantity = quantity

    def validate_approval(self) -> bool:
        return self.selected_request is not None and self.approval.approved_quantity > 0

    def reset_approval(self) -> None:
        self.approval = ApprovalPayload()
        self.selected_request = None

    async def submit_approve(self) -> Optional[ItemRequest]:
        if not self.validate_approval():
            raise RequisitionValidationError(APPROVAL_INVALID, "approve")
        async with self._submitting("approve"):
            record = await self.service.approve(self.selected_request.id, self.approval.approved_quantity)
        self.reset_approval()
        return record

    # ---------- Reject ----------

    def prepare_rejection(self, request: ItemRequest) -> None:
        self.selected_request = request
        self.rejection = RejectionPayload()

    def set_rejection_remarks(self, remarks: str) -> None:
        self.rejection.remarks = remarks

    def validate_rejection(self) -> bool:
        return self.selected_request is not None and bool(self.rejection.remarks)

    def reset_rejection(self) -> None:
        self.rejection = RejectionPayload()
        self.selected_request = None

    async def submit_reject(self) -> Optional[ItemRequest]:
        if not self.validate_rejection():
            raise RequisitionValidationError(REJECTION_INVALID, "reject")
        async with self._submitting("reject"):
            record = await self.service.reject(self.selected_request.id, self.rejection.remarks)
        self.reset_rejection()
        return record

    # ---------- Fulfill ----------

    def prepare_fulfillment(self, request: ItemRequest) -> None:
        self.selected_request = request
        self.fulfillment = FulfillmentPayload(quantity=math.floor(remaining_balance(request)))

    def set_fulfillment_quantity(self, quantity: int) -> None:
        self.fulfillment.quantity = quantity

    def validate_fulfillment(self) -> bool:
        if self.selected_request is None or not self.fulfillment.quantity or self.fulfillment.quantity <= 0:
            return False
        return self.fulfillment.quantity <= remaining_balance(self.selected_request)

    def reset_fulfillment(self) -> None:
        self.fulfillment = FulfillmentPayload()
        self.selected_request = None

    async def submit_fulfill(self) -> Optional[ItemRequest]:
        if not self.validate_fulfillment():
            raise RequisitionValidationError(FULFILLMENT_INVALID, "fulfill")
        async with self._submitting("fulfill"):
            record = await self.service.fulfill(self.selected_request.id, self.fulfillment.quantity)
        self.reset_fulfillment()
        return record

    # ---------- Confirm ----------

    def prepare_confirmation(self, request: ItemRequest) -> None:
        self.selected_request = request
        self.confirmation = ConfirmationPayload()

    def set_confirmation_remarks(self, remarks: Optional[str]) -> None:
        self.confirmation.remarks = remarks

    def reset_confirmation(self) -> None:
        self.confirmation = ConfirmationPayload()
        self.selected_request = None

    async def submit_confirm(self) -> Optional[ItemRequest]:
        if self.selected_request is None:
            raise RequisitionValidationError(NO_REQUEST_SELECTED, "confirm")
        async with self._submitting("confirm"):
            record = await self.service.confirm(self.selected_request.id, self.confirmation.remarks or None)
        self.reset_confirmation()
        return record
