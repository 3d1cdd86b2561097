"""
Requisition routes: the five list views, a detail view, and the create,
approve, reject, fulfill and confirm actions.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from portal.middleware.auth import get_current_viewer
from portal.middleware.authorization import require_admin
from portal.middleware.scope import get_item_request_service, get_requisition_form
from portal.schemas.item_request import ItemRequest
from portal.schemas.office import Viewer
from portal.schemas.requisition import (
    ApproveBody,
    ConfirmBody,
    CreateRequisitionBody,
    CreateRequisitionResponse,
    FulfillBody,
    RejectBody,
    RequisitionListResponse,
    RequisitionRow,
)
from portal.services.item_request_service import ItemRequestService
from portal.services.permissions import ordered_actions, permitted_actions
from portal.services.requisition_form import RequisitionForm
from portal.services.status import format_status, get_status_color
from portal.services.views import (
    EMPTY_MESSAGES,
    RequisitionView,
    counterpart_columns,
    filter_for_view,
    paginate,
    search_requests,
)

logger = structlog.get_logger()
router = APIRouter()


def _to_row(request: ItemRequest, view: RequisitionView, role: Optional[str]) -> RequisitionRow:
    return RequisitionRow(
        id=request.id,
        item_name=request.item.name,
        columns=counterpart_columns(view, request),
        requested_quantity=request.requested_quantity,
        approved_quantity=request.approved_quantity,
        fulfilled_quantity=request.fulfilled_quantity,
        remaining_quantity=request.remaining_quantity,
        status=request.status,
        status_label=format_status(request.status),
        status_color=get_status_color(request.status),
        requested_date=request.requested_date,
        reason=request.reason,
        remarks=request.remarks,
        actions=ordered_actions(permitted_actions(view, request.status, role)),
    )


async def _load(service: ItemRequestService, request_id: int) -> ItemRequest:
    record = await service.get(request_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Item request not found")
    return record


# ---------- LIST / GET ----------


@router.get("", response_model=RequisitionListResponse)
async def list_requisitions(
    view: RequisitionView = Query(RequisitionView.MY_REQUESTS),
    q: Optional[str] = Query(None, max_length=200),
    page: int = Query(1, ge=1, le=1000),
    limit: int = Query(20, ge=1, le=100),
    viewer: Viewer = Depends(get_current_viewer),
    service: ItemRequestService = Depends(get_item_request_service),
):
    # backend lists are re-filtered by the same office/status rule the row actions use
    requests = filter_for_view(await service.list_for_view(view), view, viewer.office_id)
    requests = search_requests(requests, q)
    page_items, meta = paginate(requests, page, limit)
    logger.info("requisition_list", view=view.value, total=meta.total, page=page)

    return RequisitionListResponse(
        view=view.value,
        data=[_to_row(r, view, viewer.role) for r in page_items],
        pagination=meta,
        empty_message=None if requests else EMPTY_MESSAGES[view],
    )


@router.get("/{request_id}", response_model=RequisitionRow)
async def get_requisition(
    request_id: int,
    view: RequisitionView = Query(RequisitionView.HISTORY),
    viewer: Viewer = Depends(get_current_viewer),
    service: ItemRequestService = Depends(get_item_request_service),
):
    return _to_row(await _load(service, request_id), view, viewer.role)


# ---------- ACTIONS ----------


@router.post("", response_model=CreateRequisitionResponse, status_code=status.HTTP_201_CREATED)
async def create_requisition(
    body: CreateRequisitionBody,
    viewer: Viewer = Depends(get_current_viewer),
    _auth: None = Depends(require_admin),
    form: RequisitionForm = Depends(get_requisition_form),
):
    form.set_parent_office(body.parent_office_id)
    form.set_reason(body.reason)
    for line in body.lines:
        form.add_item(line.item_id, line.item_name, line.quantity)

    created = await form.submit_create()
    logger.info("requisition_created", lines=len(body.lines), parent_office_id=body.parent_office_id)
    return CreateRequisitionResponse(
        created=[_to_row(r, RequisitionView.MY_REQUESTS, viewer.role) for r in created]
    )


@router.put("/{request_id}/approve", response_model=Optional[RequisitionRow])
async def approve_requisition(
    request_id: int,
    body: ApproveBody,
    viewer: Viewer = Depends(get_current_viewer),
    _auth: None = Depends(require_admin),
    form: RequisitionForm = Depends(get_requisition_form),
):
    form.prepare_approval(await _load(form.service, request_id))
    if body.approved_quantity is not None:
        form.set_approved_quantity(body.approved_quantity)

    record = await form.submit_approve()
    return _to_row(record, RequisitionView.INCOMING, viewer.role) if record else None


@router.put("/{request_id}/reject", response_model=Optional[RequisitionRow])
async def reject_requisition(
    request_id: int,
    body: RejectBody,
    viewer: Viewer = Depends(get_current_viewer),
    _auth: None = Depends(require_admin),
    form: RequisitionForm = Depends(get_requisition_form),
):
    form.prepare_rejection(await _load(form.service, request_id))
    form.set_rejection_remarks(body.remarks)

    record = await form.submit_reject()
    return _to_row(record, RequisitionView.INCOMING, viewer.role) if record else None


@router.put("/{request_id}/fulfill", response_model=Optional[RequisitionRow])
async def fulfill_requisition(
    request_id: int,
    body: FulfillBody,
    viewer: Viewer = Depends(get_current_viewer),
    _auth: None = Depends(require_admin),
    form: RequisitionForm = Depends(get_requisition_form),
):
    form.prepare_fulfillment(await _load(form.service, request_id))
    if body.quantity is not None:
        form.set_fulfillment_quantity(body.quantity)

    record = await form.submit_fulfill()
    return _to_row(record, RequisitionView.APPROVED, viewer.role) if record else None


@router.put("/{request_id}/confirm", response_model=Optional[RequisitionRow])
async def confirm_requisition(
    request_id: int,
    body: ConfirmBody,
    viewer: Viewer = Depends(get_current_viewer),
    _auth: None = Depends(require_admin),
    form: RequisitionForm = Depends(get_requisition_form),
):
    form.prepare_confirmation(await _load(form.service, request_id))
    form.set_confirmation_remarks(body.remarks)

    record = await form.submit_confirm()
    return _to_row(record, RequisitionView.FULFILLED, viewer.role) if record else None
