"""
Requisition list views: which requests each tab shows, free-text search and
in-memory pagination over an already loaded list.
"""

from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from portal.schemas.common import PaginationMeta, build_pagination
from portal.schemas.item_request import ItemRequest, RequestStatus
from portal.services.status import format_status


class RequisitionView(str, Enum):
    MY_REQUESTS = "my-requests"
    INCOMING = "incoming"
    APPROVED = "approved"
    FULFILLED = "fulfilled"
    HISTORY = "history"


EMPTY_MESSAGES = {
    RequisitionView.MY_REQUESTS: "No requisitions found. Create a new requisition to request items from other offices.",
    RequisitionView.INCOMING: "No incoming requisitions. Requests from other offices will appear here.",
    RequisitionView.APPROVED: "No approved requisitions. Approved requests that need fulfillment will appear here.",
    RequisitionView.FULFILLED: "No fulfilled requisitions. Completed requisitions will appear here.",
    RequisitionView.HISTORY: "No requisition history found. All past and present requisitions will appear here.",
}

_VIEW_STATUSES = {
    RequisitionView.INCOMING: {RequestStatus.PENDING.value},
    RequisitionView.APPROVED: {RequestStatus.APPROVED.value, RequestStatus.PARTIALLY_FULFILLED.value},
    RequisitionView.FULFILLED: {RequestStatus.FULFILLED.value, RequestStatus.PARTIALLY_FULFILLED.value},
}


def matches_view(request: ItemRequest, view: RequisitionView, office_id: Optional[int]) -> bool:
    view = RequisitionView(view)
    if office_id is None:
        return False
    requested_here = request.requesting_office.id == office_id
    requested_of_us = request.parent_office.id == office_id

    if view is RequisitionView.MY_REQUESTS:
        return requested_here
    if view is RequisitionView.HISTORY:
        return requested_here or requested_of_us
    return requested_of_us and request.status in _VIEW_STATUSES[view]


def filter_for_view(
    requests: Iterable[ItemRequest], view: RequisitionView, office_id: Optional[int]
) -> List[ItemRequest]:
    return [r for r in requests if matches_view(r, view, office_id)]


def counterpart_columns(view: RequisitionView, request: ItemRequest) -> Dict[str, str]:
    """Office column(s) a row shows in the given view, keyed by header."""
    if view is RequisitionView.HISTORY:
        return {"From": request.parent_office.name, "To": request.requesting_office.name}
    if view is RequisitionView.INCOMING:
        return {"Requested By": request.requesting_office.name}
    return {"Requested To": request.parent_office.name}


def _search_fields(request: ItemRequest) -> Tuple[str, ...]:
    return (
        str(request.id),
        request.item.name,
        request.requesting_office.name,
        request.parent_office.name,
        request.status,
        format_status(request.status),
        request.reason or "",
    )


def search_requests(requests: Iterable[ItemRequest], query: Optional[str]) -> List[ItemRequest]:
    requests = list(requests)
    if not query:
        return requests
    needle = query.strip().lower()
    if not needle:
        return requests
    return [r for r in requests if any(needle in field.lower() for field in _search_fields(r))]


def paginate(items: List, page: int, limit: int) -> Tuple[List, PaginationMeta]:
    start = (page - 1) * limit
    return items[start : start + limit], build_pagination(page, limit, len(items))
