from fastapi import Depends, Request

from portal.middleware.auth import ViewerSession, get_viewer_session
from portal.services.cache import QueryCache
from portal.services.item_request_service import ItemRequestService
from portal.services.office_service import OfficeService
from portal.services.requisition_form import RequisitionForm


def get_viewer_cache(request: Request, session: ViewerSession = Depends(get_viewer_session)) -> QueryCache:
    """The read cache belonging to the signed-in viewer."""
    return request.app.state.cache_registry.for_scope(session.scope)


def get_item_request_service(
    session: ViewerSession = Depends(get_viewer_session),
    cache: QueryCache = Depends(get_viewer_cache),
) -> ItemRequestService:
    return ItemRequestService(session.client, cache)


def get_office_service(
    session: ViewerSession = Depends(get_viewer_session),
    cache: QueryCache = Depends(get_viewer_cache),
) -> OfficeService:
    return OfficeService(session.client, cache)


def get_requisition_form(
    request: Request,
    session: ViewerSession = Depends(get_viewer_session),
    service: ItemRequestService = Depends(get_item_request_service),
) -> RequisitionForm:
    # submissions already running for this viewer, across HTTP requests
    in_flight = request.app.state.in_flight_registry.for_scope(session.scope)
    return RequisitionForm(service, in_flight)
