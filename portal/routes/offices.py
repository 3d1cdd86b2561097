from typing import List

from fastapi import APIRouter, Depends

from portal.middleware.auth import get_current_viewer
from portal.middleware.scope import get_office_service
from portal.schemas.office import CatalogItem, Office, Viewer
from portal.services.office_service import OfficeService

router = APIRouter()


@router.get("/offices/targets", response_model=List[Office], response_model_by_alias=False)
async def list_target_offices(
    viewer: Viewer = Depends(get_current_viewer),
    service: OfficeService = Depends(get_office_service),
):
    """Offices the signed-in viewer can send a requisition to."""
    return await service.target_offices(viewer)


@router.get("/offices/{parent_id}/children", response_model=List[Office], response_model_by_alias=False)
async def list_child_offices(
    parent_id: int,
    service: OfficeService = Depends(get_office_service),
):
    return await service.child_offices(parent_id)


@router.get("/items", response_model=List[CatalogItem], response_model_by_alias=False)
async def list_items(service: OfficeService = Depends(get_office_service)):
    return await service.list_items()


@router.get("/me", response_model=Viewer, response_model_by_alias=False)
async def read_me(viewer: Viewer = Depends(get_current_viewer)):
    return viewer
