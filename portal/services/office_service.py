"""Office and item catalog lookups backing the create-requisition form."""

from typing import List

import httpx
import structlog

from portal.schemas.office import CatalogItem, Office, Viewer
from portal.services.backend_client import BackendClient, BackendError, extract_error_message
from portal.services.cache import QueryCache
from portal.services.item_request_service import RequisitionActionError

logger = structlog.get_logger()


class OfficeService:
    def __init__(self, client: BackendClient, cache: QueryCache):
        self.client = client
        self.cache = cache

    async def _get(self, key: tuple, path: str):
        async def fetch():
            try:
                return await self.client.get(path)
            except (BackendError, httpx.HTTPError) as exc:
                raise RequisitionActionError(
                    "load",
                    extract_error_message(exc, "Failed to load offices"),
                    status_code=getattr(exc, "status_code", None),
                ) from exc

        return await self.cache.get_or_fetch(key, fetch)

    async def list_offices(self) -> List[Office]:
        data = await self._get(("offices",), "/offices")
        return [Office.model_validate(o) for o in data or []]

    async def child_offices(self, parent_id: int) -> List[Office]:
        data = await self._get(("offices", "children", parent_id), f"/offices/children/{parent_id}")
        return [Office.model_validate(o) for o in data or []]

    async def list_items(self) -> List[CatalogItem]:
        data = await self._get(("items",), "/items")
        return [CatalogItem.model_validate(i) for i in data or []]

    async def target_offices(self, viewer: Viewer) -> List[Office]:
        """Offices the viewer can request items from: every active office but their own."""
        return [o for o in await self.list_offices() if o.is_active and o.id != viewer.office_id]
