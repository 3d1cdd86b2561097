"""
Item request lifecycle client.

Translates one user action into backend mutations and keeps the viewer's read
cache honest:

  create   POST /item-requests            (one call per line, concurrently)
  approve  PUT  /item-requests/{id}/approve
  reject   PUT  /item-requests/{id}/reject
  fulfill  PUT  /item-requests/{id}/fulfill
  confirm  PUT  /item-requests/{id}/confirm

Successful mutations invalidate every cached requisition query. Failed
mutations leave the cache alone, except a partially committed create, which
invalidates so the next read shows what the backend actually holds.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import httpx
import structlog

from portal.schemas.item_request import (
    ApprovalPayload,
    ConfirmationPayload,
    FulfillmentPayload,
    IdRef,
    ItemRequest,
    ItemRequestCreate,
    RejectionPayload,
)
from portal.services.backend_client import BackendClient, BackendError, extract_error_message
from portal.services.cache import QueryCache
from portal.services.views import RequisitionView

logger = structlog.get_logger()

CACHE_ROOT = ("item_requests",)

FALLBACK_MESSAGES = {
    "create": "Failed to create requisition",
    "approve": "Failed to approve requisition",
    "reject": "Failed to reject requisition",
    "fulfill": "Failed to fulfill requisition",
    "confirm": "Failed to confirm requisition",
    "load": "Failed to load requisitions",
}

_BACKEND_FAILURES = (BackendError, httpx.HTTPError)


class RequisitionValidationError(Exception):
    """Draft failed local validation; nothing was sent to the backend."""

    def __init__(self, message: str, action: str = ""):
        self.message = message
        self.action = action
        super().__init__(message)


class RequisitionActionError(Exception):
    """A backend call for a requisition action failed."""

    def __init__(
        self,
        action: str,
        message: str,
        status_code: Optional[int] = None,
        committed: Optional[List[ItemRequest]] = None,
        failed_lines: Optional[List[int]] = None,
    ):
        self.action = action
        self.message = message
        self.status_code = status_code
        self.committed = committed or []
        self.failed_lines = failed_lines or []
        super().__init__(message)


@dataclass
class RequestLine:
    item_id: int
    quantity: float
    item_name: Optional[str] = None


def _action_error(action: str, exc: BaseException, **kwargs) -> RequisitionActionError:
    status_code = exc.status_code if isinstance(exc, BackendError) else None
    return RequisitionActionError(
        action,
        extract_error_message(exc, FALLBACK_MESSAGES[action]),
        status_code=status_code,
        **kwargs,
    )


def _parse_record(data: Any) -> Optional[ItemRequest]:
    if not isinstance(data, dict):
        return None
    record = ItemRequest.model_validate(data)
    violations = record.quantity_violations()
    if violations:
        logger.warning("item_request_invariant_breach", request_id=record.id, violations=violations)
    return record


def _parse_list(data: Any) -> List[ItemRequest]:
    if not isinstance(data, list):
        return []
    return [r for r in (_parse_record(d) for d in data) if r is not None]


class ItemRequestService:
    def __init__(self, client: BackendClient, cache: QueryCache):
        self.client = client
        self.cache = cache

    def invalidate(self) -> None:
        self.cache.invalidate(CACHE_ROOT)

    # ---------- Reads ----------

    async def _read(self, key: tuple, path: str, parse):
        async def fetch():
            try:
                data = await self.client.get(path)
            except _BACKEND_FAILURES as exc:
                raise _action_error("load", exc) from exc
            return parse(data)

        return await self.cache.get_or_fetch(CACHE_ROOT + key, fetch)

    async def list_all(self) -> List[ItemRequest]:
        return await self._read(("all",), "/item-requests", _parse_list)

    async def get(self, request_id: int) -> Optional[ItemRequest]:
        return await self._read(("detail", request_id), f"/item-requests/{request_id}", _parse_record)

    async def list_by_office(self, office_id: int) -> List[ItemRequest]:
        return await self._read(("office", office_id), f"/item-requests/office/{office_id}", _parse_list)

    async def list_for_view(self, view: RequisitionView) -> List[ItemRequest]:
        view = RequisitionView(view)
        return await self._read((view.value,), f"/item-requests/{view.value}", _parse_list)

    # ---------- Mutations ----------

    async def create(self, lines: Sequence[RequestLine], office_id: int, reason: Optional[str] = None) -> List[ItemRequest]:
        """
        Create one item request per line, all sent concurrently.

        Succeeds only if every line succeeds. Lines that committed before a
        failure are not rolled back; the raised error names the first failed
        line (in line order) and lists the committed records.
        """
        payloads = [
            ItemRequestCreate(
                item=IdRef(id=line.item_id),
                requested_quantity=line.quantity,
                parent_office=IdRef(id=office_id),
                reason=reason or None,
            ).model_dump(by_alias=True, exclude_none=True)
            for line in lines
        ]
        results = await asyncio.gather(
            *(self.client.post("/item-requests", json=p) for p in payloads),
            return_exceptions=True,
        )

        # committed lines must show on the next read even if parsing below fails
        if any(not isinstance(r, BaseException) for r in results):
            self.invalidate()

        created: List[ItemRequest] = []
        failures: List[tuple[int, BaseException]] = []
        for index, result in enumerate(results):
            if isinstance(result, _BACKEND_FAILURES):
                failures.append((index, result))
            elif isinstance(result, BaseException):
                raise result
            else:
                record = _parse_record(result)
                if record is not None:
                    created.append(record)

        if not failures:
            logger.info("item_requests_created", count=len(created), parent_office_id=office_id)
            return created

        _, first_exc = failures[0]
        if len(failures) < len(payloads):
            logger.warning(
                "item_request_create_partial_failure",
                committed=len(payloads) - len(failures),
                failed_lines=[i for i, _ in failures],
                parent_office_id=office_id,
                error=str(first_exc),
            )
        else:
            logger.warning(
                "item_request_create_failed", lines=len(payloads), parent_office_id=office_id, error=str(first_exc)
            )

        raise _action_error(
            "create",
            first_exc,
            committed=created,
            failed_lines=[i for i, _ in failures],
        ) from first_exc

    async def _transition(self, action: str, request_id: int, body: dict) -> Optional[ItemRequest]:
        try:
            data = await self.client.put(f"/item-requests/{request_id}/{action}", json=body)
        except _BACKEND_FAILURES as exc:
            logger.warning("item_request_transition_failed", action=action, request_id=request_id, error=str(exc))
            raise _action_error(action, exc) from exc

        self.invalidate()
        record = _parse_record(data)
        logger.info(
            "item_request_transitioned",
            action=action,
            request_id=request_id,
            status=record.status if record else None,
        )
        return record

    async def approve(self, request_id: int, approved_quantity: float) -> Optional[ItemRequest]:
        body = ApprovalPayload(approved_quantity=approved_quantity).model_dump(by_alias=True)
        return await self._transition("approve", request_id, body)

    async def reject(self, request_id: int, remarks: str) -> Optional[ItemRequest]:
        body = RejectionPayload(remarks=remarks).model_dump(by_alias=True)
        return await self._transition("reject", request_id, body)

    async def fulfill(self, request_id: int, quantity: int) -> Optional[ItemRequest]:
        body = FulfillmentPayload(quantity=quantity).model_dump(by_alias=True)
        return await self._transition("fulfill", request_id, body)

    async def confirm(self, request_id: int, remarks: Optional[str] = None) -> Optional[ItemRequest]:
        body = ConfirmationPayload(remarks=remarks).model_dump(by_alias=True, exclude_none=True)
        return await self._transition("confirm", request_id, body)
