import json
from typing import Awaitable, Callable, Optional, Union

import httpx
import pytest

from portal.services.backend_client import BackendClient
from portal.services.cache import QueryCache

Responder = Union[
    httpx.Response,
    Exception,
    Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]],
]


class FakeBackend:
    """
    Stand-in for the inventory REST backend.

    Responses are queued per (method, path); the last queued response sticks
    so repeated reads keep getting it. Every request is recorded in ``calls``
    as (method, path, json body). Callable responders may be coroutines,
    which lets a test hold a response open until it sets an event.
    """

    def __init__(self):
        self.calls: list[tuple[str, str, Optional[dict]]] = []
        self._responses: dict[tuple[str, str], list[Responder]] = {}

    def on(self, method: str, path: str, status: int = 200, json_body=None, text: Optional[str] = None):
        if text is not None:
            response = httpx.Response(status, text=text)
        elif json_body is not None:
            response = httpx.Response(status, json=json_body)
        else:
            response = httpx.Response(status)
        return self.respond(method, path, response)

    def respond(self, method: str, path: str, responder: Responder):
        self._responses.setdefault((method, path), []).append(responder)
        return self

    def calls_to(self, method: str, path: str) -> list:
        return [c for c in self.calls if c[0] == method and c[1] == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.path, body))
        queue = self._responses.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": f"no stub for {request.method} {request.url.path}"})
        responder = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(responder, Exception):
            raise responder
        if callable(responder):
            return responder(request)
        return responder

    def client(self, token: Optional[str] = "test-token", read_retries: int = 1) -> BackendClient:
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            base_url="http://backend.test",
        )
        return BackendClient(http, token=token, read_retries=read_retries, retry_wait_seconds=0)


def make_request_data(
    request_id: int = 1,
    status: str = "PENDING",
    requested: float = 10,
    approved: Optional[float] = None,
    fulfilled: Optional[float] = None,
    requesting_office_id: int = 3,
    parent_office_id: int = 7,
    item_id: int = 1,
    item_name: str = "A4 Paper",
) -> dict:
    """Backend-shaped (camelCase) item request JSON."""
    data = {
        "id": request_id,
        "requestedDate": "2024-03-01T10:00:00",
        "requestedQuantity": requested,
        "status": status,
        "reason": "Semester stock",
        "requestingOffice": {"id": requesting_office_id, "name": f"Office {requesting_office_id}"},
        "parentOffice": {"id": parent_office_id, "name": f"Office {parent_office_id}"},
        "item": {"id": item_id, "name": item_name},
        "requestedBy": {"id": 11, "username": "clerk"},
    }
    if approved is not None:
        data["approvedQuantity"] = approved
    if fulfilled is not None:
        data["fulfilledQuantity"] = fulfilled
    return data


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def cache() -> QueryCache:
    return QueryCache(ttl_seconds=0)


@pytest.fixture
def request_data():
    return make_request_data
