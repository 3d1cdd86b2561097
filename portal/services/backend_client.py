"""
Thin async client for the inventory REST backend.

Every call forwards the viewer's bearer token and the current correlation id.
Idempotent GET reads are retried on transport errors and 5xx responses;
mutations are sent exactly once.
"""

import logging
from typing import Any, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from portal.config import settings

logger = structlog.get_logger()
_std_logger = logging.getLogger(__name__)


class BackendError(Exception):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, payload: Any = None, method: str = "", path: str = ""):
        self.status_code = status_code
        self.payload = payload
        self.method = method
        self.path = path
        super().__init__(f"{method} {path} returned {status_code}")


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, BackendError) and exc.status_code >= 500


def extract_error_message(exc: BaseException, fallback: str) -> str:
    """
    Pick the message shown to the user for a failed backend call.

    Priority: structured ``message`` in the JSON error body, then the raw
    response payload, then ``fallback``. Transport failures carry no server
    payload and always map to ``fallback``.
    """
    if isinstance(exc, BackendError):
        payload = exc.payload
        if isinstance(payload, dict):
            message = payload.get("message")
            if isinstance(message, str) and message:
                return message
            nested = payload.get("error")
            if isinstance(nested, dict) and isinstance(nested.get("message"), str) and nested["message"]:
                return nested["message"]
        elif isinstance(payload, str) and payload.strip():
            return payload.strip()
    return fallback


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class BackendClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        token: Optional[str] = None,
        read_retries: int = settings.BACKEND_READ_RETRIES,
        retry_wait_seconds: float = 0.5,
    ):
        self.http = http
        self.token = token
        self.read_retries = max(1, read_retries)
        self.retry_wait_seconds = retry_wait_seconds

    def with_token(self, token: Optional[str]) -> "BackendClient":
        return BackendClient(
            self.http,
            token=token,
            read_retries=self.read_retries,
            retry_wait_seconds=self.retry_wait_seconds,
        )

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        request_id = structlog.contextvars.get_contextvars().get("request_id")
        if request_id:
            headers["X-Request-ID"] = request_id
        return headers

    async def _send(self, method: str, path: str, json: Any = None, params: Optional[dict] = None) -> Any:
        response = await self.http.request(
            method, path, json=json, params=params, headers=self._headers()
        )
        if response.is_success:
            return _decode(response)

        payload = _decode(response)
        logger.warning(
            "backend_request_failed",
            method=method,
            path=path,
            status_code=response.status_code,
        )
        raise BackendError(response.status_code, payload, method=method, path=path)

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        wait = self.retry_wait_seconds
        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.read_retries),
            wait=wait_exponential(multiplier=wait, min=wait, max=wait * 8),
            before_sleep=before_sleep_log(_std_logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await self._send("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self._send("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self._send("PUT", path, json=json)
