from typing import Optional

import httpx
import structlog

from portal.config import settings
from portal.services.backend_client import BackendClient

logger = structlog.get_logger()

_http_client: Optional[httpx.AsyncClient] = None


def _build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.BACKEND_API_URL,
        timeout=httpx.Timeout(
            settings.BACKEND_TIMEOUT_SECONDS,
            connect=settings.BACKEND_CONNECT_TIMEOUT_SECONDS,
        ),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=30),
    )


def get_http_client() -> httpx.AsyncClient:
    global _http_client
    if _http_client is None or _http_client.is_closed:
        _http_client = _build_http_client()
    return _http_client


async def init_backend():
    get_http_client()
    logger.info("backend_client_ready", base_url=settings.BACKEND_API_URL)


async def close_backend():
    global _http_client
    if _http_client is not None and not _http_client.is_closed:
        await _http_client.aclose()
    _http_client = None
    logger.info("backend_client_closed")


async def get_backend() -> BackendClient:
    """FastAPI dependency: unauthenticated backend client on the shared pool."""
    return BackendClient(get_http_client())
