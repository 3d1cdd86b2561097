from dataclasses import dataclass

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import structlog

from portal.backend import get_backend
from portal.schemas.office import Viewer
from portal.services.backend_client import BackendClient, BackendError

logger = structlog.get_logger()

security = HTTPBearer()


@dataclass
class ViewerSession:
    viewer: Viewer
    client: BackendClient

    @property
    def scope(self) -> str:
        return f"{self.viewer.id}:{self.viewer.office_id}"


async def get_viewer_session(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    backend: BackendClient = Depends(get_backend),
) -> ViewerSession:
    """FastAPI dependency: resolve the bearer token to the signed-in viewer via the backend."""
    client = backend.with_token(credentials.credentials)
    try:
        payload = await client.get("/auth/me")
    except BackendError as e:
        if e.status_code in (401, 403):
            logger.warning("auth_token_invalid", status_code=e.status_code)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={
                    "error": {
                        "code": "AUTH_TOKEN_INVALID",
                        "message": "Invalid or expired token",
                    }
                },
                headers={"WWW-Authenticate": "Bearer"},
            )
        raise _auth_unavailable(str(e))
    except httpx.HTTPError as e:
        raise _auth_unavailable(str(e))

    return ViewerSession(viewer=Viewer.model_validate(payload), client=client)


def _auth_unavailable(error: str) -> HTTPException:
    logger.error("auth_lookup_failed", error=error)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={
            "error": {
                "code": "AUTH_UNAVAILABLE",
                "message": "Could not verify the signed-in user",
            }
        },
    )


async def get_current_viewer(session: ViewerSession = Depends(get_viewer_session)) -> Viewer:
    return session.viewer
