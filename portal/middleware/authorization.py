from fastapi import Depends, HTTPException, status

from portal.middleware.auth import get_current_viewer
from portal.schemas.office import Viewer
from portal.services.permissions import is_admin


async def require_admin(viewer: Viewer = Depends(get_current_viewer)) -> None:
    """
    FastAPI dependency: only office administrators may act on requisitions.

    Usage:
        @router.put("/{request_id}/approve")
        async def approve(..., _auth: None = Depends(require_admin)):
    """
    if not is_admin(viewer.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": {
                    "code": "ADMIN_PERMISSION_REQUIRED",
                    "message": (
                        "Only users with Admin role can create, approve, or reject requisitions. "
                        "Please contact your system administrator if you need access."
                    ),
                }
            },
        )
    return None
