"""
Authentication dependencies: bearer token -> Viewer, plus the admin gate
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.exceptions import AuthenticationError, GatewayError
from app.dependencies import get_request_id, get_user_service, http_error
from app.services.user_service import UserService, Viewer
from app.utils.logger import get_logger, set_viewer_context

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

NO_PERMISSION_DETAIL = {
    "error_code": "NO_PERMISSION",
    "message": "No permission",
    "details": {},
}


async def get_current_viewer(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    user_service: UserService = Depends(get_user_service)
) -> Viewer:
    """
    Resolve the signed-in viewer for a request.

    Missing or invalid tokens and unapproved accounts are rejected with 401.
    """
    request_id = get_request_id(request)
    if credentials is None or not credentials.credentials:
        raise http_error(AuthenticationError("Missing bearer token"), request_id)

    try:
        viewer = await user_service.resolve_viewer(credentials.credentials)
    except AuthenticationError as e:
        logger.warning("viewer_rejected", error=e.message, reason=e.details.get("reason"))
        raise http_error(e, request_id)
    except GatewayError as e:
        raise http_error(e, request_id)

    request.state.viewer_id = viewer.id
    set_viewer_context(viewer.id)
    return viewer


async def require_admin(request: Request, viewer: Viewer = Depends(get_current_viewer)) -> Viewer:
    if not viewer.is_admin:
        logger.warning("admin_required", viewer_id=viewer.id, path=request.url.path)
        raise HTTPException(
            status_code=403,
            detail={**NO_PERMISSION_DETAIL, "request_id": get_request_id(request)}
        )
    return viewer
