"""
User management endpoints: approval, roles and display names
"""
from dataclasses import asdict
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from app.core.exceptions import TalentDeskException
from app.dependencies import get_request_id, get_user_service, http_error
from app.middleware.auth import get_current_viewer, require_admin
from app.models.requests import DisplayNameUpdate, UserAccessUpdate
from app.models.responses import UserGroupsResponse
from app.services.user_service import UserService, Viewer
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/users", response_model=UserGroupsResponse)
async def list_users(
    request: Request,
    viewer: Viewer = Depends(require_admin),
    service: UserService = Depends(get_user_service)
) -> UserGroupsResponse:
    """Profiles grouped by approval status"""
    try:
        grouped = await service.list_users_grouped()
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))
    return UserGroupsResponse(**{
        status: [asdict(p) for p in profiles] for status, profiles in grouped.items()
    })


@router.patch("/users/{user_id}")
async def update_user_access(
    user_id: str,
    body: UserAccessUpdate,
    request: Request,
    viewer: Viewer = Depends(require_admin),
    service: UserService = Depends(get_user_service)
) -> Dict[str, Any]:
    """Approve, reject or change the role of an account"""
    try:
        patch = await service.update_access(user_id, approval_status=body.approval_status, role=body.role)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))
    logger.info("user_access_changed_by_admin", admin_id=viewer.id, target_user_id=user_id)
    return {"user_id": user_id, **patch}


@router.patch("/me/display-name")
async def update_display_name(
    body: DisplayNameUpdate,
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    service: UserService = Depends(get_user_service)
) -> Dict[str, str]:
    try:
        display_name = await service.update_display_name(viewer, body.display_name)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))
    return {"user_id": viewer.id, "display_name": display_name}
