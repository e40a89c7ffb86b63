"""
Password reset endpoint backed by the service-role auth admin API
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from app.config import Settings
from app.core.exceptions import GatewayError, NotFoundError, ValidationError
from app.dependencies import get_gateway, get_request_id, get_settings, http_error
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


def validate_reset_request(body: Any, min_length: int) -> Dict[str, str]:
    """Check the raw body; returns the email and new password"""
    if not isinstance(body, dict):
        raise ValidationError("Invalid request body")
    email = body.get("email")
    new_password = body.get("newPassword")
    if not isinstance(email, str) or "@" not in email:
        raise ValidationError("Invalid email", field="email")
    if not isinstance(new_password, str) or len(new_password) < min_length:
        raise ValidationError(f"新密码长度至少 {min_length} 位", field="newPassword")
    return {"email": email, "new_password": new_password}


@router.post("/reset-password")
async def reset_password(
    request: Request,
    gateway=Depends(get_gateway),
    config: Settings = Depends(get_settings)
) -> Dict[str, bool]:
    """
    Set a new password for the account registered under an e-mail address

    - **email**: address of an existing profile
    - **newPassword**: at least MIN_PASSWORD_LENGTH characters
    - **Returns**: `{"ok": true}`
    """
    request_id = get_request_id(request)

    try:
        body = await request.json()
    except ValueError:
        body = None

    try:
        fields = validate_reset_request(body, config.MIN_PASSWORD_LENGTH)
    except ValidationError as e:
        logger.warning("password_reset_rejected", error=e.message, field=e.field)
        raise http_error(e, request_id)

    try:
        profile = await gateway.find_profile_by_email(fields["email"])
    except GatewayError as e:
        raise HTTPException(
            status_code=500,
            detail={
                "error_code": e.error_code,
                "message": "无法查找用户",
                "details": e.details,
                "request_id": request_id
            }
        )

    if not profile or not profile.get("user_id"):
        logger.info("password_reset_unknown_email")
        raise http_error(NotFoundError("profile", fields["email"]), request_id)

    try:
        await gateway.admin_update_password(profile["user_id"], fields["new_password"])
    except GatewayError as e:
        raise HTTPException(
            status_code=500,
            detail={
                "error_code": e.error_code,
                "message": "更新密码失败",
                "details": e.details,
                "request_id": request_id
            }
        )

    logger.info("password_reset_completed", target_user_id=profile["user_id"])
    return {"ok": True}
