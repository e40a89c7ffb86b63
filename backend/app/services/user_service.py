"""
Viewer identity, admin capability and user approval management
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from app.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from app.models.entities import ApprovalStatus, UserProfile, UserRole
from app.utils.logger import get_logger

logger = get_logger(__name__)

ADMIN_ROLES = {UserRole.ADMIN, UserRole.SUPER_ADMIN}


@dataclass
class Viewer:
    """The authenticated user a request acts for"""
    id: str
    email: Optional[str]
    profile: Optional[UserProfile]
    is_admin: bool = False

    @property
    def display_name(self) -> Optional[str]:
        if self.profile and self.profile.display_name:
            return self.profile.display_name
        return None


def profile_from_row(row: Dict[str, Any]) -> UserProfile:
    role = row.get("role") or UserRole.USER.value
    status = row.get("approval_status") or ApprovalStatus.PENDING.value
    return UserProfile(
        user_id=row["user_id"],
        email=row.get("email"),
        display_name=row.get("display_name") or "",
        role=UserRole(role) if role in UserRole._value2member_map_ else UserRole.USER,
        approval_status=(
            ApprovalStatus(status)
            if status in ApprovalStatus._value2member_map_
            else ApprovalStatus.PENDING
        ),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def is_admin(profile: Optional[UserProfile], email: Optional[str], bootstrap_emails: Iterable[str]) -> bool:
    """Bootstrap e-mails are always admin; otherwise an approved admin/super_admin profile"""
    allow = {e.strip().lower() for e in bootstrap_emails if e}
    if email and email.strip().lower() in allow:
        return True
    return bool(
        profile
        and profile.approval_status == ApprovalStatus.APPROVED
        and profile.role in ADMIN_ROLES
    )


def check_approval(profile: Optional[UserProfile]) -> None:
    """Only approved accounts may use the application"""
    if profile is None:
        raise AuthenticationError("账号资料未初始化，请联系管理员", details={"reason": "profile_missing"})
    if profile.approval_status == ApprovalStatus.PENDING:
        raise AuthenticationError("账号待管理员审批，通过后才能登录", details={"reason": "pending"})
    if profile.approval_status == ApprovalStatus.REJECTED:
        raise AuthenticationError("账号已被管理员拒绝，请联系管理员", details={"reason": "rejected"})


class UserService:
    """Resolves viewers and applies admin changes to profiles"""

    def __init__(self, gateway, bootstrap_emails: Iterable[str] = ()):
        self.gateway = gateway
        self.bootstrap_emails = list(bootstrap_emails)

    async def resolve_viewer(self, access_token: str) -> Viewer:
        auth_user = await self.gateway.get_auth_user(access_token)
        if not auth_user:
            raise AuthenticationError("Invalid or expired session")

        row = await self.gateway.get_profile(auth_user["id"])
        profile = profile_from_row(row) if row else None
        admin = is_admin(profile, auth_user.get("email"), self.bootstrap_emails)

        # Bootstrap admins are let in even before their profile exists
        if not admin:
            check_approval(profile)

        return Viewer(id=auth_user["id"], email=auth_user.get("email"), profile=profile, is_admin=admin)

    async def list_users_grouped(self) -> Dict[str, List[UserProfile]]:
        rows = await self.gateway.list_profiles()
        grouped: Dict[str, List[UserProfile]] = {s.value: [] for s in ApprovalStatus}
        for row in rows:
            profile = profile_from_row(row)
            grouped[profile.approval_status.value].append(profile)
        return grouped

    async def update_access(
        self,
        user_id: str,
        approval_status: Optional[ApprovalStatus] = None,
        role: Optional[UserRole] = None
    ) -> Dict[str, str]:
        patch: Dict[str, str] = {}
        if approval_status is not None:
            patch["approval_status"] = ApprovalStatus(approval_status).value
        if role is not None:
            patch["role"] = UserRole(role).value
        if not patch:
            raise ValidationError("Nothing to update")

        if not await self.gateway.get_profile(user_id):
            raise NotFoundError("profile", user_id)

        await self.gateway.update_profile(user_id, patch)
        logger.info("user_access_updated", target_user_id=user_id, **patch)
        return patch

    async def update_display_name(self, viewer: Viewer, display_name: str) -> str:
        trimmed = (display_name or "").strip()
        if not trimmed:
            raise ValidationError("显示名称不能为空", field="display_name")
        await self.gateway.update_profile(viewer.id, {"display_name": trimmed})
        logger.info("display_name_updated", user_id=viewer.id)
        return trimmed

    async def set_approval(self, user_id: str, approval_status: ApprovalStatus) -> Dict[str, str]:
        return await self.update_access(user_id, approval_status=approval_status)

    async def set_role(self, user_id: str, role: UserRole) -> Dict[str, str]:
        return await self.update_access(user_id, role=role)
