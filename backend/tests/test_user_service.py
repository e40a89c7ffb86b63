"""
Unit tests for viewer resolution, admin capability and profile management
"""
import pytest

from tests.conftest import make_profile
from app.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from app.models.entities import ApprovalStatus, UserRole
from app.services.user_service import UserService, check_approval, is_admin, profile_from_row


def profile_row(user_id, email, role="user", approval_status="approved", display_name=""):
    return {
        "user_id": user_id,
        "email": email,
        "role": role,
        "approval_status": approval_status,
        "display_name": display_name,
    }


class TestIsAdmin:
    def test_bootstrap_email_is_case_insensitive(self):
        assert is_admin(None, "Boss@Example.com", ["boss@example.com"])

    def test_approved_admin_roles(self):
        for role in (UserRole.ADMIN, UserRole.SUPER_ADMIN):
            assert is_admin(make_profile("u", "u@example.com", role=role), "u@example.com", [])

    def test_unapproved_admin_is_not_admin(self):
        profile = make_profile("u", "u@example.com", role=UserRole.ADMIN, approval_status=ApprovalStatus.PENDING)

        assert not is_admin(profile, "u@example.com", [])

    def test_plain_user(self):
        assert not is_admin(make_profile("u", "u@example.com"), "u@example.com", [])


class TestApproval:
    @pytest.mark.parametrize("profile,reason", [
        (None, "profile_missing"),
        (make_profile("u", "u@example.com", approval_status=ApprovalStatus.PENDING), "pending"),
        (make_profile("u", "u@example.com", approval_status=ApprovalStatus.REJECTED), "rejected"),
    ])
    def test_rejected_states(self, profile, reason):
        with pytest.raises(AuthenticationError) as exc_info:
            check_approval(profile)

        assert exc_info.value.details["reason"] == reason

    def test_approved_passes(self):
        check_approval(make_profile("u", "u@example.com"))

    def test_unknown_role_falls_back_to_user(self):
        profile = profile_from_row(profile_row("u", "u@example.com", role="owner", approval_status="weird"))

        assert profile.role == UserRole.USER
        assert profile.approval_status == ApprovalStatus.PENDING


class TestUserService:
    @pytest.mark.asyncio
    async def test_resolve_approved_viewer(self, gateway):
        gateway.auth_users["token"] = {"id": "user-1", "email": "alice@example.com"}
        gateway.profiles = [profile_row("user-1", "alice@example.com", display_name="Alice")]

        viewer = await UserService(gateway).resolve_viewer("token")

        assert viewer.id == "user-1"
        assert viewer.display_name == "Alice"
        assert viewer.is_admin is False

    @pytest.mark.asyncio
    async def test_invalid_token(self, gateway):
        with pytest.raises(AuthenticationError):
            await UserService(gateway).resolve_viewer("bad")

    @pytest.mark.asyncio
    async def test_pending_viewer_is_rejected(self, gateway):
        gateway.auth_users["token"] = {"id": "user-1", "email": "alice@example.com"}
        gateway.profiles = [profile_row("user-1", "alice@example.com", approval_status="pending")]

        with pytest.raises(AuthenticationError):
            await UserService(gateway).resolve_viewer("token")

    @pytest.mark.asyncio
    async def test_bootstrap_admin_without_profile(self, gateway):
        gateway.auth_users["token"] = {"id": "boss", "email": "boss@example.com"}

        viewer = await UserService(gateway, ["boss@example.com"]).resolve_viewer("token")

        assert viewer.is_admin is True
        assert viewer.profile is None

    @pytest.mark.asyncio
    async def test_users_grouped_by_status(self, gateway):
        gateway.profiles = [
            profile_row("a", "a@example.com", approval_status="pending"),
            profile_row("b", "b@example.com"),
            profile_row("c", "c@example.com", approval_status="rejected"),
            profile_row("d", "d@example.com"),
        ]

        grouped = await UserService(gateway).list_users_grouped()

        assert [p.user_id for p in grouped["pending"]] == ["a"]
        assert [p.user_id for p in grouped["approved"]] == ["b", "d"]
        assert [p.user_id for p in grouped["rejected"]] == ["c"]

    @pytest.mark.asyncio
    async def test_set_approval_and_role(self, gateway):
        gateway.profiles = [profile_row("a", "a@example.com", approval_status="pending")]
        service = UserService(gateway)

        await service.set_approval("a", ApprovalStatus.APPROVED)
        await service.set_role("a", UserRole.ADMIN)

        assert gateway.profiles[0]["approval_status"] == "approved"
        assert gateway.profiles[0]["role"] == "admin"

    @pytest.mark.asyncio
    async def test_update_access_unknown_profile(self, gateway):
        with pytest.raises(NotFoundError):
            await UserService(gateway).set_role("ghost", UserRole.ADMIN)

    @pytest.mark.asyncio
    async def test_update_access_requires_a_change(self, gateway):
        with pytest.raises(ValidationError):
            await UserService(gateway).update_access("a")

    @pytest.mark.asyncio
    async def test_display_name_is_trimmed(self, gateway, viewer):
        name = await UserService(gateway).update_display_name(viewer, "  Alice W.  ")

        assert name == "Alice W."
        assert gateway.profile_patches == [{"user_id": "user-1", "display_name": "Alice W."}]

    @pytest.mark.asyncio
    async def test_blank_display_name(self, gateway, viewer):
        with pytest.raises(ValidationError):
            await UserService(gateway).update_display_name(viewer, "   ")
