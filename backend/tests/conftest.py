"""
Pytest configuration and shared fixtures
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import pytest

# Setup test environment before importing app modules
from tests.test_config import setup_test_environment, cleanup_test_environment

setup_test_environment()

from app.models.entities import ApprovalStatus, UserProfile, UserRole  # noqa: E402
from app.services.candidate_service import format_candidate  # noqa: E402
from app.services.user_service import Viewer  # noqa: E402
from tests.fakes import FakeGateway  # noqa: E402

# Fixed clock for window calculations: Wednesday 15:00 UTC
FIXED_NOW = datetime(2024, 5, 15, 15, 0, tzinfo=timezone.utc)


def make_candidate_row(candidate_id: str = "c-1", **overrides: Any) -> Dict[str, Any]:
    """Joined candidates row as the gateway returns it"""
    row = {
        "id": candidate_id,
        "name": "张伟",
        "phone": "13800000000",
        "email": "zhangwei@example.com",
        "location": "上海",
        "work_years": 5,
        "degree_level": "本科",
        "self_evaluation": "Backend engineer focused on distributed systems",
        "updated_at": "2024-05-10T08:00:00+00:00",
        "candidate_educations": [
            {"school": "复旦大学", "degree": "本科", "major": "计算机科学", "school_tags": ["985", "211"]},
        ],
        "candidate_work_experiences": [
            {
                "company": "ByteDance",
                "role": "Senior Engineer",
                "department": "Infra",
                "start_date": "2020-01",
                "end_date": "至今",
                "description": "Built Kafka pipelines in Go",
            },
        ],
        "candidate_projects": [
            {"project_name": "Search Platform", "role": "Owner", "description": "Elasticsearch cluster"},
        ],
        "candidate_tags": [
            {"tags": {"id": 1, "tag_name": "Python", "category": "tech"}},
            {"tags": {"id": 2, "tag_name": "Kafka", "category": "tech"}},
        ],
    }
    row.update(overrides)
    return row


def make_candidate(candidate_id: str = "c-1", **overrides: Any):
    return format_candidate(make_candidate_row(candidate_id, **overrides))


def make_upload_row(upload_id: str, **overrides: Any) -> Dict[str, Any]:
    row = {
        "id": upload_id,
        "user_id": "user-1",
        "filename": f"{upload_id}.pdf",
        "status": "SUCCESS",
        "created_at": FIXED_NOW.isoformat(),
        "file_hash": f"hash-{upload_id}",
        "file_size": 2048,
        "oss_raw_path": f"user-1/{upload_id}.pdf",
        "uploader_email": "alice@example.com",
        "uploader_name": "Alice",
    }
    row.update(overrides)
    return row


def days_ago(days: float) -> str:
    return (FIXED_NOW - timedelta(days=days)).isoformat()


def make_profile(user_id: str, email: str, role: UserRole = UserRole.USER,
                 approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
                 display_name: str = "") -> UserProfile:
    return UserProfile(
        user_id=user_id,
        email=email,
        display_name=display_name,
        role=role,
        approval_status=approval_status,
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def viewer() -> Viewer:
    profile = make_profile("user-1", "alice@example.com", display_name="Alice")
    return Viewer(id="user-1", email="alice@example.com", profile=profile, is_admin=False)


@pytest.fixture
def admin_viewer() -> Viewer:
    profile = make_profile("admin-1", "root@example.com", role=UserRole.ADMIN, display_name="Root")
    return Viewer(id="admin-1", email="root@example.com", profile=profile, is_admin=True)


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Setup and cleanup test environment for the entire test session"""
    setup_test_environment()
    yield
    cleanup_test_environment()
