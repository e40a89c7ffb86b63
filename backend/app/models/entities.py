"""
Domain entity models for gateway records and view models
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional, Any
from datetime import datetime


PLACEHOLDER_NAME = "Unknown"


class UploadStatus(str, Enum):
    """Processing state of a resume_uploads row"""
    PENDING = "PENDING"
    OCR_DONE = "OCR_DONE"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Tag category -> badge colour used by list screens
TAG_CATEGORY_COLORS: Dict[str, str] = {
    "tech": "blue",
    "non_tech": "gray",
    "web3": "purple",
    "quant": "green",
    "ai": "indigo",
    "other": "slate",
}


def tag_color(category: Optional[str]) -> str:
    return TAG_CATEGORY_COLORS.get(category or "other", TAG_CATEGORY_COLORS["other"])


@dataclass
class WorkExperience:
    """Row of candidate_work_experiences"""
    company: str = ""
    role: str = ""
    department: str = ""
    start_date: str = ""
    end_date: str = ""
    description: str = ""


@dataclass
class Education:
    """Row of candidate_educations"""
    school: str = ""
    degree: str = ""
    major: str = ""
    school_tags: List[str] = field(default_factory=list)


@dataclass
class Project:
    """Row of candidate_projects"""
    project_name: str = ""
    role: str = ""
    description: str = ""


@dataclass
class CandidateTag:
    """Tag attached through candidate_tags"""
    id: Any
    tag_name: str
    category: str = ""
    color: str = ""


@dataclass
class School:
    name: str
    tags: List[str] = field(default_factory=list)


@dataclass
class Candidate:
    """Flattened, search-friendly candidate view model"""
    id: str
    name: str
    title: str
    work_years: float
    degree: str
    phone: Optional[str]
    email: Optional[str]
    school: School
    company: str
    location: str
    company_tags: List[str] = field(default_factory=list)
    is_outsourcing: bool = False
    skills: List[str] = field(default_factory=list)
    work_experiences: List[WorkExperience] = field(default_factory=list)
    educations: List[Education] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)
    self_evaluation: str = ""
    tags: List[CandidateTag] = field(default_factory=list)
    updated_at: Optional[datetime] = None


@dataclass
class CandidateProjection:
    """Lightweight candidate columns shown next to match results"""
    id: str
    name: Optional[str] = None
    degree_level: Optional[str] = None
    work_years: Optional[float] = None
    location: Optional[str] = None
    latest_company: Optional[str] = None
    latest_role: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class UploadRecord:
    """Entity matching the resume_uploads table"""
    id: str
    filename: str
    status: str
    created_at: Optional[datetime]
    user_id: Optional[str] = None
    file_hash: Optional[str] = None
    file_size: int = 0
    oss_raw_path: Optional[str] = None
    error_reason: Optional[str] = None
    candidate_id: Optional[str] = None
    uploader_email: Optional[str] = None
    uploader_name: Optional[str] = None


@dataclass
class Position:
    """Entity matching the positions table"""
    id: Any
    title: str
    description: str
    department: Optional[str] = None
    category: Optional[str] = None
    status: str = "OPEN"
    match_mode: str = "any"
    required_keywords: List[str] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class MatchRow:
    """One ranked row returned by match_candidates_for_position"""
    candidate_id: str
    match_score: float
    matched_keywords: List[str]
    total_keywords: int
    candidate: Optional[CandidateProjection] = None


@dataclass
class UserProfile:
    """Entity matching the profiles table"""
    user_id: str
    email: Optional[str]
    display_name: str = ""
    role: UserRole = UserRole.USER
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
