"""
Pydantic request models for API endpoints
"""
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.entities import ApprovalStatus, UserRole


class CamelModel(BaseModel):
    """Accepts both the snake_case field name and its camelCase alias"""
    model_config = ConfigDict(populate_by_name=True)


class FilterSpec(CamelModel):
    """Facets and free-text search applied to the candidate list"""
    search: str = ""
    degrees: List[str] = Field(default_factory=list)
    school_tags: List[str] = Field(default_factory=list, alias="schoolTags")
    min_years: str = Field("", alias="minYears")
    company_types: List[str] = Field(default_factory=list, alias="companyTypes")
    tags: List[str] = Field(default_factory=list)
    special: List[str] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not (
            self.search.strip() or self.degrees or self.school_tags or self.min_years.strip()
            or self.company_types or self.tags or self.special
        )


class CandidateSearchRequest(CamelModel):
    """Filter body plus the page to return"""
    filters: FilterSpec = Field(default_factory=FilterSpec)
    page: int = Field(1, ge=1)
    page_size: Optional[int] = Field(None, ge=1, le=100, alias="pageSize")


class CandidateUpdateRequest(CamelModel):
    """Admin edit of the top-level candidate columns"""
    name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    degree_level: Optional[str] = Field(None, max_length=50)
    work_years: Optional[float] = Field(None, ge=0, le=80)
    self_evaluation: Optional[str] = Field(None, max_length=10000)

    @field_validator('name', 'location', 'degree_level')
    @classmethod
    def strip_text(cls, v):
        if v is not None:
            return v.strip()
        return v


class PositionForm(CamelModel):
    """Create/edit form for a position; required fields are checked by the service"""
    title: str = ""
    department: str = ""
    category: str = ""
    status: str = "OPEN"
    match_mode: str = Field("any", alias="matchMode")
    required_keywords_text: str = Field("", alias="requiredKeywordsText")
    description: str = ""


class ViewStateSnapshot(CamelModel):
    """Serialized list-screen state restored after returning from a detail screen"""
    current_page: int = Field(1, ge=1, alias="page")
    filters: FilterSpec = Field(default_factory=FilterSpec)
    selected_ids: List[str] = Field(default_factory=list, alias="selectedIds")
    scroll_position: Optional[float] = Field(None, alias="scrollPosition")
    scroll_target: Optional[str] = Field(None, alias="scrollTarget")


class UserAccessUpdate(CamelModel):
    """Admin change of a profile's approval status and/or role"""
    approval_status: Optional[ApprovalStatus] = Field(None, alias="approvalStatus")
    role: Optional[UserRole] = None


class DisplayNameUpdate(CamelModel):
    display_name: str = Field(..., alias="displayName", max_length=100)
