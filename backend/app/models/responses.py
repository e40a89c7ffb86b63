"""
Pydantic response models for API endpoints
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body carried in HTTPException.detail for every handled failure"""
    error_code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = None


class OkResponse(BaseModel):
    ok: bool = True


class SyncStatus(BaseModel):
    """Progress of the viewer's candidate cache"""
    from_cache: bool
    syncing: bool
    pages_loaded: int
    total_loaded: int
    last_error: Optional[str] = None


class CandidatePageResponse(BaseModel):
    items: List[Dict[str, Any]]
    page: int
    page_size: int
    total: int
    total_pages: int
    sync: SyncStatus


class CandidateDetailResponse(BaseModel):
    candidate: Dict[str, Any]
    upload: Optional[Dict[str, Any]] = None
    resume_url: Optional[str] = None
    return_url: Optional[str] = None


class UploadResult(BaseModel):
    filename: str
    outcome: str
    upload_id: Optional[Any] = None
    storage_path: Optional[str] = None
    file_hash: Optional[str] = None
    error: Optional[str] = None


class UploadBatchResponse(BaseModel):
    results: List[UploadResult]
    uploaded: int
    duplicates: int
    failed: int


class UploadListResponse(BaseModel):
    items: List[Dict[str, Any]]
    total: int
    today_count: int


class ResubmitResponse(BaseModel):
    upload_id: str
    status: str


class MatchResponse(BaseModel):
    position_id: Any
    limit: int
    offset: int
    matches: List[Dict[str, Any]]


class StatsResponse(BaseModel):
    summary: Dict[str, Any]
    users: List[Dict[str, Any]]
    recent: List[Dict[str, Any]]
    live: bool = False


class TabSessionResponse(BaseModel):
    session_id: str


class UserGroupsResponse(BaseModel):
    pending: List[Dict[str, Any]] = Field(default_factory=list)
    approved: List[Dict[str, Any]] = Field(default_factory=list)
    rejected: List[Dict[str, Any]] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    service: str
    version: str
    checks: Dict[str, Any] = Field(default_factory=dict)
