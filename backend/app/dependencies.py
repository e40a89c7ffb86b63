"""
FastAPI dependency providers for shared state and services
"""
from typing import Optional

from fastapi import Depends, HTTPException, Request

from app.config import Settings, settings
from app.core.exceptions import TalentDeskException, status_code_for
from app.services.candidate_service import CandidateCacheRegistry
from app.services.position_service import PositionService
from app.services.stats_service import LiveStats, StatsService
from app.services.storage_service import StorageResolver
from app.services.upload_service import UploadTracker
from app.services.user_service import UserService
from app.services.view_state import TabSessionStore

TAB_SESSION_HEADER = "X-Tab-Session"


def get_settings() -> Settings:
    return settings


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def http_error(exc: TalentDeskException, request_id: Optional[str] = None,
               status_code: Optional[int] = None) -> HTTPException:
    """Translate a domain exception into the standard error payload"""
    return HTTPException(
        status_code=status_code or status_code_for(exc),
        detail={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
            "request_id": request_id
        }
    )


def get_gateway(request: Request):
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(
            status_code=503,
            detail={
                "error_code": "GATEWAY_UNAVAILABLE",
                "message": "Data gateway is not initialised",
                "details": {},
                "request_id": get_request_id(request)
            }
        )
    return gateway


def get_cache_registry(request: Request) -> CandidateCacheRegistry:
    return request.app.state.candidate_caches


def get_tab_sessions(request: Request) -> TabSessionStore:
    return request.app.state.tab_sessions


def get_live_stats(request: Request) -> Optional[LiveStats]:
    return getattr(request.app.state, "live_stats", None)


def get_user_service(gateway=Depends(get_gateway), config: Settings = Depends(get_settings)) -> UserService:
    return UserService(gateway, config.BOOTSTRAP_SUPER_ADMIN_EMAILS)


def get_storage_resolver(gateway=Depends(get_gateway), config: Settings = Depends(get_settings)) -> StorageResolver:
    return StorageResolver(gateway, config.SIGNED_URL_BUCKETS, config.SIGNED_URL_EXPIRES_IN)


def get_upload_tracker(gateway=Depends(get_gateway), config: Settings = Depends(get_settings)) -> UploadTracker:
    return UploadTracker(
        gateway,
        bucket=config.UPLOAD_BUCKET,
        allowed_extensions=config.ALLOWED_UPLOAD_EXTENSIONS,
        max_file_size=config.MAX_FILE_SIZE
    )


def get_position_service(gateway=Depends(get_gateway), config: Settings = Depends(get_settings)) -> PositionService:
    return PositionService(gateway, match_limit=config.MATCH_LIMIT)


def get_stats_service(gateway=Depends(get_gateway), config: Settings = Depends(get_settings)) -> StatsService:
    return StatsService(
        gateway,
        fetch_limit=config.STATS_FETCH_LIMIT,
        recent_limit=config.RECENT_UPLOADS_LIMIT,
        my_recent_limit=config.MY_STATS_RECENT_LIMIT
    )
