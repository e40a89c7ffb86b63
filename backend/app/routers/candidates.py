"""
Candidate list, search and detail endpoints
"""
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request

from app.config import Settings
from app.core.exceptions import TalentDeskException
from app.dependencies import (
    get_cache_registry,
    get_gateway,
    get_request_id,
    get_settings,
    get_storage_resolver,
    http_error,
)
from app.middleware.auth import get_current_viewer, require_admin
from app.models.requests import CandidateSearchRequest, CandidateUpdateRequest, FilterSpec
from app.models.responses import CandidateDetailResponse, CandidatePageResponse, SyncStatus
from app.services.candidate_service import CandidateCacheRegistry, CandidateService, LoadResult
from app.services.filter_engine import filter_candidates, paginate
from app.services.storage_service import StorageResolver
from app.services.user_service import Viewer
from app.services.view_state import build_return_url, parse_return_marker
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


def filter_spec_from_query(
    search: str = Query("", description="Whitespace-separated search terms"),
    degrees: List[str] = Query([]),
    school_tags: List[str] = Query([], alias="schoolTags"),
    min_years: str = Query("", alias="minYears"),
    company_types: List[str] = Query([], alias="companyTypes"),
    tags: List[str] = Query([]),
    special: List[str] = Query([])
) -> FilterSpec:
    return FilterSpec(
        search=search,
        degrees=degrees,
        school_tags=school_tags,
        min_years=min_years,
        company_types=company_types,
        tags=tags,
        special=special,
    )


async def _load_and_page(
    viewer: Viewer,
    spec: FilterSpec,
    page: int,
    page_size: int,
    refresh: bool,
    background_tasks: BackgroundTasks,
    service: CandidateService,
    registry: CandidateCacheRegistry
) -> CandidatePageResponse:
    result: LoadResult = await service.load_first_page(viewer.id, refresh=refresh)
    cache = service.cache

    if result.needs_sync:
        handle = registry.start_sync(viewer.id)
        background_tasks.add_task(service.sync_remaining, viewer.id, handle)
    elif result.silent_refresh and not cache.syncing:
        handle = registry.start_sync(viewer.id)
        background_tasks.add_task(service.refresh_all, viewer.id, handle)

    filtered = filter_candidates(cache.candidates, spec)
    current = paginate(filtered, page, page_size)

    logger.info(
        "candidate_page_served",
        viewer_id=viewer.id,
        page=current.page,
        total=current.total,
        cached=len(cache.candidates),
        filtered=not spec.is_empty(),
        from_cache=result.from_cache
    )

    return CandidatePageResponse(
        items=[asdict(c) for c in current.items],
        page=current.page,
        page_size=current.page_size,
        total=current.total,
        total_pages=current.total_pages,
        sync=SyncStatus(
            from_cache=result.from_cache,
            syncing=cache.syncing,
            pages_loaded=cache.pages_loaded,
            total_loaded=cache.total_loaded,
            last_error=cache.last_error,
        ),
    )


def _candidate_service(viewer: Viewer, gateway, registry: CandidateCacheRegistry,
                       config: Settings, storage: Optional[StorageResolver] = None) -> CandidateService:
    return CandidateService(
        gateway,
        registry.for_viewer(viewer.id),
        page_size=config.CANDIDATE_FETCH_PAGE_SIZE,
        storage=storage
    )


@router.get("/candidates", response_model=CandidatePageResponse)
async def list_candidates(
    request: Request,
    background_tasks: BackgroundTasks,
    spec: FilterSpec = Depends(filter_spec_from_query),
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=100, alias="pageSize"),
    refresh: bool = Query(False, description="Serve the cache and refresh it in the background"),
    viewer: Viewer = Depends(get_current_viewer),
    gateway=Depends(get_gateway),
    registry: CandidateCacheRegistry = Depends(get_cache_registry),
    config: Settings = Depends(get_settings)
) -> CandidatePageResponse:
    """
    Filtered, paginated candidate list

    The first fetch page is loaded before responding; remaining pages are
    synced into the viewer's cache in the background, so ``sync.syncing``
    tells the client to poll again for the complete list.
    """
    service = _candidate_service(viewer, gateway, registry, config)
    try:
        return await _load_and_page(
            viewer, spec, page, page_size or config.LIST_PAGE_SIZE, refresh,
            background_tasks, service, registry
        )
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))


@router.post("/candidates/search", response_model=CandidatePageResponse)
async def search_candidates(
    request: Request,
    body: CandidateSearchRequest,
    background_tasks: BackgroundTasks,
    viewer: Viewer = Depends(get_current_viewer),
    gateway=Depends(get_gateway),
    registry: CandidateCacheRegistry = Depends(get_cache_registry),
    config: Settings = Depends(get_settings)
) -> CandidatePageResponse:
    """Same as the list endpoint with the FilterSpec in the body"""
    service = _candidate_service(viewer, gateway, registry, config)
    try:
        return await _load_and_page(
            viewer, body.filters, body.page, body.page_size or config.LIST_PAGE_SIZE, False,
            background_tasks, service, registry
        )
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))


@router.get("/candidates/{candidate_id}", response_model=CandidateDetailResponse)
async def get_candidate(
    candidate_id: str,
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    gateway=Depends(get_gateway),
    registry: CandidateCacheRegistry = Depends(get_cache_registry),
    storage: StorageResolver = Depends(get_storage_resolver),
    config: Settings = Depends(get_settings)
) -> CandidateDetailResponse:
    """
    Candidate detail with a viewable resume link

    When opened from the list (``?from=resumes&page=N``) the response also
    carries the URL to return to.
    """
    service = _candidate_service(viewer, gateway, registry, config, storage)
    try:
        detail = await service.fetch_detail(candidate_id)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))

    marker = parse_return_marker(dict(request.query_params))
    return CandidateDetailResponse(
        candidate=asdict(detail["candidate"]),
        upload=detail["upload"],
        resume_url=detail["resume_url"],
        return_url=build_return_url(marker) if marker else None,
    )


@router.patch("/candidates/{candidate_id}")
async def update_candidate(
    candidate_id: str,
    body: CandidateUpdateRequest,
    request: Request,
    viewer: Viewer = Depends(require_admin),
    gateway=Depends(get_gateway),
    registry: CandidateCacheRegistry = Depends(get_cache_registry),
    config: Settings = Depends(get_settings)
):
    """Admin edit of a candidate's top-level fields"""
    service = _candidate_service(viewer, gateway, registry, config)
    try:
        patch = await service.update_candidate(candidate_id, body)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))
    return {"id": candidate_id, "updated": patch}
