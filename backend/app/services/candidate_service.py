"""
Candidate repository adapter: joined rows -> flat view models, cached per viewer
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from app.core.exceptions import GatewayError, NotFoundError, ValidationError
from app.models.entities import (
    PLACEHOLDER_NAME,
    Candidate,
    CandidateTag,
    Education,
    Project,
    School,
    WorkExperience,
    tag_color,
)
from app.models.requests import CandidateUpdateRequest
from app.services.storage_service import StorageResolver
from app.utils.logger import get_logger
from app.utils.time_utils import parse_timestamp

logger = get_logger(__name__)

DEFAULT_TITLE = "待定职位"
DEFAULT_DEGREE = "未知"
DEFAULT_LOCATION = "未知"
DEFAULT_UNFILLED = "未填写"


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ("" if value is None else str(value))


def format_candidate(row: Dict[str, Any]) -> Candidate:
    """
    Reshape one joined candidates row into a Candidate.

    Child lists keep the order the gateway returned; the first work
    experience and the first education are treated as the latest ones and
    provide the headline title, company and school.
    """
    works = row.get("candidate_work_experiences") or []
    edus = row.get("candidate_educations") or []
    latest_work = works[0] if works else {}
    main_edu = edus[0] if edus else {}

    tags: List[CandidateTag] = []
    for idx, link in enumerate(row.get("candidate_tags") or []):
        tag = (link or {}).get("tags") or {}
        name = _text(tag.get("tag_name"))
        if not name:
            continue
        tags.append(CandidateTag(
            id=tag.get("id") if tag.get("id") is not None else f"{name}-{idx}",
            tag_name=name,
            category=_text(tag.get("category")),
            color=tag_color(tag.get("category")),
        ))

    name = _text(row.get("name")).strip()

    return Candidate(
        id=row.get("id"),
        name=name or PLACEHOLDER_NAME,
        title=latest_work.get("role") or DEFAULT_TITLE,
        work_years=row.get("work_years") or 0,
        degree=row.get("degree_level") or main_edu.get("degree") or DEFAULT_DEGREE,
        phone=row.get("phone"),
        email=row.get("email") or "",
        school=School(
            name=main_edu.get("school") or DEFAULT_UNFILLED,
            tags=list(main_edu.get("school_tags") or []),
        ),
        company=latest_work.get("company") or DEFAULT_UNFILLED,
        location=row.get("location") or DEFAULT_LOCATION,
        company_tags=list(row.get("company_tags") or []),
        is_outsourcing=bool(row.get("is_outsourcing", False)),
        skills=[t.tag_name for t in tags],
        work_experiences=[
            WorkExperience(
                company=_text(w.get("company")),
                role=_text(w.get("role")),
                department=_text(w.get("department")),
                start_date=_text(w.get("start_date")),
                end_date=_text(w.get("end_date")),
                description=_text(w.get("description")),
            )
            for w in works
        ],
        educations=[
            Education(
                school=_text(e.get("school")),
                degree=_text(e.get("degree")),
                major=_text(e.get("major")),
                school_tags=list(e.get("school_tags") or []),
            )
            for e in edus
        ],
        projects=[
            Project(
                project_name=_text(p.get("project_name")),
                role=_text(p.get("role")),
                description=_text(p.get("description")),
            )
            for p in row.get("candidate_projects") or []
        ],
        self_evaluation=_text(row.get("self_evaluation")),
        tags=tags,
        updated_at=parse_timestamp(row.get("updated_at")),
    )


@dataclass
class CandidateCache:
    """Candidate list kept across screen switches for a single viewer"""
    owner_id: Optional[str] = None
    candidates: List[Candidate] = field(default_factory=list)
    pages_loaded: int = 0
    total_loaded: int = 0
    syncing: bool = False
    last_error: Optional[str] = None
    generation: int = 0

    def reset_for(self, owner_id: str) -> None:
        self.owner_id = owner_id
        self.candidates = []
        self.pages_loaded = 0
        self.total_loaded = 0
        self.syncing = False
        self.last_error = None
        self.generation += 1


def belongs_to_user(cache: Optional[CandidateCache], user_id: Optional[str]) -> bool:
    return cache is not None and user_id is not None and cache.owner_id == user_id


@dataclass
class SyncHandle:
    """
    "Screen still mounted" guard for a background sync.

    There is no hard cancellation: an in-flight page fetch completes, its
    result is simply not applied once the handle is stopped.
    """
    active: bool = True

    def stop(self) -> None:
        self.active = False


class CandidateCacheRegistry:
    """One cache and at most one live sync handle per viewer; owned by the application"""

    def __init__(self):
        self._caches: Dict[str, CandidateCache] = {}
        self._handles: Dict[str, SyncHandle] = {}

    def for_viewer(self, viewer_id: str) -> CandidateCache:
        cache = self._caches.get(viewer_id)
        if cache is None:
            cache = CandidateCache()
            self._caches[viewer_id] = cache
        return cache

    def start_sync(self, viewer_id: str) -> SyncHandle:
        """New handle for a background sync; any previous one for the viewer is stopped"""
        self.stop_sync(viewer_id)
        handle = SyncHandle()
        self._handles[viewer_id] = handle
        return handle

    def stop_sync(self, viewer_id: str) -> None:
        handle = self._handles.pop(viewer_id, None)
        if handle is not None:
            handle.stop()

    def invalidate(self, viewer_id: str) -> None:
        self.stop_sync(viewer_id)
        self._caches.pop(viewer_id, None)


@dataclass
class LoadResult:
    from_cache: bool
    needs_sync: bool
    silent_refresh: bool = False


class CandidateService:
    """Loads candidate pages into the viewer's cache and syncs the rest in the background"""

    def __init__(self, gateway, cache: CandidateCache, page_size: int = 1000,
                 storage: Optional[StorageResolver] = None):
        self.gateway = gateway
        self.cache = cache
        self.page_size = page_size
        self.storage = storage

    async def load_first_page(self, viewer_id: str, refresh: bool = False) -> LoadResult:
        """
        Cache-or-refetch decision for the candidate list.

        A non-empty cache owned by the viewer is served as-is; with
        ``refresh`` the caller should additionally run ``refresh_all`` in the
        background. Otherwise the cache is reset for the viewer and page 0 is
        fetched now; ``needs_sync`` tells the caller to run
        ``sync_remaining`` afterwards.
        """
        if self.cache.candidates and belongs_to_user(self.cache, viewer_id):
            logger.info(
                "candidate_cache_reused",
                viewer_id=viewer_id,
                cached=len(self.cache.candidates),
                refresh=refresh
            )
            return LoadResult(from_cache=True, needs_sync=False, silent_refresh=refresh)

        self.cache.reset_for(viewer_id)
        rows = await self.gateway.fetch_candidate_page(0, self.page_size)
        formatted = [format_candidate(r) for r in rows]
        self.cache.candidates = formatted
        self.cache.pages_loaded = 1
        self.cache.total_loaded = len(formatted)
        needs_sync = len(rows) >= self.page_size
        self.cache.syncing = needs_sync

        logger.info(
            "candidate_first_page_loaded",
            viewer_id=viewer_id,
            loaded=len(formatted),
            needs_sync=needs_sync
        )
        return LoadResult(from_cache=False, needs_sync=needs_sync)

    def _still_current(self, handle: SyncHandle, viewer_id: str, generation: int) -> bool:
        return (
            handle.active
            and belongs_to_user(self.cache, viewer_id)
            and self.cache.generation == generation
        )

    async def sync_remaining(self, viewer_id: str, handle: Optional[SyncHandle] = None) -> None:
        """Append pages 1..n to the cache until a short or empty page"""
        handle = handle or SyncHandle()
        generation = self.cache.generation
        page = 1
        try:
            while self._still_current(handle, viewer_id, generation):
                try:
                    rows = await self.gateway.fetch_candidate_page(page, self.page_size)
                except GatewayError as e:
                    if self._still_current(handle, viewer_id, generation):
                        self.cache.last_error = e.message
                    logger.error("candidate_background_sync_failed", viewer_id=viewer_id, page=page, error=e.message)
                    return

                if not self._still_current(handle, viewer_id, generation):
                    logger.info("candidate_background_sync_abandoned", viewer_id=viewer_id, page=page)
                    return
                if not rows:
                    break

                formatted = [format_candidate(r) for r in rows]
                self.cache.candidates = self.cache.candidates + formatted
                self.cache.pages_loaded += 1
                self.cache.total_loaded += len(formatted)
                logger.debug(
                    "candidate_page_synced",
                    viewer_id=viewer_id,
                    page=page,
                    total_loaded=self.cache.total_loaded
                )
                if len(rows) < self.page_size:
                    break
                page += 1
        finally:
            if self.cache.generation == generation:
                self.cache.syncing = False

        logger.info(
            "candidate_background_sync_completed",
            viewer_id=viewer_id,
            pages_loaded=self.cache.pages_loaded,
            total_loaded=self.cache.total_loaded
        )

    async def refresh_all(self, viewer_id: str, handle: Optional[SyncHandle] = None) -> None:
        """
        Silent refresh of a cache that is already on screen.

        All pages are collected first and swapped in at once so readers never
        see a shrunken list while the refresh runs.
        """
        handle = handle or SyncHandle()
        generation = self.cache.generation
        collected: List[Candidate] = []
        pages = 0
        while True:
            try:
                rows = await self.gateway.fetch_candidate_page(pages, self.page_size)
            except GatewayError as e:
                logger.error("candidate_refresh_failed", viewer_id=viewer_id, page=pages, error=e.message)
                if self._still_current(handle, viewer_id, generation):
                    self.cache.last_error = e.message
                return
            if not self._still_current(handle, viewer_id, generation):
                return
            if rows:
                collected.extend(format_candidate(r) for r in rows)
                pages += 1
            if len(rows) < self.page_size:
                break

        self.cache.candidates = collected
        self.cache.pages_loaded = pages
        self.cache.total_loaded = len(collected)
        self.cache.last_error = None
        logger.info("candidate_cache_refreshed", viewer_id=viewer_id, total_loaded=len(collected))

    async def fetch_detail(self, candidate_id: str) -> Dict[str, Any]:
        row = await self.gateway.fetch_candidate(candidate_id)
        if not row:
            raise NotFoundError("candidate", candidate_id)

        uploads = row.get("resume_uploads") or []
        if isinstance(uploads, dict):
            uploads = [uploads]
        upload = uploads[0] if uploads else None

        resume_url = await self.resolve_resume_url(upload.get("oss_raw_path")) if upload else None

        return {
            "candidate": format_candidate(row),
            "upload": upload,
            "resume_url": resume_url,
        }

    async def update_candidate(self, candidate_id: str, update: CandidateUpdateRequest) -> Dict[str, Any]:
        patch = update.model_dump(exclude_none=True)
        if not patch:
            raise ValidationError("Nothing to update")
        if "name" in patch and not patch["name"]:
            raise ValidationError("Name cannot be empty", field="name")

        await self.gateway.update_candidate(candidate_id, patch)
        logger.info("candidate_updated", candidate_id=candidate_id, fields=sorted(patch))
        return patch

    async def resolve_resume_url(self, path_or_url: Optional[str]) -> Optional[str]:
        if self.storage is None:
            return None
        return await self.storage.resolve(path_or_url)
