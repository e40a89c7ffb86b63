"""
Upload statistics: single-pass reductions over resume_uploads rows
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from app.core.exceptions import GatewayError
from app.models.entities import UploadRecord, UploadStatus, UserProfile
from app.services.gateway import RESUME_UPLOADS
from app.services.upload_service import status_bucket, upload_from_row
from app.services.user_service import Viewer, profile_from_row
from app.utils.async_utils import async_timer
from app.utils.logger import get_logger
from app.utils.time_utils import local_now, window_starts

logger = get_logger(__name__)

UNKNOWN_USER = "未知用户"
UNNAMED_FILE = "未命名文件"
PENDING_QUEUE_STATUSES = {UploadStatus.PENDING.value, UploadStatus.OCR_DONE.value}

STATS_COLUMNS = "id,user_id,uploader_name,uploader_email,filename,status,created_at,oss_raw_path,candidates(id)"


@dataclass
class SummaryStats:
    total_uploads: int = 0
    today_uploads: int = 0
    week_uploads: int = 0
    pending_queue: int = 0
    processing_uploads: int = 0
    success_uploads: int = 0
    failed_uploads: int = 0
    active_users: int = 0


@dataclass
class UserUploadStats:
    key: str
    user_id: Optional[str]
    name: str
    email: str
    total: int = 0
    today: int = 0
    pending: int = 0
    processing: int = 0
    success: int = 0
    failed: int = 0


@dataclass
class RecentUpload:
    id: str
    filename: str
    user_name: str
    status: str
    created_at: Optional[datetime]
    candidate_id: Optional[str] = None
    oss_raw_path: Optional[str] = None


@dataclass
class StatsReport:
    summary: SummaryStats
    users: List[UserUploadStats] = field(default_factory=list)
    recent: List[RecentUpload] = field(default_factory=list)


def attribution_key(record: UploadRecord) -> str:
    """Every record lands in exactly one per-user bucket"""
    return record.user_id or record.uploader_email or record.id


def aggregate_uploads(
    records: Sequence[UploadRecord],
    now: Optional[datetime] = None,
    profiles: Sequence[UserProfile] = (),
    recent_limit: int = 20,
    display_name: Optional[str] = None
) -> StatsReport:
    """
    Reduce upload records (newest first) to global and per-uploader counters.

    Users ranked by total, then today's count. Profiles without uploads are
    appended with zero counts; they do not count as active users.
    ``display_name`` overrides the uploader name in the recent list (used
    for a viewer's own statistics).
    """
    today_start, week_start = window_starts(now or local_now())
    summary = SummaryStats()
    per_user: Dict[str, UserUploadStats] = {}

    for record in records:
        bucket = status_bucket(record.status)
        created = record.created_at
        is_today = created is not None and created >= today_start
        is_week = created is not None and created >= week_start
        is_pending = record.status in PENDING_QUEUE_STATUSES

        summary.total_uploads += 1
        summary.today_uploads += is_today
        summary.week_uploads += is_week
        summary.pending_queue += is_pending
        summary.processing_uploads += bucket == "processing"
        summary.success_uploads += bucket == "success"
        summary.failed_uploads += bucket == "failed"

        key = attribution_key(record)
        stats = per_user.get(key)
        if stats is None:
            stats = UserUploadStats(
                key=key,
                user_id=record.user_id,
                name=record.uploader_name or record.uploader_email or UNKNOWN_USER,
                email=record.uploader_email or "-",
            )
            per_user[key] = stats
        stats.total += 1
        stats.today += is_today
        stats.pending += is_pending
        stats.processing += bucket == "processing"
        stats.success += bucket == "success"
        stats.failed += bucket == "failed"

    users = sorted(per_user.values(), key=lambda u: (-u.total, -u.today))
    summary.active_users = len(users)

    for profile in profiles:
        if profile.user_id in per_user:
            continue
        users.append(UserUploadStats(
            key=profile.user_id,
            user_id=profile.user_id,
            name=profile.display_name or profile.email or UNKNOWN_USER,
            email=profile.email or "-",
        ))

    recent = [
        RecentUpload(
            id=r.id,
            filename=r.filename or UNNAMED_FILE,
            user_name=display_name or r.uploader_name or r.uploader_email or UNKNOWN_USER,
            status=status_bucket(r.status),
            created_at=r.created_at,
            candidate_id=r.candidate_id,
            oss_raw_path=r.oss_raw_path,
        )
        for r in records[:recent_limit]
    ]

    return StatsReport(summary=summary, users=users, recent=recent)


def summarize_user_uploads(
    records: Sequence[UploadRecord],
    now: Optional[datetime] = None,
    display_name: Optional[str] = None,
    recent_limit: int = 1000
) -> StatsReport:
    """Counters and recent list for a single uploader's own rows"""
    return aggregate_uploads(records, now=now, recent_limit=recent_limit, display_name=display_name)


class StatsService:
    """Fetches upload rows and reduces them on demand"""

    def __init__(self, gateway, fetch_limit: int = 5000, recent_limit: int = 20, my_recent_limit: int = 1000):
        self.gateway = gateway
        self.fetch_limit = fetch_limit
        self.recent_limit = recent_limit
        self.my_recent_limit = my_recent_limit

    async def fetch_admin_inputs(self):
        rows = await self.gateway.list_uploads(limit=self.fetch_limit, columns=STATS_COLUMNS)
        profiles = await self.gateway.list_profiles()
        return [upload_from_row(r) for r in rows], [profile_from_row(p) for p in profiles]

    @async_timer
    async def admin_stats(self, now: Optional[datetime] = None, live: Optional["LiveStats"] = None) -> StatsReport:
        if live is not None and live.ready:
            records, profiles = live.records, live.profiles
        else:
            records, profiles = await self.fetch_admin_inputs()
        return aggregate_uploads(records, now=now, profiles=profiles, recent_limit=self.recent_limit)

    async def user_stats(self, viewer: Viewer, now: Optional[datetime] = None) -> StatsReport:
        rows = await self.gateway.list_uploads(user_id=viewer.id, columns=STATS_COLUMNS)
        records = [upload_from_row(r) for r in rows]
        report = summarize_user_uploads(
            records,
            now=now,
            display_name=viewer.display_name,
            recent_limit=self.my_recent_limit
        )
        logger.info("user_stats_computed", user_id=viewer.id, total=report.summary.total_uploads)
        return report


class LiveStats:
    """
    Fire-and-refetch holder for the admin statistics inputs.

    Any change event on resume_uploads triggers a full refetch of the rows;
    aggregation still happens per request so the time windows follow the
    clock. Refetches run one at a time: events arriving during a fetch mark
    the rows stale and a single follow-up fetch runs afterwards, so the rows
    applied last are always the newest.
    """

    def __init__(self, service: StatsService):
        self.service = service
        self.records: List[UploadRecord] = []
        self.profiles: List[UserProfile] = []
        self.ready = False
        self.refreshes = 0
        self.channel = None
        self._stale = False
        self._task: Optional[asyncio.Task] = None

    async def refresh(self) -> None:
        try:
            records, profiles = await self.service.fetch_admin_inputs()
        except GatewayError as e:
            logger.error("live_stats_refresh_failed", error=e.message)
            return
        self.records, self.profiles = records, profiles
        self.ready = True
        self.refreshes += 1
        logger.debug("live_stats_refreshed", records=len(records), refreshes=self.refreshes)

    async def _drain(self) -> None:
        while self._stale:
            self._stale = False
            await self.refresh()

    def on_change(self, payload: Dict[str, Any]) -> None:
        logger.debug("live_stats_change_received", event_type=(payload or {}).get("eventType"))
        self._stale = True
        if self._task is None or self._task.done():
            self._task = asyncio.ensure_future(self._drain())

    async def start(self) -> None:
        await self.refresh()
        self.channel = await self.service.gateway.subscribe(RESUME_UPLOADS, self.on_change)

    async def stop(self) -> None:
        if self.channel is not None:
            try:
                await self.channel.unsubscribe()
            except Exception as e:
                logger.warning("live_stats_unsubscribe_failed", error=str(e))
            self.channel = None
        self._stale = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
