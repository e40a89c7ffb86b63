"""
Upload lifecycle tracker: dedup, store, enqueue, re-submit and list resume uploads
"""
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from app.core.exceptions import AuthorizationError, GatewayError, ValidationError
from app.models.entities import UploadRecord, UploadStatus
from app.services.user_service import Viewer
from app.utils.file_utils import (
    build_storage_path,
    compute_digest,
    format_file_size,
    is_allowed_extension,
)
from app.utils.logger import get_logger
from app.utils.time_utils import local_now, parse_timestamp, window_starts

logger = get_logger(__name__)

STATUS_BUCKETS = ("all", "success", "processing", "failed")
TIME_WINDOWS = ("today", "week", "all")
ALL_OWNERS = "all"

OUTCOME_UPLOADED = "uploaded"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_FAILED = "failed"


def status_bucket(status: Optional[str]) -> str:
    """SUCCESS -> success, FAILED -> failed, anything else is still processing"""
    if status == UploadStatus.SUCCESS.value:
        return "success"
    if status == UploadStatus.FAILED.value:
        return "failed"
    return "processing"


def upload_from_row(row: Dict[str, Any]) -> UploadRecord:
    candidates = row.get("candidates")
    candidate_id = row.get("candidate_id")
    if not candidate_id and candidates:
        first = candidates[0] if isinstance(candidates, list) else candidates
        candidate_id = (first or {}).get("id")
    return UploadRecord(
        id=row["id"],
        filename=row.get("filename") or "",
        status=row.get("status") or UploadStatus.PENDING.value,
        created_at=parse_timestamp(row.get("created_at")),
        user_id=row.get("user_id"),
        file_hash=row.get("file_hash"),
        file_size=row.get("file_size") or 0,
        oss_raw_path=row.get("oss_raw_path"),
        error_reason=row.get("error_reason"),
        candidate_id=candidate_id,
        uploader_email=row.get("uploader_email"),
        uploader_name=row.get("uploader_name"),
    )


def in_window(created_at: Optional[datetime], window: str, now: Optional[datetime] = None) -> bool:
    if window == "all":
        return True
    if created_at is None:
        return False
    today_start, week_start = window_starts(now)
    if window == "today":
        return created_at >= today_start
    if window == "week":
        return created_at >= week_start
    return True


@dataclass
class IncomingFile:
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class UploadOutcome:
    filename: str
    outcome: str
    upload_id: Optional[str] = None
    storage_path: Optional[str] = None
    file_hash: Optional[str] = None
    error: Optional[str] = None


@dataclass
class UploadListing:
    items: List[UploadRecord] = field(default_factory=list)
    total: int = 0
    today_count: int = 0


class UploadTracker:
    """
    Handles the client side of the resume processing queue.

    The tracker only stores blobs and writes queue rows; OCR and parsing
    are done by an external pipeline that moves rows through
    PENDING -> OCR_DONE -> SUCCESS | FAILED.
    """

    def __init__(self, gateway, bucket: str, allowed_extensions: Sequence[str], max_file_size: int):
        self.gateway = gateway
        self.bucket = bucket
        self.allowed_extensions = list(allowed_extensions)
        self.max_file_size = max_file_size

    def _validate(self, incoming: IncomingFile) -> None:
        if not incoming.filename:
            raise ValidationError("Filename is required", field="filename")
        if not is_allowed_extension(incoming.filename, self.allowed_extensions):
            raise ValidationError(
                f"Unsupported file type: {incoming.filename}",
                field="filename",
                details={"supported_types": self.allowed_extensions}
            )
        if incoming.size > self.max_file_size:
            raise ValidationError(
                f"File size {incoming.size} bytes exceeds maximum allowed size of {self.max_file_size} bytes",
                field="file",
                details={"file_size": incoming.size, "max_size": self.max_file_size}
            )

    async def _is_duplicate(self, digest: str, filename: str) -> bool:
        try:
            existing = await self.gateway.find_upload_by_hash(digest)
        except GatewayError as e:
            # Lookup failure is not fatal: the upload proceeds as new
            logger.warning("upload_hash_check_failed", filename=filename, error=e.message)
            return False
        return existing is not None

    async def _insert_row(self, viewer: Viewer, incoming: IncomingFile, digest: str, path: str) -> Dict[str, Any]:
        """Insert the PENDING queue row; the stored blob is removed when the insert fails"""
        try:
            return await self.gateway.insert_upload({
                "user_id": viewer.id,
                "filename": incoming.filename,
                "file_hash": digest,
                "file_size": incoming.size,
                "oss_raw_path": path,
                "status": UploadStatus.PENDING.value,
                "uploader_email": viewer.email,
                "uploader_name": viewer.display_name,
            })
        except GatewayError:
            try:
                await self.gateway.remove_blob(self.bucket, [path])
            except GatewayError as cleanup_error:
                logger.warning("upload_blob_cleanup_failed", storage_path=path, error=cleanup_error.message)
            else:
                logger.info("upload_blob_removed", storage_path=path)
            raise

    async def upload_one(self, viewer: Viewer, incoming: IncomingFile, seen: Optional[set] = None) -> UploadOutcome:
        seen = seen if seen is not None else set()
        try:
            self._validate(incoming)
            digest = compute_digest(incoming.content)

            if digest in seen or await self._is_duplicate(digest, incoming.filename):
                logger.info("upload_skipped_duplicate", filename=incoming.filename, file_hash=digest)
                return UploadOutcome(incoming.filename, OUTCOME_DUPLICATE, file_hash=digest)

            path = build_storage_path(viewer.id, digest, incoming.filename, int(time.time() * 1000))
            await self.gateway.upload_blob(self.bucket, path, incoming.content, incoming.content_type)

            row = await self._insert_row(viewer, incoming, digest, path)
        except (ValidationError, GatewayError) as e:
            logger.error(
                "upload_failed",
                filename=incoming.filename,
                error=e.message,
                error_code=e.error_code
            )
            return UploadOutcome(incoming.filename, OUTCOME_FAILED, error=e.message)

        seen.add(digest)
        logger.info("upload_enqueued", filename=incoming.filename, storage_path=path, file_size=incoming.size)
        return UploadOutcome(
            incoming.filename,
            OUTCOME_UPLOADED,
            upload_id=row.get("id"),
            storage_path=path,
            file_hash=digest,
        )

    async def upload_batch(self, viewer: Viewer, files: Sequence[IncomingFile]) -> List[UploadOutcome]:
        """Process files one by one; a failed file never stops its siblings"""
        seen: set = set()
        outcomes = []
        for incoming in files:
            outcomes.append(await self.upload_one(viewer, incoming, seen))

        logger.info(
            "upload_batch_completed",
            total=len(outcomes),
            uploaded=sum(1 for o in outcomes if o.outcome == OUTCOME_UPLOADED),
            duplicates=sum(1 for o in outcomes if o.outcome == OUTCOME_DUPLICATE),
            failed=sum(1 for o in outcomes if o.outcome == OUTCOME_FAILED)
        )
        return outcomes

    # Re-submission: hand the row back to the pipeline

    async def retry(self, upload_id: str) -> Dict[str, Any]:
        patch = {"status": UploadStatus.PENDING.value, "error_reason": None, "ocr_content": None}
        await self.gateway.update_upload(upload_id, patch)
        logger.info("upload_resubmitted", upload_id=upload_id, status=patch["status"])
        return patch

    async def rerun_ocr(self, upload_id: str) -> Dict[str, Any]:
        return await self.retry(upload_id)

    async def rerun_parse(self, upload_id: str) -> Dict[str, Any]:
        patch = {"status": UploadStatus.OCR_DONE.value, "error_reason": None}
        await self.gateway.update_upload(upload_id, patch)
        logger.info("upload_resubmitted", upload_id=upload_id, status=patch["status"])
        return patch

    # Read side

    async def list_uploads(
        self,
        viewer: Viewer,
        bucket: str = "all",
        window: str = "today",
        owner_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> UploadListing:
        if bucket not in STATUS_BUCKETS:
            raise ValidationError(f"Unknown status filter: {bucket}", field="status")
        if window not in TIME_WINDOWS:
            raise ValidationError(f"Unknown time window: {window}", field="window")
        if owner_id and owner_id != viewer.id and not viewer.is_admin:
            raise AuthorizationError()

        if owner_id == ALL_OWNERS:
            owner = None
        else:
            owner = owner_id or viewer.id

        rows = await self.gateway.list_uploads(user_id=owner)
        records = [upload_from_row(r) for r in rows]
        return filter_uploads(records, bucket, window, now or local_now())


def filter_uploads(records: Sequence[UploadRecord], bucket: str, window: str, now: datetime) -> UploadListing:
    """Apply the time window, then the status bucket; today_count ignores both filters"""
    today_count = sum(1 for r in records if in_window(r.created_at, "today", now))
    items = [r for r in records if in_window(r.created_at, window, now)]
    if bucket != "all":
        items = [r for r in items if status_bucket(r.status) == bucket]
    return UploadListing(items=items, total=len(items), today_count=today_count)


def describe_upload(record: UploadRecord) -> Dict[str, Any]:
    """Display projection used by the upload history table"""
    return {
        "id": record.id,
        "filename": record.filename,
        "size": format_file_size(record.file_size),
        "status": status_bucket(record.status),
        "raw_status": record.status,
        "error": record.error_reason,
        "created_at": record.created_at,
        "uploader_email": record.uploader_email,
        "candidate_id": record.candidate_id,
    }
