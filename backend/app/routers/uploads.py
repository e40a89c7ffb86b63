"""
Resume upload endpoints: batch upload, history listing and re-submission
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile

from app.core.exceptions import GatewayError, TalentDeskException
from app.dependencies import get_request_id, get_upload_tracker, http_error
from app.middleware.auth import get_current_viewer
from app.models.responses import (
    ResubmitResponse,
    UploadBatchResponse,
    UploadListResponse,
    UploadResult,
)
from app.services.upload_service import (
    OUTCOME_DUPLICATE,
    OUTCOME_FAILED,
    OUTCOME_UPLOADED,
    IncomingFile,
    UploadTracker,
    describe_upload,
)
from app.services.user_service import Viewer
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/uploads", response_model=UploadBatchResponse)
async def upload_resumes(
    request: Request,
    files: List[UploadFile] = File(..., description="Resume files (PDF, DOC or DOCX)"),
    viewer: Viewer = Depends(get_current_viewer),
    tracker: UploadTracker = Depends(get_upload_tracker)
) -> UploadBatchResponse:
    """
    Upload a batch of resumes into the processing queue

    Each file is handled on its own: duplicates (same SHA-256 as an
    existing upload) are skipped, failures are reported per file and never
    stop the rest of the batch.

    - **files**: one or more resume files
    - **Returns**: per-file outcome plus batch counters
    """
    logger.info("resume_upload_batch_started", user_id=viewer.id, file_count=len(files))

    incoming = []
    for upload in files:
        content = await upload.read()
        incoming.append(IncomingFile(
            filename=upload.filename or "",
            content=content,
            content_type=upload.content_type,
        ))

    outcomes = await tracker.upload_batch(viewer, incoming)
    results = [UploadResult(**o.__dict__) for o in outcomes]

    return UploadBatchResponse(
        results=results,
        uploaded=sum(1 for r in results if r.outcome == OUTCOME_UPLOADED),
        duplicates=sum(1 for r in results if r.outcome == OUTCOME_DUPLICATE),
        failed=sum(1 for r in results if r.outcome == OUTCOME_FAILED),
    )


@router.get("/uploads", response_model=UploadListResponse)
async def list_uploads(
    request: Request,
    status: str = Query("all", description="all | success | processing | failed"),
    window: str = Query("today", description="today | week | all"),
    owner: Optional[str] = Query(None, description="User id, or 'all' (admins only)"),
    viewer: Viewer = Depends(get_current_viewer),
    tracker: UploadTracker = Depends(get_upload_tracker)
) -> UploadListResponse:
    """Upload history for the viewer, or for another uploader when the viewer is an admin"""
    try:
        listing = await tracker.list_uploads(viewer, bucket=status, window=window, owner_id=owner)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))

    logger.info(
        "upload_history_retrieved",
        user_id=viewer.id,
        owner=owner,
        status=status,
        window=window,
        total=listing.total
    )
    return UploadListResponse(
        items=[describe_upload(r) for r in listing.items],
        total=listing.total,
        today_count=listing.today_count,
    )


async def _resubmit(request: Request, upload_id: str, action) -> ResubmitResponse:
    try:
        patch = await action(upload_id)
    except GatewayError as e:
        logger.error("upload_resubmit_failed", upload_id=upload_id, error=e.message)
        raise HTTPException(
            status_code=500,
            detail={
                "error_code": e.error_code,
                "message": "Failed to re-submit upload",
                "details": e.details,
                "request_id": get_request_id(request)
            }
        )
    return ResubmitResponse(upload_id=upload_id, status=patch["status"])


@router.post("/uploads/{upload_id}/retry", response_model=ResubmitResponse)
async def retry_upload(
    upload_id: str,
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    tracker: UploadTracker = Depends(get_upload_tracker)
) -> ResubmitResponse:
    """Send a failed upload back to the start of the pipeline"""
    return await _resubmit(request, upload_id, tracker.retry)


@router.post("/uploads/{upload_id}/rerun-ocr", response_model=ResubmitResponse)
async def rerun_ocr(
    upload_id: str,
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    tracker: UploadTracker = Depends(get_upload_tracker)
) -> ResubmitResponse:
    return await _resubmit(request, upload_id, tracker.rerun_ocr)


@router.post("/uploads/{upload_id}/rerun-parse", response_model=ResubmitResponse)
async def rerun_parse(
    upload_id: str,
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    tracker: UploadTracker = Depends(get_upload_tracker)
) -> ResubmitResponse:
    """Keep the OCR text and only redo structured parsing"""
    return await _resubmit(request, upload_id, tracker.rerun_parse)
