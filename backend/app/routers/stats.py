"""
Upload statistics endpoints
"""
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, Request

from app.core.exceptions import TalentDeskException
from app.dependencies import get_live_stats, get_request_id, get_stats_service, http_error
from app.middleware.auth import get_current_viewer, require_admin
from app.models.responses import StatsResponse
from app.services.stats_service import LiveStats, StatsReport, StatsService
from app.services.user_service import Viewer

router = APIRouter()


def _to_response(report: StatsReport, live: bool = False) -> StatsResponse:
    return StatsResponse(
        summary=asdict(report.summary),
        users=[asdict(u) for u in report.users],
        recent=[asdict(r) for r in report.recent],
        live=live,
    )


@router.get("/stats/admin", response_model=StatsResponse)
async def admin_stats(
    request: Request,
    viewer: Viewer = Depends(require_admin),
    service: StatsService = Depends(get_stats_service),
    live: Optional[LiveStats] = Depends(get_live_stats)
) -> StatsResponse:
    """
    Global and per-uploader processing statistics

    Served from the realtime-maintained rows when the subscription is up,
    otherwise fetched on demand.
    """
    try:
        report = await service.admin_stats(live=live)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))
    return _to_response(report, live=bool(live and live.ready))


@router.get("/stats/me", response_model=StatsResponse)
async def my_stats(
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    service: StatsService = Depends(get_stats_service)
) -> StatsResponse:
    try:
        report = await service.user_stats(viewer)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))
    return _to_response(report)
