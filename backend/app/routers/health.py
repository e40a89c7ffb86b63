"""
Health check endpoint
"""
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request

from app.models.responses import HealthResponse
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()

SERVICE_NAME = "TalentDesk ATS Backend"
SERVICE_VERSION = "1.0.0"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Service health for load balancers and monitoring

    Reports whether the data gateway is initialised and whether the
    realtime statistics subscription is live. A missing gateway makes the
    service "degraded"; it still answers 200.
    """
    logger.debug("health_check_requested")

    state = request.app.state
    checks: Dict[str, Any] = {
        "gateway": {"status": "healthy" if getattr(state, "gateway", None) is not None else "unavailable"},
    }
    live = getattr(state, "live_stats", None)
    checks["live_stats"] = {
        "status": "live" if live is not None and live.ready else "polling",
    }

    status = "healthy" if checks["gateway"]["status"] == "healthy" else "degraded"
    return HealthResponse(
        status=status,
        timestamp=datetime.now(timezone.utc),
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        checks=checks,
    )
