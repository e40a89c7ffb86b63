"""
Position management and candidate matching endpoints
"""
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from app.core.exceptions import TalentDeskException
from app.dependencies import get_position_service, get_request_id, http_error
from app.middleware.auth import get_current_viewer
from app.models.requests import PositionForm
from app.models.responses import MatchResponse
from app.services.position_service import PositionService, keywords_text
from app.services.user_service import Viewer
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/positions")
async def list_positions(
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    service: PositionService = Depends(get_position_service)
) -> List[Dict[str, Any]]:
    """Positions, most recently updated first, with the keyword text for edit forms"""
    try:
        positions = await service.list_positions()
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))
    return [{**asdict(p), "required_keywords_text": keywords_text(p)} for p in positions]


@router.post("/positions", status_code=201)
async def create_position(
    form: PositionForm,
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    service: PositionService = Depends(get_position_service)
) -> Dict[str, Any]:
    try:
        return await service.save_position(form)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))


@router.put("/positions/{position_id}")
async def update_position(
    position_id: str,
    form: PositionForm,
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    service: PositionService = Depends(get_position_service)
) -> Dict[str, Any]:
    try:
        return await service.save_position(form, position_id=position_id)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))


@router.get("/positions/{position_id}/matches", response_model=MatchResponse)
async def match_position(
    position_id: str,
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: int = Query(0, ge=0),
    viewer: Viewer = Depends(get_current_viewer),
    service: PositionService = Depends(get_position_service)
) -> MatchResponse:
    """
    Candidates ranked for a position by keyword overlap

    Scores come from the remote matching function; each row carries the
    candidate's display columns, or null when the candidate is gone.
    """
    try:
        matches = await service.match_position(position_id, limit=limit, offset=offset)
    except TalentDeskException as e:
        raise http_error(e, get_request_id(request))

    return MatchResponse(
        position_id=position_id,
        limit=limit or service.match_limit,
        offset=offset,
        matches=[asdict(m) for m in matches],
    )
