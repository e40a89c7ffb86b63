"""
Position management and keyword matching via the remote scoring function
"""
import re
from typing import Any, Dict, List, Optional

from app.core.exceptions import NotFoundError, ValidationError
from app.models.entities import CandidateProjection, MatchRow, Position
from app.models.requests import PositionForm
from app.utils.async_utils import async_timer
from app.utils.logger import get_logger

logger = get_logger(__name__)

KEYWORD_SEPARATORS = re.compile(r"[,，\n]")
POSITION_STATUSES = ("OPEN", "CLOSED")
MATCH_MODES = ("any", "all")


def parse_keywords(text: str) -> List[str]:
    """Split on comma, fullwidth comma or newline; trim, drop empties and later duplicates"""
    seen = set()
    keywords = []
    for part in KEYWORD_SEPARATORS.split(text or ""):
        keyword = part.strip()
        if not keyword or keyword in seen:
            continue
        seen.add(keyword)
        keywords.append(keyword)
    return keywords


def keywords_text(position: Position) -> str:
    """Inverse of parse_keywords for pre-filling the edit form"""
    return ", ".join(position.required_keywords or [])


def position_from_row(row: Dict[str, Any]) -> Position:
    return Position(
        id=row.get("id"),
        title=row.get("title") or "",
        description=row.get("description") or "",
        department=row.get("department"),
        category=row.get("category"),
        status=row.get("status") or "OPEN",
        match_mode=row.get("match_mode") or "any",
        required_keywords=list(row.get("required_keywords") or []),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def build_position_payload(form: PositionForm) -> Dict[str, Any]:
    """Validate the form and produce the row written to positions"""
    title = form.title.strip()
    description = form.description.strip()
    if not title:
        raise ValidationError("请填写职位名称", field="title")
    if not description:
        raise ValidationError("请填写职位描述 / JD", field="description")

    status = (form.status or "OPEN").strip().upper()
    if status not in POSITION_STATUSES:
        raise ValidationError(f"Unknown status: {form.status}", field="status")
    match_mode = (form.match_mode or "any").strip().lower()
    if match_mode not in MATCH_MODES:
        raise ValidationError(f"Unknown match mode: {form.match_mode}", field="match_mode")

    return {
        "title": title,
        "department": form.department.strip() or None,
        "category": form.category.strip() or None,
        "status": status,
        "match_mode": match_mode,
        "required_keywords": parse_keywords(form.required_keywords_text),
        "description": description,
    }


def projection_from_row(row: Dict[str, Any]) -> CandidateProjection:
    works = row.get("candidate_work_experiences") or []
    latest = works[0] if works else {}
    return CandidateProjection(
        id=row.get("id"),
        name=row.get("name") or None,
        degree_level=row.get("degree_level") or None,
        work_years=row.get("work_years"),
        location=row.get("location") or None,
        latest_company=latest.get("company") or None,
        latest_role=latest.get("role") or None,
        updated_at=row.get("updated_at") or None,
    )


class PositionService:
    """CRUD over positions plus the ranked candidate match"""

    def __init__(self, gateway, match_limit: int = 50):
        self.gateway = gateway
        self.match_limit = match_limit

    async def list_positions(self) -> List[Position]:
        rows = await self.gateway.list_positions()
        return [position_from_row(r) for r in rows]

    async def save_position(self, form: PositionForm, position_id: Optional[Any] = None) -> Dict[str, Any]:
        payload = build_position_payload(form)
        if position_id is None:
            created = await self.gateway.insert_position(payload)
            logger.info("position_created", title=payload["title"], keywords=len(payload["required_keywords"]))
            return created

        await self.gateway.update_position(position_id, payload)
        logger.info("position_updated", position_id=position_id, keywords=len(payload["required_keywords"]))
        return {"id": position_id, **payload}

    @async_timer
    async def match_position(self, position_id: Any, limit: Optional[int] = None, offset: int = 0) -> List[MatchRow]:
        """
        Rank candidates for a position.

        Scoring is done by the remote ``match_candidates_for_position``
        function; this only enriches its rows with one batched lookup of
        candidate display columns. Rows keep the order the function returned.
        """
        if not await self.gateway.get_position(position_id):
            raise NotFoundError("position", position_id)

        limit = limit or self.match_limit
        rows = await self.gateway.match_candidates_for_position(position_id, limit, offset)

        matches = [
            MatchRow(
                candidate_id=r.get("candidate_id"),
                match_score=float(r.get("match_score") or 0),
                matched_keywords=list(r.get("matched_keywords") or []),
                total_keywords=int(r.get("total_keywords") or 0),
            )
            for r in rows
        ]

        ids = [m.candidate_id for m in matches if m.candidate_id]
        if ids:
            projections = {
                p.id: p for p in (projection_from_row(r) for r in await self.gateway.fetch_candidate_projections(ids))
            }
            for match in matches:
                match.candidate = projections.get(match.candidate_id)

        logger.info("position_matched", position_id=position_id, matches=len(matches), limit=limit, offset=offset)
        return matches
