"""
Tab-scoped list-screen state endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response

from app.dependencies import TAB_SESSION_HEADER, get_request_id, get_tab_sessions
from app.middleware.auth import get_current_viewer
from app.models.requests import ViewStateSnapshot
from app.models.responses import TabSessionResponse
from app.services.user_service import Viewer
from app.services.view_state import TabSessionStore, ViewStateStore

router = APIRouter()


def get_view_state_store(
    tab_session: Optional[str] = Header(None, alias=TAB_SESSION_HEADER),
    viewer: Viewer = Depends(get_current_viewer),
    sessions: TabSessionStore = Depends(get_tab_sessions)
) -> ViewStateStore:
    """Store bound to the caller's tab; unknown, expired or foreign sessions keep nothing"""
    return ViewStateStore(sessions.storage(tab_session, owner_id=viewer.id))


def _require_session(request: Request, store: ViewStateStore) -> None:
    if store.storage is None:
        raise HTTPException(
            status_code=400,
            detail={
                "error_code": "VALIDATION_ERROR",
                "message": f"Unknown or missing {TAB_SESSION_HEADER} header",
                "details": {"field": TAB_SESSION_HEADER},
                "request_id": get_request_id(request)
            }
        )


@router.post("/view-state/sessions", response_model=TabSessionResponse, status_code=201)
async def start_tab_session(
    viewer: Viewer = Depends(get_current_viewer),
    sessions: TabSessionStore = Depends(get_tab_sessions)
) -> TabSessionResponse:
    """Start an empty state scope for a newly opened tab"""
    return TabSessionResponse(session_id=sessions.start_session(owner_id=viewer.id))


@router.delete("/view-state/sessions/{session_id}", status_code=204)
async def end_tab_session(
    session_id: str,
    request: Request,
    viewer: Viewer = Depends(get_current_viewer),
    sessions: TabSessionStore = Depends(get_tab_sessions)
) -> Response:
    """Drop a tab's state when the tab closes"""
    if not sessions.end_session(session_id, owner_id=viewer.id):
        raise HTTPException(
            status_code=404,
            detail={
                "error_code": "NOT_FOUND",
                "message": "Tab session not found",
                "details": {"resource": "tab_session", "identifier": session_id},
                "request_id": get_request_id(request)
            }
        )
    return Response(status_code=204)


@router.put("/view-state/{screen_key}", status_code=204)
async def save_view_state(
    screen_key: str,
    snapshot: ViewStateSnapshot,
    request: Request,
    store: ViewStateStore = Depends(get_view_state_store)
) -> Response:
    _require_session(request, store)
    store.save(screen_key, snapshot)
    return Response(status_code=204)


@router.get("/view-state/{screen_key}", response_model=Optional[ViewStateSnapshot], response_model_by_alias=True)
async def load_view_state(
    screen_key: str,
    request: Request,
    store: ViewStateStore = Depends(get_view_state_store)
) -> Optional[ViewStateSnapshot]:
    """Saved snapshot, or null when nothing was saved in this tab"""
    _require_session(request, store)
    return store.load(screen_key)


@router.delete("/view-state/{screen_key}", status_code=204)
async def clear_view_state(
    screen_key: str,
    request: Request,
    store: ViewStateStore = Depends(get_view_state_store)
) -> Response:
    _require_session(request, store)
    store.clear(screen_key)
    return Response(status_code=204)
