"""
Tab-scoped view-state snapshots and scroll restoration

Snapshots live only as long as the tab session that wrote them: the store is
in memory, a new tab starts a new empty session, nothing is written to
durable storage.
"""
import asyncio
import inspect
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, MutableMapping, Optional, Protocol, Sequence, Union
from urllib.parse import parse_qs, urlencode
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from app.models.requests import ViewStateSnapshot
from app.utils.async_utils import run_on_schedule, wait_for
from app.utils.logger import get_logger

logger = get_logger(__name__)

WINDOW_TARGET = "window"
MAIN_TARGET = "main"
LIST_CONTAINER_CLASS = "resumes-scroll"
RETURN_MARKER_PARAM = "from"


@dataclass
class TabSession:
    owner_id: Optional[str]
    values: Dict[str, str] = field(default_factory=dict)
    last_seen: float = 0.0


class TabSessionStore:
    """
    Per-tab key/value storage, the server-side stand-in for sessionStorage.

    Each session belongs to the viewer that started it. Sessions idle for
    longer than ``ttl_seconds`` expire, and at most ``max_sessions`` are held;
    the least recently used one is evicted first.
    """

    def __init__(self, ttl_seconds: float = 8 * 3600, max_sessions: int = 10000,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions
        self.clock = clock
        # Insertion order doubles as recency order
        self._sessions: Dict[str, TabSession] = {}

    @classmethod
    def from_settings(cls, config) -> "TabSessionStore":
        return cls(config.TAB_SESSION_TTL_SECONDS, config.MAX_TAB_SESSIONS)

    def _expired(self, session: TabSession, now: float) -> bool:
        return now - session.last_seen > self.ttl_seconds

    def cleanup_expired_sessions(self) -> int:
        now = self.clock()
        expired = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info("tab_sessions_expired", expired=len(expired), remaining=len(self._sessions))
        return len(expired)

    def start_session(self, owner_id: Optional[str] = None) -> str:
        self.cleanup_expired_sessions()
        while len(self._sessions) >= self.max_sessions:
            evicted = next(iter(self._sessions))
            del self._sessions[evicted]
            logger.info("tab_session_evicted", session_id=evicted)

        session_id = uuid4().hex
        self._sessions[session_id] = TabSession(owner_id=owner_id, last_seen=self.clock())
        logger.debug("tab_session_started", session_id=session_id, owner_id=owner_id)
        return session_id

    def storage(self, session_id: Optional[str], owner_id: Optional[str] = None) -> Optional[MutableMapping[str, str]]:
        """Values of a live session owned by ``owner_id``, else None"""
        if not session_id:
            return None
        session = self._sessions.get(session_id)
        if session is None or session.owner_id != owner_id:
            return None
        now = self.clock()
        if self._expired(session, now):
            del self._sessions[session_id]
            return None
        session.last_seen = now
        self._sessions[session_id] = self._sessions.pop(session_id)
        return session.values

    def end_session(self, session_id: str, owner_id: Optional[str] = None) -> bool:
        session = self._sessions.get(session_id)
        if session is None or session.owner_id != owner_id:
            return False
        del self._sessions[session_id]
        logger.debug("tab_session_ended", session_id=session_id)
        return True

    def __len__(self) -> int:
        return len(self._sessions)


class ViewStateStore:
    """save/load/clear of one snapshot per screen inside a tab session"""

    def __init__(self, storage: Optional[MutableMapping[str, str]]):
        self.storage = storage

    @staticmethod
    def _key(screen_key: str) -> str:
        return f"{screen_key}_state"

    def save(self, screen_key: str, snapshot: ViewStateSnapshot) -> None:
        if self.storage is None:
            return
        self.storage[self._key(screen_key)] = snapshot.model_dump_json(by_alias=True)
        logger.debug(
            "view_state_saved",
            screen_key=screen_key,
            current_page=snapshot.current_page,
            scroll_position=snapshot.scroll_position,
            scroll_target=snapshot.scroll_target
        )

    def load(self, screen_key: str) -> Optional[ViewStateSnapshot]:
        if self.storage is None:
            return None
        raw = self.storage.get(self._key(screen_key))
        if not raw:
            return None
        try:
            return ViewStateSnapshot.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning("view_state_unreadable", screen_key=screen_key, error=str(e))
            return None

    def clear(self, screen_key: str) -> None:
        if self.storage is not None:
            self.storage.pop(self._key(screen_key), None)


@dataclass
class ScrollNode:
    """Snapshot of one element on the ancestor chain of the list container"""
    tag: str
    classes: Sequence[str] = ()
    scroll_top: float = 0
    scroll_height: float = 0
    client_height: float = 0
    overflow_y: str = "visible"

    @property
    def scrollable(self) -> bool:
        return self.scroll_height > self.client_height and self.overflow_y in ("auto", "scroll")


@dataclass
class ScrollAnchor:
    target: str
    position: float


def detect_scroll_anchor(
    window_offset: float,
    chain: Sequence[ScrollNode],
    container_class: str = LIST_CONTAINER_CLASS,
    document_offset: Optional[float] = None,
    last_observed: Optional[ScrollAnchor] = None
) -> ScrollAnchor:
    """
    Work out which element owns the scrollbar and how far it is scrolled.

    ``chain`` runs from the list container up through its ancestors. The
    last element seen emitting a scroll event wins; then a scrolled window;
    then the first scrollable ancestor; then the document element.
    """
    if last_observed is not None:
        return last_observed
    if window_offset and window_offset > 0:
        return ScrollAnchor(WINDOW_TARGET, window_offset)
    for node in chain:
        if not node.scrollable:
            continue
        if node.tag.upper() == "MAIN":
            return ScrollAnchor(MAIN_TARGET, node.scroll_top)
        if container_class in node.classes:
            return ScrollAnchor(f".{container_class}", node.scroll_top)
        return ScrollAnchor(WINDOW_TARGET, node.scroll_top)
    return ScrollAnchor(WINDOW_TARGET, document_offset or 0)


def capture_snapshot(
    current_page: int,
    filters,
    selected_ids: Sequence[str],
    anchor: ScrollAnchor
) -> ViewStateSnapshot:
    """Snapshot taken right before navigating to a detail screen"""
    return ViewStateSnapshot(
        current_page=current_page,
        filters=filters,
        selected_ids=list(selected_ids),
        scroll_position=anchor.position,
        scroll_target=anchor.target,
    )


@dataclass
class ReturnMarker:
    from_screen: str
    page: Optional[int] = None


def build_detail_url(candidate_id: str, page: int, screen: str = "resumes") -> str:
    """Detail URL carrying the marker the list screen checks on return"""
    query = urlencode({RETURN_MARKER_PARAM: screen, "page": page})
    return f"/resumes/{candidate_id}?{query}"


def build_return_url(marker: ReturnMarker) -> str:
    params = {RETURN_MARKER_PARAM: marker.from_screen}
    if marker.page is not None:
        params["page"] = marker.page
    return f"/{marker.from_screen}?{urlencode(params)}"


def parse_return_marker(query: Union[str, Mapping[str, str]]) -> Optional[ReturnMarker]:
    if isinstance(query, str):
        values = {k: v[0] for k, v in parse_qs(query.lstrip("?")).items() if v}
    else:
        values = dict(query)
    screen = values.get(RETURN_MARKER_PARAM)
    if not screen:
        return None
    page = values.get("page")
    try:
        page_number = int(page) if page is not None else None
    except ValueError:
        page_number = None
    return ReturnMarker(from_screen=screen, page=page_number)


class ScrollContainer(Protocol):
    def scroll_to(self, position: float) -> float:
        """Scroll and return the offset actually reached"""


class ScrollHost(Protocol):
    def find(self, target: str):
        """Return the container for a selector, or None if it is not rendered yet"""

    def scroll_window(self, position: float) -> float:
        """Scroll the window and return the offset actually reached"""


class ScrollRestorer:
    """
    Re-applies a saved scroll offset while the list is still rendering.

    Attempts run at each schedule checkpoint (immediate, then backing
    off). Each attempt waits for the target container to exist, either by
    polling the host or by awaiting an explicit render-complete event. An
    attempt only counts as successful when the reached offset is the saved
    one; a clamped scroll (list not fully rendered) is retried at the next
    checkpoint.
    """

    def __init__(self, schedule: Sequence[float], wait_timeout: float, poll_interval: float = 0.05):
        self.schedule = sorted(schedule) or [0.0]
        self.wait_timeout = wait_timeout
        self.poll_interval = poll_interval

    @classmethod
    def from_settings(cls, config) -> "ScrollRestorer":
        return cls(config.SCROLL_RESTORE_SCHEDULE, config.SCROLL_WAIT_TIMEOUT, config.SCROLL_POLL_INTERVAL)

    @staticmethod
    async def _maybe_await(value):
        if inspect.isawaitable(value):
            return await value
        return value

    def _attempt_timeout(self, index: int) -> float:
        if index + 1 < len(self.schedule):
            return min(self.wait_timeout, self.schedule[index + 1] - self.schedule[index])
        return self.wait_timeout

    async def _find_container(self, host: ScrollHost, target: str, timeout: float,
                              render_complete: Optional[asyncio.Event]):
        if render_complete is not None:
            try:
                await asyncio.wait_for(render_complete.wait(), timeout)
            except asyncio.TimeoutError:
                return None
            return await self._maybe_await(host.find(target))
        return await wait_for(lambda: host.find(target), timeout, self.poll_interval)

    async def restore(
        self,
        snapshot: Optional[ViewStateSnapshot],
        host: ScrollHost,
        render_complete: Optional[asyncio.Event] = None
    ) -> bool:
        if snapshot is None or snapshot.scroll_position is None:
            return False

        target = snapshot.scroll_target or f".{LIST_CONTAINER_CLASS}"
        position = snapshot.scroll_position
        index = {"value": 0}

        async def attempt() -> bool:
            i = index["value"]
            index["value"] += 1
            if target == WINDOW_TARGET:
                reached = await self._maybe_await(host.scroll_window(position))
            else:
                container = await self._find_container(host, target, self._attempt_timeout(i), render_complete)
                if container is None:
                    return False
                reached = await self._maybe_await(container.scroll_to(position))
            return reached is not None and reached >= position - 1

        succeeded_on = await run_on_schedule(attempt, self.schedule)
        logger.info(
            "scroll_restore_finished",
            target=target,
            position=position,
            attempt=succeeded_on,
            restored=bool(succeeded_on)
        )
        return bool(succeeded_on)
