"""
Unit tests for tab-scoped view state and scroll restoration
"""
import asyncio

import pytest

from app.models.requests import FilterSpec, ViewStateSnapshot
from app.services.view_state import (
    ScrollAnchor,
    ScrollNode,
    ScrollRestorer,
    TabSessionStore,
    ViewStateStore,
    build_detail_url,
    build_return_url,
    capture_snapshot,
    detect_scroll_anchor,
    parse_return_marker,
)
from app.utils.async_utils import run_on_schedule, wait_for


def snapshot(**overrides):
    values = {
        "current_page": 3,
        "filters": FilterSpec(search="python", degrees=["本科"], schoolTags=["985"], minYears="3"),
        "selected_ids": ["c-1", "c-2"],
        "scroll_position": 840.0,
        "scroll_target": ".resumes-scroll",
    }
    values.update(overrides)
    return ViewStateSnapshot(**values)


class FakeContainer:
    def __init__(self, max_offset=10_000.0):
        self.max_offset = max_offset
        self.offset = 0.0
        self.calls = 0

    def scroll_to(self, position):
        self.calls += 1
        self.offset = min(position, self.max_offset)
        return self.offset


class FakeHost:
    """Container appears after ``appear_after`` lookups"""

    def __init__(self, container=None, appear_after=0):
        self.container = container or FakeContainer()
        self.appear_after = appear_after
        self.lookups = 0
        self.window_offset = 0.0

    def find(self, target):
        self.lookups += 1
        if self.lookups > self.appear_after:
            return self.container
        return None

    def scroll_window(self, position):
        self.window_offset = position
        return position


class TestTabSessions:
    def test_new_session_is_empty_and_isolated(self):
        sessions = TabSessionStore()
        first = sessions.start_session()
        ViewStateStore(sessions.storage(first)).save("resume_list", snapshot())

        second = sessions.start_session()

        assert first != second
        assert ViewStateStore(sessions.storage(second)).load("resume_list") is None

    def test_unknown_session_keeps_nothing(self):
        store = ViewStateStore(TabSessionStore().storage("missing"))

        store.save("resume_list", snapshot())

        assert store.load("resume_list") is None

    def test_session_belongs_to_its_viewer(self):
        sessions = TabSessionStore()
        session_id = sessions.start_session(owner_id="user-1")

        assert sessions.storage(session_id, owner_id="user-1") == {}
        assert sessions.storage(session_id, owner_id="user-2") is None
        assert sessions.end_session(session_id, owner_id="user-2") is False
        assert sessions.end_session(session_id, owner_id="user-1") is True
        assert len(sessions) == 0

    def test_idle_sessions_expire(self):
        now = {"t": 0.0}
        sessions = TabSessionStore(ttl_seconds=60, clock=lambda: now["t"])
        idle = sessions.start_session()
        active = sessions.start_session()

        now["t"] = 50
        sessions.storage(active)
        now["t"] = 100

        assert sessions.storage(idle) is None
        assert sessions.storage(active) == {}
        assert sessions.cleanup_expired_sessions() == 0
        assert len(sessions) == 1

    def test_least_recently_used_session_is_evicted(self):
        sessions = TabSessionStore(max_sessions=2)
        first = sessions.start_session()
        second = sessions.start_session()
        sessions.storage(first)

        third = sessions.start_session()

        assert len(sessions) == 2
        assert sessions.storage(second) is None
        assert sessions.storage(first) == {}
        assert sessions.storage(third) == {}

    def test_session_count_stays_bounded(self):
        sessions = TabSessionStore(max_sessions=100)

        for _ in range(1000):
            sessions.start_session()

        assert len(sessions) == 100


class TestViewStateStore:
    def test_round_trip_preserves_every_field(self):
        store = ViewStateStore({})
        original = snapshot()

        store.save("resume_list", original)

        assert store.load("resume_list") == original

    def test_serialised_with_camel_case_keys(self):
        storage = {}
        ViewStateStore(storage).save("resume_list", snapshot())

        raw = storage["resume_list_state"]
        assert '"scrollPosition":840.0' in raw
        assert '"schoolTags":["985"]' in raw

    def test_corrupt_payload_loads_as_none(self):
        store = ViewStateStore({"resume_list_state": "{not json"})

        assert store.load("resume_list") is None

    def test_clear(self):
        store = ViewStateStore({})
        store.save("resume_list", snapshot())

        store.clear("resume_list")

        assert store.load("resume_list") is None


class TestScrollAnchor:
    def test_window_offset_wins(self):
        chain = [ScrollNode("DIV", ("resumes-scroll",), 300, 2000, 500, "auto")]

        assert detect_scroll_anchor(120, chain) == ScrollAnchor("window", 120)

    def test_list_container(self):
        chain = [
            ScrollNode("DIV", ("resumes-scroll",), 300, 2000, 500, "auto"),
            ScrollNode("MAIN", (), 0, 3000, 800, "auto"),
        ]

        assert detect_scroll_anchor(0, chain) == ScrollAnchor(".resumes-scroll", 300)

    def test_non_scrollable_nodes_are_skipped(self):
        chain = [
            ScrollNode("DIV", ("resumes-scroll",), 0, 400, 500, "auto"),
            ScrollNode("SECTION", (), 0, 2000, 500, "visible"),
            ScrollNode("main", (), 640, 3000, 800, "scroll"),
        ]

        assert detect_scroll_anchor(0, chain) == ScrollAnchor("main", 640)

    def test_other_scrollable_ancestor_maps_to_window(self):
        chain = [ScrollNode("DIV", ("panel",), 90, 2000, 500, "auto")]

        assert detect_scroll_anchor(0, chain) == ScrollAnchor("window", 90)

    def test_document_fallback(self):
        assert detect_scroll_anchor(0, [], document_offset=55) == ScrollAnchor("window", 55)

    def test_last_observed_scroll_wins(self):
        observed = ScrollAnchor("main", 10)

        assert detect_scroll_anchor(500, [], last_observed=observed) is observed

    def test_capture_snapshot(self):
        captured = capture_snapshot(2, FilterSpec(), ["c-1"], ScrollAnchor("main", 42))

        assert captured.current_page == 2
        assert captured.scroll_target == "main"
        assert captured.scroll_position == 42


class TestReturnMarker:
    def test_detail_url(self):
        assert build_detail_url("c-9", 3) == "/resumes/c-9?from=resumes&page=3"

    def test_parse_query_string(self):
        marker = parse_return_marker("?from=resumes&page=3")

        assert marker.from_screen == "resumes"
        assert marker.page == 3
        assert build_return_url(marker) == "/resumes?from=resumes&page=3"

    def test_missing_marker(self):
        assert parse_return_marker("page=2") is None

    def test_bad_page(self):
        assert parse_return_marker({"from": "resumes", "page": "x"}).page is None


class TestAsyncHelpers:
    @pytest.mark.asyncio
    async def test_wait_for_returns_value(self):
        calls = {"n": 0}

        def check():
            calls["n"] += 1
            return "ready" if calls["n"] >= 3 else None

        assert await wait_for(check, timeout=1.0, interval=0.001) == "ready"

    @pytest.mark.asyncio
    async def test_wait_for_times_out(self):
        assert await wait_for(lambda: None, timeout=0.01, interval=0.001) is None

    @pytest.mark.asyncio
    async def test_run_on_schedule_stops_at_first_success(self):
        outcomes = iter([False, True, True])
        calls = []

        async def attempt():
            calls.append(1)
            return next(outcomes)

        assert await run_on_schedule(attempt, [0, 0.001, 0.002]) == 2
        assert len(calls) == 2


class TestScrollRestorer:
    @pytest.mark.asyncio
    async def test_restores_immediately_when_container_exists(self):
        host = FakeHost()
        restorer = ScrollRestorer([0, 0.01], wait_timeout=0.05, poll_interval=0.001)

        assert await restorer.restore(snapshot(), host) is True
        assert host.container.offset == 840.0

    @pytest.mark.asyncio
    async def test_waits_for_late_container(self):
        host = FakeHost(appear_after=5)
        restorer = ScrollRestorer([0], wait_timeout=1.0, poll_interval=0.001)

        assert await restorer.restore(snapshot(), host) is True
        assert host.lookups == 6

    @pytest.mark.asyncio
    async def test_clamped_scroll_is_retried(self):
        container = FakeContainer(max_offset=100)
        host = FakeHost(container=container)
        restorer = ScrollRestorer([0, 0.005, 0.01], wait_timeout=0.05, poll_interval=0.001)

        assert await restorer.restore(snapshot(), host) is False
        assert container.calls == 3

    @pytest.mark.asyncio
    async def test_render_complete_event(self):
        host = FakeHost()
        rendered = asyncio.Event()
        restorer = ScrollRestorer([0], wait_timeout=1.0)

        loop = asyncio.get_running_loop()
        loop.call_later(0.01, rendered.set)

        assert await restorer.restore(snapshot(), host, render_complete=rendered) is True

    @pytest.mark.asyncio
    async def test_render_never_completes(self):
        host = FakeHost()
        restorer = ScrollRestorer([0], wait_timeout=0.01)

        assert await restorer.restore(snapshot(), host, render_complete=asyncio.Event()) is False
        assert host.lookups == 0

    @pytest.mark.asyncio
    async def test_window_target(self):
        host = FakeHost()
        restorer = ScrollRestorer([0], wait_timeout=0.01)

        assert await restorer.restore(snapshot(scroll_target="window", scroll_position=300.0), host) is True
        assert host.window_offset == 300.0

    @pytest.mark.asyncio
    async def test_nothing_to_restore(self):
        host = FakeHost()
        restorer = ScrollRestorer([0], wait_timeout=0.01)

        assert await restorer.restore(snapshot(scroll_position=None), host) is False
        assert await restorer.restore(None, host) is False

    def test_default_schedule_from_settings(self):
        from app.config import settings

        restorer = ScrollRestorer.from_settings(settings)

        assert restorer.schedule == [0.0, 0.5, 1.5, 3.0, 5.0]
        assert restorer.wait_timeout == 7.0
