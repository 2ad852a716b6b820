"""
tests/unit/cdp/test_overlay.py

Unit tests for HighlightController.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from domlens.cdp.overlay import DEFAULT_HIGHLIGHT_CONFIG, HighlightController
from domlens.cdp.session_manager import DomainSessionManager
from domlens.data_models.page import PageTarget
from tests.fakes import FakeCDPSession


@pytest.fixture
def manager(fake_session: FakeCDPSession) -> DomainSessionManager:
    return DomainSessionManager(session_factory=AsyncMock(return_value=fake_session))


@pytest.fixture
def highlighter(manager: DomainSessionManager) -> HighlightController:
    return HighlightController(session_manager=manager)


class TestHighlight:
    """Tests for highlighting and scheduled hides."""

    @pytest.mark.asyncio
    async def test_highlight_uses_backend_node_id(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        task = await highlighter.highlight(fake_session, backend_node_id=101, duration_ms=0)

        assert task is None
        assert fake_session.methods() == ["Overlay.enable", "Overlay.highlightNode"]
        assert fake_session.params_of("Overlay.highlightNode") == [
            {"highlightConfig": DEFAULT_HIGHLIGHT_CONFIG, "backendNodeId": 101},
        ]
        assert highlighter.pending_count(fake_session) == 0

    @pytest.mark.asyncio
    async def test_timed_highlight_hides_itself(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        task = await highlighter.highlight(fake_session, backend_node_id=101, duration_ms=10)

        assert highlighter.pending_count(fake_session) == 1
        await task

        assert fake_session.count("Overlay.hideHighlight") == 1
        assert highlighter.pending_count(fake_session) == 0

    @pytest.mark.asyncio
    async def test_overlapping_timers_all_fire(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        first = await highlighter.highlight(fake_session, backend_node_id=101, duration_ms=20)
        second = await highlighter.highlight(fake_session, backend_node_id=102, duration_ms=10)

        assert highlighter.pending_count(fake_session) == 2
        await asyncio.gather(first, second)

        assert fake_session.count("Overlay.hideHighlight") == 2
        assert fake_session.count("Overlay.enable") == 1

    @pytest.mark.asyncio
    async def test_failed_scheduled_hide_is_absorbed(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        fake_session.fail("Overlay.hideHighlight")
        task = await highlighter.highlight(fake_session, backend_node_id=101, duration_ms=1)

        await task

        assert task.exception() is None


class TestHide:
    """Tests for hiding highlights."""

    @pytest.mark.asyncio
    async def test_hide(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        assert await highlighter.hide(fake_session) is True

    @pytest.mark.asyncio
    async def test_hide_with_nothing_highlighted(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        fake_session.fail("Overlay.hideHighlight", message="No highlight is shown")
        assert await highlighter.hide(fake_session) is False


class TestCancelPending:
    """Tests for cancelling scheduled hides."""

    @pytest.mark.asyncio
    async def test_cancel_pending(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        first = await highlighter.highlight(fake_session, backend_node_id=101, duration_ms=10_000)
        second = await highlighter.highlight(fake_session, backend_node_id=102, duration_ms=10_000)

        assert highlighter.cancel_pending(fake_session) == 2
        await asyncio.gather(first, second, return_exceptions=True)

        assert first.cancelled()
        assert second.cancelled()
        assert fake_session.count("Overlay.hideHighlight") == 0
        assert highlighter.cancel_pending(fake_session.session_id) == 0

    @pytest.mark.asyncio
    async def test_page_close_cancels_pending_hides(
        self,
        highlighter: HighlightController,
        manager: DomainSessionManager,
        page: PageTarget,
    ) -> None:
        session = await manager.get_session(page)
        task = await highlighter.highlight(session, backend_node_id=101, duration_ms=10_000)

        manager.on_page_closed(page)
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()
        assert highlighter.pending_count(session) == 0


class TestLayoutOverlays:
    """Tests for grid and flex overlays."""

    @pytest.mark.asyncio
    async def test_grid_overlay(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        await highlighter.show_grid_overlay(fake_session, node_id=7)

        params = fake_session.params_of("Overlay.setShowGridOverlays")[0]
        assert params["gridNodeHighlightConfigs"][0]["nodeId"] == 7

    @pytest.mark.asyncio
    async def test_flex_overlay(self, highlighter: HighlightController, fake_session: FakeCDPSession) -> None:
        await highlighter.show_flex_overlay(fake_session, node_id=7)

        params = fake_session.params_of("Overlay.setShowFlexOverlays")[0]
        assert params["flexNodeHighlightConfigs"][0]["nodeId"] == 7
