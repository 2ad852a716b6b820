"""
tests/unit/cdp/test_session_manager.py

Unit tests for DomainSessionManager.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from domlens.cdp.session_manager import DomainSessionManager
from domlens.data_models.page import PageTarget
from domlens.utils.exceptions import BrowserConnectionError, CDPProtocolError
from tests.fakes import FakeCDPSession


def _factory() -> tuple[AsyncMock, list[FakeCDPSession]]:
    """Session factory creating a new fake session per call."""
    created: list[FakeCDPSession] = []

    async def create(page: PageTarget) -> FakeCDPSession:
        await asyncio.sleep(0)
        session = FakeCDPSession(session_id=f"session-{len(created) + 1}", target_id=page.target_id)
        created.append(session)
        return session

    return AsyncMock(side_effect=create), created


class TestGetSession:
    """Tests for per-page session registration."""

    @pytest.mark.asyncio
    async def test_session_is_reused_per_page(self, page: PageTarget) -> None:
        factory, created = _factory()
        manager = DomainSessionManager(session_factory=factory)

        first = await manager.get_session(page)
        second = await manager.get_session(page)

        assert first is second
        assert len(created) == 1

    @pytest.mark.asyncio
    async def test_registry_is_keyed_by_target_id(self, page: PageTarget) -> None:
        factory, created = _factory()
        manager = DomainSessionManager(session_factory=factory)

        same_page_other_object = PageTarget(target_id=page.target_id, url="https://example.com/other")
        assert await manager.get_session(page) is await manager.get_session(same_page_other_object)

        other_page = PageTarget(target_id="page-2")
        assert await manager.get_session(other_page) is not await manager.get_session(page)
        assert len(created) == 2

    @pytest.mark.asyncio
    async def test_concurrent_first_use_creates_one_session(self, page: PageTarget) -> None:
        factory, created = _factory()
        manager = DomainSessionManager(session_factory=factory)

        sessions = await asyncio.gather(*(manager.get_session(page) for _ in range(5)))

        assert len(created) == 1
        assert all(session is created[0] for session in sessions)

    @pytest.mark.asyncio
    async def test_detached_session_is_replaced(self, page: PageTarget) -> None:
        factory, created = _factory()
        manager = DomainSessionManager(session_factory=factory)

        first = await manager.get_session(page)
        first.detached = True
        second = await manager.get_session(page)

        assert second is not first
        assert len(created) == 2

    @pytest.mark.asyncio
    async def test_failed_creation_is_not_cached(self, page: PageTarget, fake_session: FakeCDPSession) -> None:
        factory = AsyncMock(side_effect=[CDPProtocolError(method="Target.attachToTarget", message="No target"), fake_session])
        manager = DomainSessionManager(session_factory=factory)

        with pytest.raises(CDPProtocolError):
            await manager.get_session(page)
        assert await manager.get_session(page) is fake_session


class TestEnsureEnabled:
    """Tests for idempotent domain enabling."""

    @pytest.mark.asyncio
    async def test_enable_is_issued_once(self, fake_session: FakeCDPSession) -> None:
        manager = DomainSessionManager(session_factory=AsyncMock(return_value=fake_session))

        await manager.ensure_enabled(fake_session, "CSS")
        await manager.ensure_enabled(fake_session, "CSS")

        assert fake_session.count("CSS.enable") == 1
        assert manager.is_enabled(fake_session, "CSS")

    @pytest.mark.asyncio
    async def test_concurrent_enables_share_one_command(self, fake_session: FakeCDPSession) -> None:
        manager = DomainSessionManager(session_factory=AsyncMock(return_value=fake_session))

        await asyncio.gather(*(manager.ensure_enabled(fake_session, "Overlay") for _ in range(4)))

        assert fake_session.count("Overlay.enable") == 1

    @pytest.mark.asyncio
    async def test_failed_enable_propagates_and_is_retried(self, fake_session: FakeCDPSession) -> None:
        manager = DomainSessionManager(session_factory=AsyncMock(return_value=fake_session))
        error = CDPProtocolError(method="Accessibility.enable", message="'Accessibility.enable' wasn't found")
        fake_session.responses["Accessibility.enable"] = error

        with pytest.raises(CDPProtocolError) as exc_info:
            await manager.ensure_enabled(fake_session, "Accessibility")
        assert exc_info.value is error
        assert not manager.is_enabled(fake_session, "Accessibility")

        fake_session.responses["Accessibility.enable"] = {}
        await manager.ensure_enabled(fake_session, "Accessibility")

        assert fake_session.count("Accessibility.enable") == 2
        assert manager.is_enabled(fake_session, "Accessibility")

    @pytest.mark.asyncio
    async def test_bookkeeping_is_per_session(self) -> None:
        session_a = FakeCDPSession(session_id="a")
        session_b = FakeCDPSession(session_id="b")
        manager = DomainSessionManager(session_factory=AsyncMock())

        await manager.ensure_enabled(session_a, "DOM")

        assert manager.is_enabled(session_a, "DOM")
        assert not manager.is_enabled(session_b, "DOM")
        await manager.ensure_enabled(session_b, "DOM")
        assert session_b.count("DOM.enable") == 1


class TestEnsureDocument:
    """Tests for document requests and document epochs."""

    @pytest.mark.asyncio
    async def test_document_requested_once_per_epoch(self, page: PageTarget, fake_session: FakeCDPSession) -> None:
        manager = DomainSessionManager(session_factory=AsyncMock(return_value=fake_session))
        session = await manager.get_session(page)

        assert await manager.ensure_document(session) == 1
        assert await manager.ensure_document(session) == 1
        assert fake_session.count("DOM.getDocument") == 1
        assert fake_session.count("DOM.enable") == 1

    @pytest.mark.asyncio
    async def test_document_updated_bumps_epoch(self, page: PageTarget, fake_session: FakeCDPSession) -> None:
        manager = DomainSessionManager(session_factory=AsyncMock(return_value=fake_session))
        session = await manager.get_session(page)
        await manager.ensure_document(session)

        fake_session.emit("DOM.documentUpdated")
        fake_session.responses["DOM.getDocument"] = {"root": {"nodeId": 7}}

        assert manager.document_epoch(session) == 1
        assert await manager.ensure_document(session) == 7
        assert fake_session.count("DOM.getDocument") == 2


class TestPageLifecycle:
    """Tests for page close notifications and scoped sessions."""

    @pytest.mark.asyncio
    async def test_page_closed_drops_session_and_notifies(self, page: PageTarget) -> None:
        factory, created = _factory()
        manager = DomainSessionManager(session_factory=factory)
        closed: list[str] = []
        manager.add_close_listener(lambda session: closed.append(session.session_id))

        session = await manager.get_session(page)
        await manager.ensure_enabled(session, "DOM")
        manager.on_page_closed(page.target_id)

        assert manager.get_cached_session(page.target_id) is None
        assert not manager.is_enabled(session, "DOM")
        assert session.handlers["DOM.documentUpdated"] == []
        assert closed == ["session-1"]
        assert session.detached

        assert await manager.get_session(page) is not session
        assert len(created) == 2

    @pytest.mark.asyncio
    async def test_page_closed_during_session_creation(self, page: PageTarget) -> None:
        async def never_ready(_page: PageTarget) -> FakeCDPSession:
            await asyncio.Event().wait()
            raise AssertionError("unreachable")

        manager = DomainSessionManager(session_factory=AsyncMock(side_effect=never_ready))
        caller = asyncio.create_task(manager.get_session(page))
        await asyncio.sleep(0)

        manager.on_page_closed(page)

        with pytest.raises(BrowserConnectionError, match="closed while its session was being created"):
            await caller
        assert manager.get_cached_session(page.target_id) is None

    @pytest.mark.asyncio
    async def test_cancelled_caller_keeps_shared_creation(self, page: PageTarget) -> None:
        ready = asyncio.Event()
        session = FakeCDPSession(target_id=page.target_id)

        async def create(_page: PageTarget) -> FakeCDPSession:
            await ready.wait()
            return session

        manager = DomainSessionManager(session_factory=AsyncMock(side_effect=create))
        caller = asyncio.create_task(manager.get_session(page))
        await asyncio.sleep(0)

        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        ready.set()
        assert await manager.get_session(page) is session

    @pytest.mark.asyncio
    async def test_closing_unknown_page_is_noop(self) -> None:
        manager = DomainSessionManager(session_factory=AsyncMock())
        manager.on_page_closed("never-seen")

    @pytest.mark.asyncio
    async def test_scoped_session_is_isolated_and_detached(self, page: PageTarget) -> None:
        factory, created = _factory()
        manager = DomainSessionManager(session_factory=factory)
        long_lived = await manager.get_session(page)

        async with manager.scoped_session(page) as scoped:
            assert scoped is not long_lived
            await manager.ensure_enabled(scoped, "DOM")

        assert scoped.detach_count == 1
        assert not manager.is_enabled(scoped, "DOM")
        assert await manager.get_session(page) is long_lived

    @pytest.mark.asyncio
    async def test_scoped_session_detached_on_error(self, page: PageTarget, fake_session: FakeCDPSession) -> None:
        manager = DomainSessionManager(session_factory=AsyncMock(return_value=fake_session))
        fake_session.fail("Storage.getCookies")

        with pytest.raises(CDPProtocolError):
            async with manager.scoped_session(page) as session:
                await session.send("Storage.getCookies")

        assert fake_session.detach_count == 1
