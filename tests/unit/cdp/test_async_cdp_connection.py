"""
tests/unit/cdp/test_async_cdp_connection.py

Unit tests for AsyncCDPConnection and AsyncCDPSession, using an in-memory WebSocket.
"""

import asyncio
import json
from typing import Any

import pytest

from domlens.cdp.async_cdp_connection import AsyncCDPConnection, AsyncCDPSession
from domlens.cdp.session_manager import DomainSessionManager
from domlens.data_models.page import PageTarget
from domlens.utils.exceptions import BrowserConnectionError, CDPProtocolError


class FakeWebSocket:
    """
    Records sent frames and answers commands from a method -> reply table.
    A reply is a CDP message without "id" (added here), or None for no reply at all.
    """

    def __init__(self, connection: AsyncCDPConnection) -> None:
        self.connection = connection
        self.sent: list[dict[str, Any]] = []
        self.replies: dict[str, dict[str, Any] | None] = {}
        self.closed = False

    async def send(self, message: str) -> None:
        msg = json.loads(message)
        self.sent.append(msg)
        reply = self.replies.get(msg["method"], {"result": {}})
        if reply is not None:
            await self.connection.handle_message({"id": msg["id"], **reply})

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def connection() -> AsyncCDPConnection:
    conn = AsyncCDPConnection(ws_url="ws://127.0.0.1:9222/devtools/browser/abc", command_timeout=1)
    conn.ws = FakeWebSocket(conn)
    return conn


class TestCommands:
    """Tests for command/reply tracking."""

    @pytest.mark.asyncio
    async def test_reply_resolves_command(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Browser.getVersion"] = {"result": {"product": "Chrome/130"}}

        result = await connection.send_and_wait("Browser.getVersion")

        assert result == {"product": "Chrome/130"}
        assert connection.pending_responses == {}
        assert connection.ws.sent == [{"id": 1, "method": "Browser.getVersion", "params": {}}]

    @pytest.mark.asyncio
    async def test_session_id_is_attached_to_frame(self, connection: AsyncCDPConnection) -> None:
        await connection.send_and_wait("DOM.enable", session_id="S1")
        assert connection.ws.sent[0]["sessionId"] == "S1"

    @pytest.mark.asyncio
    async def test_error_reply_raises_protocol_error(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["DOM.describeNode"] = {
            "error": {"code": -32000, "message": "Could not find node with given id"},
        }

        with pytest.raises(CDPProtocolError) as exc_info:
            await connection.send_and_wait("DOM.describeNode", {"nodeId": 99})

        assert exc_info.value.method == "DOM.describeNode"
        assert exc_info.value.code == -32000
        assert "Could not find node" in exc_info.value.protocol_message

    @pytest.mark.asyncio
    async def test_missing_reply_times_out(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Page.reload"] = None

        with pytest.raises(TimeoutError):
            await connection.send_and_wait("Page.reload", timeout=0.01)
        assert connection.pending_responses == {}

    @pytest.mark.asyncio
    async def test_unknown_reply_is_ignored(self, connection: AsyncCDPConnection) -> None:
        await connection.handle_message({"id": 12345, "result": {}})

    @pytest.mark.asyncio
    async def test_send_without_socket_raises(self) -> None:
        connection = AsyncCDPConnection(ws_url="ws://unused")
        with pytest.raises(BrowserConnectionError):
            await connection.send_and_wait("DOM.enable")

    @pytest.mark.asyncio
    async def test_fail_pending_wakes_waiters(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Page.reload"] = None
        waiter = asyncio.create_task(connection.send_and_wait("Page.reload"))
        await asyncio.sleep(0.01)

        connection._fail_pending(BrowserConnectionError("CDP connection closed"))

        with pytest.raises(BrowserConnectionError):
            await waiter


class TestEvents:
    """Tests for event dispatch."""

    @pytest.mark.asyncio
    async def test_events_are_routed_per_session(self, connection: AsyncCDPConnection) -> None:
        received: list[tuple[str, dict]] = []
        connection.add_listener("S1", "DOM.documentUpdated", lambda params: received.append(("S1", params)))
        connection.add_listener("S2", "DOM.documentUpdated", lambda params: received.append(("S2", params)))

        await connection.handle_message({"method": "DOM.documentUpdated", "params": {}, "sessionId": "S2"})

        assert received == [("S2", {})]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_dispatch(self, connection: AsyncCDPConnection) -> None:
        received: list[dict] = []

        def broken(_params: dict) -> None:
            raise RuntimeError("boom")

        connection.add_listener("S1", "DOM.setChildNodes", broken)
        connection.add_listener("S1", "DOM.setChildNodes", received.append)

        await connection.handle_message({"method": "DOM.setChildNodes", "params": {"parentId": 1}, "sessionId": "S1"})

        assert received == [{"parentId": 1}]

    @pytest.mark.asyncio
    async def test_removed_listener_is_not_called(self, connection: AsyncCDPConnection) -> None:
        received: list[dict] = []
        connection.add_listener("S1", "DOM.setChildNodes", received.append)
        connection.remove_listener("S1", "DOM.setChildNodes", received.append)
        connection.remove_listener("S1", "DOM.setChildNodes", received.append)

        await connection.handle_message({"method": "DOM.setChildNodes", "params": {}, "sessionId": "S1"})

        assert received == []


class TestSessions:
    """Tests for attaching and detaching page sessions."""

    @pytest.mark.asyncio
    async def test_attach_creates_flattened_session(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Target.attachToTarget"] = {"result": {"sessionId": "S1"}}

        session = await connection.attach(PageTarget(target_id="T1"))

        assert isinstance(session, AsyncCDPSession)
        assert (session.session_id, session.target_id) == ("S1", "T1")
        assert connection.ws.sent[0]["params"] == {"targetId": "T1", "flatten": True}

    @pytest.mark.asyncio
    async def test_attach_without_session_id_raises(self, connection: AsyncCDPConnection) -> None:
        with pytest.raises(BrowserConnectionError):
            await connection.attach(PageTarget(target_id="T1"))

    @pytest.mark.asyncio
    async def test_session_commands_carry_session_id(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Target.attachToTarget"] = {"result": {"sessionId": "S1"}}
        session = await connection.attach(PageTarget(target_id="T1"))

        assert await session.send("CSS.enable") == {}
        assert connection.ws.sent[-1] == {"id": 2, "method": "CSS.enable", "params": {}, "sessionId": "S1"}

    @pytest.mark.asyncio
    async def test_detached_from_target_marks_session(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Target.attachToTarget"] = {"result": {"sessionId": "S1"}}
        session = await connection.attach(PageTarget(target_id="T1"))

        await connection.handle_message({
            "method": "Target.detachedFromTarget",
            "params": {"sessionId": "S1", "targetId": "T1"},
        })

        assert session.detached
        with pytest.raises(CDPProtocolError):
            await session.send("DOM.enable")
        assert connection.ws.sent[-1]["method"] == "Target.attachToTarget"

    @pytest.mark.asyncio
    async def test_detached_from_target_forgets_session(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Target.attachToTarget"] = {"result": {"sessionId": "S1"}}
        session = await connection.attach(PageTarget(target_id="T1"))
        session.on("DOM.setChildNodes", lambda params: None)

        await connection.handle_message({
            "method": "Target.detachedFromTarget",
            "params": {"sessionId": "S1", "targetId": "T1"},
        })

        assert connection._sessions == {}
        assert [key for key in connection._listeners if key[0] == "S1"] == []

    @pytest.mark.asyncio
    async def test_closed_page_releases_session(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Target.attachToTarget"] = {"result": {"sessionId": "S1"}}
        manager = DomainSessionManager(session_factory=connection.attach)
        page = PageTarget(target_id="T1")
        session = await manager.get_session(page)
        session.on("DOM.setChildNodes", lambda params: None)

        manager.on_page_closed(page)

        assert session.detached
        assert connection._sessions == {}
        assert [key for key in connection._listeners if key[0] == "S1"] == []
        # no detach command for a page that no longer exists
        assert [msg["method"] for msg in connection.ws.sent] == ["Target.attachToTarget"]

    @pytest.mark.asyncio
    async def test_detach_forgets_session_listeners(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Target.attachToTarget"] = {"result": {"sessionId": "S1"}}
        connection.ws.replies["Target.detachFromTarget"] = {"error": {"code": -32602, "message": "No session with given id"}}
        session = await connection.attach(PageTarget(target_id="T1"))
        received: list[dict] = []
        session.on("DOM.documentUpdated", received.append)

        await session.detach()
        await session.detach()

        assert session.detached
        assert [msg["method"] for msg in connection.ws.sent].count("Target.detachFromTarget") == 1
        await connection.handle_message({"method": "DOM.documentUpdated", "params": {}, "sessionId": "S1"})
        assert received == []

    @pytest.mark.asyncio
    async def test_get_page_targets_filters_pages(self, connection: AsyncCDPConnection) -> None:
        connection.ws.replies["Target.getTargets"] = {"result": {"targetInfos": [
            {"targetId": "T1", "type": "page", "url": "https://example.com/", "title": "Example"},
            {"targetId": "T2", "type": "service_worker", "url": "https://example.com/sw.js"},
            {"targetId": "T3", "type": "page", "url": "about:blank"},
        ]}}

        pages = await connection.get_page_targets()

        assert [page.target_id for page in pages] == ["T1", "T3"]
        assert pages[0].title == "Example"


class TestLifecycle:
    """Tests for closing the connection."""

    @pytest.mark.asyncio
    async def test_close(self, connection: AsyncCDPConnection) -> None:
        fake_ws = connection.ws
        connection.add_listener("S1", "DOM.documentUpdated", lambda params: None)

        await connection.close()

        assert fake_ws.closed
        assert connection.ws is None
        assert connection._listeners == {}
