"""
domlens/cdp/async_cdp_connection.py

Asynchronous CDP transport: one browser WebSocket multiplexing page-bound sessions.

Contains:
- AsyncCDPConnection: WebSocket, command/response tracking, event fan-out, target attachment
- AsyncCDPSession: page-bound channel (flattened sessionId) implementing AbstractCDPSession
"""

from __future__ import annotations

import asyncio
import json
from collections import defaultdict
from typing import Any

from websockets.asyncio.client import connect, ClientConnection

from domlens.cdp.abstract_cdp_session import AbstractCDPSession, EventHandler
from domlens.config import Config
from domlens.data_models.page import PageTarget
from domlens.utils.chrome_utils import get_browser_websocket_url
from domlens.utils.exceptions import BrowserConnectionError, CDPProtocolError
from domlens.utils.logger import get_logger

logger = get_logger(name=__name__)


class AsyncCDPSession(AbstractCDPSession):
    """
    Page-bound CDP session attached with Target.attachToTarget(flatten=True).
    All commands carry the sessionId over the shared browser connection.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, connection: AsyncCDPConnection, session_id: str, target_id: str) -> None:
        super().__init__(session_id=session_id, target_id=target_id)
        self.connection = connection


    # Public methods _______________________________________________________________________________________________________

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        if self.detached:
            raise CDPProtocolError(method=method, message=f"Session {self.session_id} is detached")
        result = await self.connection.send_and_wait(
            method=method,
            params=params,
            session_id=self.session_id,
        )
        return result or {}

    def on(self, event: str, handler: EventHandler) -> None:
        self.connection.add_listener(self.session_id, event, handler)

    def off(self, event: str, handler: EventHandler) -> None:
        self.connection.remove_listener(self.session_id, event, handler)

    async def detach(self) -> None:
        if self.detached:
            return
        self.detached = True
        try:
            await self.connection.send_and_wait(
                method="Target.detachFromTarget",
                params={"sessionId": self.session_id},
            )
            logger.debug("🔌 Detached session %s", self.session_id)
        except (CDPProtocolError, BrowserConnectionError, TimeoutError) as e:
            # target already gone (page closed or browser disconnected)
            logger.debug("⚠️ Detach of session %s failed: %s", self.session_id, e)
        finally:
            self.connection.forget_session(self.session_id)

    def release(self) -> None:
        super().release()
        self.connection.forget_session(self.session_id)


class AsyncCDPConnection:
    """
    Browser-level CDP connection.
    Handles the WebSocket, command ids, replies, and event dispatch for every attached session.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, ws_url: str, command_timeout: float = Config.CDP_COMMAND_TIMEOUT) -> None:
        """
        Initialize AsyncCDPConnection.
        Args:
            ws_url: Browser WebSocket URL (from /json/version).
            command_timeout: Default timeout in seconds for send_and_wait.
        """
        self.ws_url = ws_url
        self.command_timeout = command_timeout
        self.ws: ClientConnection | None = None
        self.seq = 0  # sequence ID for CDP commands

        # response tracking for CDP commands
        self.pending_responses: dict[int, tuple[str, asyncio.Future]] = {}  # command ID -> (method, future)

        # event listeners keyed by (sessionId, event method); sessionId None = browser-level
        self._listeners: dict[tuple[str | None, str], list[EventHandler]] = defaultdict(list)
        self._sessions: dict[str, AsyncCDPSession] = {}  # sessionId -> session
        self._receiver_task: asyncio.Task | None = None

    async def __aenter__(self) -> AsyncCDPConnection:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


    # Class methods ________________________________________________________________________________________________________

    @classmethod
    def from_remote_debugging_address(
        cls,
        remote_debugging_address: str = Config.REMOTE_DEBUGGING_ADDRESS,
        command_timeout: float = Config.CDP_COMMAND_TIMEOUT,
    ) -> AsyncCDPConnection:
        """
        Build a connection from a Chrome debugging address such as http://127.0.0.1:9222.
        """
        ws_url = get_browser_websocket_url(remote_debugging_address)
        return cls(ws_url=ws_url, command_timeout=command_timeout)


    # Private methods ______________________________________________________________________________________________________

    def _handle_command_reply(self, msg: dict) -> None:
        """Resolve the future waiting for a command reply."""
        cmd_id = msg.get("id")
        pending = self.pending_responses.pop(cmd_id, None)
        if pending is None:
            logger.debug("📥 Command reply not handled: id=%s", cmd_id)
            return

        method, future = pending
        if future.done():
            return
        if "error" in msg:
            error = msg["error"] or {}
            logger.debug("📥 CDP error for %s: %s", method, json.dumps(error))
            future.set_exception(CDPProtocolError(
                method=method,
                message=error.get("message", "Unknown CDP error"),
                code=error.get("code"),
                data=error.get("data"),
            ))
        else:
            future.set_result(msg.get("result", {}))

    def _dispatch_event(self, msg: dict) -> None:
        """Fan an event out to the listeners of its session."""
        method = msg["method"]
        params = msg.get("params", {})
        session_id = msg.get("sessionId")

        if method == "Target.detachedFromTarget":
            detached_id = params.get("sessionId")
            session = self._sessions.get(detached_id)
            if session is not None:
                session.detached = True
                logger.info("🔌 Target detached session %s", detached_id)
            self.forget_session(detached_id)

        # copy so handlers can unregister themselves while being called
        for handler in list(self._listeners.get((session_id, method), [])):
            try:
                handler(params)
            except Exception as e:
                logger.error("❌ Error in %s handler: %s", method, e, exc_info=True)

    def _next_command_id(self) -> int:
        self.seq += 1
        return self.seq

    async def _send_message(
        self,
        cmd_id: int,
        method: str,
        params: dict | None,
        session_id: str | None,
    ) -> None:
        if not self.ws:
            raise BrowserConnectionError("WebSocket not connected")
        msg: dict[str, Any] = {
            "id": cmd_id,
            "method": method,
            "params": params or {},
        }
        if session_id:
            msg["sessionId"] = session_id
        await self.ws.send(json.dumps(msg))

    def _fail_pending(self, error: Exception) -> None:
        for _, future in self.pending_responses.values():
            if not future.done():
                future.set_exception(error)
        self.pending_responses.clear()

    async def _message_receiver(self) -> None:
        """Receive and process WebSocket messages until the socket closes."""
        assert self.ws is not None
        message_count = 0
        try:
            async for message in self.ws:
                message_count += 1
                try:
                    await self.handle_message(json.loads(message))
                except Exception as e:
                    logger.error("❌ Error handling message #%d: %s", message_count, e, exc_info=True)
                    logger.error("❌ Message was: %s", str(message)[:250])
        except asyncio.CancelledError:
            logger.info("🛑 Message receiver cancelled (processed %d messages)", message_count)
            raise
        except Exception as e:
            logger.error("❌ Error in message receiver: %s", e, exc_info=True)
        finally:
            self._fail_pending(BrowserConnectionError("CDP connection closed"))


    # Public methods _______________________________________________________________________________________________________

    async def connect(self) -> None:
        """Open the WebSocket and start the message receiver."""
        logger.info("🔌 Connecting to CDP: %s", self.ws_url)
        try:
            self.ws = await connect(uri=self.ws_url, max_size=None)
        except OSError as e:
            raise BrowserConnectionError(f"Could not connect to {self.ws_url}: {e}") from e
        self._receiver_task = asyncio.create_task(self._message_receiver())
        logger.info("✅ WebSocket connected")

    async def close(self) -> None:
        """Stop the receiver and close the WebSocket."""
        if self._receiver_task is not None:
            self._receiver_task.cancel()
            try:
                await self._receiver_task
            except asyncio.CancelledError:
                pass
            self._receiver_task = None
        if self.ws is not None:
            await self.ws.close()
            self.ws = None
        self._sessions.clear()
        self._listeners.clear()
        logger.info("✅ CDP connection closed")

    async def handle_message(self, msg: dict) -> None:
        """Handle an incoming CDP message (command reply or event)."""
        if "id" in msg:
            self._handle_command_reply(msg)
            return
        if "method" in msg:
            self._dispatch_event(msg)

    async def send(self, method: str, params: dict | None = None, session_id: str | None = None) -> int:
        """
        Send CDP command and return sequence ID.
        Args:
            method (str): The CDP method to send. For example, "DOM.getDocument".
            params (dict | None): The parameters to send with the command.
            session_id (str | None): Flattened sessionId for page-level commands.
        Returns:
            int: The sequence ID of the command.
        """
        cmd_id = self._next_command_id()
        await self._send_message(cmd_id, method, params, session_id)
        return cmd_id

    async def send_and_wait(
        self,
        method: str,
        params: dict | None = None,
        session_id: str | None = None,
        timeout: float | None = None,
    ) -> dict | None:
        """
        Send CDP command and wait for response asynchronously.
        Args:
            method: The CDP method to send.
            params: The parameters to send with the command.
            session_id: Flattened sessionId for page-level commands.
            timeout: Timeout in seconds (defaults to command_timeout).
        Returns:
            The result from the CDP command.
        Raises:
            CDPProtocolError: If the browser answered with an error.
            TimeoutError: If no answer arrived in time.
        """
        if not self.ws:
            raise BrowserConnectionError("WebSocket not connected")
        timeout = self.command_timeout if timeout is None else timeout

        # register the future before sending so a fast reply cannot be missed
        cmd_id = self._next_command_id()
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self.pending_responses[cmd_id] = (method, future)
        try:
            await self._send_message(cmd_id, method, params, session_id)
            return await asyncio.wait_for(fut=future, timeout=timeout)
        except asyncio.TimeoutError:
            raise TimeoutError(f"CDP command {method} timed out after {timeout} seconds")
        finally:
            self.pending_responses.pop(cmd_id, None)

    def add_listener(self, session_id: str | None, event: str, handler: EventHandler) -> None:
        self._listeners[(session_id, event)].append(handler)

    def remove_listener(self, session_id: str | None, event: str, handler: EventHandler) -> None:
        handlers = self._listeners.get((session_id, event))
        if handlers and handler in handlers:
            handlers.remove(handler)

    def forget_session(self, session_id: str) -> None:
        """Drop a session and every listener registered on it."""
        self._sessions.pop(session_id, None)
        for key in [key for key in self._listeners if key[0] == session_id]:
            del self._listeners[key]

    async def get_page_targets(self) -> list[PageTarget]:
        """
        List the page targets of the browser.
        Returns:
            PageTarget for every target of type "page".
        """
        result = await self.send_and_wait(method="Target.getTargets") or {}
        return [
            PageTarget(
                target_id=info["targetId"],
                url=info.get("url", ""),
                title=info.get("title", ""),
                type=info.get("type", "page"),
            )
            for info in result.get("targetInfos", [])
            if info.get("type") == "page"
        ]

    async def attach(self, page: PageTarget) -> AsyncCDPSession:
        """
        Attach a new flattened session to a page.
        Args:
            page: The page target to attach to.
        Returns:
            The new AsyncCDPSession.
        Raises:
            BrowserConnectionError: If the browser did not return a sessionId.
        """
        result = await self.send_and_wait(
            method="Target.attachToTarget",
            params={"targetId": page.target_id, "flatten": True},
        ) or {}
        session_id = result.get("sessionId")
        if not session_id:
            raise BrowserConnectionError(f"No sessionId in Target.attachToTarget response for {page.target_id}")

        session = AsyncCDPSession(connection=self, session_id=session_id, target_id=page.target_id)
        self._sessions[session_id] = session
        logger.info("🎯 Attached session %s to page %s", session_id, page.target_id)
        return session
