"""
domlens/cdp/session_manager.py

Per-page CDP session registry with idempotent domain enabling.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable

from domlens.cdp.abstract_cdp_session import AbstractCDPSession, EventHandler
from domlens.data_models.page import PageTarget
from domlens.utils.exceptions import BrowserConnectionError
from domlens.utils.logger import get_logger

logger = get_logger(name=__name__)


SessionFactory = Callable[[PageTarget], Awaitable[AbstractCDPSession]]
CloseListener = Callable[[AbstractCDPSession], None]


class DomainSessionManager:
    """
    Owns one long-lived CDP session per page and the set of domains enabled on each session.

    - Sessions are registered per target id and created lazily; concurrent first callers share
      one creation.
    - A domain's `enable` command is issued at most once per session; concurrent callers share
      the in-flight enable, and a failed enable is forgotten so it can be retried.
    - Bookkeeping is never shared between sessions and is dropped synchronously when a page
      closes (on_page_closed) or when a scoped session exits.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, session_factory: SessionFactory) -> None:
        """
        Initialize DomainSessionManager.
        Args:
            session_factory: Async callable creating a new session for a page
                (e.g. AsyncCDPConnection.attach).
        """
        self._session_factory = session_factory

        self._sessions: dict[str, AbstractCDPSession] = {}  # target_id -> page-bound session
        self._pending_sessions: dict[str, asyncio.Task] = {}  # target_id -> creation task

        # per-session bookkeeping, keyed by session_id
        self._enabled_domains: dict[str, dict[str, asyncio.Task]] = {}  # session_id -> {domain -> enable task}
        self._document_epochs: dict[str, int] = {}  # session_id -> bumped on DOM.documentUpdated
        self._document_tasks: dict[str, tuple[int, asyncio.Task]] = {}  # session_id -> (epoch, getDocument task)
        self._epoch_handlers: dict[str, EventHandler] = {}  # session_id -> documentUpdated handler

        self._close_listeners: list[CloseListener] = []


    # Private methods ______________________________________________________________________________________________________

    def _track(self, session: AbstractCDPSession) -> None:
        """Start bookkeeping for a new session."""
        session_id = session.session_id
        self._enabled_domains[session_id] = {}
        self._document_epochs[session_id] = 0

        def on_document_updated(_params: dict) -> None:
            # every node id minted before this point is stale
            self._document_epochs[session_id] = self._document_epochs.get(session_id, 0) + 1
            logger.debug("📄 Document updated on session %s (epoch %d)", session_id, self._document_epochs[session_id])

        self._epoch_handlers[session_id] = on_document_updated
        session.on("DOM.documentUpdated", on_document_updated)

    def _untrack(self, session: AbstractCDPSession) -> None:
        """Drop every piece of bookkeeping held for a session."""
        session_id = session.session_id
        handler = self._epoch_handlers.pop(session_id, None)
        if handler is not None:
            session.off("DOM.documentUpdated", handler)
        self._enabled_domains.pop(session_id, None)
        self._document_epochs.pop(session_id, None)
        self._document_tasks.pop(session_id, None)

    async def _create_session(self, page: PageTarget) -> AbstractCDPSession:
        session = await self._session_factory(page)
        self._track(session)
        self._sessions[page.target_id] = session
        logger.info("🔧 Created session %s for page %s", session.session_id, page.target_id)
        return session

    async def _enable(self, session: AbstractCDPSession, domain: str) -> None:
        await session.send(f"{domain}.enable")
        logger.debug("✅ Domain %s enabled on session %s", domain, session.session_id)

    async def _request_document(self, session: AbstractCDPSession) -> int:
        result = await session.send("DOM.getDocument", {"depth": 0})
        return result["root"]["nodeId"]


    # Public methods _______________________________________________________________________________________________________

    async def get_session(self, page: PageTarget) -> AbstractCDPSession:
        """
        Return the session bound to a page, creating it on first use.
        Args:
            page: The page to get a session for.
        Returns:
            The page-bound session shared by every tool call against this page.
        """
        target_id = page.target_id
        session = self._sessions.get(target_id)
        if session is not None:
            if not session.detached:
                return session
            # detached behind our back (target crashed, devtools took over, ...)
            logger.info("⚠️ Session %s for page %s is detached, recreating", session.session_id, target_id)
            self._sessions.pop(target_id, None)
            self._untrack(session)

        task = self._pending_sessions.get(target_id)
        if task is None:
            task = asyncio.create_task(self._create_session(page))
            self._pending_sessions[target_id] = task

            def clear_pending(done: asyncio.Task) -> None:
                if self._pending_sessions.get(target_id) is done:
                    del self._pending_sessions[target_id]

            task.add_done_callback(clear_pending)

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or current.cancelling() == 0):
                raise BrowserConnectionError(f"Page {target_id} closed while its session was being created") from None
            raise

    def get_cached_session(self, target_id: str) -> AbstractCDPSession | None:
        """Return the registered session of a page without creating one."""
        return self._sessions.get(target_id)

    async def ensure_enabled(self, session: AbstractCDPSession, domain: str) -> None:
        """
        Enable a CDP domain on a session idempotently.
        Args:
            session: The session to enable the domain on.
            domain: The CDP domain name (e.g., "DOM", "CSS", "Overlay").
        Raises:
            Whatever the enable command raised; the failed attempt is not recorded.
        """
        domains = self._enabled_domains.setdefault(session.session_id, {})
        task = domains.get(domain)
        if task is None:
            task = asyncio.create_task(self._enable(session, domain))
            domains[domain] = task
        else:
            logger.debug("⏭️ Domain %s already enabled (or enabling) on session %s", domain, session.session_id)

        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if domains.get(domain) is task:
                del domains[domain]
            logger.warning("⚠️ Failed to enable domain %s: %s", domain, e)
            raise

    def is_enabled(self, session: AbstractCDPSession, domain: str) -> bool:
        """Whether `domain` was successfully enabled on `session` by this manager."""
        task = self._enabled_domains.get(session.session_id, {}).get(domain)
        return task is not None and task.done() and not task.cancelled() and task.exception() is None

    def document_epoch(self, session: AbstractCDPSession) -> int:
        """Current document generation of a session (node ids from older epochs are stale)."""
        return self._document_epochs.get(session.session_id, 0)

    async def ensure_document(self, session: AbstractCDPSession) -> int:
        """
        Enable DOM and request the document once per document epoch.
        DOM.pushNodesByBackendIdsToFrontend only works after the document was requested.
        Args:
            session: The session to prepare.
        Returns:
            The node id of the document root.
        """
        await self.ensure_enabled(session, "DOM")

        session_id = session.session_id
        epoch = self.document_epoch(session)
        entry = self._document_tasks.get(session_id)
        if entry is None or entry[0] != epoch:
            entry = (epoch, asyncio.create_task(self._request_document(session)))
            self._document_tasks[session_id] = entry

        try:
            return await asyncio.shield(entry[1])
        except asyncio.CancelledError:
            raise
        except Exception:
            if self._document_tasks.get(session_id) is entry:
                del self._document_tasks[session_id]
            raise

    def add_close_listener(self, listener: CloseListener) -> None:
        """Register a callback invoked with the session of every page that closes."""
        self._close_listeners.append(listener)

    def on_page_closed(self, page: PageTarget | str) -> None:
        """
        Forget everything held for a closed page.
        Args:
            page: The closed page, or its target id.
        """
        target_id = page if isinstance(page, str) else page.target_id

        pending = self._pending_sessions.pop(target_id, None)
        if pending is not None:
            pending.cancel()

        session = self._sessions.pop(target_id, None)
        if session is None:
            return
        self._untrack(session)
        session.release()
        logger.info("🛑 Page %s closed, dropped session %s", target_id, session.session_id)

        for listener in self._close_listeners:
            listener(session)

    @asynccontextmanager
    async def scoped_session(self, page: PageTarget) -> AsyncIterator[AbstractCDPSession]:
        """
        Create an isolated, short-lived session that is detached on every exit path.
        Usage:
            async with manager.scoped_session(page) as session:
                await session.send("Storage.getCookies")
        """
        session = await self._session_factory(page)
        self._track(session)
        logger.debug("🔧 Created scoped session %s for page %s", session.session_id, page.target_id)
        try:
            yield session
        finally:
            self._untrack(session)
            await session.detach()
            logger.debug("🔌 Released scoped session %s", session.session_id)
