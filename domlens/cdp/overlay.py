"""
domlens/cdp/overlay.py

Element highlighting and layout overlays with cancelable auto-hide.
"""

from __future__ import annotations

import asyncio
from typing import Any

from domlens.cdp.abstract_cdp_session import AbstractCDPSession
from domlens.cdp.session_manager import DomainSessionManager
from domlens.utils.exceptions import BrowserConnectionError, CDPProtocolError
from domlens.utils.logger import get_logger

logger = get_logger(name=__name__)


# content (blue), padding (green), border (yellow), margin (orange)
DEFAULT_HIGHLIGHT_CONFIG: dict[str, Any] = {
    "contentColor": {"r": 111, "g": 168, "b": 220, "a": 0.66},
    "paddingColor": {"r": 147, "g": 196, "b": 125, "a": 0.55},
    "borderColor": {"r": 255, "g": 229, "b": 153, "a": 0.66},
    "marginColor": {"r": 246, "g": 178, "b": 107, "a": 0.66},
    "showInfo": True,
    "showStyles": True,
    "showRulers": False,
    "showAccessibilityInfo": True,
}

GRID_HIGHLIGHT_CONFIG: dict[str, Any] = {
    "showGridExtensionLines": True,
    "showPositiveLineNumbers": True,
    "showNegativeLineNumbers": False,
    "showAreaNames": True,
    "showLineNames": True,
    "gridBorderColor": {"r": 255, "g": 0, "b": 255, "a": 0.8},
    "cellBorderColor": {"r": 128, "g": 128, "b": 128, "a": 0.4},
    "rowLineColor": {"r": 127, "g": 32, "b": 210, "a": 0.8},
    "columnLineColor": {"r": 127, "g": 32, "b": 210, "a": 0.8},
    "gridBackgroundColor": {"r": 255, "g": 0, "b": 255, "a": 0.1},
    "rowGapColor": {"r": 0, "g": 255, "b": 0, "a": 0.2},
    "columnGapColor": {"r": 0, "g": 0, "b": 255, "a": 0.2},
}

FLEX_CONTAINER_HIGHLIGHT_CONFIG: dict[str, Any] = {
    "containerBorder": {"color": {"r": 255, "g": 165, "b": 0, "a": 0.8}},
    "itemSeparator": {"color": {"r": 255, "g": 165, "b": 0, "a": 0.4}, "pattern": "dotted"},
    "lineSeparator": {"color": {"r": 255, "g": 165, "b": 0, "a": 0.4}, "pattern": "dashed"},
    "mainDistributedSpace": {
        "fillColor": {"r": 255, "g": 165, "b": 0, "a": 0.2},
        "hatchColor": {"r": 255, "g": 165, "b": 0, "a": 0.4},
    },
    "crossDistributedSpace": {
        "fillColor": {"r": 0, "g": 165, "b": 255, "a": 0.2},
        "hatchColor": {"r": 0, "g": 165, "b": 255, "a": 0.4},
    },
}


class HighlightController:
    """
    Shows overlays on a page and schedules their removal.

    Every timed highlight gets its own hide task. A new highlight does not cancel earlier
    timers, so several may be in flight; since hide() tolerates "nothing to hide", an early
    timer firing after a later highlight only removes the overlay early. Pending hides are
    cancelled explicitly through cancel_pending (wired to page close).
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, session_manager: DomainSessionManager) -> None:
        self.session_manager = session_manager
        self._pending_hides: dict[str, set[asyncio.Task]] = {}  # session_id -> scheduled hide tasks
        session_manager.add_close_listener(self.cancel_pending)


    # Private methods ______________________________________________________________________________________________________

    async def _hide_later(self, session: AbstractCDPSession, duration_ms: int) -> None:
        await asyncio.sleep(duration_ms / 1000)
        try:
            await self.hide(session)
        except (BrowserConnectionError, TimeoutError) as e:
            logger.debug("⚠️ Scheduled hide on session %s failed: %s", session.session_id, e)

    def _schedule_hide(self, session: AbstractCDPSession, duration_ms: int) -> asyncio.Task:
        session_id = session.session_id
        task = asyncio.create_task(self._hide_later(session, duration_ms))
        pending = self._pending_hides.setdefault(session_id, set())
        pending.add(task)

        def forget(done: asyncio.Task) -> None:
            tasks = self._pending_hides.get(session_id)
            if tasks is None:
                return
            tasks.discard(done)
            if not tasks:
                del self._pending_hides[session_id]

        task.add_done_callback(forget)
        return task


    # Public methods _______________________________________________________________________________________________________

    async def highlight(
        self,
        session: AbstractCDPSession,
        backend_node_id: int,
        duration_ms: int,
    ) -> asyncio.Task | None:
        """
        Highlight a node with the default overlay style.
        Args:
            session: The page-bound session.
            backend_node_id: Node to highlight.
            duration_ms: Auto-hide delay; 0 keeps the highlight until hide() is called.
        Returns:
            The scheduled hide task, or None when duration_ms is 0.
        """
        await self.session_manager.ensure_enabled(session, "Overlay")
        await session.send(
            "Overlay.highlightNode",
            {
                "highlightConfig": DEFAULT_HIGHLIGHT_CONFIG,
                "backendNodeId": backend_node_id,
            },
        )
        logger.debug("🔦 Highlighted backendNodeId %s for %dms", backend_node_id, duration_ms)
        if duration_ms > 0:
            return self._schedule_hide(session, duration_ms)
        return None

    async def hide(self, session: AbstractCDPSession) -> bool:
        """
        Remove the current highlight.
        Returns:
            True if the browser accepted the hide, False if there was nothing to hide.
        """
        try:
            await session.send("Overlay.hideHighlight")
            return True
        except CDPProtocolError as e:
            logger.debug("No highlight to hide on session %s: %s", session.session_id, e)
            return False

    def cancel_pending(self, session: AbstractCDPSession | str) -> int:
        """
        Cancel every scheduled hide of a session.
        Args:
            session: The session, or its session id.
        Returns:
            The number of cancelled tasks.
        """
        session_id = session if isinstance(session, str) else session.session_id
        tasks = self._pending_hides.pop(session_id, set())
        cancelled = 0
        for task in tasks:
            if not task.done():
                task.cancel()
                cancelled += 1
        if cancelled:
            logger.debug("🛑 Cancelled %d pending hide(s) on session %s", cancelled, session_id)
        return cancelled

    def pending_count(self, session: AbstractCDPSession | str) -> int:
        """Number of hide tasks still scheduled for a session."""
        session_id = session if isinstance(session, str) else session.session_id
        return sum(1 for task in self._pending_hides.get(session_id, ()) if not task.done())

    async def show_grid_overlay(self, session: AbstractCDPSession, node_id: int) -> None:
        """Show the CSS grid overlay of a node."""
        await self.session_manager.ensure_enabled(session, "Overlay")
        await session.send(
            "Overlay.setShowGridOverlays",
            {"gridNodeHighlightConfigs": [{"nodeId": node_id, "gridHighlightConfig": GRID_HIGHLIGHT_CONFIG}]},
        )

    async def show_flex_overlay(self, session: AbstractCDPSession, node_id: int) -> None:
        """Show the flexbox overlay of a node."""
        await self.session_manager.ensure_enabled(session, "Overlay")
        await session.send(
            "Overlay.setShowFlexOverlays",
            {
                "flexNodeHighlightConfigs": [
                    {"nodeId": node_id, "flexContainerHighlightConfig": FLEX_CONTAINER_HIGHLIGHT_CONFIG},
                ],
            },
        )
