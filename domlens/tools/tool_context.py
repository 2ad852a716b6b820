"""
domlens/tools/tool_context.py

Everything a tool call needs: the selected page, the UID table and the inspection components.
"""

from __future__ import annotations

from typing import Callable

from domlens.cdp.comparator import StyleComparator
from domlens.cdp.dom_tree import DOMTreeWalker
from domlens.cdp.node_resolver import AXNodeLookup, NodeResolver
from domlens.cdp.overlay import HighlightController
from domlens.cdp.session_manager import DomainSessionManager, SessionFactory
from domlens.cdp.snapshot_capturer import DOMSnapshotCapturer
from domlens.config import Config
from domlens.data_models.page import PageTarget


PageProvider = Callable[[], PageTarget]


class ToolContext:
    """
    Wires the inspection components around one session factory.
    The page provider and UID lookup belong to the embedding application.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        get_selected_page: PageProvider,
        get_ax_node_by_uid: AXNodeLookup,
        settle_delay: float = Config.CHILD_NODES_SETTLE_DELAY,
        max_snapshot_nodes: int = Config.SNAPSHOT_MAX_NODES_PER_DOCUMENT,
    ) -> None:
        """
        Initialize ToolContext.
        Args:
            session_factory: Async callable attaching a new session to a page.
            get_selected_page: Returns the active page (may raise NoPageSelectedError).
            get_ax_node_by_uid: Lookup into the latest accessibility snapshot.
            settle_delay: Maximum wait for DOM.setChildNodes in the tree walker.
            max_snapshot_nodes: Element cap per document for DOM snapshots.
        """
        self.get_selected_page = get_selected_page
        self.get_ax_node_by_uid = get_ax_node_by_uid

        self.session_manager = DomainSessionManager(session_factory=session_factory)
        self.resolver = NodeResolver(
            get_ax_node_by_uid=get_ax_node_by_uid,
            session_manager=self.session_manager,
        )
        self.tree_walker = DOMTreeWalker(settle_delay=settle_delay)
        self.comparator = StyleComparator()
        self.snapshot_capturer = DOMSnapshotCapturer(
            session_manager=self.session_manager,
            max_nodes_per_document=max_snapshot_nodes,
        )
        self.highlighter = HighlightController(session_manager=self.session_manager)

    def on_page_closed(self, page: PageTarget | str) -> None:
        """Forward a page-closed notification from the page lifecycle owner."""
        self.session_manager.on_page_closed(page)
