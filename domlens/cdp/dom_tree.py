"""
domlens/cdp/dom_tree.py

Depth-bounded DOM tree walker.

Child nodes are delivered asynchronously (DOM.setChildNodes) after DOM.requestChildNodes.
The walker waits for that event, bounded by a short settling delay; when the event does
not arrive in time (e.g. every child was already known to the session) it simply reads
whatever the session knows after the delay.
"""

from __future__ import annotations

import asyncio
from typing import Any

from domlens.cdp.abstract_cdp_session import AbstractCDPSession
from domlens.config import Config
from domlens.data_models.inspection import TreeNode
from domlens.utils.cdp_utils import attributes_to_dict
from domlens.utils.logger import get_logger

logger = get_logger(name=__name__)


TEXT_NODE = 3
COMMENT_NODE = 8

MIN_TREE_DEPTH = 1
MAX_TREE_DEPTH = 20


class DOMTreeWalker:
    """
    Builds TreeNode summaries (tag, id, class, children) below a root node.
    There is no node-count cap: output size is bounded by depth only.
    """

    def __init__(self, settle_delay: float = Config.CHILD_NODES_SETTLE_DELAY) -> None:
        """
        Initialize DOMTreeWalker.
        Args:
            settle_delay: Maximum time in seconds to wait for DOM.setChildNodes.
        """
        self.settle_delay = settle_delay


    # Private methods ______________________________________________________________________________________________________

    async def _request_child_nodes(self, session: AbstractCDPSession, node_id: int, depth: int) -> bool:
        """
        Ask the browser to push descendants of `node_id` and wait for delivery.
        Returns:
            True if the DOM.setChildNodes event for `node_id` arrived within the settling delay.
        """
        delivered = asyncio.Event()

        def on_set_child_nodes(params: dict) -> None:
            if params.get("parentId") == node_id:
                delivered.set()

        session.on("DOM.setChildNodes", on_set_child_nodes)
        try:
            await session.send("DOM.requestChildNodes", {"nodeId": node_id, "depth": depth, "pierce": True})
            try:
                await asyncio.wait_for(delivered.wait(), timeout=self.settle_delay)
                return True
            except asyncio.TimeoutError:
                logger.debug("⏱️ No DOM.setChildNodes for node %s within %.3fs", node_id, self.settle_delay)
                return False
        finally:
            session.off("DOM.setChildNodes", on_set_child_nodes)

    def _format_node(self, node: dict[str, Any] | None, current_depth: int, max_depth: int) -> TreeNode | None:
        if not node or current_depth > max_depth:
            return None
        if node.get("nodeType") in (TEXT_NODE, COMMENT_NODE):
            return None

        attrs = attributes_to_dict(node.get("attributes"))
        tree_node = TreeNode(
            tag=node.get("nodeName", "").lower(),
            id=attrs.get("id") or None,
            class_name=attrs.get("class") or None,
        )

        if node.get("children") and current_depth < max_depth:
            children = [
                child
                for child in (self._format_node(c, current_depth + 1, max_depth) for c in node["children"])
                if child is not None
            ]
            if children:
                tree_node.children = children

        return tree_node


    # Public methods _______________________________________________________________________________________________________

    async def build_tree(self, session: AbstractCDPSession, root_node_id: int, max_depth: int) -> TreeNode | None:
        """
        Build the formatted tree rooted at `root_node_id`.
        Args:
            session: Session that minted `root_node_id`.
            root_node_id: Node id of the root.
            max_depth: Number of levels below the root to include (1-20).
        Returns:
            The formatted tree, or None if the root itself is a text or comment node.
        Raises:
            ValueError: If max_depth is outside 1-20.
        """
        if not MIN_TREE_DEPTH <= max_depth <= MAX_TREE_DEPTH:
            raise ValueError(f"max_depth must be between {MIN_TREE_DEPTH} and {MAX_TREE_DEPTH}, got {max_depth}")

        await self._request_child_nodes(session, root_node_id, max_depth)

        result = await session.send("DOM.describeNode", {"nodeId": root_node_id, "depth": max_depth, "pierce": True})
        return self._format_node(result.get("node"), current_depth=0, max_depth=max_depth)
