"""
domlens/cdp/snapshot_capturer.py

Bounded, annotated whole-document snapshots using DOMSnapshot.captureSnapshot.
"""

from __future__ import annotations

from typing import Any, Sequence

from domlens.cdp.abstract_cdp_session import AbstractCDPSession
from domlens.cdp.session_manager import DomainSessionManager
from domlens.config import Config
from domlens.data_models.inspection import DOMSnapshotSummary, Rect, SnapshotDocument, SnapshotNode
from domlens.utils.logger import get_logger

logger = get_logger(name=__name__)


# computed style properties to capture when the caller does not ask for specific ones
DEFAULT_COMPUTED_STYLES: tuple[str, ...] = (
    "display",
    "visibility",
    "opacity",
    "color",
    "background-color",
    "font-family",
    "font-size",
    "font-weight",
    "width",
    "height",
    "position",
    "top",
    "right",
    "bottom",
    "left",
    "margin-top",
    "margin-right",
    "margin-bottom",
    "margin-left",
    "padding-top",
    "padding-right",
    "padding-bottom",
    "padding-left",
    "border-width",
    "flex-direction",
    "justify-content",
    "align-items",
)

SKIPPED_NODE_NAMES = frozenset({"#text", "#comment"})


class DOMSnapshotCapturer:
    """
    Captures a DOM snapshot and emits at most `max_nodes_per_document` element nodes per
    document. Whenever elements are dropped the document is marked `truncated` and the
    summary carries a `note`, so partial data is never returned silently.
    """

    # Magic methods ________________________________________________________________________________________________________

    def __init__(
        self,
        session_manager: DomainSessionManager,
        max_nodes_per_document: int = Config.SNAPSHOT_MAX_NODES_PER_DOCUMENT,
    ) -> None:
        self.session_manager = session_manager
        self.max_nodes_per_document = max_nodes_per_document


    # Static methods _______________________________________________________________________________________________________

    @staticmethod
    def _string_at(strings: Sequence[str], index: int | None) -> str:
        """Look up the shared string table; -1 and out-of-range indices mean absent."""
        if index is None or index < 0 or index >= len(strings):
            return ""
        return strings[index]


    # Private methods ______________________________________________________________________________________________________

    def _format_document(
        self,
        document_index: int,
        document: dict[str, Any],
        strings: Sequence[str],
        computed_styles: Sequence[str],
    ) -> SnapshotDocument | None:
        nodes = document.get("nodes") or {}
        node_names = nodes.get("nodeName")
        if not node_names:
            return None
        node_attributes = nodes.get("attributes") or []

        # layout arrays are indexed by layout object, not by node
        layout = document.get("layout") or {}
        layout_by_node: dict[int, int] = {
            node_index: layout_index
            for layout_index, node_index in enumerate(layout.get("nodeIndex") or [])
        }
        bounds = layout.get("bounds") or []
        styles = layout.get("styles") or []

        emitted: list[SnapshotNode] = []
        truncated = False
        for i, name_index in enumerate(node_names):
            name = self._string_at(strings, name_index).lower()
            if not name or name in SKIPPED_NODE_NAMES:
                continue
            if len(emitted) >= self.max_nodes_per_document:
                truncated = True
                break

            attrs: dict[str, str] = {}
            pairs = node_attributes[i] if i < len(node_attributes) else []
            for j in range(0, len(pairs) - 1, 2):
                key = self._string_at(strings, pairs[j])
                value = self._string_at(strings, pairs[j + 1])
                if key and value:
                    attrs[key] = value

            node = SnapshotNode(index=i, name=name, attributes=attrs)

            layout_index = layout_by_node.get(i)
            if layout_index is not None:
                if layout_index < len(bounds) and len(bounds[layout_index]) >= 4:
                    x, y, width, height = bounds[layout_index][:4]
                    node.bounds = Rect(x=x, y=y, width=width, height=height)
                if layout_index < len(styles):
                    node_styles = {
                        prop: self._string_at(strings, value_index)
                        for prop, value_index in zip(computed_styles, styles[layout_index])
                    }
                    node.styles = {prop: value for prop, value in node_styles.items() if value} or None

            emitted.append(node)

        return SnapshotDocument(
            document_index=document_index,
            url=self._string_at(strings, document.get("documentURL")),
            node_count=len(node_names),
            truncated=truncated,
            nodes=emitted,
        )


    # Public methods _______________________________________________________________________________________________________

    async def capture(
        self,
        session: AbstractCDPSession,
        computed_styles: Sequence[str] | None = None,
    ) -> DOMSnapshotSummary:
        """
        Capture and summarize the documents (main frame and iframes) of a page.
        Args:
            session: The page-bound session.
            computed_styles: CSS properties to capture (defaults to DEFAULT_COMPUTED_STYLES).
        Returns:
            DOMSnapshotSummary with one entry per document that has nodes.
        """
        styles = list(computed_styles) if computed_styles else list(DEFAULT_COMPUTED_STYLES)

        await self.session_manager.ensure_enabled(session, "DOMSnapshot")

        logger.info("📸 Capturing DOM snapshot on session %s", session.session_id)
        snapshot = await session.send(
            "DOMSnapshot.captureSnapshot",
            {
                "computedStyles": styles,
                "includeDOMRects": True,
                "includeBlendedBackgroundColors": True,
            },
        )

        strings = snapshot.get("strings", [])
        documents: list[SnapshotDocument] = []
        for document_index, document in enumerate(snapshot.get("documents", [])):
            formatted = self._format_document(document_index, document, strings, styles)
            if formatted is not None:
                documents.append(formatted)

        summary = DOMSnapshotSummary(document_count=len(documents), documents=documents)
        if any(document.truncated for document in documents):
            summary.note = f"Output limited to first {self.max_nodes_per_document} elements per document"

        logger.info(
            "✅ DOM snapshot captured: %d documents, %d strings",
            len(documents),
            len(strings),
        )
        return summary
