"""
domlens/cdp/node_resolver.py

Maps agent-visible UIDs to session-scoped DOM node ids.
"""

from __future__ import annotations

from typing import Callable

from domlens.cdp.abstract_cdp_session import AbstractCDPSession
from domlens.cdp.session_manager import DomainSessionManager
from domlens.data_models.inspection import NodeHandle
from domlens.data_models.page import AXNodeRef
from domlens.utils.exceptions import ResolutionError, UnknownUidError
from domlens.utils.logger import get_logger

logger = get_logger(name=__name__)


AXNodeLookup = Callable[[str], AXNodeRef | None]


class NodeResolver:
    """
    Resolves UIDs in two steps:
    1. UID -> backend node id, through the accessibility snapshot lookup (no CDP traffic)
    2. backend node id -> node id, through DOM.pushNodesByBackendIdsToFrontend on one session

    Resolution is never retried: a failure means the node is gone or the snapshot is stale.
    """

    def __init__(self, get_ax_node_by_uid: AXNodeLookup, session_manager: DomainSessionManager) -> None:
        """
        Initialize NodeResolver.
        Args:
            get_ax_node_by_uid: Lookup into the latest accessibility snapshot.
            session_manager: Manager used to prepare the DOM domain of a session.
        """
        self.get_ax_node_by_uid = get_ax_node_by_uid
        self.session_manager = session_manager

    def backend_node_id_for(self, uid: str) -> int:
        """
        Look a UID up in the snapshot table.
        Args:
            uid: Opaque UID from the accessibility snapshot.
        Returns:
            The backend node id of the element.
        Raises:
            UnknownUidError: If the UID is unknown or has no backend node id.
        """
        ax_node = self.get_ax_node_by_uid(uid)
        if ax_node is None or ax_node.backend_node_id is None:
            raise UnknownUidError(uid)
        return ax_node.backend_node_id

    async def resolve(self, session: AbstractCDPSession, backend_node_id: int) -> int:
        """
        Push one backend node to the frontend of a session.
        The DOM domain must be enabled and the document requested (see ensure_document).
        Args:
            session: The session that will own the node id.
            backend_node_id: The backend node id to resolve.
        Returns:
            A positive node id valid for `session` only.
        Raises:
            ResolutionError: If the browser returned no node id, or 0.
        """
        result = await session.send(
            "DOM.pushNodesByBackendIdsToFrontend",
            {"backendNodeIds": [backend_node_id]},
        )
        node_ids = result.get("nodeIds") or []
        if not node_ids or not node_ids[0]:
            logger.debug("❓ backendNodeId %s did not resolve on session %s", backend_node_id, session.session_id)
            raise ResolutionError(backend_node_id)
        return node_ids[0]

    async def resolve_uid(self, session: AbstractCDPSession, uid: str) -> NodeHandle:
        """
        Resolve a UID to a node handle on a session.
        The UID lookup happens before any CDP traffic, so unknown UIDs cost nothing.
        Args:
            session: The page-bound session.
            uid: Opaque UID from the accessibility snapshot.
        Returns:
            NodeHandle recording the minting session and document epoch.
        """
        backend_node_id = self.backend_node_id_for(uid)
        await self.session_manager.ensure_document(session)
        node_id = await self.resolve(session, backend_node_id)
        return NodeHandle(
            uid=uid,
            backend_node_id=backend_node_id,
            node_id=node_id,
            session_id=session.session_id,
            document_epoch=self.session_manager.document_epoch(session),
        )

    def node_id_for(self, session: AbstractCDPSession, handle: NodeHandle) -> int:
        """
        Return the node id of a handle after checking it is still valid for `session`.
        Raises:
            ResolutionError: If the handle was minted by another session or an older document.
        """
        if handle.session_id != session.session_id:
            raise ResolutionError(
                handle.backend_node_id,
                reason=f"Node id was minted by session {handle.session_id}, not {session.session_id}",
            )
        if handle.document_epoch != self.session_manager.document_epoch(session):
            raise ResolutionError(
                handle.backend_node_id,
                reason="Node id is stale: the document was replaced since it was resolved",
            )
        return handle.node_id
