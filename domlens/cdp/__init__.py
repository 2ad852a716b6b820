"""
domlens/cdp/__init__.py

CDP transport and inspection core.
"""

from domlens.cdp.abstract_cdp_session import AbstractCDPSession
from domlens.cdp.async_cdp_connection import AsyncCDPConnection, AsyncCDPSession
from domlens.cdp.comparator import StyleComparator
from domlens.cdp.dom_tree import DOMTreeWalker
from domlens.cdp.node_resolver import NodeResolver
from domlens.cdp.overlay import HighlightController
from domlens.cdp.session_manager import DomainSessionManager
from domlens.cdp.snapshot_capturer import DOMSnapshotCapturer

__all__ = [
    "AbstractCDPSession",
    "AsyncCDPConnection",
    "AsyncCDPSession",
    "DOMSnapshotCapturer",
    "DOMTreeWalker",
    "DomainSessionManager",
    "HighlightController",
    "NodeResolver",
    "StyleComparator",
]
