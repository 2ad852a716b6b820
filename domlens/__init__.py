"""
domlens - DevTools-style element inspection for AI agents.

Usage:
    from domlens import AsyncCDPConnection, InspectionTools, ToolContext

    async with AsyncCDPConnection.from_remote_debugging_address("http://127.0.0.1:9222") as connection:
        page = (await connection.get_page_targets())[0]
        context = ToolContext(
            session_factory=connection.attach,
            get_selected_page=lambda: page,
            get_ax_node_by_uid=snapshot_lookup,
        )
        tools = InspectionTools(context)
        print(await tools.query_selector("h1"))
"""

__version__ = "0.1.0"

from .cdp.async_cdp_connection import AsyncCDPConnection, AsyncCDPSession
from .cdp.session_manager import DomainSessionManager
from .data_models.page import AXNodeRef, PageTarget
from .tools.inspection_tools import InspectionTools
from .tools.storage_tools import StorageTools
from .tools.tool_context import ToolContext
from .utils.exceptions import (
    BrowserConnectionError,
    CDPProtocolError,
    ConfirmationRequiredError,
    InspectionError,
    InspectionErrorKind,
    NoPageSelectedError,
    OptionalDataUnavailableError,
    ResolutionError,
    UnknownUidError,
)

__all__ = [
    "AXNodeRef",
    "AsyncCDPConnection",
    "AsyncCDPSession",
    "BrowserConnectionError",
    "CDPProtocolError",
    "ConfirmationRequiredError",
    "DomainSessionManager",
    "InspectionError",
    "InspectionErrorKind",
    "InspectionTools",
    "NoPageSelectedError",
    "OptionalDataUnavailableError",
    "PageTarget",
    "ResolutionError",
    "StorageTools",
    "ToolContext",
    "UnknownUidError",
]
