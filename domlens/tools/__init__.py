"""
domlens/tools/__init__.py

Agent-facing inspection and storage tools.
"""

from domlens.tools.inspection_tools import InspectionTools
from domlens.tools.storage_tools import StorageTools
from domlens.tools.tool_context import ToolContext

__all__ = [
    "InspectionTools",
    "StorageTools",
    "ToolContext",
]
