"""
domlens/data_models/inspection.py

Data models for inspection results returned to the agent.
Field names are snake_case in Python and camelCase on the wire (by_alias=True).
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class InspectionModel(BaseModel):
    """
    Base model for agent-facing inspection output.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_output(self, exclude_none: bool = False) -> dict[str, Any]:
        """Dump with wire (camelCase) names."""
        return self.model_dump(by_alias=True, exclude_none=exclude_none)


## Geometry

class Rect(InspectionModel):
    """
    Axis-aligned rectangle derived from a quad.
    """
    x: float = Field(..., description="Left edge in CSS pixels")
    y: float = Field(..., description="Top edge in CSS pixels")
    width: float = Field(..., description="Width in CSS pixels")
    height: float = Field(..., description="Height in CSS pixels")


class BoxModel(InspectionModel):
    """
    The four nested rectangles of an element plus its overall size.
    """
    content: Rect
    padding: Rect
    border: Rect
    margin: Rect
    width: float = Field(..., description="Node width as reported by DOM.getBoxModel")
    height: float = Field(..., description="Node height as reported by DOM.getBoxModel")


## Node handles

class NodeHandle(BaseModel):
    """
    A node id together with the session and document epoch that minted it.
    A node id is only meaningful for that exact session and document.
    """
    model_config = ConfigDict(frozen=True)

    uid: str | None = Field(default=None, description="Agent-visible UID the handle was resolved from")
    backend_node_id: int = Field(..., description="Stable per-document node identifier")
    node_id: int = Field(..., gt=0, description="Session-scoped node identifier")
    session_id: str = Field(..., description="Id of the CDP session that minted node_id")
    document_epoch: int = Field(default=0, description="Document generation of the session at resolution time")


## DOM tree

class TreeNode(BaseModel):
    """
    One formatted element of a depth-bounded DOM tree.
    Only `id` and `class` attributes are projected; absent fields are omitted on output.
    """
    model_config = ConfigDict(populate_by_name=True)

    tag: str
    id: str | None = None
    class_name: str | None = Field(default=None, alias="class")
    children: list[TreeNode] | None = None

    def to_output(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def depth(self) -> int:
        """Number of levels below this node (0 for a leaf)."""
        if not self.children:
            return 0
        return 1 + max(child.depth() for child in self.children)


## Element summaries

class ElementSummary(InspectionModel):
    """
    Short description of a DOM element found by a query or search.
    """
    node_id: int
    backend_node_id: int | None = None
    tag_name: str
    id: str | None = None
    class_name: str | None = None


## Style comparison

class PropertyDifference(BaseModel):
    """
    Values of one CSS property on both compared elements ('' when absent).
    """
    element1: str
    element2: str


class StyleComparison(BaseModel):
    """
    Result of comparing computed styles of two nodes.
    """
    differences: dict[str, PropertyDifference] = Field(
        default_factory=dict,
        description="Properties whose values differ, in comparison order",
    )
    same: list[str] = Field(
        default_factory=list,
        description="Properties with equal, non-empty values, in comparison order",
    )

    @property
    def difference_count(self) -> int:
        return len(self.differences)


## DOM snapshot

class SnapshotNode(InspectionModel):
    """
    One element node emitted from a DOMSnapshot document.
    """
    index: int = Field(..., description="Index of the node in the document's node arrays")
    name: str = Field(..., description="Lower-cased node name")
    attributes: dict[str, str] = Field(default_factory=dict)
    bounds: Rect | None = Field(default=None, description="Layout bounds, when the node has a layout object")
    styles: dict[str, str] | None = Field(default=None, description="Requested computed styles with non-empty values")


class SnapshotDocument(InspectionModel):
    """
    Bounded view of one document (main frame or iframe) of a DOM snapshot.
    """
    document_index: int
    url: str = ""
    node_count: int = Field(..., description="Total number of nodes in the document, before capping")
    truncated: bool = Field(default=False, description="Whether element nodes were dropped by the cap")
    nodes: list[SnapshotNode] = Field(default_factory=list)


class DOMSnapshotSummary(InspectionModel):
    """
    Bounded, annotated summary of DOMSnapshot.captureSnapshot.
    """
    document_count: int
    documents: list[SnapshotDocument] = Field(default_factory=list)
    note: str | None = Field(default=None, description="Set whenever any document was truncated")
