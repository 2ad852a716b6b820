"""
domlens/data_models/page.py

Data models for the browser pages and accessibility lookups consumed from outside the core.
"""

from pydantic import BaseModel, ConfigDict, Field


class PageTarget(BaseModel):
    """
    A browser page (CDP target of type "page").
    Sessions are registered per target_id, never per object identity.
    """
    model_config = ConfigDict(frozen=True)

    target_id: str = Field(
        ...,
        description="CDP targetId of the page",
        examples=["8E2A2D9F3B1C4A5D6E7F8091A2B3C4D5"],
    )
    url: str = Field(default="", description="URL of the page when it was listed")
    title: str = Field(default="", description="Title of the page when it was listed")
    type: str = Field(default="page", description="CDP target type")


class AXNodeRef(BaseModel):
    """
    Entry of the UID lookup table produced by an accessibility snapshot.
    """
    backend_node_id: int | None = Field(
        default=None,
        description="Backend DOM node id behind the accessibility node, if it has one",
    )
