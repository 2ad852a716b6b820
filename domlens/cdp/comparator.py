"""
domlens/cdp/comparator.py

Symmetric computed-style diff between two nodes.
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from domlens.cdp.abstract_cdp_session import AbstractCDPSession
from domlens.data_models.inspection import PropertyDifference, StyleComparison
from domlens.utils.cdp_utils import computed_style_map


DEFAULT_PROPERTIES: tuple[str, ...] = (
    "display",
    "position",
    "width",
    "height",
    "margin",
    "padding",
    "border",
    "color",
    "background-color",
    "font-family",
    "font-size",
    "font-weight",
    "line-height",
    "text-align",
    "flex-direction",
    "justify-content",
    "align-items",
    "gap",
    "border-radius",
    "box-shadow",
    "opacity",
)


class StyleComparator:
    """
    Compares the computed styles of two nodes of the same session.
    """

    async def compare(
        self,
        session: AbstractCDPSession,
        node_id_1: int,
        node_id_2: int,
        properties: Sequence[str] | None = None,
    ) -> StyleComparison:
        """
        Diff computed styles property by property.

        A property whose values differ (absent counts as "") goes to `differences`; equal
        non-empty values go to `same`. A property that is empty on both sides is reported
        in neither list.

        Args:
            session: Session that minted both node ids (CSS must be enabled).
            node_id_1: First node.
            node_id_2: Second node.
            properties: Properties to compare (defaults to DEFAULT_PROPERTIES).
        Returns:
            StyleComparison with differences and same, both in comparison order.
        """
        props = list(dict.fromkeys(properties if properties is not None else DEFAULT_PROPERTIES))

        # no ordering dependency between the two fetches
        styles_1, styles_2 = await asyncio.gather(
            session.send("CSS.getComputedStyleForNode", {"nodeId": node_id_1}),
            session.send("CSS.getComputedStyleForNode", {"nodeId": node_id_2}),
        )
        style_map_1 = computed_style_map(styles_1.get("computedStyle", []), props)
        style_map_2 = computed_style_map(styles_2.get("computedStyle", []), props)

        comparison = StyleComparison()
        for prop in props:
            value_1 = style_map_1.get(prop) or ""
            value_2 = style_map_2.get(prop) or ""
            if value_1 != value_2:
                comparison.differences[prop] = PropertyDifference(element1=value_1, element2=value_2)
            elif value_1:
                comparison.same.append(prop)
        return comparison
