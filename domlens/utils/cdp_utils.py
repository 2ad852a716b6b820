"""
domlens/utils/cdp_utils.py

Pure helpers for shaping raw CDP payloads.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from domlens.data_models.inspection import BoxModel, Rect


def format_quad(quad: Sequence[float]) -> Rect:
    """
    Convert a box-model quad into an axis-aligned bounding rectangle.
    Args:
        quad: 8 numbers, x1,y1, x2,y2, x3,y3, x4,y4 (corners in any order).
    Returns:
        The bounding Rect.
    """
    if len(quad) != 8:
        raise ValueError(f"Quad must contain 8 numbers, got {len(quad)}")
    xs = quad[0::2]
    ys = quad[1::2]
    x = min(xs)
    y = min(ys)
    return Rect(x=x, y=y, width=max(xs) - x, height=max(ys) - y)


def format_box_model(model: Mapping[str, Any]) -> BoxModel:
    """Build a BoxModel from the `model` object returned by DOM.getBoxModel."""
    return BoxModel(
        content=format_quad(model["content"]),
        padding=format_quad(model["padding"]),
        border=format_quad(model["border"]),
        margin=format_quad(model["margin"]),
        width=model["width"],
        height=model["height"],
    )


def css_properties_to_object(
    properties: Iterable[Mapping[str, Any]],
    filter_props: Sequence[str] | None = None,
) -> dict[str, str]:
    """
    Project a CSS property list into a name -> value mapping.
    Disabled and empty-valued properties are always skipped.
    Args:
        properties: CSSProperty dicts with 'name', 'value' and optional 'disabled'.
        filter_props: Optional allow-list of property names.
    Returns:
        Mapping of property name to value (later duplicates win).
    """
    allowed = set(filter_props) if filter_props is not None else None
    result: dict[str, str] = {}
    for prop in properties:
        if prop.get("disabled"):
            continue
        value = prop.get("value")
        if not value:
            continue
        name = prop.get("name")
        if allowed is not None and name not in allowed:
            continue
        result[name] = value
    return result


def attributes_to_dict(attributes: Sequence[str] | None) -> dict[str, str]:
    """Convert CDP's flat [name1, value1, name2, value2, ...] attribute list to a dict."""
    if not attributes:
        return {}
    return {
        attributes[i]: attributes[i + 1]
        for i in range(0, len(attributes) - 1, 2)
    }


def selector_list_text(rule: Mapping[str, Any]) -> str | None:
    """Join the selector texts of a CSSRule, e.g. '.a, .b'."""
    selectors = (rule.get("selectorList") or {}).get("selectors")
    if not selectors:
        return None
    return ", ".join(s.get("text", "") for s in selectors)


def computed_style_map(
    computed_style: Iterable[Mapping[str, Any]],
    filter_props: Sequence[str] | None = None,
) -> dict[str, str]:
    """
    Map a CSS.getComputedStyleForNode result into name -> value, optionally filtered.
    Unlike css_properties_to_object, empty values are kept.
    """
    allowed = set(filter_props) if filter_props is not None else None
    return {
        prop["name"]: prop.get("value", "")
        for prop in computed_style
        if allowed is None or prop["name"] in allowed
    }
