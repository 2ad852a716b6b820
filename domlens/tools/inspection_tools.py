"""
domlens/tools/inspection_tools.py

Agent-facing element inspection tools (Elements / Styles panel equivalents).

Every tool returns one line of JSON. UID lookups happen before any CDP traffic;
lookup and resolution failures fail the call, optional enrichments degrade to null.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import Field, validate_call

from domlens.cdp.abstract_cdp_session import AbstractCDPSession
from domlens.data_models.inspection import ElementSummary, NodeHandle
from domlens.tools.tool_context import ToolContext
from domlens.tools.tool_utils import build_tool_definition, dump_result
from domlens.utils.cdp_utils import (
    attributes_to_dict,
    computed_style_map,
    css_properties_to_object,
    format_box_model,
    selector_list_text,
)
from domlens.utils.exceptions import CDPProtocolError, OptionalDataUnavailableError
from domlens.utils.logger import get_logger

logger = get_logger(name=__name__)


# computed properties returned by get_element_styles when no filter is given
DEFAULT_STYLE_PROPERTIES: tuple[str, ...] = (
    "display",
    "position",
    "width",
    "height",
    "margin",
    "margin-top",
    "margin-right",
    "margin-bottom",
    "margin-left",
    "padding",
    "padding-top",
    "padding-right",
    "padding-bottom",
    "padding-left",
    "border",
    "border-width",
    "border-style",
    "border-color",
    "border-radius",
    "color",
    "background-color",
    "background",
    "font-family",
    "font-size",
    "font-weight",
    "line-height",
    "text-align",
    "flex-direction",
    "justify-content",
    "align-items",
    "gap",
    "grid-template-columns",
    "grid-template-rows",
    "opacity",
    "visibility",
    "overflow",
    "z-index",
    "box-shadow",
    "transform",
    "transition",
)

PseudoState = Literal["active", "focus", "hover", "visited", "focus-within", "focus-visible"]

MAX_HANDLER_PREVIEW_LENGTH = 200
TRUNCATION_MARKER = "\n... (truncated)"


class InspectionTools:
    """
    The inspection tool set, bound to one ToolContext.
    """

    TOOL_NAMES: tuple[str, ...] = (
        "inspect_element",
        "get_element_styles",
        "get_element_box_model",
        "query_selector",
        "highlight_element",
        "hide_highlight",
        "get_dom_tree",
        "capture_dom_snapshot",
        "force_element_state",
        "get_element_event_listeners",
        "get_element_at_position",
        "search_dom",
        "get_fonts_info",
        "show_layout_overlay",
        "get_accessibility_info",
        "compare_elements",
        "get_css_variables",
    )

    # Magic methods ________________________________________________________________________________________________________

    def __init__(self, context: ToolContext) -> None:
        self.context = context


    # Private methods ______________________________________________________________________________________________________

    async def _page_session(self) -> AbstractCDPSession:
        page = self.context.get_selected_page()
        return await self.context.session_manager.get_session(page)

    async def _resolve_uid(self, uid: str, *domains: str) -> tuple[AbstractCDPSession, NodeHandle]:
        """
        Resolve a UID on the selected page's session after enabling `domains`.
        The lookup runs first so unknown UIDs never reach the browser.
        """
        self.context.resolver.backend_node_id_for(uid)
        session = await self._page_session()
        handle = await self.context.resolver.resolve_uid(session, uid)
        for domain in domains:
            await self.context.session_manager.ensure_enabled(session, domain)
        return session, handle

    async def _optional_send(
        self,
        session: AbstractCDPSession,
        field: str,
        method: str,
        params: dict[str, Any],
    ) -> dict[str, Any]:
        """Send an enrichment command; protocol failures become OptionalDataUnavailableError."""
        try:
            return await session.send(method, params)
        except CDPProtocolError as e:
            raise OptionalDataUnavailableError(field, cause=e) from e

    async def _get_attributes(self, session: AbstractCDPSession, node_id: int) -> dict[str, str]:
        try:
            result = await self._optional_send(session, "attributes", "DOM.getAttributes", {"nodeId": node_id})
        except OptionalDataUnavailableError as e:
            logger.debug("⚠️ %s", e.message)
            return {}
        return attributes_to_dict(result.get("attributes"))

    async def _describe_element(self, session: AbstractCDPSession, node_id: int) -> ElementSummary:
        result = await session.send("DOM.describeNode", {"nodeId": node_id, "depth": 0})
        node = result["node"]
        attrs = await self._get_attributes(session, node_id)
        return ElementSummary(
            node_id=node_id,
            backend_node_id=node.get("backendNodeId"),
            tag_name=node.get("nodeName", "").lower(),
            id=attrs.get("id") or None,
            class_name=attrs.get("class") or None,
        )

    async def _describe_elements(self, session: AbstractCDPSession, node_ids: list[int]) -> list[dict[str, Any]]:
        """Describe nodes, skipping the ones the browser can no longer describe."""
        elements = []
        for node_id in node_ids:
            try:
                element = await self._describe_element(session, node_id)
            except CDPProtocolError as e:
                logger.debug("⏭️ Skipping node %s: %s", node_id, e)
                continue
            elements.append(element.to_output())
        return elements

    @staticmethod
    def _format_matched_rules(matched_rules: list[dict[str, Any]], properties: list[str] | None) -> list[dict[str, Any]]:
        rules = []
        for match in matched_rules:
            rule = match.get("rule", {})
            rule_properties = css_properties_to_object(
                (rule.get("style") or {}).get("cssProperties", []),
                properties,
            )
            if not rule_properties:
                continue
            rules.append({
                "selector": selector_list_text(rule),
                "origin": rule.get("origin"),
                "properties": rule_properties,
            })
        return rules

    @staticmethod
    def _format_ax_node(node: dict[str, Any]) -> dict[str, Any]:
        def value_of(entry: dict[str, Any] | None) -> Any:
            return (entry or {}).get("value")

        formatted = {
            "nodeId": node.get("nodeId"),
            "role": value_of(node.get("role")),
            "name": value_of(node.get("name")),
            "description": value_of(node.get("description")),
            "value": value_of(node.get("value")),
            "properties": [
                {"name": p.get("name"), "value": value_of(p.get("value"))}
                for p in node["properties"]
            ] if "properties" in node else None,
            "childIds": node.get("childIds"),
            "ignored": node.get("ignored"),
            "ignoredReasons": [
                {"name": r.get("name"), "value": value_of(r.get("value"))}
                for r in node["ignoredReasons"]
            ] if "ignoredReasons" in node else None,
        }
        return {key: value for key, value in formatted.items() if value is not None}


    # Public methods _______________________________________________________________________________________________________

    def get_tool_definitions(self) -> list[dict[str, Any]]:
        """Tool definitions (name, description, parameters) of every inspection tool."""
        return [build_tool_definition(getattr(self, name)) for name in self.TOOL_NAMES]

    @validate_call
    async def inspect_element(
        self,
        uid: str,
        include_html: bool = True,
        max_html_length: Annotated[int, Field(ge=100, le=50000)] = 5000,
    ) -> str:
        """
        Get comprehensive information about an element including its HTML, attributes, and position.
        This is equivalent to inspecting an element in Chrome DevTools Elements panel.

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
            include_html: Include the outer HTML of the element
            max_html_length: Maximum length of HTML to return (truncated if longer)

        Returns:
            JSON with tag name, id, classes, attributes, outer HTML and box model.
        """
        session, handle = await self._resolve_uid(uid)
        node_id = handle.node_id

        described = await session.send("DOM.describeNode", {"nodeId": node_id, "depth": 1, "pierce": True})
        node = described["node"]
        attrs = await self._get_attributes(session, node_id)

        box_model = None
        try:
            box_result = await self._optional_send(session, "boxModel", "DOM.getBoxModel", {"nodeId": node_id})
            box_model = format_box_model(box_result["model"]).to_output()
        except OptionalDataUnavailableError as e:
            # e.g. display:none elements, SVG internals
            logger.debug("⚠️ %s", e.message)

        result: dict[str, Any] = {
            "uid": uid,
            "tagName": node.get("nodeName", "").lower(),
            "nodeType": node.get("nodeType"),
            "id": attrs.get("id") or None,
            "className": attrs.get("class") or None,
            "attributes": attrs,
            "childCount": node.get("childNodeCount") or 0,
            "boxModel": box_model,
        }

        if include_html:
            outer_html = ""
            try:
                html_result = await self._optional_send(session, "outerHTML", "DOM.getOuterHTML", {"nodeId": node_id})
                outer_html = html_result.get("outerHTML", "")
            except OptionalDataUnavailableError as e:
                logger.debug("⚠️ %s", e.message)
            if len(outer_html) > max_html_length:
                outer_html = outer_html[:max_html_length] + TRUNCATION_MARKER
            result["outerHTML"] = outer_html

        return dump_result(result)

    @validate_call
    async def get_element_styles(
        self,
        uid: str,
        include_inherited: bool = False,
        include_computed: bool = True,
        properties: list[str] | None = None,
    ) -> str:
        """
        Get CSS styles for an element including computed styles, matched CSS rules, and inherited styles.
        This is equivalent to the "Styles" panel in Chrome DevTools Elements tab.

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
            include_inherited: Include styles inherited from ancestor elements
            include_computed: Include final computed style values
            properties: Filter to specific CSS properties (e.g., ["color", "font-size"]). If omitted, returns common properties.

        Returns:
            JSON with 'computed' (when requested) and 'inline', 'matchedRules', 'inherited' (when non-empty).
        """
        session, handle = await self._resolve_uid(uid, "CSS")
        node_id = handle.node_id
        result: dict[str, Any] = {}

        if include_computed:
            computed = await session.send("CSS.getComputedStyleForNode", {"nodeId": node_id})
            result["computed"] = computed_style_map(
                computed.get("computedStyle", []),
                properties or list(DEFAULT_STYLE_PROPERTIES),
            )

        matched = await session.send("CSS.getMatchedStylesForNode", {"nodeId": node_id})

        inline_properties = (matched.get("inlineStyle") or {}).get("cssProperties")
        if inline_properties:
            inline = css_properties_to_object(inline_properties, properties)
            if inline:
                result["inline"] = inline

        if matched.get("matchedCSSRules"):
            matched_rules = self._format_matched_rules(matched["matchedCSSRules"], properties)
            if matched_rules:
                result["matchedRules"] = matched_rules

        if include_inherited and matched.get("inherited"):
            inherited = []
            for level, entry in enumerate(matched["inherited"], start=1):
                rules = [
                    {"selector": rule["selector"], "properties": rule["properties"]}
                    for rule in self._format_matched_rules(entry.get("matchedCSSRules") or [], properties)
                ]
                if rules:
                    inherited.append({"ancestorLevel": level, "matchedRules": rules})
            if inherited:
                result["inherited"] = inherited

        return dump_result(result)

    @validate_call
    async def get_element_box_model(self, uid: str) -> str:
        """
        Get the box model (layout) information for an element.
        Returns content, padding, border, and margin dimensions.

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
        """
        session, handle = await self._resolve_uid(uid)
        node_id = handle.node_id

        box = await session.send("DOM.getBoxModel", {"nodeId": node_id})
        model = format_box_model(box["model"])

        quads = None
        try:
            quads_result = await self._optional_send(session, "quads", "DOM.getContentQuads", {"nodeId": node_id})
            quads = quads_result.get("quads")
        except OptionalDataUnavailableError as e:
            logger.debug("⚠️ %s", e.message)

        return dump_result({"uid": uid, **model.to_output(), "quads": quads})

    @validate_call
    async def query_selector(
        self,
        selector: str,
        all: bool = False,
        limit: Annotated[int, Field(ge=1, le=50)] = 20,
    ) -> str:
        """
        Find elements using CSS selectors.
        Use this to find elements by class, id, tag, or complex CSS selectors.

        Args:
            selector: CSS selector (e.g., ".btn-primary", "#header", "div.container > p")
            all: Return all matching elements vs just the first match
            limit: Maximum number of elements to return when all=true
        """
        session = await self._page_session()
        root_node_id = await self.context.session_manager.ensure_document(session)

        node_ids: list[int] = []
        if all:
            result = await session.send("DOM.querySelectorAll", {"nodeId": root_node_id, "selector": selector})
            node_ids = (result.get("nodeIds") or [])[:limit]
        else:
            result = await session.send("DOM.querySelector", {"nodeId": root_node_id, "selector": selector})
            if result.get("nodeId"):
                node_ids = [result["nodeId"]]

        if not node_ids:
            return dump_result({"found": 0, "message": f"No elements found matching selector: {selector}"})

        elements = await self._describe_elements(session, node_ids)
        return dump_result({"found": len(elements), "selector": selector, "elements": elements})

    @validate_call
    async def highlight_element(
        self,
        uid: str,
        duration: Annotated[int, Field(ge=0, le=30000)] = 3000,
    ) -> str:
        """
        Visually highlight an element on the page with a colored overlay.
        The highlight shows content (blue), padding (green), border (yellow), and margin (orange).

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
            duration: How long to show highlight in milliseconds (0 = until hide_highlight is called)
        """
        backend_node_id = self.context.resolver.backend_node_id_for(uid)
        session = await self._page_session()
        await self.context.session_manager.ensure_enabled(session, "DOM")
        await self.context.highlighter.highlight(session, backend_node_id, duration)

        if duration > 0:
            message = f"Element highlighted for {duration}ms. Use hide_highlight to remove early."
        else:
            message = "Element highlighted until hide_highlight is called."
        return dump_result({"uid": uid, "highlighted": True, "duration": duration, "message": message})

    @validate_call
    async def hide_highlight(self) -> str:
        """
        Hide any active element highlight on the page.
        """
        session = await self._page_session()
        hidden = await self.context.highlighter.hide(session)
        return dump_result({
            "hidden": hidden,
            "message": "Highlight hidden." if hidden else "No highlight was active.",
        })

    @validate_call
    async def get_dom_tree(
        self,
        uid: str | None = None,
        depth: Annotated[int, Field(ge=1, le=10)] = 3,
    ) -> str:
        """
        Get the DOM tree structure starting from a specific element or document root.
        Returns a hierarchical view of elements with their tag names, ids and classes.

        Args:
            uid: Element UID to start from (omit for document root)
            depth: How deep to traverse the tree
        """
        if uid is not None:
            session, handle = await self._resolve_uid(uid)
            root_node_id = handle.node_id
        else:
            session = await self._page_session()
            root_node_id = await self.context.session_manager.ensure_document(session)

        tree = await self.context.tree_walker.build_tree(session, root_node_id, depth)
        return dump_result(tree.to_output() if tree is not None else None)

    @validate_call
    async def capture_dom_snapshot(self, computed_styles: list[str] | None = None) -> str:
        """
        Capture a DOM snapshot with computed styles for the elements of every document.
        Output is limited per document and annotated when elements were left out.

        Args:
            computed_styles: CSS properties to capture (default: display, color, background-color, font-size, etc.)
        """
        session = await self._page_session()
        summary = await self.context.snapshot_capturer.capture(session, computed_styles)
        return dump_result(summary)

    @validate_call
    async def force_element_state(self, uid: str, states: list[PseudoState]) -> str:
        """
        Force an element into specific CSS pseudo-states for inspection.
        Use this to inspect :hover, :active, :focus styles without interacting with the element.

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
            states: Pseudo-states to force (e.g., ["hover", "focus"])
        """
        session, handle = await self._resolve_uid(uid, "CSS")
        await session.send("CSS.forcePseudoState", {"nodeId": handle.node_id, "forcedPseudoClasses": states})
        return dump_result({
            "uid": uid,
            "forcedStates": states,
            "message": f"Forced states [{', '.join(states)}] on element. Use get_element_styles to see the styles in this state.",
        })

    @validate_call
    async def get_element_event_listeners(self, uid: str) -> str:
        """
        Get all event listeners attached to an element.
        Returns the event type, handler function preview, and listener options.

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
        """
        session, handle = await self._resolve_uid(uid)

        resolved = await session.send("DOM.resolveNode", {"nodeId": handle.node_id})
        object_id = (resolved.get("object") or {}).get("objectId")
        try:
            result = await session.send(
                "DOMDebugger.getEventListeners",
                {"objectId": object_id, "depth": 1, "pierce": True},
            )
        finally:
            if object_id:
                try:
                    await session.send("Runtime.releaseObject", {"objectId": object_id})
                except CDPProtocolError as e:
                    logger.debug("⚠️ Could not release %s: %s", object_id, e)

        listeners = [
            {
                "type": listener.get("type"),
                "useCapture": listener.get("useCapture"),
                "passive": listener.get("passive"),
                "once": listener.get("once"),
                "handler": ((listener.get("handler") or {}).get("description") or "unknown")[:MAX_HANDLER_PREVIEW_LENGTH],
                "scriptId": listener.get("scriptId"),
                "lineNumber": listener.get("lineNumber"),
                "columnNumber": listener.get("columnNumber"),
            }
            for listener in result.get("listeners", [])
        ]
        return dump_result({"uid": uid, "listenerCount": len(listeners), "listeners": listeners})

    @validate_call
    async def get_element_at_position(self, x: int, y: int) -> str:
        """
        Get the topmost element at specific x,y coordinates on the page.

        Args:
            x: X coordinate on the page
            y: Y coordinate on the page
        """
        session = await self._page_session()
        await self.context.session_manager.ensure_document(session)

        location = await session.send(
            "DOM.getNodeForLocation",
            {"x": x, "y": y, "includeUserAgentShadowDOM": False, "ignorePointerEventsNone": True},
        )
        backend_node_id = location.get("backendNodeId")
        node_id = location.get("nodeId")
        if not node_id and not backend_node_id:
            return dump_result({"found": False, "message": f"No element found at position ({x}, {y})"})

        if not node_id:
            node_id = await self.context.resolver.resolve(session, backend_node_id)
        element = await self._describe_element(session, node_id)

        return dump_result({
            "found": True,
            "position": {"x": x, "y": y},
            "element": {
                "backendNodeId": backend_node_id,
                "nodeId": node_id,
                "tagName": element.tag_name,
                "id": element.id,
                "className": element.class_name,
                "frameId": location.get("frameId"),
            },
        })

    @validate_call
    async def search_dom(
        self,
        query: str,
        limit: Annotated[int, Field(ge=1, le=50)] = 20,
    ) -> str:
        """
        Search the DOM for elements matching a text query, CSS selector, or XPath.
        Supports plain text search, CSS selectors, and XPath expressions.

        Args:
            query: Search query - text content, CSS selector, or XPath expression
            limit: Maximum results to return
        """
        session = await self._page_session()
        await self.context.session_manager.ensure_document(session)

        search = await session.send("DOM.performSearch", {"query": query, "includeUserAgentShadowDOM": False})
        search_id = search["searchId"]
        result_count = search.get("resultCount", 0)
        try:
            if result_count == 0:
                return dump_result({"found": 0, "message": f"No elements found matching: {query}"})
            results = await session.send(
                "DOM.getSearchResults",
                {"searchId": search_id, "fromIndex": 0, "toIndex": min(result_count, limit)},
            )
        finally:
            try:
                await session.send("DOM.discardSearchResults", {"searchId": search_id})
            except CDPProtocolError as e:
                logger.debug("⚠️ Could not discard search %s: %s", search_id, e)

        elements = await self._describe_elements(session, results.get("nodeIds") or [])
        return dump_result({"query": query, "found": result_count, "returned": len(elements), "elements": elements})

    @validate_call
    async def get_fonts_info(self, uid: str) -> str:
        """
        Get information about fonts used to render text in an element.
        Shows which fonts are actually being used (may differ from CSS font-family).

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
        """
        session, handle = await self._resolve_uid(uid, "CSS")
        node_id = handle.node_id

        fonts = await session.send("CSS.getPlatformFontsForNode", {"nodeId": node_id})
        computed = await session.send("CSS.getComputedStyleForNode", {"nodeId": node_id})
        styles = computed_style_map(computed.get("computedStyle", []), ["font-family", "font-size", "font-weight"])

        return dump_result({
            "uid": uid,
            "cssStyles": {
                "fontFamily": styles.get("font-family"),
                "fontSize": styles.get("font-size"),
                "fontWeight": styles.get("font-weight"),
            },
            "platformFonts": [
                {
                    "familyName": font.get("familyName"),
                    "postScriptName": font.get("postScriptName"),
                    "glyphCount": font.get("glyphCount"),
                    "isCustomFont": font.get("isCustomFont"),
                }
                for font in fonts.get("fonts", [])
            ],
        })

    @validate_call
    async def show_layout_overlay(self, uid: str, layout_type: Literal["grid", "flex"]) -> str:
        """
        Show CSS Grid or Flexbox layout overlay for an element.
        Visualizes grid lines, flex containers, gaps, and alignment.

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
            layout_type: Type of layout overlay to show
        """
        session, handle = await self._resolve_uid(uid)
        if layout_type == "grid":
            await self.context.highlighter.show_grid_overlay(session, handle.node_id)
            message = "Grid overlay shown. Call hide_highlight or show_layout_overlay with empty configs to hide."
        else:
            await self.context.highlighter.show_flex_overlay(session, handle.node_id)
            message = "Flexbox overlay shown. Call hide_highlight to hide."
        return dump_result({"uid": uid, "type": layout_type, "message": message})

    @validate_call
    async def get_accessibility_info(self, uid: str, include_ancestors: bool = False) -> str:
        """
        Get detailed accessibility information for an element.
        Returns ARIA roles, states, properties, and the accessibility tree node.

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
            include_ancestors: Include accessibility info for ancestor elements
        """
        backend_node_id = self.context.resolver.backend_node_id_for(uid)
        session = await self._page_session()
        await self.context.session_manager.ensure_document(session)
        await self.context.session_manager.ensure_enabled(session, "Accessibility")

        if include_ancestors:
            result = await session.send("Accessibility.getAXNodeAndAncestors", {"backendNodeId": backend_node_id})
        else:
            result = await session.send(
                "Accessibility.getPartialAXTree",
                {"backendNodeId": backend_node_id, "fetchRelatives": False},
            )
        return dump_result({"uid": uid, "nodes": [self._format_ax_node(node) for node in result.get("nodes", [])]})

    @validate_call
    async def compare_elements(self, uid1: str, uid2: str, properties: list[str] | None = None) -> str:
        """
        Compare two elements' computed styles to understand their differences.
        Returns a diff showing which properties differ between elements.

        Args:
            uid1: First element UID
            uid2: Second element UID
            properties: CSS properties to compare (default: common layout/visual properties)
        """
        self.context.resolver.backend_node_id_for(uid1)
        self.context.resolver.backend_node_id_for(uid2)

        session, handle_1 = await self._resolve_uid(uid1, "CSS")
        handle_2 = await self.context.resolver.resolve_uid(session, uid2)

        comparison = await self.context.comparator.compare(
            session,
            self.context.resolver.node_id_for(session, handle_1),
            self.context.resolver.node_id_for(session, handle_2),
            properties,
        )
        return dump_result({
            "element1": uid1,
            "element2": uid2,
            "differenceCount": comparison.difference_count,
            "differences": {prop: diff.model_dump() for prop, diff in comparison.differences.items()},
            "sameProperties": comparison.same,
        })

    @validate_call
    async def get_css_variables(self, uid: str) -> str:
        """
        Get CSS custom properties (variables) that apply to an element.
        Returns both the variables defined on the element and inherited variables.

        Args:
            uid: Element UID from snapshot (e.g., "42_5")
        """
        session, handle = await self._resolve_uid(uid, "CSS")
        node_id = handle.node_id

        computed = await session.send("CSS.getComputedStyleForNode", {"nodeId": node_id})
        variables = {
            prop["name"]: prop.get("value", "")
            for prop in computed.get("computedStyle", [])
            if prop["name"].startswith("--")
        }

        matched = await session.send("CSS.getMatchedStylesForNode", {"nodeId": node_id})
        definitions = []
        for match in matched.get("matchedCSSRules") or []:
            rule = match.get("rule", {})
            selector = selector_list_text(rule) or "unknown"
            for prop in (rule.get("style") or {}).get("cssProperties", []):
                if prop.get("name", "").startswith("--") and not prop.get("disabled"):
                    definitions.append({"variable": prop["name"], "value": prop.get("value", ""), "selector": selector})

        return dump_result({
            "uid": uid,
            "variableCount": len(variables),
            "computedVariables": variables,
            "definitions": definitions,
        })
