"""
domlens/tools/tool_utils.py

Utilities for turning tool methods into agent tool definitions and results.
"""

import inspect
import json
from typing import Any, Callable, get_type_hints

from pydantic import BaseModel, TypeAdapter


def extract_description_from_docstring(docstring: str | None) -> str:
    """
    Extract the full description from a docstring (everything before Args/Returns/etc).

    Args:
        docstring: The function's docstring (func.__doc__)

    Returns:
        The description portion of the docstring, or empty string if none.
    """
    if not docstring:
        return ""

    section_markers = ("Args:", "Returns:", "Raises:", "Yields:", "Example:", "Examples:", "Note:", "Notes:")
    description_lines: list[str] = []
    for line in docstring.strip().split("\n"):
        stripped = line.strip()
        if any(stripped.startswith(marker) for marker in section_markers):
            break
        description_lines.append(stripped)

    return " ".join(" ".join(description_lines).split())


def _parse_args_from_docstring(docstring: str | None) -> dict[str, str]:
    """Extract param descriptions from docstring Args section."""
    if not docstring:
        return {}
    result = {}
    in_args = False
    for line in docstring.split("\n"):
        s = line.strip()
        if s.startswith("Args:"):
            in_args = True
            continue
        if in_args and s in ("Returns:", "Raises:", "Yields:"):
            break
        if in_args and ":" in s:
            name, desc = s.split(":", 1)
            name = name.split("(")[0].strip()  # handle "param (type):" format
            if name and " " not in name:
                result[name] = desc.strip()
    return result


def generate_parameters_schema(func: Callable[..., Any]) -> dict[str, Any]:
    """
    Generate JSON Schema for function parameters using pydantic.
    Field bounds declared with Annotated[..., Field(...)] end up in the schema.

    Args:
        func: The function to generate schema for. Must have type hints.

    Returns:
        JSON Schema dict with 'type', 'properties', and 'required' keys.
    """
    # look through validate_call wrappers (and bound methods) to the declared signature
    func = inspect.unwrap(func)
    sig = inspect.signature(obj=func)
    hints = get_type_hints(obj=func, include_extras=True)
    param_descs = _parse_args_from_docstring(func.__doc__)

    properties: dict[str, Any] = {}
    required: list[str] = []

    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls"):
            continue

        param_type = hints.get(param_name, Any)
        schema = TypeAdapter(param_type).json_schema()

        # remove pydantic metadata that's not needed for tool schemas
        schema.pop("title", None)

        if param_name in param_descs:
            schema["description"] = param_descs[param_name]

        properties[param_name] = schema

        if param.default is inspect.Parameter.empty:
            required.append(param_name)

    return {
        "type": "object",
        "properties": properties,
        "required": required,
    }


def build_tool_definition(func: Callable[..., Any]) -> dict[str, Any]:
    """
    Build a tool definition (name, description, parameters) from a function.

    Args:
        func: The tool function or bound method.

    Returns:
        Dict with 'name', 'description' and JSON-schema 'parameters'.
    """
    unwrapped = inspect.unwrap(func)
    return {
        "name": unwrapped.__name__,
        "description": extract_description_from_docstring(unwrapped.__doc__),
        "parameters": generate_parameters_schema(func),
    }


def dump_result(result: Any) -> str:
    """
    Serialize a tool result as one line of JSON.

    Args:
        result: A JSON-compatible value or a pydantic model (dumped with camelCase aliases).

    Returns:
        The JSON text, without newlines.
    """
    if isinstance(result, BaseModel):
        result = result.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(result, ensure_ascii=False)
