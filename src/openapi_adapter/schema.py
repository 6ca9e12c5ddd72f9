"""Input schema synthesis for catalog tools."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, create_model

from .models import Operation, Parameter, SchemaNode


PATH_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


def path_placeholders(path_template: str) -> List[str]:
    """Placeholder names in left-to-right order, without duplicates."""
    names: List[str] = []
    for match in PATH_PLACEHOLDER.finditer(path_template):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def is_json_media_type(media_type: Optional[str]) -> bool:
    if not media_type:
        return False
    return media_type.split(";")[0].strip().lower().endswith("json")


def build_input_schema(operation: Operation) -> Dict[str, Any]:
    """Describe the arguments a tool accepts as a JSON Schema object.

    Path placeholders come first and are always required; a declared ``path``
    parameter with the same name supplies its type and description. Remaining
    declared parameters follow in declaration order, then ``body`` when the
    operation takes a request body.
    """
    properties: Dict[str, Any] = {}
    required: List[str] = []

    declared_path = {p.name: p for p in operation.parameters if p.location == "path"}
    for name in path_placeholders(operation.path_template):
        declared = declared_path.get(name)
        prop = {"type": "string", "description": f"Path parameter: {name}"}
        if declared is not None:
            prop = _parameter_property(declared, default_description=prop["description"])
        properties[name] = prop
        required.append(name)

    for parameter in operation.parameters:
        if parameter.name in properties:
            continue
        properties[parameter.name] = _parameter_property(parameter)
        if parameter.required:
            required.append(parameter.name)

    if operation.has_request_body:
        properties["body"] = _body_property(operation)
        if operation.request_body_required:
            required.append("body")

    return {"type": "object", "properties": properties, "required": required}


def schema_to_json(node: SchemaNode) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    if node.type:
        result["type"] = node.type
    if node.format:
        result["format"] = node.format
    if node.description:
        result["description"] = node.description
    if node.enum_values:
        result["enum"] = list(node.enum_values)
    if node.properties:
        result["properties"] = {name: schema_to_json(prop) for name, prop in node.properties.items()}
    if node.required:
        result["required"] = sorted(node.required)
    if node.items is not None:
        result["items"] = schema_to_json(node.items)
    return result


def _parameter_property(parameter: Parameter, default_description: str = "") -> Dict[str, Any]:
    prop: Dict[str, Any] = {"type": parameter.schema_type}
    description = parameter.description or default_description
    if description:
        prop["description"] = description
    schema = parameter.schema
    if schema is not None:
        if schema.enum_values:
            prop["enum"] = list(schema.enum_values)
        if schema.format:
            prop["format"] = schema.format
        if parameter.schema_type == "array" and schema.items is not None:
            prop["items"] = schema_to_json(schema.items)
    return prop


def _body_property(operation: Operation) -> Dict[str, Any]:
    node = operation.request_body_schema
    if node is None or not is_json_media_type(operation.request_content_type):
        return {"type": "object", "description": "Request body"}

    if node.type == "array":
        prop = schema_to_json(node)
        prop.setdefault("description", "Request body")
        return prop

    prop: Dict[str, Any] = {
        "type": "object",
        "description": node.description or "Request body",
    }
    if node.properties:
        prop["properties"] = {name: schema_to_json(p) for name, p in node.properties.items()}
    if node.required:
        prop["required"] = sorted(node.required)
    return prop


_JSON_TYPES: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "array": List[Any],
    "object": Dict[str, Any],
}


def build_input_model(tool_name: str, input_schema: Dict[str, Any]) -> type[BaseModel]:
    """Pydantic model mirroring ``input_schema`` for agent-runtime registration.

    Argument names that are not valid Python identifiers (``X-Request-Id``) are
    exposed through aliases; dump with ``by_alias=True``.
    """
    fields: Dict[str, Tuple[Any, Any]] = {}
    required = set(input_schema.get("required") or [])
    for name, prop in (input_schema.get("properties") or {}).items():
        field_type = _JSON_TYPES.get(prop.get("type"), Any)
        is_required = name in required
        if not is_required:
            field_type = Optional[field_type]
        field_name = _field_name(name, fields)
        fields[field_name] = (
            field_type,
            Field(
                ... if is_required else None,
                alias=name if field_name != name else None,
                description=prop.get("description"),
            ),
        )

    model_config = ConfigDict(extra="allow", populate_by_name=True)
    model_name = f"{_sanitize_name(tool_name)}Input"
    return create_model(model_name, __config__=model_config, **fields)


def _field_name(name: str, taken: Dict[str, Any]) -> str:
    candidate = _sanitize_name(name)
    if not candidate or candidate[0].isdigit() or candidate.startswith("_"):
        candidate = f"f_{candidate.lstrip('_')}"
    if hasattr(BaseModel, candidate):
        candidate = f"{candidate}_"
    while candidate in taken:
        candidate = f"{candidate}_"
    return candidate


def _sanitize_name(name: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in name)
