"""OpenAPI spec loader and normalizer."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
import yaml

from .errors import InvalidDocument, ParseError, TransportFailure
from .models import (
    HTTP_METHODS,
    PARAMETER_LOCATIONS,
    ApiDocument,
    ApiInfo,
    Operation,
    Parameter,
    SchemaNode,
)


logger = logging.getLogger(__name__)

SPEC_EXTENSIONS = (".yaml", ".yml", ".json")

_SCHEMA_TYPES = {"string", "integer", "number", "boolean", "array", "object"}


def detect_format(content: str) -> str:
    stripped = content.lstrip()
    if stripped.startswith("{") or stripped.startswith("["):
        return "json"
    return "yaml"


def format_from_name(name: str) -> Optional[str]:
    lowered = name.lower()
    if lowered.endswith(".json"):
        return "json"
    if lowered.endswith((".yaml", ".yml")):
        return "yaml"
    return None


def parse_document(content: str, fmt: Optional[str] = None) -> ApiDocument:
    """Parse JSON or YAML specification text into an :class:`ApiDocument`.

    ``fmt`` is ``"json"`` or ``"yaml"``; when omitted it is sniffed from the
    content. Raises :class:`ParseError` for unparsable content, a missing
    ``info`` block or an unresolvable ``$ref``, and :class:`InvalidDocument`
    when ``info.title`` is missing.
    """
    fmt = (fmt or detect_format(content)).lower()
    if fmt == "json":
        try:
            raw = json.loads(content)
        except ValueError as exc:
            raise ParseError(f"Invalid JSON specification: {exc}") from exc
    elif fmt in {"yaml", "yml"}:
        try:
            raw = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ParseError(f"Invalid YAML specification: {exc}") from exc
    else:
        raise ParseError(f"Unknown specification format: {fmt}")

    if not isinstance(raw, dict):
        raise ParseError("Specification root must be an object")
    return _Normalizer(raw).document()


def summarize(document: ApiDocument) -> Dict[str, Any]:
    return {
        "title": document.info.title,
        "version": document.info.version,
        "description": document.info.description,
        "server": document.servers[0] if document.servers else None,
        "pathCount": len(document.paths),
        "operationCount": len(document.operations()),
    }


def validate_content(content: str, fmt: Optional[str] = None) -> Dict[str, Any]:
    """Check specification text without touching any catalog."""
    try:
        document = parse_document(content, fmt)
    except (ParseError, InvalidDocument) as exc:
        return {"valid": False, "error": str(exc)}
    return {"valid": True, "info": summarize(document)}


class _Normalizer:
    def __init__(self, raw: Dict[str, Any]) -> None:
        self.raw = raw
        components = raw.get("components")
        self.components: Dict[str, Any] = components if isinstance(components, dict) else {}
        raw_schemas = self.components.get("schemas")
        self.raw_schemas: Dict[str, Any] = raw_schemas if isinstance(raw_schemas, dict) else {}

    def document(self) -> ApiDocument:
        info = self._info(self.raw.get("info"))
        schemas = {name: self._schema(node, (name,)) for name, node in self.raw_schemas.items()}
        return ApiDocument(
            openapi=_text(self.raw.get("openapi") or self.raw.get("swagger")),
            info=info,
            servers=self._servers(self.raw.get("servers")),
            paths=self._paths(self.raw.get("paths")),
            schemas=schemas,
        )

    def _info(self, raw: Any) -> ApiInfo:
        if not isinstance(raw, dict):
            raise ParseError("Specification is missing the top-level 'info' object")
        title = _text(raw.get("title")).strip()
        if not title:
            raise InvalidDocument("Specification 'info.title' is missing")
        return ApiInfo(
            title=title,
            version=_text(raw.get("version")),
            description=_text(raw.get("description")),
        )

    def _servers(self, raw: Any) -> Tuple[str, ...]:
        servers: List[str] = []
        for server in raw or []:
            if isinstance(server, dict) and server.get("url"):
                servers.append(str(server["url"]))
        return tuple(servers)

    def _paths(self, raw: Any) -> Dict[str, Dict[str, Operation]]:
        paths: Dict[str, Dict[str, Operation]] = {}
        if not isinstance(raw, dict):
            return paths
        for path, item in raw.items():
            if not isinstance(item, dict):
                continue
            shared = self._parameters(item.get("parameters"))
            operations: Dict[str, Operation] = {}
            for method, operation in item.items():
                method = str(method).upper()
                if method not in HTTP_METHODS or not isinstance(operation, dict):
                    continue
                operations[method] = self._operation(
                    method, str(path), operation, shared
                )
            paths[str(path)] = operations
        return paths

    def _operation(
        self,
        method: str,
        path: str,
        raw: Dict[str, Any],
        shared: List[Parameter],
    ) -> Operation:
        declared = self._parameters(raw.get("parameters"))
        overridden = {(p.name, p.location) for p in declared}
        parameters = [p for p in shared if (p.name, p.location) not in overridden] + declared

        request_body = raw.get("requestBody")
        body_schema: Optional[SchemaNode] = None
        content_type: Optional[str] = None
        body_required = False
        if request_body is not None:
            request_body = self._component(request_body, "requestBodies")
            content_type, body_schema = self._body_content(request_body.get("content"))
            body_required = bool(request_body.get("required", False))

        responses: Dict[str, str] = {}
        raw_responses = raw.get("responses")
        for status, response in (raw_responses if isinstance(raw_responses, dict) else {}).items():
            response = self._component(response, "responses")
            responses[str(status)] = _text(response.get("description"))

        operation_id = raw.get("operationId")
        return Operation(
            method=method,
            path_template=path,
            operation_id=str(operation_id) if operation_id else None,
            summary=_text(raw.get("summary")),
            description=_text(raw.get("description")),
            tags=tuple(str(tag) for tag in raw.get("tags") or []),
            parameters=tuple(parameters),
            request_body_schema=body_schema,
            has_request_body=request_body is not None,
            request_body_required=body_required,
            request_content_type=content_type,
            responses=responses,
        )

    def _parameters(self, raw: Any) -> List[Parameter]:
        parameters: List[Parameter] = []
        for entry in raw or []:
            entry = self._component(entry, "parameters")
            name = entry.get("name")
            if not name:
                continue
            location = str(entry.get("in", "query")).lower()
            if location not in PARAMETER_LOCATIONS:
                logger.warning("Skipping parameter %s with unknown location %s", name, location)
                continue
            schema = self._schema(entry["schema"]) if isinstance(entry.get("schema"), dict) else None
            schema_type = schema.type if schema and schema.type in _SCHEMA_TYPES else "string"
            parameters.append(
                Parameter(
                    name=str(name),
                    location=location,
                    required=bool(entry.get("required", False)),
                    description=_text(entry.get("description")),
                    schema_type=schema_type,
                    schema=schema,
                )
            )
        return parameters

    def _body_content(self, content: Any) -> Tuple[Optional[str], Optional[SchemaNode]]:
        if not isinstance(content, dict) or not content:
            return None, None
        media_types = [str(key) for key in content]
        json_types = [m for m in media_types if m.split(";")[0].strip().endswith("json")]
        ordered = json_types + [m for m in media_types if m not in json_types]
        for media_type in ordered:
            media = content.get(media_type) or {}
            if isinstance(media, dict) and isinstance(media.get("schema"), dict):
                return media_type, self._schema(media["schema"])
        return ordered[0], None

    def _schema(self, raw: Any, stack: Tuple[str, ...] = ()) -> SchemaNode:
        if not isinstance(raw, dict):
            return SchemaNode()

        ref = raw.get("$ref")
        if ref is not None:
            name = self._schema_ref_name(ref)
            if name in stack:
                # recursive reference: keep the ref, do not expand again
                return SchemaNode(type="object", ref=ref)
            target = self.raw_schemas.get(name)
            if not isinstance(target, dict):
                raise ParseError(f"Unresolved $ref: {ref}")
            return replace(self._schema(target, stack + (name,)), ref=ref)

        schema_type = raw.get("type")
        if isinstance(schema_type, list):
            schema_type = next((t for t in schema_type if t != "null"), None)

        properties: Dict[str, SchemaNode] = {}
        required = set()
        for member in raw.get("allOf") or []:
            merged = self._schema(member, stack)
            properties.update(merged.properties)
            required.update(merged.required)
            schema_type = schema_type or merged.type

        raw_properties = raw.get("properties")
        for name, prop in (raw_properties if isinstance(raw_properties, dict) else {}).items():
            properties[str(name)] = self._schema(prop, stack)
        if isinstance(raw.get("required"), list):
            required.update(str(name) for name in raw["required"])
        if schema_type is None and properties:
            schema_type = "object"

        items = raw.get("items")
        return SchemaNode(
            type=schema_type,
            format=raw.get("format"),
            description=raw.get("description"),
            properties=properties,
            items=self._schema(items, stack) if isinstance(items, dict) else None,
            required=frozenset(required),
            enum_values=tuple(raw.get("enum") or ()),
        )

    def _schema_ref_name(self, ref: Any) -> str:
        prefix = "#/components/schemas/"
        if not isinstance(ref, str) or not ref.startswith(prefix):
            raise ParseError(f"Unresolved $ref: {ref}")
        return ref[len(prefix):]

    def _component(self, raw: Any, section: str) -> Dict[str, Any]:
        if not isinstance(raw, dict):
            return {}
        ref = raw.get("$ref")
        if ref is None:
            return raw
        prefix = f"#/components/{section}/"
        section_items = self.components.get(section) or {}
        target = None
        if isinstance(ref, str) and ref.startswith(prefix):
            target = section_items.get(ref[len(prefix):])
        if not isinstance(target, dict):
            raise ParseError(f"Unresolved $ref: {ref}")
        return target


def _text(value: Any) -> str:
    return "" if value is None else str(value)


class OpenAPILoader:
    def __init__(
        self,
        cache_seconds: int = 3600,
        timeout_seconds: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cache_seconds = cache_seconds
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._cache: Dict[str, Tuple[float, str]] = {}

    async def load_url(self, url: str) -> ApiDocument:
        cached = self._cache.get(url)
        if cached and time.time() - cached[0] < self.cache_seconds:
            return parse_document(cached[1], format_from_name(url.split("?")[0]))

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise TransportFailure(f"Failed to fetch OpenAPI spec {url}: {exc}") from exc

        if response.status_code != 200:
            logger.warning("Failed to fetch OpenAPI spec: %s (%s)", url, response.status_code)
            raise ParseError(f"Failed to fetch OpenAPI spec {url}: HTTP {response.status_code}")

        document = parse_document(response.text, format_from_name(url.split("?")[0]))
        self._cache[url] = (time.time(), response.text)
        return document

    def load_file(self, path: Path | str) -> ApiDocument:
        path = Path(path)
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ParseError(f"Cannot read specification file {path}: {exc}") from exc
        return parse_document(content, format_from_name(path.name))

    def discover_files(self, directory: Path | str, max_depth: int = 2) -> List[Path]:
        root = Path(directory)
        if not root.is_dir():
            raise ParseError(f"Not a directory: {root}")
        found = [
            path
            for path in root.rglob("*")
            if path.is_file()
            and path.name.lower().endswith(SPEC_EXTENSIONS)
            and len(path.relative_to(root).parts) <= max_depth
        ]
        return sorted(found)
