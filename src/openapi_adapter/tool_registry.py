"""Tool catalog construction and the registry that owns the current catalog."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .errors import AdapterError, CatalogNotLoaded
from .models import ApiDocument, Operation, ToolDefinition
from .openapi import OpenAPILoader, parse_document
from .schema import build_input_schema


logger = logging.getLogger(__name__)


def fallback_tool_name(method: str, path_template: str) -> str:
    """``GET /pets/{id}`` -> ``get_pets_id``."""
    sanitized = re.sub(r"[^a-zA-Z0-9]+", "_", path_template.replace("{", "").replace("}", ""))
    sanitized = sanitized.strip("_").lower()
    return f"{method.lower()}_{sanitized or 'root'}"


def tool_name_for(operation: Operation) -> str:
    return operation.operation_id or fallback_tool_name(operation.method, operation.path_template)


@dataclass(frozen=True)
class ToolCatalog:
    """Immutable snapshot of every tool derived from one document."""

    document: ApiDocument
    tools: Mapping[str, ToolDefinition] = field(default_factory=dict)

    def get(self, tool_name: str) -> Optional[ToolDefinition]:
        return self.tools.get(tool_name)

    def names(self) -> List[str]:
        return list(self.tools)

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self.tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self.tools.values())

    def __len__(self) -> int:
        return len(self.tools)


def build_catalog(document: ApiDocument) -> ToolCatalog:
    base_url = document.servers[0] if document.servers else ""
    tools: Dict[str, ToolDefinition] = {}

    for operation in document.operations():
        tool_name = tool_name_for(operation)
        if operation.operation_id is None:
            tool_name = _unique_name(tool_name, tools)
        if tool_name in tools:
            logger.warning(
                "Duplicate tool name %s; %s %s replaces the earlier operation",
                tool_name,
                operation.method,
                operation.path_template,
            )
        description = (
            operation.description
            or operation.summary
            or f"{operation.method} {operation.path_template}"
        )
        tools[tool_name] = ToolDefinition(
            tool_name=tool_name,
            method=operation.method,
            path_template=operation.path_template,
            base_url=base_url,
            description=description,
            parameters=operation.parameters,
            has_request_body=operation.has_request_body,
            operation=operation,
            input_schema=build_input_schema(operation),
        )

    return ToolCatalog(document=document, tools=MappingProxyType(tools))


def _unique_name(tool_name: str, taken: Mapping[str, Any]) -> str:
    """Distinct paths can sanitize to one name: ``/pets/{id}`` and ``/pets/id``."""
    candidate = tool_name
    suffix = 2
    while candidate in taken:
        candidate = f"{tool_name}_{suffix}"
        suffix += 1
    return candidate


class ToolRegistry:
    """Holds the current :class:`ToolCatalog` behind a single reference.

    Loads build a complete catalog first and then swap the reference, so
    readers calling :meth:`current` see either the previous catalog or the
    new one, never a mix. A failed load leaves the previous catalog in place.
    """

    def __init__(self, openapi_loader: Optional[OpenAPILoader] = None) -> None:
        self.openapi_loader = openapi_loader or OpenAPILoader()
        self._catalog: Optional[ToolCatalog] = None
        self._lock = threading.Lock()

    def current(self) -> Optional[ToolCatalog]:
        return self._catalog

    def require(self) -> ToolCatalog:
        catalog = self._catalog
        if catalog is None:
            raise CatalogNotLoaded()
        return catalog

    def load_document(self, document: ApiDocument) -> ToolCatalog:
        catalog = build_catalog(document)
        with self._lock:
            self._catalog = catalog
        logger.info("Loaded OpenAPI spec %r with %s tools", document.info.title, len(catalog))
        return catalog

    def load_content(self, content: str, fmt: Optional[str] = None) -> ToolCatalog:
        return self.load_document(parse_document(content, fmt))

    def load_file(self, path: Path | str) -> ToolCatalog:
        return self.load_document(self.openapi_loader.load_file(path))

    async def load_url(self, url: str) -> ToolCatalog:
        return self.load_document(await self.openapi_loader.load_url(url))

    def load_directory(self, directory: Path | str) -> Dict[str, Any]:
        """Load every spec file found under ``directory`` in sorted order.

        The last file that loads successfully becomes the current catalog.
        """
        results: Dict[str, Any] = {}
        for path in self.openapi_loader.discover_files(directory):
            try:
                catalog = self.load_file(path)
            except AdapterError as exc:
                logger.warning("Failed to load OpenAPI spec %s: %s", path, exc)
                results[str(path)] = {"loaded": False, "error": str(exc)}
                continue
            results[str(path)] = {"loaded": True, "toolCount": len(catalog)}
        return results

    def clear(self) -> None:
        with self._lock:
            self._catalog = None
        logger.info("Cleared tool catalog")
