"""Internal models for documents, tools and HTTP exchanges."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS", "TRACE")

PARAMETER_LOCATIONS = ("path", "query", "header", "cookie")


@dataclass(frozen=True)
class SchemaNode:
    type: Optional[str] = None
    format: Optional[str] = None
    description: Optional[str] = None
    properties: Dict[str, "SchemaNode"] = field(default_factory=dict)
    items: Optional["SchemaNode"] = None
    required: FrozenSet[str] = frozenset()
    enum_values: Tuple[Any, ...] = ()
    ref: Optional[str] = None


@dataclass(frozen=True)
class Parameter:
    name: str
    location: str
    required: bool = False
    description: str = ""
    schema_type: str = "string"
    schema: Optional[SchemaNode] = None


@dataclass(frozen=True)
class Operation:
    method: str
    path_template: str
    operation_id: Optional[str] = None
    summary: str = ""
    description: str = ""
    tags: Tuple[str, ...] = ()
    parameters: Tuple[Parameter, ...] = ()
    request_body_schema: Optional[SchemaNode] = None
    has_request_body: bool = False
    request_body_required: bool = False
    request_content_type: Optional[str] = None
    responses: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ApiInfo:
    title: str = ""
    version: str = ""
    description: str = ""


@dataclass(frozen=True)
class ApiDocument:
    openapi: str = ""
    info: ApiInfo = field(default_factory=ApiInfo)
    servers: Tuple[str, ...] = ()
    paths: Dict[str, Dict[str, Operation]] = field(default_factory=dict)
    schemas: Dict[str, SchemaNode] = field(default_factory=dict)

    def operations(self) -> List[Operation]:
        """All operations in document order."""
        return [op for item in self.paths.values() for op in item.values()]


@dataclass(frozen=True)
class ToolDefinition:
    tool_name: str
    method: str
    path_template: str
    base_url: str
    description: str
    parameters: Tuple[Parameter, ...]
    has_request_body: bool
    operation: Operation
    input_schema: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HttpRequestModel:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass(frozen=True)
class HttpResponseModel:
    status_code: int = 200
    headers: Dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None
