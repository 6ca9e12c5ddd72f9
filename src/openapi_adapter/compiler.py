"""Compile tool arguments into concrete HTTP requests."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import quote

from .errors import UnsupportedMethod
from .models import HTTP_METHODS, HttpRequestModel, ToolDefinition
from .schema import PATH_PLACEHOLDER, path_placeholders


def stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return str(value)


def substitute_path(path_template: str, arguments: Dict[str, Any]) -> Tuple[str, Set[str]]:
    """Replace ``{name}`` tokens that have an argument; leave the rest as-is."""
    used: Set[str] = set()

    def _replace(match: Any) -> str:
        name = match.group(1)
        if name not in arguments or arguments[name] is None:
            return match.group(0)
        used.add(name)
        return stringify(arguments[name])

    return PATH_PLACEHOLDER.sub(_replace, path_template), used


def build_query_string(pairs: List[Tuple[str, str]], encode: bool = True) -> str:
    if encode:
        return "&".join(f"{quote(key, safe='')}={quote(value, safe='')}" for key, value in pairs)
    return "&".join(f"{key}={value}" for key, value in pairs)


def join_url(base_url: str, path: str) -> str:
    if not base_url:
        return path
    if not path:
        return base_url
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def compile_request(
    tool: ToolDefinition,
    arguments: Optional[Dict[str, Any]],
    encode_query: bool = True,
) -> HttpRequestModel:
    """Build the HTTP request for ``tool`` from a flat argument map.

    Path placeholders are filled first, then declared query/header/cookie
    parameters are routed to their location. When the operation takes a body,
    an explicit ``body`` argument wins; otherwise every argument that is not a
    placeholder or declared parameter becomes a JSON object body.
    """
    method = (tool.method or "").upper()
    if method not in HTTP_METHODS:
        raise UnsupportedMethod(tool.method)

    arguments = arguments or {}
    path, _ = substitute_path(tool.path_template, arguments)

    headers: Dict[str, str] = {}
    query: List[Tuple[str, str]] = []
    cookies: List[str] = []
    for parameter in tool.parameters:
        if parameter.location == "path":
            continue
        value = arguments.get(parameter.name)
        if value is None:
            continue
        if parameter.location == "query":
            if isinstance(value, (list, tuple)):
                query.extend((parameter.name, stringify(item)) for item in value)
            else:
                query.append((parameter.name, stringify(value)))
        elif parameter.location == "header":
            headers[parameter.name] = stringify(value)
        elif parameter.location == "cookie":
            cookies.append(f"{parameter.name}={stringify(value)}")
    if cookies:
        headers["Cookie"] = "; ".join(cookies)

    body: Optional[str] = None
    if tool.has_request_body:
        body = _extract_body(tool, arguments)
        content_type = tool.operation.request_content_type or "application/json"
        if body is not None and not any(k.lower() == "content-type" for k in headers):
            headers["Content-Type"] = content_type

    url = join_url(tool.base_url, path)
    if query:
        url = f"{url}?{build_query_string(query, encode=encode_query)}"

    return HttpRequestModel(method=method, url=url, headers=headers, body=body)


def _extract_body(tool: ToolDefinition, arguments: Dict[str, Any]) -> Optional[str]:
    explicit = arguments.get("body")
    if explicit is not None:
        if isinstance(explicit, str):
            return explicit
        return json.dumps(explicit)

    consumed = set(path_placeholders(tool.path_template))
    consumed.update(parameter.name for parameter in tool.parameters)
    consumed.add("body")
    implicit = {key: value for key, value in arguments.items() if key not in consumed}
    if not implicit:
        return None
    content_type = (tool.operation.request_content_type or "").split(";")[0].strip().lower()
    if content_type == "application/x-www-form-urlencoded":
        pairs = [(key, stringify(value)) for key, value in implicit.items()]
        return build_query_string(pairs)
    return json.dumps(implicit)
