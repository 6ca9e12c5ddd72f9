"""Tool dispatch: catalog lookup, request compilation and exchange."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from .compiler import build_query_string, compile_request, stringify
from .config import Settings
from .errors import AdapterError, ToolNotFound, UnsupportedMethod
from .executors import ExchangeExecutor
from .logging import redact_payload
from .models import HTTP_METHODS, HttpRequestModel, HttpResponseModel
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

HTTP_REQUEST_TOOL = "http_request"


class ToolDispatcher:
    """
    Invokes catalog tools by name.

    Every call returns exactly one envelope:
    - success: ``{"statusCode", "headers", "data"}``, whatever the HTTP status
    - failure: ``{"error": True, "message", "toolName"}``
    """

    def __init__(
        self,
        settings: Settings,
        registry: ToolRegistry,
        executor: Optional[ExchangeExecutor] = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.executor = executor or ExchangeExecutor(
            timeout_seconds=settings.adapter_http_timeout_seconds,
            verify_ssl=settings.adapter_http_verify_ssl,
        )
        self.semaphore = asyncio.Semaphore(settings.adapter_max_concurrency)

    async def invoke(self, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        arguments = arguments or {}
        async with self.semaphore:
            logger.info("Invoking tool=%s arguments=%s", tool_name, redact_payload(arguments))
            try:
                # one snapshot per call; a concurrent reload does not affect it
                catalog = self.registry.require()
                tool = catalog.get(tool_name)
                if tool is None:
                    raise ToolNotFound(tool_name)
                request = compile_request(
                    tool, arguments, encode_query=self.settings.adapter_encode_query
                )
                response = await self.executor.execute(request)
            except AdapterError as exc:
                logger.error("Tool invocation failed: tool=%s error=%s", tool_name, exc)
                return self._format_error(tool_name, str(exc))
            except Exception as exc:
                logger.exception("Unexpected error invoking tool=%s", tool_name)
                return self._format_error(tool_name, str(exc) or exc.__class__.__name__)

            return self._format_result(response)

    async def http_request(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, Any]] = None,
        body: Any = None,
        query_params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Send an arbitrary request through the same exchange funnel."""
        async with self.semaphore:
            try:
                method = (method or "GET").upper()
                if method not in HTTP_METHODS:
                    raise UnsupportedMethod(method)
                if query_params:
                    pairs = [(key, stringify(value)) for key, value in query_params.items() if value is not None]
                    query = build_query_string(pairs, encode=self.settings.adapter_encode_query)
                    url = f"{url}{'&' if '?' in url else '?'}{query}"
                if body is not None and not isinstance(body, str):
                    body = json.dumps(body)
                request = HttpRequestModel(
                    method=method,
                    url=url,
                    headers={key: stringify(value) for key, value in (headers or {}).items()},
                    body=body,
                )
                response = await self.executor.execute(request)
            except AdapterError as exc:
                logger.error("http_request failed: %s", exc)
                return self._format_error(HTTP_REQUEST_TOOL, str(exc))
            except Exception as exc:
                logger.exception("Unexpected error in http_request url=%s", url)
                return self._format_error(HTTP_REQUEST_TOOL, str(exc) or exc.__class__.__name__)
            return self._format_result(response)

    def list_tools(self) -> Dict[str, str]:
        catalog = self.registry.current()
        if catalog is None:
            return {}
        return {
            tool.tool_name: f"{tool.method} {tool.path_template} - {tool.description}"
            for tool in catalog
        }

    def get_tool_details(self, tool_name: str) -> Dict[str, Any]:
        catalog = self.registry.current()
        tool = catalog.get(tool_name) if catalog is not None else None
        if tool is None:
            return self._format_error(tool_name, str(ToolNotFound(tool_name)))

        return {
            "toolName": tool.tool_name,
            "operationId": tool.operation.operation_id,
            "method": tool.method,
            "path": tool.path_template,
            "baseUrl": tool.base_url,
            "description": tool.description,
            "hasRequestBody": tool.has_request_body,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.schema_type,
                    "location": p.location,
                    "required": p.required,
                    "description": p.description,
                }
                for p in tool.parameters
            ],
            "inputSchema": tool.input_schema,
        }

    def overview(self) -> Dict[str, Any]:
        catalog = self.registry.current()
        return {
            "loaded": catalog is not None,
            "apiTitle": catalog.document.info.title if catalog is not None else None,
            "toolCount": len(catalog) if catalog is not None else 0,
            "tools": catalog.names() if catalog is not None else [],
        }

    def _format_result(self, response: HttpResponseModel) -> Dict[str, Any]:
        return {
            "statusCode": response.status_code,
            "headers": response.headers,
            "data": response.body,
        }

    def _format_error(self, tool_name: str, message: str) -> Dict[str, Any]:
        return {"error": True, "message": message, "toolName": tool_name}
