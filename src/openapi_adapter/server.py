"""MCP server setup for the OpenAPI adapter."""

import logging
from functools import partial
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from fastmcp import FastMCP

from .admin_api import mount_admin_api
from .config import Settings
from .errors import AdapterError
from .models import ToolDefinition
from .openapi import OpenAPILoader
from .schema import build_input_model
from .service import ToolDispatcher
from .tool_registry import ToolRegistry

logger = logging.getLogger(__name__)

GENERIC_TOOLS = frozenset({"invoke_tool", "list_tools", "get_tool_details", "http_request"})


def build_dispatcher(settings: Settings) -> ToolDispatcher:
    openapi_loader = OpenAPILoader(
        cache_seconds=settings.adapter_openapi_cache_seconds,
        timeout_seconds=settings.adapter_http_timeout_seconds,
    )
    registry = ToolRegistry(openapi_loader)
    return ToolDispatcher(settings, registry)


def auto_load(settings: Settings, registry: ToolRegistry) -> None:
    if not settings.adapter_auto_load:
        logger.info("OpenAPI auto-load disabled")
        return
    if settings.adapter_spec_path:
        try:
            registry.load_file(settings.adapter_spec_path)
        except AdapterError as exc:
            logger.error("Failed to load OpenAPI spec %s: %s", settings.adapter_spec_path, exc)
    if settings.adapter_spec_directory:
        try:
            results = registry.load_directory(settings.adapter_spec_directory)
        except AdapterError as exc:
            logger.error("Failed to scan %s: %s", settings.adapter_spec_directory, exc)
        else:
            loaded = sum(1 for result in results.values() if result["loaded"])
            logger.info(
                "Scanned %s: %s of %s specs loaded",
                settings.adapter_spec_directory,
                loaded,
                len(results),
            )
    if not settings.adapter_spec_path and not settings.adapter_spec_directory:
        logger.info("No OpenAPI spec path configured; skipping auto-load")


async def build_server(
    settings: Settings, dispatcher: Optional[ToolDispatcher] = None
) -> tuple[FastMCP, object | None]:
    dispatcher = dispatcher or build_dispatcher(settings)
    auto_load(settings, dispatcher.registry)

    mcp = FastMCP(settings.service_name, instructions=_instructions())
    register_generic_tools(mcp, dispatcher)
    sync_tools = partial(sync_catalog_tools, mcp, dispatcher, set())
    sync_tools()

    app = _get_http_app(mcp, settings)
    _attach_healthcheck(app)
    if app:
        mount_admin_api(app, dispatcher, on_catalog_change=sync_tools)  # type: ignore[arg-type]

    return mcp, app


def sync_catalog_tools(mcp: FastMCP, dispatcher: ToolDispatcher, registered: Set[str]) -> None:
    """Replace the per-operation tools with those of the current catalog.

    ``registered`` holds the names added by the previous call and is updated
    in place.
    """
    for name in sorted(registered):
        mcp.remove_tool(name)
        logger.info("Removed tool: %s", name)
    registered.clear()

    for tool in dispatcher.registry.current() or []:
        if tool.tool_name in GENERIC_TOOLS:
            logger.warning("Skipping tool %s: name is reserved", tool.tool_name)
            continue
        handler = _tool_handler(dispatcher, tool)
        mcp.tool(name=tool.tool_name, description=tool.description)(handler)
        registered.add(tool.tool_name)
        logger.info("Registered tool: %s", tool.tool_name)


def register_generic_tools(mcp: FastMCP, dispatcher: ToolDispatcher) -> None:
    async def invoke_tool(tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Invoke a loaded OpenAPI operation by tool name with a flat argument map."""
        return await dispatcher.invoke(tool_name, arguments or {})

    def list_tools() -> Dict[str, str]:
        """List the tools derived from the loaded OpenAPI specification."""
        return dispatcher.list_tools()

    def get_tool_details(tool_name: str) -> Dict[str, Any]:
        """Describe one tool: method, path, parameters and input schema."""
        return dispatcher.get_tool_details(tool_name)

    async def http_request(
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
        query_params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Send an HTTP request and return its status, headers and body."""
        return await dispatcher.http_request(url, method, headers, body, query_params)

    for fn in (invoke_tool, list_tools, get_tool_details, http_request):
        mcp.tool(name=fn.__name__)(fn)


def _tool_handler(
    dispatcher: ToolDispatcher, tool: ToolDefinition
) -> Callable[[Any], Awaitable[Dict[str, Any]]]:
    input_model = build_input_model(tool.tool_name, tool.input_schema)

    async def handler(payload: input_model) -> Dict[str, Any]:  # type: ignore[valid-type]
        arguments = payload.model_dump(by_alias=True, exclude_none=True)
        return await dispatcher.invoke(tool.tool_name, arguments)

    handler.__name__ = tool.tool_name
    return handler


def _attach_healthcheck(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return

    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        from starlette.responses import JSONResponse

        return JSONResponse({"status": "ok"})

    app.add_route("/health", healthcheck, methods=["GET"])


def _instructions() -> str:
    return (
        "OpenAPI adapter. Every operation of the loaded specification is exposed "
        "as a tool; call invoke_tool with the tool name and a flat argument map."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.adapter_transport.lower()
    if transport in {"http"}:
        app = mcp.http_app(transport="http", stateless_http=True, json_response=True)
        _attach_cors(app)
        return app
    if transport in {"streamable-http", "streamablehttp"}:
        app = mcp.http_app(
            transport="streamable-http", stateless_http=True, json_response=True
        )
        _attach_cors(app)
        return app
    if transport in {"sse"}:
        app = mcp.http_app(transport="sse")
        _attach_cors(app)
        return app
    return None


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return
    from starlette.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
