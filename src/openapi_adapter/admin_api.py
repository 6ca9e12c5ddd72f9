"""Admin API for loading specifications and invoking catalog tools."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator
from starlette.requests import Request
from starlette.responses import JSONResponse

from .errors import AdapterError, InvalidDocument, ParseError, TransportFailure
from .openapi import summarize, validate_content
from .service import ToolDispatcher
from .tool_registry import ToolCatalog


logger = logging.getLogger(__name__)


class SpecLoad(BaseModel):
    url: Optional[str] = None
    content: Optional[str] = None
    format: Optional[Literal["json", "yaml"]] = None

    @model_validator(mode="after")
    def _one_source(self) -> "SpecLoad":
        if bool(self.url) == bool(self.content):
            raise ValueError("Provide exactly one of 'url' or 'content'")
        return self


class SpecValidate(BaseModel):
    content: str
    format: Optional[Literal["json", "yaml"]] = None


class ToolInvoke(BaseModel):
    arguments: Dict[str, Any] = Field(default_factory=dict)


def mount_admin_api(  # type: ignore[no-untyped-def]
    app,
    dispatcher: ToolDispatcher,
    on_catalog_change: Optional[Callable[[], None]] = None,
) -> None:
    registry = dispatcher.registry

    def catalog_changed() -> None:
        if on_catalog_change is not None:
            on_catalog_change()

    async def load_spec(request: Request) -> JSONResponse:
        try:
            data = SpecLoad(**await request.json())
        except (ValueError, TypeError) as exc:
            return _invalid_payload(exc)
        try:
            if data.url:
                catalog = await registry.load_url(data.url)
            else:
                catalog = registry.load_content(data.content or "", data.format)
        except AdapterError as exc:
            logger.warning("Specification load rejected: %s", exc)
            return _error_response(exc)
        catalog_changed()
        return JSONResponse(_catalog_summary(catalog))

    async def clear_specs(request: Request) -> JSONResponse:
        registry.clear()
        catalog_changed()
        return JSONResponse({"status": "cleared"})

    async def validate_spec(request: Request) -> JSONResponse:
        try:
            data = SpecValidate(**await request.json())
        except (ValueError, TypeError) as exc:
            return _invalid_payload(exc)
        return JSONResponse(validate_content(data.content, data.format))

    async def list_tools(request: Request) -> JSONResponse:
        if registry.current() is None:
            return JSONResponse({"error": "No OpenAPI specification has been loaded"}, status_code=409)
        return JSONResponse(dispatcher.list_tools())

    async def get_tool(request: Request) -> JSONResponse:
        details = dispatcher.get_tool_details(request.path_params["tool_name"])
        if details.get("error"):
            return JSONResponse(details, status_code=404)
        return JSONResponse(details)

    async def invoke_tool(request: Request) -> JSONResponse:
        tool_name = request.path_params["tool_name"]
        try:
            payload = await request.json() if await request.body() else {}
            data = ToolInvoke(**payload)
        except (ValueError, TypeError) as exc:
            return _invalid_payload(exc)
        result = await dispatcher.invoke(tool_name, data.arguments)
        return JSONResponse(result)

    async def overview(request: Request) -> JSONResponse:
        return JSONResponse(dispatcher.overview())

    app.add_route("/admin/specs", load_spec, methods=["POST"])
    app.add_route("/admin/specs", clear_specs, methods=["DELETE"])
    app.add_route("/admin/specs/validate", validate_spec, methods=["POST"])
    app.add_route("/admin/overview", overview, methods=["GET"])
    app.add_route("/admin/tools", list_tools, methods=["GET"])
    app.add_route("/admin/tools/{tool_name:str}", get_tool, methods=["GET"])
    app.add_route("/admin/tools/{tool_name:str}/invoke", invoke_tool, methods=["POST"])


def _catalog_summary(catalog: ToolCatalog) -> Dict[str, Any]:
    return {
        "info": summarize(catalog.document),
        "toolCount": len(catalog),
        "tools": catalog.names(),
    }


def _error_response(exc: AdapterError) -> JSONResponse:
    status_code = 500
    if isinstance(exc, (ParseError, InvalidDocument)):
        status_code = 400
    elif isinstance(exc, TransportFailure):
        status_code = 502
    return JSONResponse({"error": str(exc)}, status_code=status_code)


def _invalid_payload(exc: Exception) -> JSONResponse:
    if isinstance(exc, ValidationError):
        details: Any = exc.errors(include_url=False, include_context=False, include_input=False)
    else:
        details = str(exc)
    return JSONResponse({"error": "Invalid payload", "details": details}, status_code=422)
