"""Error kinds raised by the adapter core."""

from __future__ import annotations


class AdapterError(Exception):
    pass


class ParseError(AdapterError):
    """Specification content could not be parsed or its references resolved."""


class InvalidDocument(AdapterError):
    """Specification parsed but is missing ``info.title``."""


class ToolNotFound(AdapterError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class CatalogNotLoaded(AdapterError):
    def __init__(self) -> None:
        super().__init__("No OpenAPI specification has been loaded")


class UnsupportedMethod(AdapterError):
    def __init__(self, method: str) -> None:
        super().__init__(f"Unsupported HTTP method: {method!r}")
        self.method = method


class TransportFailure(AdapterError):
    """Connection-level failure during an exchange (not a non-2xx status)."""
