"""Exchange layer: the single funnel every HTTP call passes through."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from .errors import TransportFailure
from .models import HttpRequestModel, HttpResponseModel
from .schema import PATH_PLACEHOLDER

logger = logging.getLogger(__name__)

# Marks a compiled request as "do not raise on non-2xx"; never sent upstream.
NO_RAISE_PARAM = "throwExceptionOnFailure"

TRANSPORT_HEADERS = frozenset(
    {"http_method", "http_response_code", "http_response_text", "http_endpoint", "accept"}
)

RESPONSE_HEADER_PREFIXES = ("content-", "cache-", "x-")

RESPONSE_HEADERS = frozenset(
    {
        "date",
        "server",
        "location",
        "set-cookie",
        "transfer-encoding",
        "connection",
        "vary",
        "etag",
        "last-modified",
    }
)


def outgoing_headers(headers: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for key, value in (headers or {}).items():
        if key.lower() in TRANSPORT_HEADERS or value is None:
            continue
        result[key] = str(value)
    return result


def is_response_header(name: str) -> bool:
    lowered = name.lower()
    return lowered in RESPONSE_HEADERS or lowered.startswith(RESPONSE_HEADER_PREFIXES)


def filter_response_headers(headers: httpx.Headers) -> Dict[str, Any]:
    """Keep HTTP response headers only; repeated headers collapse into a list."""
    result: Dict[str, Any] = {}
    for raw_key, raw_value in headers.raw:
        key = raw_key.decode(headers.encoding)
        if not is_response_header(key):
            continue
        value = raw_value.decode(headers.encoding)
        if key in result:
            existing = result[key]
            result[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            result[key] = value
    return result


def strip_reserved_query(url: str) -> str:
    base, sep, query = url.partition("?")
    if not sep:
        return url
    kept = [part for part in query.split("&") if part and part.split("=", 1)[0] != NO_RAISE_PARAM]
    return f"{base}?{'&'.join(kept)}" if kept else base


class ExchangeExecutor:
    """Performs one HTTP call per request and never raises on a non-2xx status."""

    def __init__(
        self,
        timeout_seconds: float = 30,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl
        self.transport = transport

    async def execute(self, request: HttpRequestModel) -> HttpResponseModel:
        url = strip_reserved_query(request.url)
        unresolved = PATH_PLACEHOLDER.search(url.partition("?")[0])
        if unresolved:
            raise TransportFailure(
                f"malformed URL {url}: unresolved path placeholder {unresolved.group(0)}"
            )
        headers = outgoing_headers(request.headers)
        content = request.body.encode("utf-8") if request.body else None

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                verify=self.verify_ssl,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    request.method.upper(),
                    url,
                    headers=headers,
                    content=content,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("HTTP exchange failed: %s %s (%s)", request.method, url, exc)
            raise TransportFailure(f"{request.method} {url} failed: {exc}") from exc

        logger.info("HTTP exchange completed: %s %s -> %s", request.method, url, response.status_code)
        return HttpResponseModel(
            status_code=response.status_code or 200,
            headers=filter_response_headers(response.headers),
            body=response.text if response.content else None,
        )
