"""Shared fixtures: parsed fixture documents, settings and a mock upstream."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

from openapi_adapter.config import Settings
from openapi_adapter.executors import ExchangeExecutor
from openapi_adapter.openapi import parse_document
from openapi_adapter.service import ToolDispatcher
from openapi_adapter.tool_registry import ToolRegistry, build_catalog

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def petstore_text() -> str:
    return (FIXTURES / "petstore.yaml").read_text(encoding="utf-8")


@pytest.fixture
def petstore(petstore_text):
    return parse_document(petstore_text)


@pytest.fixture
def catalog(petstore):
    return build_catalog(petstore)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        adapter_max_concurrency=8,
        adapter_encode_query=True,
        adapter_spec_path=None,
        adapter_spec_directory=None,
    )


class Upstream:
    """Records requests and answers them with ``handler``."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(
            200, json={"ok": True}
        )
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content)


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry()


@pytest.fixture
def dispatcher(settings, registry, upstream) -> ToolDispatcher:
    return ToolDispatcher(settings, registry, ExchangeExecutor(transport=upstream.transport))
