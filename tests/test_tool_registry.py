import threading

import httpx
import pytest

from openapi_adapter.errors import CatalogNotLoaded, ParseError
from openapi_adapter.openapi import OpenAPILoader, parse_document
from openapi_adapter.tool_registry import (
    ToolRegistry,
    build_catalog,
    fallback_tool_name,
)

from conftest import FIXTURES


def _ping_document(title: str, server: str) -> str:
    return (
        "openapi: 3.0.0\n"
        f"info:\n  title: {title}\n  version: '1'\n"
        f"servers:\n  - url: {server}\n"
        "paths:\n  /ping:\n    get:\n      operationId: ping\n"
    )


class TestFallbackToolName:
    @pytest.mark.parametrize(
        "method,path,expected",
        [
            ("GET", "/pets/{id}", "get_pets_id"),
            ("POST", "/users/{userId}/posts", "post_users_userid_posts"),
            ("DELETE", "/v1/items.json", "delete_v1_items_json"),
            ("GET", "/", "get_root"),
        ],
    )
    def test_names(self, method, path, expected):
        assert fallback_tool_name(method, path) == expected

    def test_colliding_fallback_names_get_suffixes(self):
        document = parse_document(
            """
openapi: 3.0.0
info: {title: Collide, version: '1'}
servers: [{url: https://api.example.com}]
paths:
  /pets/{id}:
    get: {summary: by placeholder}
  /pets/id:
    get: {summary: literal}
  /a-b:
    get: {summary: dash}
  /a_b:
    get: {summary: underscore}
"""
        )
        catalog = build_catalog(document)
        assert catalog.names() == ["get_pets_id", "get_pets_id_2", "get_a_b", "get_a_b_2"]
        assert catalog.get("get_pets_id").path_template == "/pets/{id}"
        assert catalog.get("get_pets_id_2").path_template == "/pets/id"
        assert catalog.get("get_a_b_2").path_template == "/a_b"

    def test_suffixes_are_stable_across_reloads(self):
        content = "openapi: 3.0.0\ninfo: {title: T}\npaths:\n  /x-y: {get: {}}\n  /x_y: {get: {}}\n"
        first = build_catalog(parse_document(content))
        second = build_catalog(parse_document(content))
        assert first.names() == second.names() == ["get_x_y", "get_x_y_2"]


class TestBuildCatalog:
    def test_one_tool_per_operation(self, catalog):
        assert sorted(catalog.names()) == sorted(
            ["listPets", "createPet", "get_pets_petid", "deletePet", "getUserPost", "uploadFile"]
        )
        assert len(catalog) == 6
        assert "listPets" in catalog
        assert "missing" not in catalog

    def test_tool_fields(self, catalog):
        tool = catalog.get("listPets")
        assert tool.method == "GET"
        assert tool.path_template == "/pets"
        assert tool.base_url == "https://petstore.example.com/v1"
        assert tool.has_request_body is False
        assert [p.name for p in tool.parameters] == ["limit", "Authorization"]
        assert tool.operation.operation_id == "listPets"

    def test_description_fallbacks(self, catalog):
        assert catalog.get("getUserPost").description == "Fetch one post"
        assert catalog.get("listPets").description == "List all pets"
        assert catalog.get("deletePet").description == "DELETE /pets/{petId}"

    def test_base_url_empty_without_servers(self):
        document = parse_document((FIXTURES / "users.json").read_text())
        catalog = build_catalog(document)
        assert {tool.base_url for tool in catalog} == {""}

    def test_tools_mapping_is_read_only(self, catalog):
        with pytest.raises(TypeError):
            catalog.tools["extra"] = catalog.get("listPets")

    def test_duplicate_names_last_wins(self, caplog):
        document = parse_document(
            """
openapi: 3.0.0
info: {title: Dupes, version: '1'}
paths:
  /a:
    get: {operationId: same, summary: first}
  /b:
    get: {operationId: same, summary: second}
"""
        )
        catalog = build_catalog(document)
        assert len(catalog) == 1
        assert catalog.get("same").path_template == "/b"
        assert "Duplicate tool name same" in caplog.text

    def test_empty_paths(self):
        document = parse_document("openapi: 3.0.0\ninfo:\n  title: Empty\n")
        assert len(build_catalog(document)) == 0


class TestToolRegistry:
    def test_not_loaded(self, registry):
        assert registry.current() is None
        with pytest.raises(CatalogNotLoaded):
            registry.require()

    def test_load_content(self, registry, petstore_text):
        catalog = registry.load_content(petstore_text)
        assert registry.current() is catalog
        assert registry.require() is catalog
        assert catalog.document.info.title == "Petstore"

    def test_failed_load_keeps_previous_catalog(self, registry, petstore_text):
        previous = registry.load_content(petstore_text)
        with pytest.raises(ParseError):
            registry.load_content("openapi: 3.0.0\npaths: {}\n")
        assert registry.current() is previous

    def test_reload_replaces_catalog(self, registry, petstore_text):
        registry.load_content(petstore_text)
        catalog = registry.load_file(FIXTURES / "users.json")
        assert registry.current() is catalog
        assert sorted(catalog.names()) == ["listUsers", "updateUser"]
        assert registry.current().get("listPets") is None

    def test_clear(self, registry, petstore_text):
        registry.load_content(petstore_text)
        registry.clear()
        assert registry.current() is None
        with pytest.raises(CatalogNotLoaded):
            registry.require()

    def test_load_directory(self, registry):
        results = registry.load_directory(FIXTURES)
        broken = str(FIXTURES / "nested" / "broken.yaml")
        assert results[broken]["loaded"] is False
        assert "info" in results[broken]["error"]
        assert results[str(FIXTURES / "petstore.yaml")] == {"loaded": True, "toolCount": 6}
        assert results[str(FIXTURES / "users.json")] == {"loaded": True, "toolCount": 2}
        assert registry.current().document.info.title == "Users API"

    def test_load_directory_records_undecodable_files(self, registry, tmp_path, petstore_text):
        (tmp_path / "a_bad.yaml").write_bytes(b"\xff\xfe")
        (tmp_path / "b_petstore.yaml").write_text(petstore_text, encoding="utf-8")
        results = registry.load_directory(tmp_path)
        assert results[str(tmp_path / "a_bad.yaml")]["loaded"] is False
        assert results[str(tmp_path / "b_petstore.yaml")] == {"loaded": True, "toolCount": 6}
        assert registry.current().document.info.title == "Petstore"

    async def test_load_url(self, petstore_text):
        loader = OpenAPILoader(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text=petstore_text))
        )
        registry = ToolRegistry(loader)
        catalog = await registry.load_url("https://specs.example.com/petstore.yaml")
        assert registry.current() is catalog
        assert len(catalog) == 6

    def test_concurrent_readers_see_whole_catalogs(self, registry):
        first = _ping_document("First", "https://one.example.com")
        second = _ping_document("Second", "https://two.example.com")
        expected = {"First": "https://one.example.com", "Second": "https://two.example.com"}
        registry.load_content(first)
        mismatches = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                catalog = registry.require()
                tool = catalog.get("ping")
                if tool.base_url != expected[catalog.document.info.title]:
                    mismatches.append(catalog.document.info.title)

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for thread in readers:
            thread.start()
        for index in range(50):
            registry.load_content(second if index % 2 else first)
        stop.set()
        for thread in readers:
            thread.join()

        assert mismatches == []
