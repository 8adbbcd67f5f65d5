import json

import httpx
import pytest

from fsproxy.core.errors import BackendError, DecodeError, TransportError
from fsproxy.services.link_resolver import LinkResolver

from .conftest import TOKEN, FakeStorage, link_body


@pytest.mark.asyncio
async def test_resolve_posts_path_with_token(settings, storage: FakeStorage):
    storage.links["/a/b.txt"] = link_body("https://cdn.example/file", {"Referer": ["https://pan.example/"]})

    async with httpx.AsyncClient(transport=storage.transport) as client:
        link = await LinkResolver(settings, client).resolve("/a/b.txt")

    assert link.url == "https://cdn.example/file"
    assert link.headers.get_all("referer") == ["https://pan.example/"]

    (sent,) = storage.link_requests
    assert sent.method == "POST"
    assert str(sent.url) == "http://backend.test/api/fs/link"
    assert sent.headers["authorization"] == TOKEN
    assert sent.headers["content-type"].startswith("application/json")
    assert json.loads(sent.content) == {"path": "/a/b.txt"}


@pytest.mark.asyncio
async def test_null_header_map_is_empty(settings, storage: FakeStorage):
    storage.links["/a"] = {"code": 200, "message": "success", "data": {"url": "//cdn.example/a", "header": None}}

    async with httpx.AsyncClient(transport=storage.transport) as client:
        link = await LinkResolver(settings, client).resolve("/a")

    assert len(link.headers) == 0


@pytest.mark.asyncio
async def test_backend_code_is_passed_through(settings, storage: FakeStorage):
    async with httpx.AsyncClient(transport=storage.transport) as client:
        with pytest.raises(BackendError) as exc_info:
            await LinkResolver(settings, client).resolve("/missing")

    assert exc_info.value.code == 404
    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "object not found"


@pytest.mark.asyncio
async def test_non_http_backend_code_maps_to_500_status(settings, storage: FakeStorage):
    storage.links["/odd"] = {"code": 1001, "message": "quota exceeded"}

    async with httpx.AsyncClient(transport=storage.transport) as client:
        with pytest.raises(BackendError) as exc_info:
            await LinkResolver(settings, client).resolve("/odd")

    assert exc_info.value.code == 1001
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_malformed_json_is_decode_error(settings, storage: FakeStorage):
    storage.links["/broken"] = lambda request: httpx.Response(502, text="<html>bad gateway</html>")

    async with httpx.AsyncClient(transport=storage.transport) as client:
        with pytest.raises(DecodeError) as exc_info:
            await LinkResolver(settings, client).resolve("/broken")

    assert exc_info.value.code == 500


@pytest.mark.asyncio
async def test_success_without_url_is_decode_error(settings, storage: FakeStorage):
    storage.links["/empty"] = {"code": 200, "message": "success", "data": {"url": ""}}

    async with httpx.AsyncClient(transport=storage.transport) as client:
        with pytest.raises(DecodeError):
            await LinkResolver(settings, client).resolve("/empty")


@pytest.mark.asyncio
async def test_unreachable_backend_is_transport_error(settings):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(TransportError) as exc_info:
            await LinkResolver(settings, client).resolve("/a")

    assert exc_info.value.code == 500
    assert "connection refused" in exc_info.value.message
    assert TOKEN not in exc_info.value.message
