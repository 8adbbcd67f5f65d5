import json
import os
import time
from collections.abc import Callable

import httpx
import pytest
from fastapi.testclient import TestClient

from fsproxy.core.config import Settings
from fsproxy.core.security import SignatureCodec
from fsproxy.main import create_app


RUN_INTEGRATION = os.getenv("RUN_INTEGRATION") == "1"
BASE_URL = os.getenv("BASE_URL", "http://localhost:5243")

BACKEND = "http://backend.test"
PUBLIC = "http://proxy.test"
TOKEN = "secret-token"


def file_response(data: bytes, status_code: int = 200, headers=None) -> httpx.Response:
    # A stream (not content=) so the proxy can read it raw, like a real upstream.
    return httpx.Response(status_code, headers=headers, stream=httpx.ByteStream(data))


def link_body(url: str, header: dict[str, list[str]] | None = None) -> dict:
    return {"code": 200, "message": "success", "data": {"url": url, "header": header or {}}}


class FakeStorage:
    """Backend link endpoint plus storage origins, served through one MockTransport."""

    def __init__(self) -> None:
        self.links: dict[str, dict | Callable[[httpx.Request], httpx.Response]] = {}
        self.files: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    @property
    def link_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == "backend.test"]

    @property
    def linked_paths(self) -> list[str]:
        return [json.loads(r.content)["path"] for r in self.link_requests]

    @property
    def file_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host != "backend.test"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "backend.test" and request.url.path == "/api/fs/link":
            path = json.loads(request.content)["path"]
            link = self.links.get(path, {"code": 404, "message": "object not found"})
            if callable(link):
                return link(request)
            return httpx.Response(200, json=link)

        route = self.files.get(str(request.url))
        if route is None:
            return file_response(b"no such object", status_code=404)
        return route(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        backend_address=BACKEND,
        backend_token=TOKEN,
        public_address=PUBLIC,
    )


@pytest.fixture
def codec() -> SignatureCodec:
    return SignatureCodec(TOKEN)


@pytest.fixture
def valid_sign(codec: SignatureCodec) -> Callable[[str], str]:
    def _sign(path: str) -> str:
        return codec.sign(path, int(time.time()) + 600)

    return _sign


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def make_client(storage: FakeStorage):
    clients: list[TestClient] = []

    def _make(settings: Settings) -> TestClient:
        client = TestClient(create_app(settings, transport=storage.transport), follow_redirects=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, settings: Settings) -> TestClient:
    return make_client(settings)


@pytest.fixture(scope="session")
def integration_enabled() -> bool:
    return RUN_INTEGRATION


@pytest.fixture(scope="session")
def base_url() -> str:
    return BASE_URL
