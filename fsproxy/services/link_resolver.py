"""
Storage backend link resolution.

Turns an internal file path into a time-limited, directly fetchable URL plus
the extra headers the storage origin expects on that fetch.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import httpx
import structlog
from pydantic import ValidationError

from fsproxy.core.config import Settings
from fsproxy.core.errors import BackendError, DecodeError, TransportError
from fsproxy.core.headers import HeaderMultiMap
from fsproxy.schemas.link import LinkRequest, LinkResponse

logger = structlog.get_logger(__name__)

LINK_ENDPOINT = "/api/fs/link"


@dataclass
class ResolvedLink:
    url: str
    headers: HeaderMultiMap = field(default_factory=HeaderMultiMap)


class LinkResolver:
    """Client for the backend's link endpoint. Failures are terminal; nothing is retried."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        self._address = settings.backend_address
        self._token = settings.backend_token
        self._timeout = settings.backend_timeout_seconds
        self._client = client

    @property
    def endpoint(self) -> str:
        return f"{self._address}{LINK_ENDPOINT}"

    async def resolve(self, path: str) -> ResolvedLink:
        payload = LinkRequest(path=path).model_dump()
        try:
            resp = await self._client.post(
                self.endpoint,
                json=payload,
                headers={
                    "Content-Type": "application/json;charset=UTF-8",
                    "Authorization": self._token,
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.warning("link.transport_error", path=path, error=str(exc))
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        try:
            body = LinkResponse.model_validate_json(resp.content)
        except ValidationError as exc:
            logger.warning("link.decode_error", path=path, status=resp.status_code)
            raise DecodeError(f"invalid link response: {exc.errors()[0]['msg']}") from exc

        if body.code != 200:
            logger.info("link.backend_error", path=path, code=body.code, message=body.message)
            raise BackendError(code=body.code, message=body.message)

        if body.data is None or not body.data.url:
            raise DecodeError("invalid link response: missing url")

        return ResolvedLink(url=body.data.url, headers=HeaderMultiMap.from_mapping(body.data.header))
