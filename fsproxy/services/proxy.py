"""
Download pipeline: validate -> resolve -> fetch -> follow redirects -> sanitize.

A redirect that points back at this proxy's own public address re-enters the
whole pipeline as a fresh request, so the target may itself be a signed proxy
URL. Every other redirect is refetched directly with the same method and
headers. The hop count is shared across re-entries and bounded by
``max_redirects``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field

import httpx
import structlog

from fsproxy.core.config import Settings
from fsproxy.core.errors import RedirectLimitError, SignatureError, TransportError
from fsproxy.core.headers import HeaderMultiMap
from fsproxy.core.security import SignatureCodec
from fsproxy.services.cors import CorsPolicy
from fsproxy.services.link_resolver import LinkResolver

logger = structlog.get_logger(__name__)

HOP_BY_HOP_HEADERS = (
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
)

# Not forwarded upstream; httpx derives them from the target URL and body.
REQUEST_DROPPED_HEADERS = HOP_BY_HOP_HEADERS + ("host", "content-length")

RESPONSE_DROPPED_HEADERS = HOP_BY_HOP_HEADERS + ("set-cookie", "alt-svc", "access-control-allow-origin")


@dataclass
class ProxyRequest:
    method: str
    path: str
    sign: str = ""
    headers: HeaderMultiMap = field(default_factory=HeaderMultiMap)
    hops: int = 0

    @classmethod
    def for_location(cls, location: httpx.URL, parent: ProxyRequest, hops: int) -> ProxyRequest:
        return cls(
            method=parent.method,
            path=location.path,
            sign=location.params.get("sign", ""),
            headers=parent.headers.copy(),
            hops=hops,
        )


@dataclass
class ProxyResult:
    status_code: int
    headers: HeaderMultiMap
    body: AsyncIterator[bytes] | None = None
    upstream: httpx.Response | None = None

    async def stream(self) -> AsyncIterator[bytes]:
        """Body bytes exactly as received; the upstream connection is released when done."""
        try:
            if self.body is not None:
                async for chunk in self.body:
                    yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self.upstream is not None:
            await self.upstream.aclose()


def normalize_url(url: str) -> str:
    """Scheme-less links (``//host/file``) are fetched over plain http."""
    if url.startswith("http"):
        return url
    return f"http:{url}"


def outbound_headers(inbound: HeaderMultiMap, extra: HeaderMultiMap) -> HeaderMultiMap:
    headers = inbound.copy()
    for name in REQUEST_DROPPED_HEADERS:
        headers.remove(name)
    # Storage-origin headers (auth tokens, referer) win over whatever the caller sent.
    headers.merge(extra, replace=True)
    return headers


def wire_headers(headers: HeaderMultiMap) -> list[tuple[bytes, bytes]]:
    """Encode for the outbound request; repeated ``Cookie`` values fold into one line (RFC 6265 5.4)."""
    raw: list[tuple[bytes, bytes]] = []
    for name, values in headers.grouped():
        if name.lower() == "cookie":
            values = ["; ".join(values)]
        raw.extend((_encode(name), _encode(value)) for value in values)
    return raw


def _is_redirect(response: httpx.Response) -> bool:
    return 300 <= response.status_code < 400


class ProxyPipeline:
    def __init__(
        self,
        settings: Settings,
        codec: SignatureCodec,
        resolver: LinkResolver,
        client: httpx.AsyncClient,
        cors: CorsPolicy | None = None,
    ) -> None:
        self._codec = codec
        self._resolver = resolver
        self._client = client
        self._cors = cors or CorsPolicy()
        self._timeout = settings.upstream_timeout_seconds
        self._max_redirects = settings.max_redirects
        self._public = httpx.URL(settings.public_address) if settings.public_address else None

    async def handle(self, request: ProxyRequest) -> ProxyResult:
        if request.method.upper() == "OPTIONS":
            return ProxyResult(status_code=200, headers=self._cors.options_headers(request.headers))

        self._validate(request)

        link = await self._resolver.resolve(request.path)
        url = normalize_url(link.url)
        headers = outbound_headers(request.headers, link.headers)

        response = await self._fetch(request.method, url, headers)
        logger.info("proxy.fetch", path=request.path, upstream=_redacted(response.url), status=response.status_code)

        hops = request.hops
        while _is_redirect(response):
            location = response.headers.get("location")
            if not location:
                break

            hops += 1
            if hops > self._max_redirects:
                await response.aclose()
                logger.warning("proxy.redirect_limit", path=request.path, limit=self._max_redirects)
                raise RedirectLimitError(self._max_redirects)

            target = response.url.join(location)
            await response.aclose()

            if self.is_self(target):
                logger.info("proxy.reenter", path=request.path, target=target.path, hops=hops)
                return await self.handle(ProxyRequest.for_location(target, request, hops))

            response = await self._fetch(request.method, target, headers)
            logger.info("proxy.redirect", path=request.path, upstream=_redacted(target), status=response.status_code)

        return self._finish(request, response)

    def is_self(self, url: httpx.URL) -> bool:
        """True when ``url`` lives under this proxy's configured public address."""
        public = self._public
        if public is None:
            return False
        if (url.scheme, url.host, url.port) != (public.scheme, public.host, public.port):
            return False
        prefix = public.path.rstrip("/") + "/"
        return url.path.startswith(prefix)

    def _validate(self, request: ProxyRequest) -> None:
        if self._codec.disabled:
            return
        outcome = self._codec.verify(request.path, request.sign)
        if not outcome.ok:
            logger.info("proxy.sign_rejected", path=request.path, reason=outcome.value)
            raise SignatureError(outcome.value)

    async def _fetch(self, method: str, url: str | httpx.URL, headers: HeaderMultiMap) -> httpx.Response:
        try:
            upstream = self._client.build_request(method, url, headers=wire_headers(headers), timeout=self._timeout)
            return await self._client.send(upstream, stream=True, follow_redirects=False)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("proxy.upstream_error", error=str(exc))
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

    def _finish(self, request: ProxyRequest, response: httpx.Response) -> ProxyResult:
        # latin-1 round-trips the raw bytes; Starlette encodes them back the same way.
        headers = HeaderMultiMap.from_pairs((k.decode("latin-1"), v.decode("latin-1")) for k, v in response.headers.raw)
        for name in RESPONSE_DROPPED_HEADERS:
            headers.remove(name)
        self._cors.apply(request.headers, headers)
        return ProxyResult(
            status_code=response.status_code,
            headers=headers,
            body=response.aiter_raw(),
            upstream=response,
        )


def _encode(value: str) -> bytes:
    try:
        return value.encode("latin-1")
    except UnicodeEncodeError:
        return value.encode("utf-8")


def _redacted(url: httpx.URL) -> str:
    # Signed storage URLs carry credentials in the query string.
    return str(url).split("?", 1)[0]
