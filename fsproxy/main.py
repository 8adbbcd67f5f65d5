from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fsproxy import __version__
from fsproxy.api.routes import proxy
from fsproxy.core.config import Settings, get_settings
from fsproxy.core.errors import ApiError
from fsproxy.core.headers import HeaderMultiMap
from fsproxy.core.security import SignatureCodec
from fsproxy.schemas.link import ErrorEnvelope
from fsproxy.services.cors import CorsPolicy
from fsproxy.services.link_resolver import LinkResolver
from fsproxy.services.proxy import ProxyPipeline

logger = structlog.get_logger(__name__)

ERROR_MEDIA_TYPE = "application/json;charset=UTF-8"


def build_http_client(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    # Streamed downloads hold a connection each until the body ends; only idle keep-alives are capped.
    limits = httpx.Limits(max_connections=None, max_keepalive_connections=settings.upstream_keepalive_connections)
    return httpx.AsyncClient(transport=transport, limits=limits)


def create_app(settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    settings = settings or get_settings()
    cors = CorsPolicy()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.disable_sign:
            logger.warning(
                "signature verification is DISABLED: anyone who knows a file path can download it",
                app_env=settings.app_env,
            )
        if not settings.backend_address:
            logger.warning("backend address is not configured")

        async with build_http_client(settings, transport) as client:
            codec = SignatureCodec.from_settings(settings)
            resolver = LinkResolver(settings, client)
            app.state.pipeline = ProxyPipeline(settings, codec, resolver, client, cors=cors)
            logger.info("proxy.started", backend=settings.backend_address, public_address=settings.public_address)
            yield

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        origin = cors.allow_origin(HeaderMultiMap.from_pairs(request.headers.items()))
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorEnvelope(code=exc.code, message=exc.message).model_dump(),
            media_type=ERROR_MEDIA_TYPE,
            headers={"Access-Control-Allow-Origin": origin},
        )

    @app.get("/healthz", include_in_schema=False)
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(proxy.router)
    return app
