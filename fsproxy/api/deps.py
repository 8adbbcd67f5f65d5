from typing import Annotated

from fastapi import Depends, Request

from fsproxy.core.headers import HeaderMultiMap
from fsproxy.services.proxy import ProxyPipeline, ProxyRequest


def get_pipeline(request: Request) -> ProxyPipeline:
    return request.app.state.pipeline


def get_proxy_request(request: Request) -> ProxyRequest:
    # scope["path"] is already percent-decoded; signatures cover the decoded path.
    return ProxyRequest(
        method=request.method,
        path=request.scope["path"],
        sign=request.query_params.get("sign", ""),
        headers=HeaderMultiMap.from_pairs(request.headers.items()),
    )


Pipeline = Annotated[ProxyPipeline, Depends(get_pipeline)]
InboundRequest = Annotated[ProxyRequest, Depends(get_proxy_request)]
