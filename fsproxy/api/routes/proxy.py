from fastapi import APIRouter
from fastapi.responses import Response, StreamingResponse

from fsproxy.api.deps import InboundRequest, Pipeline

router = APIRouter(tags=["proxy"])

PROXY_METHODS = ["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"]


@router.api_route("/{file_path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def download(inbound: InboundRequest, pipeline: Pipeline) -> Response:
    result = await pipeline.handle(inbound)

    if result.body is None:
        response: Response = Response(status_code=result.status_code)
    else:
        response = StreamingResponse(result.stream(), status_code=result.status_code)
    for name, value in result.headers.items():
        response.headers.append(name, value)
    return response
