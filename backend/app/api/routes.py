from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from structlog.contextvars import bind_contextvars, reset_contextvars

from backend.app.dependencies import get_video_info_service
from backend.app.models.video_info_contracts import VideoInfoPayload
from backend.app.services.video_info_service import VideoInfoService

router = APIRouter()

LOOKUP_ROUTE_PATH = "/{request_path:path}"
UNSUPPORTED_METHODS = ["POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

_LOOKUP_RESPONSES: dict[int | str, dict[str, Any]] = {
    200: {"model": VideoInfoPayload, "description": "Cached or freshly resolved metadata."},
    404: {"description": "Malformed identifier, known-invalid identifier, or unknown video."},
    500: {"description": "Upstream failure or inconsistent upstream payload."},
}


@router.get(
    LOOKUP_ROUTE_PATH,
    responses=_LOOKUP_RESPONSES,
    response_class=Response,
    tags=["video_info"],
    operation_id="lookup_video_info",
)
def lookup_video_info(
    request_path: str,
    request: Request,
    service: Annotated[VideoInfoService, Depends(get_video_info_service)],
) -> Response:
    raw_path = _raw_request_path(request)
    context_tokens = bind_contextvars(lookup_path=raw_path)
    try:
        result = service.lookup(raw_path, request.url.query or None)
    finally:
        reset_contextvars(**context_tokens)

    if result.video is None:
        return Response(status_code=result.status_code)
    payload = VideoInfoPayload.from_video_info(result.video)
    return JSONResponse(status_code=result.status_code, content=payload.model_dump())


# HEAD runs the same lookup; the server drops the body.
router.add_api_route(
    LOOKUP_ROUTE_PATH,
    lookup_video_info,
    methods=["HEAD"],
    response_class=Response,
    include_in_schema=False,
)


@router.api_route(LOOKUP_ROUTE_PATH, methods=UNSUPPORTED_METHODS, include_in_schema=False)
def reject_unsupported_method(request_path: str) -> Response:
    _ = request_path
    return Response(status_code=404)


def _raw_request_path(request: Request) -> str:
    """The path exactly as sent, before percent-decoding."""
    raw_path = request.scope.get("raw_path")
    if isinstance(raw_path, bytes):
        return raw_path.decode("latin-1").split("?", 1)[0]
    return request.url.path
