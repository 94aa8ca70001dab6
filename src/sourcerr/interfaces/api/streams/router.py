"""Stream aggregation and playback endpoints."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from sourcerr.domain.entities.streams import (
    AggregationRequest,
    SortOrder,
    SourceKind,
    Stream,
)
from sourcerr.domain.exceptions import DebridError, RequestCancelled
from sourcerr.interfaces.api.streams.presenter import present_result
from sourcerr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(tags=["streams"])


def _client_key(request: Request) -> str:
    host = request.client.host if request.client else "anonymous"
    return f"streams:{host}"


@router.get("/streams/{content_type}/{content_id}")
async def get_streams(
    request: Request,
    content_type: str,
    content_id: str,
    sort: SortOrder | None = Query(default=None),
    provider: str | None = Query(default=None),
) -> JSONResponse:
    """Aggregate, verify and rank streams for a movie or an episode.

    A newer request from the same client supersedes this one; the stale
    request answers 409.
    """
    state = cast(AppState, request.app.state)

    try:
        agg_request = AggregationRequest.from_stremio_id(content_type, content_id)
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    key = _client_key(request)
    token = state.superseding.begin(key)
    try:
        result = await state.aggregate_uc.execute(
            agg_request,
            sort_order=sort,
            provider_filter=provider,
            token=token,
        )
    except RequestCancelled:
        log.info("stream_request_cancelled", content_id=agg_request.stremio_id)
        return JSONResponse(status_code=409, content={"detail": "Request superseded"})
    finally:
        state.superseding.end(key, token)

    return JSONResponse(content=present_result(result))


@router.get("/play/{content_type}/{content_id}/{info_hash}")
async def play(
    request: Request,
    content_type: str,
    content_id: str,
    info_hash: str,
    file_index: int | None = Query(default=None, ge=0),
) -> Response:
    """Redirect to a debrid download URL for one torrent."""
    state = cast(AppState, request.app.state)

    try:
        agg_request = AggregationRequest.from_stremio_id(content_type, content_id)
        stream = Stream(
            source_kind=SourceKind.TORRENT,
            provider_id="play",
            provider_name="play",
            info_hash=info_hash,
            file_index=file_index,
        )
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    try:
        resolved = await state.playback_uc.execute(stream, agg_request)
    except DebridError as exc:
        log.warning("playback_debrid_error", info_hash=stream.info_hash, error=str(exc))
        return JSONResponse(status_code=502, content={"detail": str(exc)})

    if resolved is None or not resolved.url:
        return JSONResponse(status_code=404, content={"detail": "No playable URL"})
    return RedirectResponse(resolved.url, status_code=307)
