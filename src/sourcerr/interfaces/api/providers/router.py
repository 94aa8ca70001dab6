"""Third-party provider management endpoints."""

from __future__ import annotations

from typing import Any, cast

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sourcerr.domain.entities.providers import Provider
from sourcerr.domain.exceptions import ManifestError
from sourcerr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/providers", tags=["providers"])


class InstallRequest(BaseModel):
    manifest_url: str


def present_provider(provider: Provider) -> dict[str, Any]:
    return {
        "id": provider.id,
        "name": provider.name,
        "version": provider.version,
        "base_url": provider.base_url,
        "manifest_url": provider.original_manifest_url,
        "types": sorted(provider.supported_types),
        "stream_capable": provider.stream_capable,
        "id_prefixes": sorted(provider.id_prefixes | provider.stream_id_prefixes),
    }


@router.get("")
async def list_providers(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    providers = state.registry.list_providers()
    return JSONResponse(
        content={
            "providers": [present_provider(p) for p in providers],
            "has_stream_providers": state.registry.has_stream_providers(),
        }
    )


@router.post("")
async def install_provider(request: Request, body: InstallRequest) -> JSONResponse:
    state = cast(AppState, request.app.state)
    try:
        provider = await state.registry.install(body.manifest_url)
    except ManifestError as exc:
        log.info("provider_install_rejected", url=body.manifest_url, error=str(exc))
        return JSONResponse(status_code=400, content={"detail": str(exc)})
    return JSONResponse(status_code=201, content=present_provider(provider))


@router.delete("/{provider_id}")
async def remove_provider(request: Request, provider_id: str) -> JSONResponse:
    state = cast(AppState, request.app.state)
    if not await state.registry.remove(provider_id):
        return JSONResponse(status_code=404, content={"detail": "Unknown provider"})
    return JSONResponse(content={"removed": provider_id})
