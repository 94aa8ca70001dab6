from __future__ import annotations

import time
from typing import cast

import structlog
from fastapi import FastAPI, Request

from sourcerr.infrastructure.config import AppConfig
from sourcerr.interfaces.app_state import AppState
from sourcerr.interfaces.composition import lifespan

log = structlog.get_logger(__name__)


def build_app(config: AppConfig) -> FastAPI:
    """Build the FastAPI app. Configuration only; resources are created in lifespan()."""
    app = FastAPI(
        title="Sourcerr",
        description="Stream source aggregation for movies and episodes",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state = AppState()
    app.state.config = config

    from sourcerr.interfaces.api.providers.router import router as providers_router
    from sourcerr.interfaces.api.streams.router import router as streams_router

    app.include_router(streams_router)
    app.include_router(providers_router)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/healthz/sources")
    async def healthz_sources(request: Request) -> dict[str, bool]:
        """Reachability of the built-in DMM cache source."""
        state = cast(AppState, request.app.state)
        return {"dmm_cache": await state.dmm.healthcheck()}

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            log.info(
                "http_request",
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_ms=round(duration_ms, 2),
                client_host=(request.client.host if request.client else None),
            )

    return app
