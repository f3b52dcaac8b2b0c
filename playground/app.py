"""
SQLPlay HTTP shell.

Serves the dialect registry, streams playground runs and keeps saved
playgrounds in the local store.

Usage:
    uvicorn playground.app:app --port 8090
    sqlplay serve
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sqlplay import __version__
from sqlplay.config import Settings, get_settings, setup_logging
from sqlplay.persistence import LocalPlaygroundStore
from sqlplay.service import PlaygroundService

from .routes import router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the local store (running any pending migration) and the service."""
    settings: Settings = app.state.settings

    service = PlaygroundService(settings)
    store = LocalPlaygroundStore(settings, service.manager)
    migration = await store.open()

    app.state.service = service
    app.state.store = store
    app.state.migration = migration

    yield

    await store.close()
    await service.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create the SQLPlay FastAPI app."""
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title="SQLPlay",
        description=(
            "Playground execution engine for embedded SQL databases. "
            "Runs schema, utils, seed and index files against a disposable "
            "engine and streams every statement."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # API routes
    app.include_router(router, prefix="/api/v1")

    @app.get("/api")
    async def api_info():
        return {
            "service": "sqlplay",
            "version": __version__,
            "endpoints": {
                "dialects": "GET /api/v1/dialects",
                "presets": "GET /api/v1/dialects/{dialect}/presets",
                "files": "GET /api/v1/dialects/{dialect}/files?preset=",
                "run": "POST /api/v1/run - NDJSON event stream",
                "playgrounds": "GET|PUT|DELETE /api/v1/playgrounds[/{id}]",
            },
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "sqlplay"}

    return app


app = create_app()
