"""
Playground API routes.

Exposes the dialect registry, playground runs and the local playground
store over HTTP. Runs stream their events as NDJSON, one event per line,
in emission order.

Error mapping:
- ResolutionError (unknown dialect or preset) -> 404
- Any other PlaygroundError -> 400
- Unknown saved playground -> 404
"""

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from sqlplay.access import Identity
from sqlplay.errors import PlaygroundError, ResolutionError
from sqlplay.events import RunEvent
from sqlplay.persistence import LocalPlaygroundStore, PlaygroundRecord
from sqlplay.service import PlaygroundService
from sqlplay.types import Dialect, PlaygroundFileTree

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Playground"])


# =============================================================================
# Request/Response Models
# =============================================================================


class IdentityModel(BaseModel):
    """Identity the index file runs as."""
    subject: str | None = Field(None, description="request.jwt.claim.sub")
    role: str = Field(..., description="request.jwt.claim.role")


class RunRequest(BaseModel):
    """Run a preset or user supplied files."""
    dialect: str = Field(..., description="Dialect id (postgresql, sqlite)")
    preset: str | None = Field(None, description="Preset id; ignored when files are given")
    files: dict[str, str] | None = Field(None, description="User files by name (schema, utils, seed, index)")
    identity: IdentityModel | None = Field(None, description="Run index as this identity")


class FileTreeResponse(BaseModel):
    """Resolved file tree."""
    dialect: str
    preset: str | None = None
    files: dict[str, str]


class SavePlaygroundRequest(BaseModel):
    """Create or update a saved playground."""
    name: str = Field(..., min_length=1)
    dialect: str
    files: dict[str, str]
    description: str | None = None
    forked_from_id: str | None = None


# =============================================================================
# Dependencies
# =============================================================================


def get_service(request: Request) -> PlaygroundService:
    """Get the playground service from app state."""
    return request.app.state.service


def get_store(request: Request) -> LocalPlaygroundStore:
    """Get the local playground store from app state."""
    return request.app.state.store


def _http_error(error: PlaygroundError) -> HTTPException:
    status = 404 if isinstance(error, ResolutionError) else 400
    return HTTPException(status_code=status, detail=error.to_dict())


async def _ndjson(events: AsyncIterator[RunEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield json.dumps(event.to_dict()) + "\n"


# =============================================================================
# Registry Endpoints
# =============================================================================


@router.get("/dialects")
async def list_dialects(service: PlaygroundService = Depends(get_service)):
    """List dialects and their presets."""
    return {
        "dialects": [
            {"id": d.value, "presets": [p.to_dict() for p in service.presets(d)]}
            for d in service.dialects()
        ]
    }


@router.get("/dialects/{dialect}/presets")
async def list_presets(dialect: str, service: PlaygroundService = Depends(get_service)):
    """List the presets of one dialect."""
    try:
        return {"dialect": dialect, "presets": [p.to_dict() for p in service.presets(dialect)]}
    except PlaygroundError as e:
        raise _http_error(e)


@router.get("/dialects/{dialect}/files", response_model=FileTreeResponse)
async def get_files(
    dialect: str,
    preset: str | None = None,
    fallback: bool = False,
    service: PlaygroundService = Depends(get_service),
):
    """
    Resolve the file tree of a dialect.

    Without a preset this returns the core files. With fallback=true an
    unknown preset yields the blank defaults instead of a 404.
    """
    try:
        tree = service.resolve(dialect, preset, fallback=fallback)
    except PlaygroundError as e:
        raise _http_error(e)
    return FileTreeResponse(dialect=Dialect.parse(dialect).value, preset=preset, files=tree.to_dict())


# =============================================================================
# Run Endpoint
# =============================================================================


@router.post("/run")
async def run_playground(request: RunRequest, service: PlaygroundService = Depends(get_service)):
    """
    Run a playground and stream its events as NDJSON.

    Each line is one event: query-log, console or error. A failed run ends
    with exactly one error event; the HTTP status stays 200 once streaming
    started.
    """
    try:
        if request.files is not None:
            tree = service.prepare(request.dialect, PlaygroundFileTree(request.files))
        else:
            tree = service.resolve(request.dialect, request.preset)
        identity = (
            Identity(subject=request.identity.subject, role=request.identity.role)
            if request.identity
            else None
        )
    except PlaygroundError as e:
        raise _http_error(e)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Run requested for {request.dialect}", extra={"preset": request.preset})
    return StreamingResponse(
        _ndjson(service.run(request.dialect, tree, identity)),
        media_type="application/x-ndjson",
    )


# =============================================================================
# Saved Playground Endpoints
# =============================================================================


@router.get("/playgrounds")
async def list_playgrounds(store: LocalPlaygroundStore = Depends(get_store)):
    """List saved playgrounds, most recently updated first."""
    return {"playgrounds": [r.to_dict() for r in await store.list()]}


@router.get("/playgrounds/{playground_id}")
async def get_playground(playground_id: str, store: LocalPlaygroundStore = Depends(get_store)):
    """Get one saved playground."""
    record = await store.get(playground_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Playground not found: {playground_id}")
    return record.to_dict()


@router.put("/playgrounds/{playground_id}")
async def save_playground(
    playground_id: str,
    request: SavePlaygroundRequest,
    store: LocalPlaygroundStore = Depends(get_store),
):
    """Create or update a saved playground."""
    try:
        record = PlaygroundRecord(
            id=playground_id,
            name=request.name,
            dialect=Dialect.parse(request.dialect),
            files=PlaygroundFileTree(request.files),
            description=request.description,
            forked_from_id=request.forked_from_id,
        )
    except PlaygroundError as e:
        raise _http_error(e)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    saved = await store.save(record)
    return saved.to_dict()


@router.delete("/playgrounds/{playground_id}")
async def delete_playground(playground_id: str, store: LocalPlaygroundStore = Depends(get_store)) -> dict[str, Any]:
    """Delete a saved playground."""
    if not await store.delete(playground_id):
        raise HTTPException(status_code=404, detail=f"Playground not found: {playground_id}")
    return {"deleted": playground_id}
