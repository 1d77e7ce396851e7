"""FastAPI application exposing memory search over HTTP."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from memsearch.config import MemoryConfig
from memsearch.errors import (
    ConfigurationError,
    EmbeddingProviderError,
    InvalidMemoryPathError,
    MemorySearchError,
)
from memsearch.index.manager import MemoryIndex
from memsearch.models import MemorySearchResult

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Memory Search", version="0.1.0")


class SearchPayload(BaseModel):
    query: str
    workspace: Path | None = None
    max_results: int | None = None
    min_score: float | None = None
    sync: bool = True


class SyncPayload(BaseModel):
    workspace: Path | None = None
    force: bool = False


class ReadPayload(BaseModel):
    path: str
    workspace: Path | None = None
    from_line: int | None = None
    lines: int | None = None


def _open_index(workspace: Path | None) -> MemoryIndex:
    return MemoryIndex.create(MemoryConfig.from_env(workspace))


def _http_error(exc: MemorySearchError) -> HTTPException:
    if isinstance(exc, (InvalidMemoryPathError, ConfigurationError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, EmbeddingProviderError):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


def _run_search(payload: SearchPayload) -> List[MemorySearchResult]:
    with _open_index(payload.workspace) as memory:
        if payload.sync:
            memory.sync()
        return memory.search(
            payload.query, max_results=payload.max_results, min_score=payload.min_score
        )


@app.post("/search")
async def search_memory(payload: SearchPayload) -> dict[str, Any]:
    if not payload.query.strip():
        return {"results": []}
    try:
        results = await asyncio.to_thread(_run_search, payload)
    except MemorySearchError as exc:
        LOGGER.error("Search failed: %s", exc)
        raise _http_error(exc) from exc
    return {"results": [asdict(result) for result in results]}


def _run_sync(payload: SyncPayload) -> dict[str, Any]:
    with _open_index(payload.workspace) as memory:
        stats = memory.sync(force=payload.force)
        status = memory.status()
    return {"stats": asdict(stats), "files": status.files, "chunks": status.chunks}


@app.post("/sync")
async def sync_memory(payload: SyncPayload) -> dict[str, Any]:
    try:
        result = await asyncio.to_thread(_run_sync, payload)
    except MemorySearchError as exc:
        LOGGER.error("Sync failed: %s", exc)
        raise _http_error(exc) from exc
    return {"status": "ok", **result}


@app.get("/status")
async def index_status(workspace: Path | None = None) -> dict[str, Any]:
    try:
        with _open_index(workspace) as memory:
            status = memory.status()
    except MemorySearchError as exc:
        raise _http_error(exc) from exc
    data = asdict(status)
    data["workspace_dir"] = str(status.workspace_dir)
    data["db_path"] = str(status.db_path)
    return data


@app.post("/read")
async def read_memory_file(payload: ReadPayload) -> dict[str, str]:
    try:
        with _open_index(payload.workspace) as memory:
            return memory.read_file(payload.path, from_line=payload.from_line, lines=payload.lines)
    except MemorySearchError as exc:
        raise _http_error(exc) from exc
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"File not found: {payload.path}") from exc
    except OSError as exc:
        detail = f"Cannot read {payload.path}: {exc.strerror or exc}"
        raise HTTPException(status_code=400, detail=detail) from exc
