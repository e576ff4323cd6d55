"""
FastAPI application for the Song Catalog service.

Endpoints:
  GET  /                  - Welcome message
  GET  /count             - Process-local visit counter
  POST /songs/new         - Create a song (server assigns id, play_count = 0)
  GET  /songs/search      - Case-insensitive substring search (title/artist/genre)
  GET  /songs/play/{id}   - Increment a song's play count

The lifespan opens the configured record store, starts the flush scheduler
and, on shutdown, stops the scheduler (flushing pending writes) before closing
the store.
"""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from song_catalog.config import Settings, get_settings
from song_catalog.core.dirty import DirtyTracker
from song_catalog.core.scheduler import FlushScheduler
from song_catalog.core.service import CatalogService, parse_song_id
from song_catalog.domain.errors import SongNotFoundError, StorageError, ValidationError
from song_catalog.domain.models import NewSong, Song
from song_catalog.persistence import build_store
from song_catalog.persistence.abstract import RecordStore
from song_catalog.utils.logging import get_logger

log = get_logger(__name__)

WELCOME_MESSAGE = "Welcome to the Song Catalog server!"


class VisitCounter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0

    def increment(self) -> int:
        with self._lock:
            self._count += 1
            return self._count


router = APIRouter()


def _service(request: Request) -> CatalogService:
    return request.app.state.service


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return WELCOME_MESSAGE


@router.get("/count", response_class=PlainTextResponse)
async def visit_count(request: Request) -> str:
    return f"Visit count: {request.app.state.visits.increment()}"


@router.post("/songs/new", response_model=Song)
async def create_song(payload: NewSong, request: Request) -> Song:
    return await _service(request).create(payload)


@router.get("/songs/search", response_model=List[Song])
async def search_songs(
    request: Request,
    title: Optional[str] = None,
    artist: Optional[str] = None,
    genre: Optional[str] = None,
) -> List[Song]:
    filters = {"title": title, "artist": artist, "genre": genre}
    return await _service(request).search(filters)


@router.get("/songs/play/{song_id}", response_model=Song)
async def play_song(song_id: str, request: Request) -> Song:
    return await _service(request).play(parse_song_id(song_id))


async def _not_found(request: Request, exc: SongNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "Song not found"})


async def _invalid(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


async def _storage_failed(request: Request, exc: StorageError) -> JSONResponse:
    log.error(
        "[STORAGE ERROR] request failed",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse(status_code=503, content={"error": "Storage unavailable"})


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
) -> FastAPI:
    """
    Build the application.

    Parameters
    ----------
    settings : Settings | None
        Effective configuration; defaults to `get_settings()`.
    store : RecordStore | None
        Pre-built store (tests). When omitted, the store named by
        `settings.backend` is opened on startup and closed on shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI) -> AsyncIterator[None]:
        record_store = store if store is not None else await build_store(settings)
        tracker = DirtyTracker()
        scheduler = FlushScheduler(
            record_store,
            tracker,
            interval=settings.flush_interval_seconds,
            idle_timeout=settings.flush_idle_timeout_s,
        )
        app_instance.state.service = CatalogService(
            record_store, tracker, flush_policy=settings.flush_policy
        )
        app_instance.state.scheduler = scheduler
        app_instance.state.visits = VisitCounter()
        scheduler.start()
        log.info(
            "Song catalog ready",
            extra={"backend": record_store.name, "flush_policy": settings.flush_policy},
        )
        try:
            yield
        finally:
            await scheduler.stop()
            if store is None:
                await record_store.close()

    app = FastAPI(title="Song Catalog", lifespan=lifespan)
    app.include_router(router)
    app.add_exception_handler(SongNotFoundError, _not_found)
    app.add_exception_handler(ValidationError, _invalid)
    app.add_exception_handler(StorageError, _storage_failed)
    return app


__all__ = ["VisitCounter", "WELCOME_MESSAGE", "create_app"]
