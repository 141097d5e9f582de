from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .drafts import FileDraftStore
from .routers import editor, guides, health, media, responses, share, viewer
from .services.media_service import LocalMediaStorage
from .state import AppState
from .storage import GuideStore

logger = logging.getLogger("blockguide.main")

_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach one stdout handler to the package logger; safe to call repeatedly."""
    root = logging.getLogger("blockguide")
    root.setLevel(getattr(logging, (level or "INFO").upper(), logging.INFO))
    if not any(getattr(h, "_blockguide", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%m/%d/%Y %H:%M:%S"))
        handler._blockguide = True  # type: ignore[attr-defined]
        root.addHandler(handler)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the service with its own stores and session registries.
    Run with: uvicorn blockguide.main:create_app --factory
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    settings.media_dir.mkdir(parents=True, exist_ok=True)
    settings.drafts_dir.mkdir(parents=True, exist_ok=True)
    state = AppState(
        settings=settings,
        store=GuideStore(settings.db_path),
        drafts=FileDraftStore(settings.drafts_dir),
        media=LocalMediaStorage(
            settings.media_dir,
            max_bytes=settings.max_upload_bytes,
            allowed_types=settings.allowed_upload_types,
        ),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        state.store.close()

    app = FastAPI(title="blockguide-backend", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        # Same-origin when the frontend is served by this backend; dev origins for debugging.
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.blockguide = state

    app.include_router(health.router)
    app.include_router(guides.router)
    app.include_router(share.router)
    app.include_router(editor.router)
    app.include_router(viewer.router)
    app.include_router(responses.router)
    app.include_router(media.router)

    logger.info("blockguide ready (db=%s, media=%s)", settings.db_path, settings.media_dir)
    return app
