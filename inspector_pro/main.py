"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from inspector_pro.api.router import api_router
from inspector_pro.config import get_settings
from inspector_pro.db.engine import async_session_factory, create_all, engine
from inspector_pro.errors import AppError
from inspector_pro.services.media_store import build_media_store
from inspector_pro.services.notifications import NotificationDispatcher
from inspector_pro.services.push_gateway import build_push_gateway
from inspector_pro.services.session_sweeper import SessionSweeper

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_all()

    # Collaborators are built once here and shared through app.state
    if getattr(app.state, "media_store", None) is None:
        app.state.media_store = build_media_store(settings.media)
    if getattr(app.state, "dispatcher", None) is None:
        gateway = build_push_gateway(settings.push)
        app.state.dispatcher = NotificationDispatcher(
            async_session_factory, gateway, chunk_size=settings.push.multicast_chunk_size,
        )

    sweeper = None
    if settings.sweeper.enabled:
        sweeper = SessionSweeper(async_session_factory, settings.sweeper)
        sweeper.start()
    logger.info("Inspector Pro started")
    yield
    if sweeper is not None:
        await sweeper.stop()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Inspector Pro",
        description="Property inspection jobs, photo reports and push notifications.",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    app.include_router(api_router)

    # Local media store files are served directly in dev
    if settings.media.backend == "local":
        Path(settings.media.base_dir).mkdir(parents=True, exist_ok=True)
        app.mount("/media", StaticFiles(directory=settings.media.base_dir), name="media")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
