from __future__ import annotations

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api import router
from app.web import router as web_router
from logging_config import configure_logging
from services.dashboard import build_default_service

_STARTUP_SYNC_TIMEOUT = 5.0


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    service = build_default_service()
    service.start()
    service.wait_until_synced(timeout=_STARTUP_SYNC_TIMEOUT)
    try:
        yield
    finally:
        service.shutdown()
        build_default_service.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Control de Consumos",
        description="Daily Womack and weekly Bodymaker water and oil consumption tracking.",
        version="0.1.0",
        lifespan=lifespan,
    )
    static_dir = Path(__file__).resolve().parent / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    app.include_router(router)
    app.include_router(web_router)
    return app


app = create_app()


def serve() -> None:
    """Run the service under uvicorn; host and port come from the environment."""
    host = os.getenv("CONSUMO_HOST", "127.0.0.1")
    port = int(os.getenv("CONSUMO_PORT", "8000"))
    uvicorn.run("app.main:app", host=host, port=port, log_config=None)
