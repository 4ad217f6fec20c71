"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.routes import geocoding, health, records, sync, zones
from .config import settings
from .data.sheets_client import SheetsApiClient
from .services.geocoding import GeocodingClient
from .services.sync import SyncStore

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    owned = []
    if app.state.store is None:
        remote = SheetsApiClient()
        owned.append(remote)
        app.state.store = SyncStore(remote)
    if app.state.geocoder is None:
        app.state.geocoder = GeocodingClient()
        owned.append(app.state.geocoder)

    store: SyncStore = app.state.store
    if settings.load_on_startup and not store.is_ready:
        try:
            await store.load_initial()
        except Exception:
            # the API still serves health and /sync/load so the load can be retried
            logger.exception("Initial load from the spreadsheet failed")
    store.start()
    try:
        yield
    finally:
        store.stop()
        for client in owned:
            await client.aclose()
        logger.info("Sync timers stopped")


def create_app(store: SyncStore | None = None, geocoder: GeocodingClient | None = None) -> FastAPI:
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.store = store
    app.state.geocoder = geocoder
    if settings.frontend_allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=list(settings.frontend_allowed_origins),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.get("/")
    def root():
        return {
            "service": settings.app_name,
            "status": "running",
            "api_prefix": settings.api_prefix,
            "health": f"{settings.api_prefix}/health",
            "docs": "/docs",
        }

    app.include_router(health.router, prefix=settings.api_prefix)
    app.include_router(records.router, prefix=settings.api_prefix)
    app.include_router(zones.router, prefix=settings.api_prefix)
    app.include_router(sync.router, prefix=settings.api_prefix)
    app.include_router(geocoding.router, prefix=settings.api_prefix)
    return app


app = create_app()
