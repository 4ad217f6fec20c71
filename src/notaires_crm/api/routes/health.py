"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...schemas.records import ServiceStatusResponse
from ...services.sync import SyncStore
from ..dependencies import get_store

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/sync", response_model=ServiceStatusResponse, status_code=status.HTTP_200_OK)
def health_sync(store: SyncStore = Depends(get_store)) -> ServiceStatusResponse:
    """Store readiness, timers and write queue counters."""
    return ServiceStatusResponse(**store.get_service_status())
