"""Manual load, resync and queue inspection."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...errors import SyncError
from ...schemas.records import QueueStatusResponse, ServiceStatusResponse
from ...services.sync import SyncStore
from ..dependencies import get_store, to_http_exception

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("/load", response_model=ServiceStatusResponse, status_code=status.HTTP_200_OK)
async def load(store: SyncStore = Depends(get_store)) -> ServiceStatusResponse:
    try:
        await store.load_initial()
    except SyncError as exc:
        raise to_http_exception(exc) from exc
    return ServiceStatusResponse(**store.get_service_status())


@router.post("/resync", response_model=ServiceStatusResponse, status_code=status.HTTP_200_OK)
async def resync(store: SyncStore = Depends(get_store)) -> ServiceStatusResponse:
    try:
        await store.full_resync()
    except SyncError as exc:
        raise to_http_exception(exc) from exc
    return ServiceStatusResponse(**store.get_service_status())


@router.get("/queue", response_model=QueueStatusResponse, status_code=status.HTTP_200_OK)
def queue_status(store: SyncStore = Depends(get_store)) -> QueueStatusResponse:
    return QueueStatusResponse(**store.queue.get_queue_status())
