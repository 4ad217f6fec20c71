"""Record endpoints backed by the sync store."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import SyncError
from ...models.domain import Contact, ContactResponse
from ...schemas.filters import RecordSearchRequest
from ...schemas.records import ContactCreate, RecordListResponse, RecordModel, RecordUpdateResponse
from ...services.filtering import filter_records
from ...services.sync import SyncStore
from ..dependencies import get_store, to_http_exception

router = APIRouter(prefix="/records", tags=["records"])


async def _write_outcome(future: asyncio.Future, wait: bool) -> Optional[bool]:
    if not wait:
        return None
    try:
        # shield so a dropped request never cancels the shared write future
        await asyncio.shield(future)
    except SyncError as exc:
        raise to_http_exception(exc) from exc
    except asyncio.CancelledError:
        if not future.cancelled():
            raise
        return False
    return True


def _update_response(store: SyncStore, record_id: str, future: asyncio.Future, written: Optional[bool]) -> RecordUpdateResponse:
    record = store.get_record_by_id(record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Record {record_id} not found")
    return RecordUpdateResponse(record=RecordModel.from_domain(record), queued=not future.done(), written=written)


@router.get("", response_model=RecordListResponse, status_code=status.HTTP_200_OK)
def list_records(store: SyncStore = Depends(get_store)) -> RecordListResponse:
    records = store.get_records()
    return RecordListResponse(items=[RecordModel.from_domain(record) for record in records], total=len(records))


@router.post("/search", response_model=RecordListResponse, status_code=status.HTTP_200_OK)
def search_records(payload: RecordSearchRequest, store: SyncStore = Depends(get_store)) -> RecordListResponse:
    visible = filter_records(store.get_records(), payload.filters, payload.query)
    return RecordListResponse(items=[RecordModel.from_domain(record) for record in visible], total=len(visible))


@router.get("/{record_id}", response_model=RecordModel, status_code=status.HTTP_200_OK)
def get_record(record_id: str, store: SyncStore = Depends(get_store)) -> RecordModel:
    record = store.get_record_by_id(record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Record {record_id} not found")
    return RecordModel.from_domain(record)


@router.put("/{record_id}", response_model=RecordUpdateResponse, status_code=status.HTTP_200_OK)
async def update_record(
    record_id: str,
    payload: RecordModel,
    wait: bool = Query(default=False, description="Wait for the spreadsheet write to finish."),
    store: SyncStore = Depends(get_store),
) -> RecordUpdateResponse:
    if payload.id != record_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Body id '{payload.id}' does not match path id '{record_id}'",
        )
    try:
        future = await store.update_record(payload.to_domain())
    except SyncError as exc:
        raise to_http_exception(exc) from exc
    written = await _write_outcome(future, wait)
    return _update_response(store, record_id, future, written)


@router.post("/{record_id}/contacts", response_model=RecordUpdateResponse, status_code=status.HTTP_201_CREATED)
async def add_contact(
    record_id: str,
    payload: ContactCreate,
    wait: bool = Query(default=False),
    store: SyncStore = Depends(get_store),
) -> RecordUpdateResponse:
    current = store.get_record_by_id(record_id)
    if current is None:
        if not store.is_ready:
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store is not loaded yet")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Record {record_id} not found")

    response = None
    if payload.response is not None:
        response = ContactResponse(
            date=payload.response.date,
            positive=payload.response.positive,
            comment=payload.response.comment,
        )
    contact = Contact(
        date=payload.date or datetime.now(timezone.utc).isoformat(),
        kind=payload.kind,
        by=payload.by,
        status=payload.status,
        response=response,
    )
    try:
        future = await store.update_record(replace(current, contacts=current.contacts + (contact,)))
    except SyncError as exc:
        raise to_http_exception(exc) from exc
    written = await _write_outcome(future, wait)
    return _update_response(store, record_id, future, written)
