"""Geocoding endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...errors import SyncError
from ...schemas.records import AddressSuggestionModel, GeocodeRunResponse, RecordModel, RecordUpdateResponse
from ...services.geocoding import GeocodingClient, geocode_pending
from ...services.sync import SyncStore
from ..dependencies import get_geocoder, get_store, to_http_exception

router = APIRouter(prefix="/geocoding", tags=["geocoding"])


@router.post("/records/{record_id}", response_model=RecordUpdateResponse, status_code=status.HTTP_200_OK)
async def geocode_one(
    record_id: str,
    store: SyncStore = Depends(get_store),
    geocoder: GeocodingClient = Depends(get_geocoder),
) -> RecordUpdateResponse:
    if not store.is_ready:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store is not loaded yet")
    record = store.get_record_by_id(record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Record {record_id} not found")
    updated = await geocoder.geocode_record(record)
    try:
        future = await store.update_record(updated)
    except SyncError as exc:
        raise to_http_exception(exc) from exc
    current = store.get_record_by_id(record_id) or updated
    return RecordUpdateResponse(record=RecordModel.from_domain(current), queued=not future.done())


@router.post("/pending", response_model=GeocodeRunResponse, status_code=status.HTTP_200_OK)
async def geocode_all_pending(
    limit: int | None = Query(default=None, ge=1, le=1000),
    store: SyncStore = Depends(get_store),
    geocoder: GeocodingClient = Depends(get_geocoder),
) -> GeocodeRunResponse:
    if not store.is_ready:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store is not loaded yet")
    try:
        summary = await geocode_pending(store, geocoder, limit=limit)
    except SyncError as exc:
        raise to_http_exception(exc) from exc
    return GeocodeRunResponse(**summary)


@router.get("/search", response_model=List[AddressSuggestionModel], status_code=status.HTTP_200_OK)
async def search(
    q: str = Query(default="", description="Free-text address, at least 3 characters."),
    limit: int = Query(default=5, ge=1, le=20),
    geocoder: GeocodingClient = Depends(get_geocoder),
) -> List[AddressSuggestionModel]:
    suggestions = await geocoder.search_addresses(q, limit=limit)
    return [
        AddressSuggestionModel(
            label=item.label,
            score=item.score,
            postcode=item.postcode,
            city=item.city,
            latitude=item.latitude,
            longitude=item.longitude,
        )
        for item in suggestions
    ]
