"""Request-scoped access to the application's singletons."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from ..errors import (
    InvalidPayloadError,
    InvalidRecordError,
    NoValidDataError,
    NotFoundError,
    NotInitializedError,
    RemoteStoreError,
    SyncError,
    WriteFailedError,
)
from ..services.geocoding import GeocodingClient
from ..services.sync import SyncStore

_STATUS_BY_ERROR: tuple[tuple[type[SyncError], int], ...] = (
    (NotInitializedError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (InvalidRecordError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidPayloadError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (NoValidDataError, status.HTTP_502_BAD_GATEWAY),
    (RemoteStoreError, status.HTTP_502_BAD_GATEWAY),
    (WriteFailedError, status.HTTP_502_BAD_GATEWAY),
)


def get_store(request: Request) -> SyncStore:
    return request.app.state.store


def get_geocoder(request: Request) -> GeocodingClient:
    geocoder = getattr(request.app.state, "geocoder", None)
    if geocoder is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Geocoding is not configured")
    return geocoder


def to_http_exception(exc: SyncError) -> HTTPException:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail={"code": exc.error_code, "message": str(exc)})
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": exc.error_code, "message": str(exc)},
    )
