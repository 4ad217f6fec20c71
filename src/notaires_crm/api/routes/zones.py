"""Interest zone endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status

from ...errors import SyncError
from ...schemas.zones import InterestZoneModel
from ...services.sync import SyncStore
from ..dependencies import get_store, to_http_exception

router = APIRouter(prefix="/zones", tags=["zones"])


@router.get("", response_model=List[InterestZoneModel], status_code=status.HTTP_200_OK)
def list_zones(store: SyncStore = Depends(get_store)) -> List[InterestZoneModel]:
    return [InterestZoneModel.from_domain(zone) for zone in store.get_interest_zones()]


@router.put("", response_model=List[InterestZoneModel], status_code=status.HTTP_200_OK)
async def replace_zones(payload: List[InterestZoneModel], store: SyncStore = Depends(get_store)) -> List[InterestZoneModel]:
    """Replace the whole zone list; the previous list is restored if saving fails."""
    try:
        await store.update_interest_zones([zone.to_domain() for zone in payload])
    except SyncError as exc:
        raise to_http_exception(exc) from exc
    return [InterestZoneModel.from_domain(zone) for zone in store.get_interest_zones()]
