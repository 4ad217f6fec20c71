"""Geocode every record still missing coordinates."""

from __future__ import annotations

import logging
from typing import Any

from ...models.domain import Record
from ..sync.store import SyncStore
from .client import GeocodingClient, apply_geocode_result

logger = logging.getLogger(__name__)


def needs_geocoding(record: Record) -> bool:
    return record.needs_geocoding or not record.has_coordinates


async def geocode_pending(store: SyncStore, geocoder: GeocodingClient, *, limit: int | None = None) -> dict[str, Any]:
    """Resolve pending records one at a time and push each through the store.

    A record whose address was edited while its lookup was in flight is left
    for the next run.
    """
    candidates = [record for record in store.get_records() if needs_geocoding(record)]
    if limit is not None:
        candidates = candidates[:limit]

    summary = {"processed": 0, "succeeded": 0, "failed": 0, "skipped": 0}
    for record in candidates:
        address = record.full_address
        if not address:
            summary["skipped"] += 1
            continue
        result = await geocoder.resolve_address(address)
        current = store.get_record_by_id(record.id)
        if current is None or current.full_address != address:
            summary["skipped"] += 1
            continue
        await store.update_record(apply_geocode_result(current, address, result))
        summary["processed"] += 1
        summary["succeeded" if result.ok else "failed"] += 1

    logger.info(
        f"Geocoding run finished: {summary['succeeded']} succeeded, "
        f"{summary['failed']} failed, {summary['skipped']} skipped"
    )
    return summary
