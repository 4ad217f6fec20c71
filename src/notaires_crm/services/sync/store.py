"""In-memory source of truth for records and interest zones.

One ``SyncStore`` is built at application start and handed to every
consumer. It owns the record and zone collections; callers only ever get
lists of immutable dataclasses, never the internal containers. All state
changes happen between awaits and are followed by a synchronous fan-out to
subscribers, in registration order.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from ...config import settings
from ...data.sheet_codec import (
    ZONE_COLUMNS,
    blank_row,
    decode_record_row,
    decode_zone_row,
    encode_record_row,
    encode_zone_row,
    record_row_range,
    zones_write_range,
)
from ...data.sheets_client import RemoteStore
from ...errors import (
    InvalidInterestZoneError,
    InvalidRecordError,
    NoValidDataError,
    NotFoundError,
    NotInitializedError,
)
from ...models.domain import GeocodeStatus, InterestZone, Record
from .validators import is_valid_interest_zone, is_valid_record
from .write_queue import WriteQueue

logger = logging.getLogger(__name__)

Subscriber = Callable[[list[Record], list[InterestZone]], None]


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class Subscription:
    """Handle returned by ``subscribe``; calling it more than once is harmless."""

    def __init__(self, store: "SyncStore", callback: Subscriber) -> None:
        self._store = store
        self.callback = callback
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        self._store._remove_subscription(self)

    __call__ = cancel


@dataclass
class _Snapshot:
    records: dict[str, Record]
    rows: dict[str, int]
    zones: list[InterestZone]
    zone_row_count: int


class SyncStore:
    def __init__(
        self,
        remote: RemoteStore,
        *,
        queue: WriteQueue | None = None,
        resync_interval_seconds: float | None = None,
        records_range: str | None = None,
        zones_range: str | None = None,
    ) -> None:
        self._remote = remote
        self._queue = queue if queue is not None else WriteQueue(self._write_record)
        self.resync_interval_seconds = (
            resync_interval_seconds if resync_interval_seconds is not None else settings.resync_interval_seconds
        )
        self.records_range = records_range or settings.records_range
        self.zones_range = zones_range or settings.zones_range
        self._records: dict[str, Record] = {}
        self._rows: dict[str, int] = {}
        self._zones: list[InterestZone] = []
        self._zone_row_count = 0
        self._subscribers: list[Subscription] = []
        self._generation = 0
        self._initialized = False
        self._loading = False
        self._resync_task: Optional[asyncio.Task] = None

    @property
    def queue(self) -> WriteQueue:
        return self._queue

    @property
    def state(self) -> StoreState:
        if self._loading:
            return StoreState.LOADING
        if self._initialized:
            return StoreState.READY
        return StoreState.UNINITIALIZED

    @property
    def is_ready(self) -> bool:
        return self._initialized

    # -- subscribers -------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Subscription:
        """Register ``callback``; replay the current state at once if loaded."""
        subscription = Subscription(self, callback)
        self._subscribers.append(subscription)
        if self._initialized:
            self._deliver(subscription)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        self._subscribers = [sub for sub in self._subscribers if sub is not subscription]

    def _deliver(self, subscription: Subscription) -> None:
        try:
            subscription.callback(list(self._records.values()), list(self._zones))
        except Exception:
            logger.exception(f"Subscriber {subscription.callback!r} failed")

    def _notify(self) -> None:
        for subscription in list(self._subscribers):
            if subscription.active:
                self._deliver(subscription)

    # -- loading -----------------------------------------------------------

    async def _fetch(self) -> _Snapshot:
        record_rows, zone_rows = await asyncio.gather(
            self._remote.read_range(self.records_range),
            self._remote.read_range(self.zones_range),
        )
        first_row = settings.first_data_row

        records: dict[str, Record] = {}
        rows: dict[str, int] = {}
        for offset, row in enumerate(record_rows):
            row_number = first_row + offset
            record = decode_record_row(row)
            if not is_valid_record(record):
                logger.warning(f"Skipping invalid record on row {row_number}")
                continue
            if record.id in records:
                logger.warning(f"Duplicate record id {record.id} on row {row_number}, keeping the later row")
            records[record.id] = record
            rows[record.id] = row_number

        zones: dict[str, InterestZone] = {}
        for offset, row in enumerate(zone_rows):
            zone = decode_zone_row(row)
            if not is_valid_interest_zone(zone, strict=True):
                logger.warning(f"Skipping invalid interest zone on row {first_row + offset}")
                continue
            zones[zone.id] = zone

        if not records:
            raise NoValidDataError(f"No valid records found in {self.records_range}")
        return _Snapshot(records=records, rows=rows, zones=list(zones.values()), zone_row_count=len(zone_rows))

    def _install(self, snapshot: _Snapshot) -> None:
        self._records = snapshot.records
        self._rows = snapshot.rows
        self._zones = snapshot.zones
        self._zone_row_count = snapshot.zone_row_count

    async def load_initial(self) -> None:
        if self._initialized:
            logger.info("Store already loaded, replaying current state")
            self._notify()
            return
        if self._loading:
            logger.info("Load already in progress")
            return

        generation = self._generation
        self._loading = True
        try:
            snapshot = await self._fetch()
            if generation != self._generation:
                logger.info("Store was reset during load, discarding fetched data")
                return
            self._install(snapshot)
            self._initialized = True
        finally:
            if generation == self._generation:
                self._loading = False
        logger.info(f"Loaded {len(self._records)} record(s) and {len(self._zones)} interest zone(s)")
        self._notify()

    async def full_resync(self) -> None:
        """Flush pending writes, then replace local state with the remote one."""
        if not self._initialized:
            raise NotInitializedError("Store must be loaded before it can resync")
        if self._loading:
            logger.info("Resync skipped, a load is already in progress")
            return

        generation = self._generation
        self._loading = True
        try:
            # write failures stay in the queue with their retry budget, see WriteQueue._write_entry
            await self._queue.force_drain()
            snapshot = await self._fetch()
            if generation != self._generation:
                logger.info("Store was reset during resync, discarding fetched data")
                return
            for record in self._queue.pending_records():
                # keep optimistic edits that are still waiting to be written
                if record.id in snapshot.records:
                    snapshot.records[record.id] = record
            self._install(snapshot)
        finally:
            if generation == self._generation:
                self._loading = False
        logger.info(f"Resynced {len(self._records)} record(s) and {len(self._zones)} interest zone(s)")
        self._notify()

    # -- reads -------------------------------------------------------------

    def get_records(self) -> list[Record]:
        if not self._initialized:
            logger.warning("get_records called before the store was loaded")
            return []
        return list(self._records.values())

    def get_interest_zones(self) -> list[InterestZone]:
        if not self._initialized:
            logger.warning("get_interest_zones called before the store was loaded")
            return []
        return list(self._zones)

    def get_record_by_id(self, record_id: str) -> Optional[Record]:
        if not self._initialized:
            return None
        return self._records.get(record_id)

    # -- writes ------------------------------------------------------------

    async def _write_record(self, record: Record) -> None:
        row_number = self._rows.get(record.id)
        if row_number is None:
            raise NotFoundError(f"No sheet row known for record {record.id}")
        await self._remote.write_range(
            record_row_range(settings.records_sheet, row_number),
            [encode_record_row(record)],
        )

    async def update_record(self, record: Record) -> asyncio.Future:
        """Apply ``record`` locally, notify, then queue it for persistence.

        Returns the write future from the queue. A terminal write failure is
        reported through it, but the local state is not rolled back.
        """
        if not self._initialized:
            raise NotInitializedError("Store must be loaded before records can be updated")
        if not is_valid_record(record):
            raise InvalidRecordError("Record needs a non-empty id and name")
        current = self._records.get(record.id)
        if current is None:
            raise NotFoundError(f"Record {record.id} not found")

        modified_at = datetime.now(timezone.utc)
        changes: dict[str, Any] = {"modified_at": modified_at}
        if (record.street, record.postal_code, record.city) != (current.street, current.postal_code, current.city):
            changes.update(needs_geocoding=True, geocode_status=GeocodeStatus.PENDING)
        updated = replace(record, **changes)

        self._records[updated.id] = updated
        self._notify()
        return await self._queue.schedule(updated, modified_at=modified_at)

    async def update_interest_zones(self, zones: Sequence[InterestZone]) -> None:
        """Replace every zone and write them; roll back if the write fails."""
        if not self._initialized:
            raise NotInitializedError("Store must be loaded before zones can be updated")
        for zone in zones:
            if not is_valid_interest_zone(zone):
                raise InvalidInterestZoneError(f"Invalid interest zone: {zone!r}")

        previous = self._zones
        installed = list(zones)
        self._zones = installed
        self._notify()

        rows = [encode_zone_row(zone) for zone in installed]
        padding = max(self._zone_row_count - len(rows), 0)
        rows.extend(blank_row(len(ZONE_COLUMNS)) for _ in range(padding))
        if not rows:
            rows.append(blank_row(len(ZONE_COLUMNS)))
        try:
            await self._remote.write_range(
                zones_write_range(settings.zones_sheet, settings.first_data_row, len(rows)),
                rows,
            )
        except Exception:
            if self._zones is installed:
                self._zones = previous
                self._notify()
            logger.exception("Saving interest zones failed, previous zones restored")
            raise
        self._zone_row_count = max(self._zone_row_count, len(installed))

    # -- lifecycle ---------------------------------------------------------

    def start(self, *, resync: bool | None = None) -> None:
        """Start the periodic drain and, unless disabled, the periodic resync."""
        self._queue.start()
        enabled = settings.resync_enabled if resync is None else resync
        if enabled and (self._resync_task is None or self._resync_task.done()):
            self._resync_task = asyncio.get_running_loop().create_task(
                self._run_periodic_resync(), name="store-resync"
            )

    def stop(self) -> None:
        self._queue.stop()
        if self._resync_task is not None:
            self._resync_task.cancel()
            self._resync_task = None

    async def _run_periodic_resync(self) -> None:
        while True:
            await asyncio.sleep(self.resync_interval_seconds)
            if not self._initialized:
                continue
            try:
                await self.full_resync()
            except Exception:
                logger.exception("Periodic resync failed")

    def reset(self) -> None:
        """Drop everything and go back to the uninitialized state."""
        self.stop()
        self._queue.reset()
        self._records = {}
        self._rows = {}
        self._zones = []
        self._zone_row_count = 0
        for subscription in self._subscribers:
            subscription.active = False
        self._subscribers = []
        self._generation += 1
        self._initialized = False
        self._loading = False

    def get_service_status(self) -> dict[str, Any]:
        return {
            "initialized": self._initialized,
            "loading": self._loading,
            "state": self.state.value,
            "record_count": len(self._records),
            "interest_zone_count": len(self._zones),
            "subscriber_count": len(self._subscribers),
            "timers_running": self._queue.is_running,
            "queue": self._queue.get_queue_status(),
        }
