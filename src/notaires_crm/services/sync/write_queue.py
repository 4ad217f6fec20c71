"""Coalescing write queue between optimistic local edits and the spreadsheet.

One pending entry is kept per record id. Scheduling the same id again
replaces the payload but keeps the attempt counter, so rapid edits never
reset the retry budget. A drain pass writes every entry once; at most one
pass runs at a time.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from ...config import settings
from ...errors import InvalidPayloadError, WriteFailedError
from ...models.domain import Record, RecordStatus
from .validators import is_valid_record

logger = logging.getLogger(__name__)

RecordWriter = Callable[[Record], Awaitable[Any]]


@dataclass
class PendingWrite:
    record: Record
    enqueued_at: datetime
    future: asyncio.Future
    attempts: int = 0
    version: int = 0


def requires_immediate_write(record: Record) -> bool:
    """Edits worth persisting right away instead of waiting for the next tick."""

    return (
        record.status != RecordStatus.UNDEFINED
        or len(record.contacts) > 0
        or bool(record.email)
        or record.has_coordinates
    )


def _consume_outcome(future: asyncio.Future) -> None:
    # failures are logged by the queue; nobody is obliged to await the future
    if not future.cancelled():
        future.exception()


class WriteQueue:
    def __init__(
        self,
        writer: RecordWriter,
        *,
        interval_seconds: float | None = None,
        max_attempts: int | None = None,
        failure_history: int = 50,
    ) -> None:
        self._writer = writer
        self.interval_seconds = interval_seconds if interval_seconds is not None else settings.drain_interval_seconds
        self.max_attempts = max_attempts if max_attempts is not None else settings.max_write_attempts
        self._entries: dict[str, PendingWrite] = {}
        self._draining = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._task: Optional[asyncio.Task] = None
        self._failures: deque[dict[str, Any]] = deque(maxlen=failure_history)
        self.written_count = 0
        self.failed_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def is_draining(self) -> bool:
        return self._draining

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def schedule(self, record: Record, *, modified_at: datetime | None = None) -> asyncio.Future:
        """Queue ``record`` for persistence and return its completion future.

        The future resolves to ``None`` once the row is written, fails with
        ``WriteFailedError`` when the retry budget is exhausted and is
        cancelled by ``clear()``. Awaiting it is optional. ``modified_at``
        overrides the stamp written to the sheet.
        """
        if not is_valid_record(record):
            raise InvalidPayloadError("Record payload needs a non-empty id and name")

        now = datetime.now(timezone.utc)
        stamped = replace(record, modified_at=modified_at or now)
        entry = self._entries.get(stamped.id)
        if entry is not None:
            entry.record = stamped
            entry.enqueued_at = now
            entry.version += 1
        else:
            future = asyncio.get_running_loop().create_future()
            future.add_done_callback(_consume_outcome)
            entry = PendingWrite(record=stamped, enqueued_at=now, future=future)
            self._entries[stamped.id] = entry
        logger.debug(f"Queued write for {stamped.id} ({len(self._entries)} pending)")

        if requires_immediate_write(stamped):
            await self.drain()
        return entry.future

    async def drain(self) -> None:
        """Run one pass over the queue; a no-op while another pass is running."""
        if self._draining:
            logger.debug("Drain already in progress, skipping")
            return
        if not self._entries:
            return

        self._draining = True
        self._idle.clear()
        try:
            snapshot = list(self._entries.items())
            logger.debug(f"Draining {len(snapshot)} pending write(s)")
            for record_id, entry in snapshot:
                if self._entries.get(record_id) is not entry:
                    continue
                await self._write_entry(record_id, entry)
        finally:
            self._draining = False
            self._idle.set()

    async def _write_entry(self, record_id: str, entry: PendingWrite) -> None:
        version = entry.version
        try:
            await self._writer(entry.record)
        except Exception as exc:
            entry.attempts += 1
            if entry.attempts >= self.max_attempts:
                self._drop(record_id, entry, exc)
            else:
                logger.warning(
                    f"Write for {record_id} failed (attempt {entry.attempts}/{self.max_attempts}), will retry: {exc}"
                )
            return

        if entry.version != version:
            # a newer payload arrived while this one was in flight
            logger.debug(f"Record {record_id} changed during write, keeping newer payload queued")
            return
        if self._entries.get(record_id) is entry:
            del self._entries[record_id]
        self.written_count += 1
        if not entry.future.done():
            entry.future.set_result(None)
        logger.info(f"Saved record {record_id}")

    def _drop(self, record_id: str, entry: PendingWrite, exc: Exception) -> None:
        if self._entries.get(record_id) is entry:
            del self._entries[record_id]
        self.failed_count += 1
        self._failures.append(
            {
                "id": record_id,
                "attempts": entry.attempts,
                "failed_at": datetime.now(timezone.utc),
                "error": str(exc),
            }
        )
        logger.error(f"Dropping write for {record_id} after {entry.attempts} attempt(s): {exc}")
        if not entry.future.done():
            entry.future.set_exception(WriteFailedError(record_id, entry.attempts, exc))

    async def force_drain(self) -> None:
        """Wait for any running pass, then run a full pass of our own."""
        while self._draining:
            await self._idle.wait()
        await self.drain()

    def pending_records(self) -> list[Record]:
        return [entry.record for entry in self._entries.values()]

    def get_queue_status(self) -> dict[str, Any]:
        return {
            "pending_count": len(self._entries),
            "in_progress": self._draining,
            "entries": [
                {
                    "id": record_id,
                    "name": entry.record.name,
                    "attempts": entry.attempts,
                    "enqueued_at": entry.enqueued_at,
                }
                for record_id, entry in self._entries.items()
            ],
            "failures": list(self._failures),
            "written_count": self.written_count,
            "failed_count": self.failed_count,
        }

    def clear(self) -> None:
        """Discard every pending write without persisting it."""
        if self._entries:
            logger.warning(f"Discarding {len(self._entries)} pending write(s)")
        for entry in self._entries.values():
            if not entry.future.done():
                entry.future.cancel()
        self._entries.clear()

    def reset(self) -> None:
        """Discard pending writes and forget every counter and recorded failure."""
        self.clear()
        self._failures.clear()
        self.written_count = 0
        self.failed_count = 0

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run_periodic(), name="write-queue-drain")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run_periodic(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.drain()
            except Exception:
                logger.exception("Periodic drain failed")
