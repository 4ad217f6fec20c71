import asyncio
from datetime import datetime, timezone

import pytest

from fakes import RecordingWriter, make_record
from notaires_crm.errors import InvalidPayloadError, WriteFailedError
from notaires_crm.models.domain import Contact, ContactKind, ContactStatus, RecordStatus
from notaires_crm.services.sync import WriteQueue, requires_immediate_write


def test_requires_immediate_write_for_meaningful_edits() -> None:
    contact = Contact(date="2024-01-01", kind=ContactKind.INITIAL, by="LC", status=ContactStatus.MAIL_SENT)

    assert not requires_immediate_write(make_record())
    assert requires_immediate_write(make_record(status=RecordStatus.FAVORITE))
    assert requires_immediate_write(make_record(contacts=(contact,)))
    assert requires_immediate_write(make_record(email="office@notaires.fr"))
    assert requires_immediate_write(make_record(latitude=48.85, longitude=2.35))
    # zero coordinates mean "not geocoded"
    assert not requires_immediate_write(make_record(latitude=0.0, longitude=0.0))


@pytest.mark.asyncio
async def test_schedule_rejects_invalid_payload() -> None:
    queue = WriteQueue(RecordingWriter())

    with pytest.raises(InvalidPayloadError):
        await queue.schedule(make_record(record_id=""))
    with pytest.raises(InvalidPayloadError):
        await queue.schedule(make_record(name="  "))
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_schedule_stamps_modified_at_and_defers_plain_edits() -> None:
    writer = RecordingWriter()
    queue = WriteQueue(writer)

    future = await queue.schedule(make_record(notes="call back"))

    assert writer.calls == []
    assert not future.done()
    assert queue.pending_records()[0].modified_at is not None


@pytest.mark.asyncio
async def test_immediate_write_is_drained_before_schedule_returns() -> None:
    writer = RecordingWriter()
    queue = WriteQueue(writer)

    future = await queue.schedule(make_record(status=RecordStatus.FAVORITE))

    assert [record.id for record in writer.calls] == ["r1"]
    assert future.done() and future.result() is None
    assert len(queue) == 0
    assert queue.written_count == 1


@pytest.mark.asyncio
async def test_two_schedules_before_drain_coalesce_into_one_write() -> None:
    writer = RecordingWriter()
    queue = WriteQueue(writer)

    first = await queue.schedule(make_record(notes="first"))
    second = await queue.schedule(make_record(notes="second"))

    assert first is second
    assert len(queue) == 1
    assert queue.get_queue_status()["entries"][0]["attempts"] == 0

    await queue.drain()

    assert len(writer.calls) == 1
    assert writer.calls[0].notes == "second"
    assert second.done()


@pytest.mark.asyncio
async def test_coalescing_keeps_the_attempt_counter() -> None:
    writer = RecordingWriter(failures=1)
    queue = WriteQueue(writer, max_attempts=3)

    await queue.schedule(make_record(notes="first"))
    await queue.drain()
    await queue.schedule(make_record(notes="second"))

    assert queue.get_queue_status()["entries"][0]["attempts"] == 1


@pytest.mark.asyncio
async def test_write_is_dropped_after_max_attempts() -> None:
    writer = RecordingWriter(failures=-1)
    queue = WriteQueue(writer, max_attempts=3)

    future = await queue.schedule(make_record())
    for _ in range(3):
        assert len(queue) == 1
        await queue.drain()

    assert len(writer.calls) == 3
    assert len(queue) == 0
    status = queue.get_queue_status()
    assert status["pending_count"] == 0
    assert status["failed_count"] == 1
    assert status["failures"][0]["id"] == "r1"
    assert status["failures"][0]["attempts"] == 3
    with pytest.raises(WriteFailedError):
        future.result()

    # nothing left to retry
    await queue.drain()
    assert len(writer.calls) == 3


@pytest.mark.asyncio
async def test_transient_failure_is_retried_on_next_drain() -> None:
    writer = RecordingWriter(failures=1)
    queue = WriteQueue(writer, max_attempts=3)

    future = await queue.schedule(make_record())
    await queue.drain()
    assert not future.done()

    await queue.drain()
    assert future.done() and future.exception() is None
    assert len(writer.calls) == 2


@pytest.mark.asyncio
async def test_concurrent_drain_is_a_no_op() -> None:
    writer = RecordingWriter()
    writer.gate = asyncio.Event()
    queue = WriteQueue(writer)
    await queue.schedule(make_record())

    running = asyncio.create_task(queue.drain())
    await writer.started.wait()
    assert queue.is_draining

    await queue.drain()
    assert len(writer.calls) == 1

    writer.gate.set()
    await running
    assert len(writer.calls) == 1
    assert not queue.is_draining


@pytest.mark.asyncio
async def test_edit_during_write_keeps_newer_payload_queued() -> None:
    writer = RecordingWriter()
    writer.gate = asyncio.Event()
    queue = WriteQueue(writer)
    future = await queue.schedule(make_record(notes="v1"))

    running = asyncio.create_task(queue.drain())
    await writer.started.wait()
    await queue.schedule(make_record(notes="v2"))
    writer.gate.set()
    await running

    assert not future.done()
    assert queue.pending_records()[0].notes == "v2"

    await queue.drain()
    assert [record.notes for record in writer.calls] == ["v1", "v2"]
    assert future.done()


@pytest.mark.asyncio
async def test_force_drain_waits_for_running_pass_then_writes_everything() -> None:
    writer = RecordingWriter()
    writer.gate = asyncio.Event()
    queue = WriteQueue(writer)
    await queue.schedule(make_record("r1"))

    running = asyncio.create_task(queue.drain())
    await writer.started.wait()
    await queue.schedule(make_record("r2", "Office Dupont"))

    forced = asyncio.create_task(queue.force_drain())
    await asyncio.sleep(0)
    writer.gate.set()
    await asyncio.gather(running, forced)

    assert [record.id for record in writer.calls] == ["r1", "r2"]
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_clear_cancels_pending_futures() -> None:
    writer = RecordingWriter()
    queue = WriteQueue(writer)
    future = await queue.schedule(make_record())

    queue.clear()

    assert future.cancelled()
    assert len(queue) == 0
    await queue.drain()
    assert writer.calls == []


@pytest.mark.asyncio
async def test_periodic_drain_runs_until_stopped() -> None:
    writer = RecordingWriter()
    queue = WriteQueue(writer, interval_seconds=0.01)
    await queue.schedule(make_record())

    queue.start()
    assert queue.is_running
    for _ in range(50):
        if writer.calls:
            break
        await asyncio.sleep(0.01)
    queue.stop()

    assert len(writer.calls) == 1
    assert not queue.is_running


@pytest.mark.asyncio
async def test_schedule_keeps_a_given_modification_time() -> None:
    writer = RecordingWriter()
    queue = WriteQueue(writer)
    stamp = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)

    await queue.schedule(make_record(email="etude@notaires.fr"), modified_at=stamp)

    assert writer.calls[0].modified_at == stamp


@pytest.mark.asyncio
async def test_reset_forgets_failures_and_counters() -> None:
    writer = RecordingWriter(failures=1)
    queue = WriteQueue(writer, max_attempts=1)
    await queue.schedule(make_record("r1", email="etude@notaires.fr"))
    await queue.schedule(make_record("r2", email="dupont@notaires.fr"))
    pending = await queue.schedule(make_record("r3", notes="later"))
    assert (queue.failed_count, queue.written_count) == (1, 1)

    queue.reset()

    status = queue.get_queue_status()
    assert status["failures"] == []
    assert (status["failed_count"], status["written_count"], status["pending_count"]) == (0, 0, 0)
    assert pending.cancelled()
