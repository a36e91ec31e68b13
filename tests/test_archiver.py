from __future__ import annotations

import asyncio

import pytest

from fakes import FakeSource, MemoryStorage, make_requests
from podlogs.errors import ArchiveError, CollectionCancelledError, SaveError, StreamOpenError
from podlogs.log_collector.archiver import ConcurrentArchiver, RequestState
from podlogs.storage.base import StorageObject


def assert_closed_once(source: FakeSource) -> None:
    for rid, stream in source.opened.items():
        assert stream.close_count == 1, rid


@pytest.mark.asyncio
async def test_empty_request_list_is_a_noop() -> None:
    storage = MemoryStorage()
    report = await ConcurrentArchiver().save_all(storage, "/archive", [])
    assert report.outcomes == []
    assert report.ok is True
    assert storage.calls == []


@pytest.mark.asyncio
async def test_all_requests_saved() -> None:
    source = FakeSource()
    storage = MemoryStorage()
    requests = make_requests(source, ["web", "sidecar", "migrate"])

    report = await ConcurrentArchiver().save_all(storage, "/archive", requests)

    assert report.saved_ids == ["ns_pod-1_web", "ns_pod-1_sidecar", "ns_pod-1_migrate"]
    assert storage.saved["ns_pod-1_web"] == b"logs of ns_pod-1_web\n"
    assert {loc for loc, _ in storage.calls} == {"/archive"}
    assert_closed_once(source)


@pytest.mark.asyncio
async def test_open_failure_of_one_request_does_not_stop_siblings() -> None:
    source = FakeSource(fail={"c2"})
    storage = MemoryStorage()
    requests = make_requests(source, ["c1", "c2", "c3"])

    with pytest.raises(ArchiveError) as exc_info:
        await ConcurrentArchiver().save_all(storage, "/archive", requests)

    err = exc_info.value
    assert sorted(name for _, name in storage.calls) == ["ns_pod-1_c1", "ns_pod-1_c3"]
    assert "ns_pod-1_c2" in str(err)
    assert [o.resource_id for o in err.failures] == ["ns_pod-1_c2"]
    assert isinstance(err.first_error, StreamOpenError)
    assert isinstance(err.first_error.__cause__, ConnectionError)
    assert err.report.saved_ids == ["ns_pod-1_c1", "ns_pod-1_c3"]
    assert_closed_once(source)


@pytest.mark.parametrize(("n", "k"), [(1, 0), (1, 1), (4, 2), (5, 5), (6, 1)])
@pytest.mark.asyncio
async def test_k_open_failures_give_n_minus_k_saves(n: int, k: int) -> None:
    containers = [f"c{i}" for i in range(n)]
    source = FakeSource(fail=set(containers[:k]))
    storage = MemoryStorage()
    requests = make_requests(source, containers)

    archiver = ConcurrentArchiver()
    if k:
        with pytest.raises(ArchiveError) as exc_info:
            await archiver.save_all(storage, "/archive", requests)
        assert len(exc_info.value.failures) == k
        assert len(exc_info.value.errors) == k
    else:
        await archiver.save_all(storage, "/archive", requests)

    assert len(storage.calls) == n - k
    assert len(source.opened) == n - k
    assert_closed_once(source)


@pytest.mark.asyncio
async def test_save_failure_is_recorded_and_stream_closed() -> None:
    source = FakeSource()
    storage = MemoryStorage(fail={"ns_pod-1_b"})
    requests = make_requests(source, ["a", "b"])

    with pytest.raises(ArchiveError) as exc_info:
        await ConcurrentArchiver().save_all(storage, "/archive", requests)

    outcomes = exc_info.value.report.outcomes
    assert [o.state for o in outcomes] == [RequestState.SAVED, RequestState.SAVE_FAILED]
    assert isinstance(outcomes[1].error, SaveError)
    assert "ns_pod-1_a" in storage.saved
    assert_closed_once(source)


class _ExplodingStorage:
    async def save(self, location: str, obj: StorageObject) -> None:
        await obj.resource.read(1)
        raise RuntimeError("backend went away")


@pytest.mark.asyncio
async def test_unexpected_storage_exception_is_wrapped_as_save_error() -> None:
    source = FakeSource()
    requests = make_requests(source, ["a"])

    with pytest.raises(ArchiveError) as exc_info:
        await ConcurrentArchiver().save_all(_ExplodingStorage(), "/archive", requests)

    error = exc_info.value.first_error
    assert isinstance(error, SaveError)
    assert error.resource_id == "ns_pod-1_a"
    assert isinstance(error.__cause__, RuntimeError)
    assert_closed_once(source)


@pytest.mark.asyncio
async def test_every_failure_is_reported_not_just_the_first() -> None:
    source = FakeSource(fail={"a"})
    storage = MemoryStorage(fail={"ns_pod-1_c"})
    requests = make_requests(source, ["a", "b", "c"])

    with pytest.raises(ArchiveError) as exc_info:
        await ConcurrentArchiver().save_all(storage, "/archive", requests)

    report = exc_info.value.report
    assert report.failed_ids == ["ns_pod-1_a", "ns_pod-1_c"]
    assert report.to_dict()["failed"] == 2
    assert [o["state"] for o in report.to_dict()["outcomes"]] == ["stream_open_failed", "saved", "save_failed"]


@pytest.mark.asyncio
async def test_deadline_cancels_blocked_streams_and_closes_them() -> None:
    source = FakeSource(block={"stuck"})
    storage = MemoryStorage()
    requests = make_requests(source, ["ok", "stuck"])

    with pytest.raises(ArchiveError) as exc_info:
        await ConcurrentArchiver().save_all(storage, "/archive", requests, timeout=0.2)

    outcomes = exc_info.value.report.outcomes
    assert outcomes[0].state == RequestState.SAVED
    assert outcomes[1].state == RequestState.CANCELLED
    assert isinstance(outcomes[1].error, CollectionCancelledError)
    assert "streaming" in str(outcomes[1].error)
    assert_closed_once(source)


@pytest.mark.asyncio
async def test_queued_requests_do_not_open_streams_after_deadline() -> None:
    source = FakeSource(block={"first"})
    storage = MemoryStorage()
    requests = make_requests(source, ["first", "second"])

    with pytest.raises(ArchiveError) as exc_info:
        await ConcurrentArchiver(max_concurrency=1).save_all(storage, "/archive", requests, timeout=0.2)

    states = [o.state for o in exc_info.value.report.outcomes]
    assert states == [RequestState.CANCELLED, RequestState.CANCELLED]
    assert [spec.container_name for spec in source.specs] == ["first"]
    assert_closed_once(source)


@pytest.mark.asyncio
async def test_caller_cancellation_closes_open_streams() -> None:
    source = FakeSource(block={"a", "b"})
    storage = MemoryStorage()
    requests = make_requests(source, ["a", "b"])

    task = asyncio.create_task(ConcurrentArchiver().save_all(storage, "/archive", requests))
    while len(source.opened) < 2:
        await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert_closed_once(source)


@pytest.mark.asyncio
async def test_max_concurrency_bounds_parallel_saves() -> None:
    source = FakeSource()
    storage = MemoryStorage(delay=0.01)
    requests = make_requests(source, [f"c{i}" for i in range(6)])

    report = await ConcurrentArchiver(max_concurrency=2).save_all(storage, "/archive", requests)

    assert len(report.saved) == 6
    assert storage.max_active <= 2


@pytest.mark.asyncio
async def test_unbounded_saves_run_in_parallel() -> None:
    source = FakeSource()
    storage = MemoryStorage(delay=0.01)
    requests = make_requests(source, [f"c{i}" for i in range(4)])

    await ConcurrentArchiver().save_all(storage, "/archive", requests)

    assert storage.max_active == 4


def test_invalid_max_concurrency() -> None:
    with pytest.raises(ValueError):
        ConcurrentArchiver(max_concurrency=0)


@pytest.mark.asyncio
async def test_requests_are_not_reopened_by_a_second_run() -> None:
    source = FakeSource()
    requests = make_requests(source, ["c1"])
    archiver = ConcurrentArchiver()
    await archiver.save_all(MemoryStorage(), "/archive", requests)

    with pytest.raises(ArchiveError) as exc_info:
        await archiver.save_all(MemoryStorage(), "/archive", requests)

    (outcome,) = exc_info.value.report.outcomes
    assert outcome.state == RequestState.STREAM_OPEN_FAILED
    assert isinstance(outcome.error, StreamOpenError)
    assert isinstance(outcome.error.__cause__, RuntimeError)
    assert len(source.specs) == 1
