import asyncio

import pytest

from notifsync.core.errors import MutationError
from notifsync.schemas.notification import NotificationRecord
from notifsync.services.mutations import MutationGateway
from notifsync.services.store import NotificationStore

from tests.support import make_row


def _gateway(api, backend, *ids: int) -> MutationGateway:
    backend.rows = [make_row(i) for i in ids]
    store = NotificationStore()
    store.apply_fetched_list(NotificationRecord.model_validate(row) for row in backend.rows)
    store.apply_counter_push(len(ids))
    return MutationGateway(api, store)


async def test_concurrent_mark_as_read_sends_one_request(api, backend) -> None:
    gateway = _gateway(api, backend, 7)
    backend.gate = asyncio.Event()

    first = asyncio.create_task(gateway.mark_as_read(7))
    await asyncio.sleep(0)
    assert gateway.is_pending(7)
    assert await gateway.mark_as_read(7) is False

    backend.gate.set()
    assert await first is True
    assert backend.read_calls == [7]
    assert gateway.store.state.get(7).read is True
    assert gateway.store.state.unread_count == 0
    assert not gateway.is_pending(7)


async def test_distinct_ids_proceed_concurrently(api, backend) -> None:
    gateway = _gateway(api, backend, 1, 2)
    results = await asyncio.gather(gateway.mark_as_read(1), gateway.mark_as_read(2))
    assert results == [True, True]
    assert sorted(backend.read_calls) == [1, 2]
    assert gateway.store.state.unread_count == 0


async def test_failed_mark_as_read_clears_pending_and_allows_retry(api, backend) -> None:
    gateway = _gateway(api, backend, 7)
    backend.fail_reads = {7}

    with pytest.raises(MutationError):
        await gateway.mark_as_read(7)
    assert not gateway.is_pending(7)
    assert gateway.store.state.get(7).read is False
    assert gateway.store.state.unread_count == 1

    assert await gateway.mark_as_read(7) is True
    assert gateway.store.state.get(7).read is True
    assert backend.read_calls == [7, 7]


async def test_mark_all_as_read_is_guarded_by_one_flag(api, backend) -> None:
    gateway = _gateway(api, backend, 1, 2, 3)
    backend.gate = asyncio.Event()

    first = asyncio.create_task(gateway.mark_all_as_read())
    await asyncio.sleep(0)
    assert gateway.mark_all_pending
    assert await gateway.mark_all_as_read() is False

    backend.gate.set()
    assert await first is True
    assert backend.mark_all_calls == 1
    assert gateway.store.state.unread_count == 0
    assert all(r.read for r in gateway.store.state.records)
    assert gateway.mark_all_pending is False


async def test_cancelled_mark_as_read_releases_pending(api, backend) -> None:
    gateway = _gateway(api, backend, 3)
    backend.gate = asyncio.Event()
    task = asyncio.create_task(gateway.mark_as_read(3))
    await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not gateway.is_pending(3)
