"""Unit tests for the in-memory queue transport lease semantics."""
from __future__ import annotations

import pytest

from drainer.app.domain.models import QueueAttributes
from drainer.app.infrastructure.messaging.inmemory.in_memory_queue import INVALID_HANDLE, InMemoryQueueTransport


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_receive_leases_messages_in_order_up_to_max_count():
    queue = InMemoryQueueTransport(clock=FakeClock())
    for body in ("1", "2", "3"):
        queue.enqueue(body)

    received = await queue.receive(2, 0, 30)

    assert [message.body for message in received] == [b"1", b"2"]
    assert await queue.get_queue_attributes() == QueueAttributes(visible=1, in_flight=2, delayed=0)


@pytest.mark.asyncio
async def test_delete_with_current_handle_removes_message():
    queue = InMemoryQueueTransport(clock=FakeClock())
    queue.enqueue("1")
    [message] = await queue.receive(10, 0, 30)

    result = await queue.delete_batch([("0", message.handle)])

    assert result.succeeded == frozenset({"0"})
    assert queue.size == 0
    assert (await queue.get_queue_attributes()).is_drained


@pytest.mark.asyncio
async def test_expired_lease_redelivers_with_new_handle():
    clock = FakeClock()
    queue = InMemoryQueueTransport(clock=clock)
    queue.enqueue("1")
    [first] = await queue.receive(10, 0, 30)

    assert await queue.receive(10, 0, 30) == []
    clock.now += 31
    [second] = await queue.receive(10, 0, 30)

    assert second.body == b"1"
    assert second.handle != first.handle
    stale = await queue.delete_batch([("0", first.handle)])
    assert stale.failed == {"0": INVALID_HANDLE}
    assert queue.size == 1


@pytest.mark.asyncio
async def test_delayed_messages_are_counted_until_due():
    clock = FakeClock()
    queue = InMemoryQueueTransport(clock=clock)
    queue.enqueue("later", delay_seconds=5)

    assert await queue.receive(10, 0, 30) == []
    assert await queue.get_queue_attributes() == QueueAttributes(visible=0, in_flight=0, delayed=1)

    clock.now += 5
    assert [message.body for message in await queue.receive(10, 0, 30)] == [b"later"]


@pytest.mark.asyncio
async def test_send_batch_enqueues_every_body():
    queue = InMemoryQueueTransport(clock=FakeClock())

    result = await queue.send_batch(["a", "b"])

    assert result.succeeded == frozenset({"0", "1"})
    assert queue.size == 2


@pytest.mark.asyncio
async def test_repeated_handle_in_one_delete_call_succeeds_once_removed():
    queue = InMemoryQueueTransport(clock=FakeClock())
    queue.enqueue("1")
    [message] = await queue.receive(10, 0, 30)

    result = await queue.delete_batch([("0", message.handle), ("1", message.handle)])

    assert result.succeeded == frozenset({"0", "1"})
    assert result.failed == {}
    assert queue.size == 0
