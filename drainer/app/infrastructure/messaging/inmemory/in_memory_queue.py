"""In-memory queue transport for tests and local mode.

Models the lease semantics the sink depends on: a receive hides a message for the
visibility timeout and issues a fresh receipt handle; only the current handle
deletes it; an expired lease makes the message visible again. Long polling is not
simulated, an empty receive returns immediately.
"""
from __future__ import annotations

import asyncio
import itertools
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Sequence

from drainer.app.domain.models import DeleteBatchResult, QueueAttributes, QueueMessage, SendBatchResult

INVALID_HANDLE = "ReceiptHandleIsInvalid"


@dataclass
class _StoredMessage:
    message_id: str
    body: str
    visible_at: float
    handle: str | None = None
    receive_count: int = 0


class InMemoryQueueTransport:
    """QueueTransport backed by an ordered dict of messages."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._messages: dict[str, _StoredMessage] = {}
        self._ids = itertools.count()
        self.receive_calls = 0
        self.delete_calls: list[list[tuple[str, str]]] = []

    async def connect(self) -> None:
        return

    def enqueue(self, body: str, *, delay_seconds: float = 0.0) -> str:
        message_id = str(next(self._ids))
        self._messages[message_id] = _StoredMessage(
            message_id=message_id,
            body=body,
            visible_at=self._clock() + delay_seconds,
        )
        return message_id

    @property
    def size(self) -> int:
        return len(self._messages)

    async def receive(
        self,
        max_count: int,
        wait_time_seconds: int,
        visibility_timeout_seconds: int,
    ) -> list[QueueMessage]:
        self.receive_calls += 1
        await asyncio.sleep(0)
        now = self._clock()
        received: list[QueueMessage] = []
        for stored in self._messages.values():
            if len(received) >= max_count:
                break
            if stored.visible_at > now:
                continue
            stored.handle = uuid.uuid4().hex
            stored.visible_at = now + visibility_timeout_seconds
            stored.receive_count += 1
            received.append(QueueMessage(handle=stored.handle, body=stored.body.encode("utf-8")))
        return received

    async def delete_batch(self, entries: Sequence[tuple[str, str]]) -> DeleteBatchResult:
        self.delete_calls.append(list(entries))
        by_handle = {stored.handle: stored.message_id for stored in self._messages.values() if stored.handle}
        succeeded: set[str] = set()
        failed: dict[str, str] = {}
        for local_id, handle in entries:
            message_id = by_handle.get(handle)
            if message_id is None:
                failed[local_id] = INVALID_HANDLE
                continue
            # Deleting the same handle twice succeeds, as it does on SQS.
            self._messages.pop(message_id, None)
            succeeded.add(local_id)
        return DeleteBatchResult(succeeded=frozenset(succeeded), failed=failed)

    async def get_queue_attributes(self) -> QueueAttributes:
        now = self._clock()
        visible = in_flight = delayed = 0
        for stored in self._messages.values():
            if stored.visible_at <= now:
                visible += 1
            elif stored.handle is None:
                delayed += 1
            else:
                in_flight += 1
        return QueueAttributes(visible=visible, in_flight=in_flight, delayed=delayed)

    async def send_batch(self, bodies: Sequence[str]) -> SendBatchResult:
        for body in bodies:
            self.enqueue(body)
        return SendBatchResult(succeeded=frozenset(str(index) for index in range(len(bodies))))

    async def close(self) -> None:
        return
