"""Port: remote message queue transport. Implementations live in infrastructure."""
from __future__ import annotations

from typing import Protocol, Sequence

from drainer.app.domain.models import DeleteBatchResult, QueueAttributes, QueueMessage, SendBatchResult


class QueueTransportError(Exception):
    """Recoverable receive/delete/attribute failure. Callers back off and retry."""


class QueueNotFoundError(QueueTransportError):
    """Raised at startup when the configured queue cannot be resolved."""


class QueueTransport(Protocol):
    async def connect(self) -> None: ...

    async def receive(
        self,
        max_count: int,
        wait_time_seconds: int,
        visibility_timeout_seconds: int,
    ) -> list[QueueMessage]:
        """Long-poll for up to max_count messages. Empty list when none arrived."""
        ...

    async def delete_batch(self, entries: Sequence[tuple[str, str]]) -> DeleteBatchResult:
        """Delete (local_id, handle) entries, at most 10 per call."""
        ...

    async def get_queue_attributes(self) -> QueueAttributes: ...

    async def send_batch(self, bodies: Sequence[str]) -> SendBatchResult:
        """Enqueue at most 10 bodies; entry ids are their positions in bodies."""
        ...

    async def close(self) -> None: ...
