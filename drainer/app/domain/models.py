"""Domain models."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Mapping

# Transport limit for receive and batch delete/send calls.
MAX_BATCH_SIZE = 10


@dataclass(frozen=True)
class QueueMessage:
    """A leased message. The handle proves the lease and is required to delete it."""

    handle: str
    body: bytes


@dataclass(frozen=True)
class QueueAttributes:
    """Approximate queue counts used to decide whether a bounded drain is finished."""

    visible: int = 0
    in_flight: int = 0
    delayed: int = 0

    @property
    def is_drained(self) -> bool:
        return self.visible == 0 and self.in_flight == 0 and self.delayed == 0


@dataclass(frozen=True)
class DeleteBatchResult:
    """Outcome of one batch delete. Ids are the local entry ids, failed maps id to reason."""

    succeeded: frozenset[str] = frozenset()
    failed: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SendBatchResult:
    succeeded: frozenset[str] = frozenset()
    failed: Mapping[str, str] = field(default_factory=dict)


@dataclass
class PollState:
    """Per polling loop state. Never shared between loops."""

    loop_id: int
    empty_poll_delay_seconds: float = 0.0
    receiving: bool = False


class SinkCounters:
    """Process-wide observability counters shared by every loop of one sink.

    Updated from the event loop, but guarded so adapters running in worker
    threads may also report safely.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._total_received = 0
        self._total_acked = 0

    @property
    def total_received(self) -> int:
        return self._total_received

    @property
    def total_acked(self) -> int:
        return self._total_acked

    def add_received(self, count: int) -> int:
        with self._lock:
            self._total_received += count
            return self._total_received

    def add_acked(self, count: int) -> int:
        with self._lock:
            self._total_acked += count
            return self._total_acked
