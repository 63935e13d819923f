"""Ports between the sink and the store.

The sink calls MessageHandler.handle() with each received batch and waits for it
before the next receive. The store calls Acknowledger.acknowledge() once a batch
has been written.
"""
from __future__ import annotations

from typing import Mapping, Protocol, Sequence


class Acknowledger(Protocol):
    async def acknowledge(self, handles: Sequence[str]) -> None: ...


class MessageHandler(Protocol):
    def attach(self, acknowledger: Acknowledger) -> None: ...

    async def handle(self, batch: Mapping[str, bytes]) -> None:
        """Accept {handle: body}. Must return without waiting for persistence."""
        ...
