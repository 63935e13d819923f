"""Port: durable write of one serialized batch.

The store depends only on this port; file, S3 and console backends implement it.
A writer may retry transient errors internally, but must raise StorageWriteError
once it gives up so the store leaves the batch unacknowledged.
"""
from __future__ import annotations

from typing import Protocol


class StorageWriteError(Exception):
    """Raised when a batch could not be durably written."""


class BatchWriter(Protocol):
    async def write(self, data: bytes, identifier: str) -> str:
        """Write data under identifier; return a human-readable location."""
        ...

    async def verify_writable(self) -> bool:
        """Pre-flight check run before polling starts."""
        ...

    async def close(self) -> None: ...
