"""BatchWriter that prints each flushed batch to standard output."""
from __future__ import annotations

import asyncio
import sys
from typing import BinaryIO

from drainer.app.ports.batch_writer import StorageWriteError


class ConsoleBatchWriter:
    def __init__(self, stream: BinaryIO | None = None) -> None:
        self._stream = stream

    def _target(self) -> BinaryIO:
        return self._stream if self._stream is not None else sys.stdout.buffer

    def _write_sync(self, data: bytes) -> None:
        stream = self._target()
        stream.write(data)
        stream.flush()

    async def write(self, data: bytes, identifier: str) -> str:
        try:
            await asyncio.to_thread(self._write_sync, data)
        except (OSError, ValueError) as exc:
            raise StorageWriteError(f"failed writing batch {identifier} to stdout: {exc}") from exc
        return f"stdout ({identifier})"

    async def verify_writable(self) -> bool:
        return True

    async def close(self) -> None:
        return
