"""BatchWriter that writes each flushed batch to a file under a local directory."""
from __future__ import annotations

import asyncio
import os
from pathlib import Path

from loguru import logger

from drainer.app.ports.batch_writer import StorageWriteError


class FileBatchWriter:
    """Writes to out_dir/identifier. The identifier may contain sub-directories."""

    def __init__(self, out_dir: Path) -> None:
        self._out_dir = Path(out_dir)

    @property
    def out_dir(self) -> Path:
        return self._out_dir

    def _write_sync(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def write(self, data: bytes, identifier: str) -> str:
        path = self._out_dir / identifier
        try:
            await asyncio.to_thread(self._write_sync, path, data)
        except OSError as exc:
            raise StorageWriteError(f"failed writing {path}: {exc}") from exc
        return str(path)

    async def verify_writable(self) -> bool:
        try:
            self._out_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("output directory {} cannot be created: {}", self._out_dir, exc)
            return False
        return os.access(self._out_dir, os.W_OK)

    async def close(self) -> None:
        return
