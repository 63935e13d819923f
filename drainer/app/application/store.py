"""Batching store: buffers received messages and acknowledges them only once written.

Flush lifecycle:
  idle --handle(batch)--> armed (one-shot timer) --timer--> flushing --write ok--> ack --> idle
                                                                     --write err--> idle (no ack)

The timer counts as scheduled until the write and acknowledgment finish, so messages
arriving during a flush are merged into the pending batch without arming a second
timer. They are flushed after the *next* message arrives, not immediately; a store
that stops receiving right after a flush keeps that tail until close().

A failed write acknowledges nothing: the messages stay leased and the queue
redelivers them after the visibility timeout.
"""
from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping

from loguru import logger

from drainer.app.core import SERVICE_NAME
from drainer.app.core.failfast import fail_fast
from drainer.app.core.filenames import DEFAULT_FILENAME_PATTERN, FilenameGenerator
from drainer.app.ports.batch_writer import BatchWriter, StorageWriteError
from drainer.app.ports.message_handler import Acknowledger

DEFAULT_FLUSH_INTERVAL_SECONDS = 60.0


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def serialize_batch(messages: Mapping[str, bytes]) -> bytes:
    """One body per line, each terminated by a newline."""
    return b"".join(body + b"\n" for body in messages.values())


class MessageStore:
    """MessageHandler that writes batches through an injected BatchWriter."""

    def __init__(
        self,
        writer: BatchWriter,
        *,
        filename_pattern: str = DEFAULT_FILENAME_PATTERN,
        flush_interval_seconds: float = DEFAULT_FLUSH_INTERVAL_SECONDS,
        exit_on_errors: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if flush_interval_seconds < 0:
            raise ValueError("flush_interval_seconds must be non-negative")
        self._writer = writer
        self._names = FilenameGenerator(filename_pattern, clock=clock)
        self._flush_interval_seconds = flush_interval_seconds
        self._exit_on_errors = exit_on_errors
        self._sleep = sleep

        self._acknowledger: Acknowledger | None = None
        self._pending: dict[str, bytes] = {}
        self._flush_task: asyncio.Task[None] | None = None
        self._flushing = False
        _log("store_configured", flush_interval_seconds=flush_interval_seconds)

    @property
    def is_flush_scheduled(self) -> bool:
        return self._flush_task is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def new_identifier(self) -> str:
        return self._names.next_name()

    def attach(self, acknowledger: Acknowledger) -> None:
        self._acknowledger = acknowledger

    async def handle(self, batch: Mapping[str, bytes]) -> None:
        if self._acknowledger is None:
            raise RuntimeError("no acknowledger attached")
        if not batch:
            return
        self._pending.update(batch)
        if self._flush_task is None:
            self._arm_flush_timer()

    async def close(self) -> None:
        """Cancel a waiting timer, let an in-flight flush finish, then flush what is left."""
        task = self._flush_task
        if task is not None:
            if self._flushing:
                await task
            else:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
            # A task cancelled before its first step never reaches its finally block.
            if self._flush_task is task:
                self._flush_task = None
                self._flushing = False
        if self._pending:
            _log("store_final_flush", count=len(self._pending))
            await self._flush()

    def _arm_flush_timer(self) -> None:
        if self._flush_task is not None:
            raise RuntimeError("flush timer already armed")
        self._flush_task = asyncio.create_task(self._flush_after_interval(), name="store-flush")

    async def _flush_after_interval(self) -> None:
        try:
            await self._sleep(self._flush_interval_seconds)
            self._flushing = True
            await self._flush()
        except Exception as exc:
            fail_fast(exc, where="store flush", exit_on_errors=self._exit_on_errors)
        finally:
            self._flushing = False
            self._flush_task = None
        if self._pending:
            logger.warning(
                "{} messages arrived during the flush and wait for the next message to be flushed",
                len(self._pending),
            )

    async def _flush(self) -> None:
        messages = self._pending
        self._pending = {}
        if not messages:
            return

        identifier = self.new_identifier()
        try:
            location = await self._writer.write(serialize_batch(messages), identifier)
        except StorageWriteError as exc:
            logger.error("error writing {} messages to {}: {}", len(messages), identifier, exc)
            return

        _log("messages_written", count=len(messages), location=location)
        assert self._acknowledger is not None
        await self._acknowledger.acknowledge(list(messages))
