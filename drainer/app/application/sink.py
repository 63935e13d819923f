"""Queue sink: concurrent polling loops, adaptive backoff and chunked acknowledgment.

Per polling loop:
  AWAITING_RECEIVE -> messages: reset backoff, hand batch to the handler and wait
  for it to return before receiving again (one outstanding batch per loop).
  AWAITING_RECEIVE -> empty/error: wait the current delay, grow it by one step.
  With stop_when_empty, an empty receive is followed by an attribute query; the
  loop stops only when visible, in-flight and delayed counts are all zero.

Loops share the counters and the handler, nothing else. Any exception that is not
a QueueTransportError is a programming error and goes through fail_fast().
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Sequence

from loguru import logger

from drainer.app.core import SERVICE_NAME
from drainer.app.core.backoff import LinearBackoff
from drainer.app.core.failfast import fail_fast
from drainer.app.domain.models import MAX_BATCH_SIZE, PollState, QueueMessage, SinkCounters
from drainer.app.ports.message_handler import MessageHandler
from drainer.app.ports.queue_transport import QueueTransport, QueueTransportError

DEFAULT_WAIT_TIME_SECONDS = 10
DEFAULT_VISIBILITY_TIMEOUT_SECONDS = 90
BACKOFF_STEP_SECONDS = 2.0
MAX_EMPTY_POLL_DELAY_SECONDS = 15.0


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class QueueSink:
    """Pulls messages from a QueueTransport and acknowledges what the handler confirms."""

    def __init__(
        self,
        transport: QueueTransport,
        *,
        visibility_timeout_seconds: int = DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
        max_messages: int = MAX_BATCH_SIZE,
        wait_time_seconds: int = DEFAULT_WAIT_TIME_SECONDS,
        stop_when_empty: bool = True,
        max_concurrent_receivers: int = 1,
        backoff_step_seconds: float = BACKOFF_STEP_SECONDS,
        max_empty_poll_delay_seconds: float = MAX_EMPTY_POLL_DELAY_SECONDS,
        exit_on_errors: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if not 1 <= max_messages <= MAX_BATCH_SIZE:
            raise ValueError(f"max_messages must be between 1 and {MAX_BATCH_SIZE}")
        if max_concurrent_receivers < 1:
            raise ValueError("max_concurrent_receivers must be at least 1")
        self._transport = transport
        self._visibility_timeout_seconds = int(visibility_timeout_seconds)
        self._max_messages = max_messages
        self._wait_time_seconds = int(wait_time_seconds)
        self._stop_when_empty = stop_when_empty
        self._max_concurrent_receivers = max_concurrent_receivers
        self._backoff_step_seconds = backoff_step_seconds
        self._max_empty_poll_delay_seconds = max_empty_poll_delay_seconds
        self._exit_on_errors = exit_on_errors
        self._sleep = sleep

        self._handler: MessageHandler | None = None
        self._counters = SinkCounters()
        self._poll_states: list[PollState] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._stop_requested = asyncio.Event()

    @property
    def counters(self) -> SinkCounters:
        return self._counters

    @property
    def poll_states(self) -> list[PollState]:
        return list(self._poll_states)

    @property
    def receiving(self) -> bool:
        return any(state.receiving for state in self._poll_states)

    def register_handler(self, handler: MessageHandler) -> None:
        """Set the one handler that receives batches; gives it a back-reference for acks."""
        self._handler = handler
        handler.attach(self)

    def start(self) -> None:
        """Spawn the polling loops. Must be called from a running event loop."""
        if self._handler is None:
            raise RuntimeError("no message handler registered")
        if self._tasks:
            return
        _log(
            "sink_started",
            receivers=self._max_concurrent_receivers,
            stop_when_empty=self._stop_when_empty,
            visibility_timeout_seconds=self._visibility_timeout_seconds,
        )
        for loop_id in range(self._max_concurrent_receivers):
            state = PollState(loop_id=loop_id, receiving=True)
            self._poll_states.append(state)
            self._tasks.append(asyncio.create_task(self._poll_loop(state), name=f"poll-loop-{loop_id}"))

    async def wait(self) -> None:
        """Wait until every polling loop has stopped."""
        if self._tasks:
            await asyncio.gather(*self._tasks)
        _log(
            "sink_stopped",
            total_received=self._counters.total_received,
            total_acked=self._counters.total_acked,
        )

    def stop(self) -> None:
        """Ask every loop to stop at its next suspension point."""
        if not self._stop_requested.is_set():
            _log("sink_stop_requested")
            self._stop_requested.set()

    async def acknowledge(self, handles: Sequence[str]) -> None:
        """Delete handles from the queue in chunks of at most 10, in input order.

        Failed entries are logged and left leased; the queue redelivers them once
        the visibility timeout expires.
        """
        pending = list(handles)
        for start in range(0, len(pending), MAX_BATCH_SIZE):
            await self._acknowledge_chunk(pending[start:start + MAX_BATCH_SIZE])

    async def _acknowledge_chunk(self, chunk: list[str]) -> None:
        entries = [(str(index), handle) for index, handle in enumerate(chunk)]
        try:
            result = await self._transport.delete_batch(entries)
        except QueueTransportError as exc:
            logger.error("failed removing {} messages from queue: {}", len(entries), exc)
            return

        total = self._counters.add_acked(len(result.succeeded))
        _log("messages_acknowledged", count=len(result.succeeded), total_acked=total)
        if result.failed:
            handles_by_id = dict(entries)
            for local_id, reason in result.failed.items():
                handle = handles_by_id.get(local_id, local_id)
                logger.bind(service_name=SERVICE_NAME, event="acknowledge_failed", handle=handle).warning(
                    "message {} (handle {}) failed to be removed: {}", local_id, handle, reason
                )

    async def _poll_loop(self, state: PollState) -> None:
        backoff = LinearBackoff(self._backoff_step_seconds, self._max_empty_poll_delay_seconds)
        try:
            while not self._stop_requested.is_set():
                try:
                    messages = await self._transport.receive(
                        self._max_messages,
                        self._wait_time_seconds,
                        self._visibility_timeout_seconds,
                    )
                except QueueTransportError as exc:
                    logger.error("failed receiving messages: {}", exc)
                    await self._retry_later(state, backoff)
                    continue

                if messages:
                    backoff.reset()
                    state.empty_poll_delay_seconds = backoff.delay
                    await self._dispatch(state, messages)
                    continue

                _log("no_messages_received", loop_id=state.loop_id)
                if self._stop_when_empty and await self._queue_is_drained(state):
                    break
                await self._retry_later(state, backoff)
        except Exception as exc:
            fail_fast(exc, where=f"poll loop {state.loop_id}", exit_on_errors=self._exit_on_errors)
        finally:
            state.receiving = False

    async def _dispatch(self, state: PollState, messages: list[QueueMessage]) -> None:
        total = self._counters.add_received(len(messages))
        _log("messages_received", loop_id=state.loop_id, count=len(messages), total_received=total)
        batch: Mapping[str, bytes] = {message.handle: message.body for message in messages}
        assert self._handler is not None
        await self._handler.handle(batch)

    async def _queue_is_drained(self, state: PollState) -> bool:
        try:
            attributes = await self._transport.get_queue_attributes()
        except QueueTransportError as exc:
            logger.error("failed querying queue attributes: {}", exc)
            return False

        if attributes.visible:
            _log("queue_not_empty", loop_id=state.loop_id, visible=attributes.visible)
        elif attributes.delayed:
            _log("queue_has_delayed", loop_id=state.loop_id, delayed=attributes.delayed)
        elif attributes.in_flight:
            _log("queue_has_in_flight", loop_id=state.loop_id, in_flight=attributes.in_flight)
        else:
            _log(
                "queue_drained",
                loop_id=state.loop_id,
                total_received=self._counters.total_received,
                total_acked=self._counters.total_acked,
            )
        return attributes.is_drained

    async def _retry_later(self, state: PollState, backoff: LinearBackoff) -> None:
        delay = backoff.advance()
        state.empty_poll_delay_seconds = backoff.delay
        await self._pause(delay)

    async def _pause(self, delay: float) -> None:
        if self._stop_requested.is_set():
            return
        sleeper = asyncio.ensure_future(self._sleep(delay))
        stopper = asyncio.ensure_future(self._stop_requested.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, stopper):
                if not task.done():
                    task.cancel()
