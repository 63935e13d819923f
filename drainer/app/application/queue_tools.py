"""Producer-side helpers for exercising a drainer: junk batches and stdin replay."""
from __future__ import annotations

from typing import Any, Iterable

from loguru import logger

from drainer.app.core import SERVICE_NAME
from drainer.app.domain.models import MAX_BATCH_SIZE, SendBatchResult
from drainer.app.ports.queue_transport import QueueTransport, QueueTransportError

FILL_BODY_TEMPLATE = "Random message numero {}"


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def _raise_on_failures(result: SendBatchResult) -> None:
    if result.failed:
        details = ", ".join(f"{local_id}: {reason}" for local_id, reason in sorted(result.failed.items()))
        raise QueueTransportError(f"{len(result.failed)} messages failed to send ({details})")


async def fill_queue(transport: QueueTransport, batches: int) -> int:
    """Send `batches` batches of 10 numbered junk messages. Returns the number sent."""
    if batches < 0:
        raise ValueError("batches must be non-negative")
    count = 0
    for _ in range(batches):
        bodies = [FILL_BODY_TEMPLATE.format(count + offset) for offset in range(MAX_BATCH_SIZE)]
        _log("fill_batch", first=count, last=count + len(bodies) - 1)
        _raise_on_failures(await transport.send_batch(bodies))
        count += len(bodies)
    _log("fill_done", total_sent=count)
    return count


async def replay_lines(transport: QueueTransport, lines: Iterable[str]) -> int:
    """Send one message per non-empty line, in batches of 10, preserving line order."""
    bodies = [line.rstrip("\r\n") for line in lines]
    bodies = [body for body in bodies if body]
    sent = 0
    for start in range(0, len(bodies), MAX_BATCH_SIZE):
        chunk = bodies[start:start + MAX_BATCH_SIZE]
        _raise_on_failures(await transport.send_batch(chunk))
        sent += len(chunk)
        _log("messages_sent", count=len(chunk), total_sent=sent)
    return sent
