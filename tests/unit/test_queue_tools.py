"""Unit tests for the fill and replay producer helpers."""
from __future__ import annotations

import pytest

from drainer.app.application.queue_tools import FILL_BODY_TEMPLATE, fill_queue, replay_lines
from drainer.app.ports.queue_transport import QueueTransportError
from tests.fakes import ScriptedTransport


@pytest.mark.asyncio
async def test_fill_queue_sends_numbered_batches_of_ten():
    transport = ScriptedTransport()

    sent = await fill_queue(transport, 3)

    assert sent == 30
    assert [len(batch) for batch in transport.sent] == [10, 10, 10]
    assert transport.sent[0][0] == FILL_BODY_TEMPLATE.format(0)
    assert transport.sent[2][9] == "Random message numero 29"


@pytest.mark.asyncio
async def test_fill_queue_with_zero_batches_sends_nothing():
    transport = ScriptedTransport()
    assert await fill_queue(transport, 0) == 0
    assert transport.sent == []


@pytest.mark.asyncio
async def test_fill_queue_rejects_negative_batches():
    with pytest.raises(ValueError):
        await fill_queue(ScriptedTransport(), -1)


@pytest.mark.asyncio
async def test_replay_lines_skips_blank_lines_and_chunks_by_ten():
    transport = ScriptedTransport()
    lines = [f"line {index}\n" for index in range(12)] + ["", "\n"]

    sent = await replay_lines(transport, lines)

    assert sent == 12
    assert [len(batch) for batch in transport.sent] == [10, 2]
    assert transport.sent[0][0] == "line 0"
    assert transport.sent[1][-1] == "line 11"


@pytest.mark.asyncio
async def test_send_failure_is_reported():
    transport = ScriptedTransport()
    transport.send_failures = {"bad": "InvalidMessageContents"}

    with pytest.raises(QueueTransportError, match="InvalidMessageContents"):
        await replay_lines(transport, ["good", "bad"])
