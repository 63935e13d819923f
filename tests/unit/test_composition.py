"""Unit tests for dependency wiring, lifecycle and the queue transport factory."""
from __future__ import annotations

from typing import Any

import pytest

from drainer.app.application.sink import QueueSink
from drainer.app.application.store import MessageStore
from drainer.app.composition import DrainerDependencies
from drainer.app.config.settings import ConfigurationError, Settings
from drainer.app.infrastructure.messaging.factory import create_queue_transport
from drainer.app.infrastructure.messaging.inmemory.in_memory_queue import InMemoryQueueTransport
from drainer.app.infrastructure.messaging.sqs.sqs_transport import SqsQueueTransport
from tests.fakes import RecordingWriter, ScriptedTransport


def _settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {"consumer_backend": "memory", "store_backend": "console", "flush_interval_seconds": 8}
    values.update(overrides)
    return Settings(**values)


def test_create_queue_transport_selects_backend():
    assert isinstance(create_queue_transport(_settings(consumer_backend="memory")), InMemoryQueueTransport)
    assert isinstance(create_queue_transport(_settings(consumer_backend=" SQS ")), SqsQueueTransport)


def test_create_queue_transport_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unsupported consumer backend"):
        create_queue_transport(_settings(consumer_backend="kafka"))


@pytest.mark.asyncio
async def test_connect_wires_store_as_sink_handler():
    transport = ScriptedTransport()
    writer = RecordingWriter()
    deps = DrainerDependencies(settings=_settings(daemon=True), transport=transport, writer=writer)

    await deps.connect()

    assert isinstance(deps.sink, QueueSink)
    assert isinstance(deps.store, MessageStore)
    assert deps.sink._handler is deps.store
    assert deps.sink._visibility_timeout_seconds == 10
    assert deps.sink._stop_when_empty is False
    await deps.close()


@pytest.mark.asyncio
async def test_connect_rejects_unwritable_store():
    writer = RecordingWriter(writable=False)
    deps = DrainerDependencies(settings=_settings(), transport=ScriptedTransport(), writer=writer)

    with pytest.raises(ConfigurationError, match="not writable"):
        await deps.connect()
    await deps.close()
    assert writer.closed


@pytest.mark.asyncio
async def test_close_flushes_store_before_closing_transport():
    transport = ScriptedTransport()
    writer = RecordingWriter()
    deps = DrainerDependencies(settings=_settings(), transport=transport, writer=writer)
    await deps.connect()
    await deps.store.handle({"a": b"1"})

    await deps.close()

    assert writer.writes[0][0] == b"1\n"
    assert transport.delete_calls == [[("0", "a")]]
    assert writer.closed
    assert transport.closed
    with pytest.raises(RuntimeError):
        _ = deps.sink


def test_accessors_before_connect_raise():
    deps = DrainerDependencies(settings=_settings())
    with pytest.raises(RuntimeError):
        _ = deps.transport
    with pytest.raises(RuntimeError):
        _ = deps.store
