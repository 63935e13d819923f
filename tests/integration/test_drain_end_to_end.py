"""End-to-end drain: in-memory queue -> sink -> store -> files on disk, with real timers."""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from drainer.app.composition import DrainerDependencies
from drainer.app.config.settings import Settings
from drainer.app.infrastructure.messaging.inmemory.in_memory_queue import InMemoryQueueTransport
from drainer.app.main import run_drainer


def _settings(out_dir: Path, **overrides) -> Settings:
    values = {
        "consumer_backend": "memory",
        "out_dir": str(out_dir),
        "filename_pattern": "batch-%H%M%S%f-PID.log",
        "flush_interval_seconds": 0.05,
        "visibility_timeout_seconds": 30,
        "wait_time_seconds": 0,
        "backoff_step_seconds": 0.01,
        "max_empty_poll_delay_seconds": 0.05,
    }
    values.update(overrides)
    return Settings(**values)


def _written(out_dir: Path) -> bytes:
    return b"".join(path.read_bytes() for path in sorted(out_dir.iterdir()))


@pytest.mark.asyncio
async def test_bounded_drain_writes_everything_and_empties_queue(tmp_path):
    queue = InMemoryQueueTransport()
    queue.enqueue("123")
    queue.enqueue("456")
    settings = _settings(tmp_path)
    deps = DrainerDependencies(settings=settings, transport=queue)

    await asyncio.wait_for(run_drainer(settings, dependencies=deps, install_signal_handlers=False), timeout=5)

    assert _written(tmp_path) == b"123\n456\n"
    assert queue.size == 0
    assert all(len(call) <= 10 for call in queue.delete_calls)


@pytest.mark.asyncio
async def test_bounded_drain_handles_more_than_one_receive_batch(tmp_path):
    queue = InMemoryQueueTransport()
    bodies = [f"message {index}" for index in range(25)]
    for body in bodies:
        queue.enqueue(body)
    settings = _settings(tmp_path, max_concurrent_receivers=2)
    deps = DrainerDependencies(settings=settings, transport=queue)

    await asyncio.wait_for(run_drainer(settings, dependencies=deps, install_signal_handlers=False), timeout=5)

    written = _written(tmp_path).decode().splitlines()
    assert sorted(written) == sorted(bodies)
    assert queue.size == 0


@pytest.mark.asyncio
async def test_daemon_drain_runs_until_stopped(tmp_path):
    queue = InMemoryQueueTransport()
    queue.enqueue("123")
    settings = _settings(tmp_path, daemon=True)
    deps = DrainerDependencies(settings=settings, transport=queue)

    drainer = asyncio.create_task(run_drainer(settings, dependencies=deps, install_signal_handlers=False))
    for _ in range(100):
        if queue.size == 0:
            break
        await asyncio.sleep(0.02)
    assert queue.size == 0
    assert not drainer.done()

    queue.enqueue("456")
    for _ in range(100):
        if queue.size == 0:
            break
        await asyncio.sleep(0.02)

    deps.sink.stop()
    await asyncio.wait_for(drainer, timeout=5)
    assert _written(tmp_path) == b"123\n456\n"
