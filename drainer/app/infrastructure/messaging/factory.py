"""Queue transport factory: selects implementation from config. Only place that imports concrete transports."""
from __future__ import annotations

from drainer.app.config.settings import Settings
from drainer.app.infrastructure.messaging.inmemory.in_memory_queue import InMemoryQueueTransport
from drainer.app.infrastructure.messaging.sqs.sqs_transport import SqsQueueTransport
from drainer.app.ports.queue_transport import QueueTransport


def create_queue_transport(settings: Settings) -> QueueTransport:
    backend = settings.consumer_backend.strip().lower()

    if backend == "sqs":
        return SqsQueueTransport(settings)
    if backend == "memory":
        return InMemoryQueueTransport()

    raise ValueError(f"Unsupported consumer backend: {backend}")
