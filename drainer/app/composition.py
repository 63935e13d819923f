"""Drainer composition root: build and lifecycle-manage concrete dependencies.

Composition may: import concrete classes, call factories, store interface types,
manage high-level lifecycle.
"""
from __future__ import annotations

from typing import Any

from loguru import logger

from drainer.app.application.sink import QueueSink
from drainer.app.application.store import MessageStore
from drainer.app.config.settings import ConfigurationError, Settings
from drainer.app.core import SERVICE_NAME
from drainer.app.infrastructure.messaging.factory import create_queue_transport
from drainer.app.infrastructure.storage.factory import create_batch_writer, resolve_store_backend
from drainer.app.ports.batch_writer import BatchWriter
from drainer.app.ports.queue_transport import QueueTransport


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


class DrainerDependencies:
    """Holds the wired transport, writer, store and sink and their lifecycle."""

    def __init__(
        self,
        *,
        settings: Settings,
        transport: QueueTransport | None = None,
        writer: BatchWriter | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._writer = writer
        self._store: MessageStore | None = None
        self._sink: QueueSink | None = None
        self._connected = False

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def transport(self) -> QueueTransport:
        if self._transport is None:
            raise RuntimeError("transport is not initialized")
        return self._transport

    @property
    def store(self) -> MessageStore:
        if self._store is None:
            raise RuntimeError("store is not initialized")
        return self._store

    @property
    def sink(self) -> QueueSink:
        if self._sink is None:
            raise RuntimeError("sink is not initialized")
        return self._sink

    async def connect(self) -> None:
        settings = self._settings
        if self._writer is None:
            self._writer = create_batch_writer(settings)

        if self._transport is None:
            self._transport = create_queue_transport(settings)
        await self._transport.connect()

        if not await self._writer.verify_writable():
            raise ConfigurationError(f"{resolve_store_backend(settings)} store backend is not writable")

        self._store = MessageStore(
            self._writer,
            filename_pattern=settings.filename_pattern,
            flush_interval_seconds=settings.flush_interval_seconds,
        )
        self._sink = QueueSink(
            self._transport,
            visibility_timeout_seconds=settings.resolved_visibility_timeout_seconds(),
            max_messages=settings.max_messages,
            wait_time_seconds=settings.wait_time_seconds,
            stop_when_empty=not settings.daemon,
            max_concurrent_receivers=settings.max_concurrent_receivers,
            backoff_step_seconds=settings.backoff_step_seconds,
            max_empty_poll_delay_seconds=settings.max_empty_poll_delay_seconds,
        )
        self._sink.register_handler(self._store)
        self._connected = True
        _log("dependencies_connected", daemon=settings.daemon)

    async def close(self) -> None:
        if self._sink is not None:
            self._sink.stop()

        # Flush before the transport goes away so the final batch can still be acknowledged.
        if self._store is not None:
            try:
                await self._store.close()
            except Exception as exc:
                logger.warning("store close failed: {}", exc)
            self._store = None

        if self._writer is not None:
            try:
                await self._writer.close()
            except Exception as exc:
                logger.warning("writer close failed: {}", exc)
            self._writer = None

        if self._transport is not None:
            try:
                await self._transport.close()
            except Exception as exc:
                logger.warning("transport close failed: {}", exc)
            self._transport = None

        self._sink = None
        self._connected = False


def create_drainer_dependencies(settings: Settings | None = None) -> DrainerDependencies:
    return DrainerDependencies(settings=settings or Settings())
