"""Batch writer factory: selects the storage backend from config."""
from __future__ import annotations

from pathlib import Path

from drainer.app.config.settings import ConfigurationError, Settings
from drainer.app.infrastructure.aws import create_aws_client
from drainer.app.infrastructure.storage.console.console_writer import ConsoleBatchWriter
from drainer.app.infrastructure.storage.file.file_writer import FileBatchWriter
from drainer.app.infrastructure.storage.s3.s3_writer import S3BatchWriter
from drainer.app.ports.batch_writer import BatchWriter


def resolve_store_backend(settings: Settings) -> str:
    backend = settings.store_backend.strip().lower()
    if backend:
        return backend
    if settings.s3_bucket:
        return "s3"
    if settings.out_dir:
        return "file"
    raise ConfigurationError("You must specify one of --stdout, --out-dir, or --s3-bucket")


def create_batch_writer(settings: Settings) -> BatchWriter:
    backend = resolve_store_backend(settings)

    if backend == "file":
        if not settings.out_dir:
            raise ConfigurationError("file backend requires an output directory")
        return FileBatchWriter(Path(settings.out_dir))
    if backend == "s3":
        if not settings.s3_bucket:
            raise ConfigurationError("s3 backend requires a bucket")
        return S3BatchWriter(create_aws_client("s3", settings), settings.s3_bucket)
    if backend == "console":
        return ConsoleBatchWriter()

    raise ValueError(f"Unsupported store backend: {backend}")
