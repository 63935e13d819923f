"""Typer application for the drainer.

Entry point: ``queue-drainer`` (configured via pyproject.toml scripts).

Commands: drain, fill, replay.
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from loguru import logger
from pydantic import ValidationError

from drainer.app.application.queue_tools import fill_queue, replay_lines
from drainer.app.config.settings import ConfigurationError, Settings, load_settings
from drainer.app.core.logging import configure_logging
from drainer.app.infrastructure.messaging.factory import create_queue_transport
from drainer.app.main import run_drainer
from drainer.app.ports.queue_transport import QueueNotFoundError, QueueTransportError

app = typer.Typer(
    name="queue-drainer",
    help="Drain a message queue into a directory, an S3 bucket or the console.",
    no_args_is_help=True,
    add_completion=False,
)


def _options_file_option() -> Any:
    return typer.Option(None, "--options-file", help="JSON file containing configuration options.")


def _queue_name_option() -> Any:
    return typer.Option(None, "--queue-name", help="The name of the queue to use.")


def _queue_url_option() -> Any:
    return typer.Option(None, "--queue-url", help="Full queue URL; skips name resolution.")


def _region_option() -> Any:
    return typer.Option(None, "--region", help="The AWS region where the queue resides.")


def _endpoint_option() -> Any:
    return typer.Option(None, "--endpoint-url", help="Custom AWS endpoint (e.g. a local emulator).")


def _access_key_option() -> Any:
    return typer.Option(None, "--access-key-id", help="Your AWS access key ID.")


def _secret_key_option() -> Any:
    return typer.Option(None, "--secret-access-key", help="Your AWS secret access key.")


def _backend_option() -> Any:
    return typer.Option(None, "--consumer-backend", help="Queue backend: sqs or memory.")


def _exit(code: int, message: str) -> NoReturn:
    logger.error(message)
    raise typer.Exit(code=code)


def _settings_or_exit(options_file: Optional[Path], **overrides: Any) -> Settings:
    try:
        settings = load_settings(options_file, **overrides)
    except (ConfigurationError, ValidationError) as exc:
        _exit(1, f"invalid configuration: {exc}")
    configure_logging(settings.log_level, log_file=settings.log_file or None, json=settings.log_json)
    return settings


def _select_store_backend(out_dir: Optional[str], s3_bucket: Optional[str], stdout: bool) -> Optional[str]:
    chosen = [name for name, given in (("file", out_dir), ("s3", s3_bucket), ("console", stdout)) if given]
    if len(chosen) > 1:
        _exit(1, "Specify only one of --stdout, --out-dir, or --s3-bucket")
    return chosen[0] if chosen else None


@app.command(name="drain", help="Drain the queue into the selected store.")
def drain_cmd(
    options_file: Optional[Path] = _options_file_option(),
    queue_name: Optional[str] = _queue_name_option(),
    queue_url: Optional[str] = _queue_url_option(),
    region: Optional[str] = _region_option(),
    endpoint_url: Optional[str] = _endpoint_option(),
    access_key_id: Optional[str] = _access_key_option(),
    secret_access_key: Optional[str] = _secret_key_option(),
    consumer_backend: Optional[str] = _backend_option(),
    s3_bucket: Optional[str] = typer.Option(None, "--s3-bucket", help="The S3 bucket where messages are written."),
    out_dir: Optional[str] = typer.Option(None, "--out-dir", help="Local directory where files are written."),
    stdout: bool = typer.Option(False, "--stdout", help="Write messages to the console."),
    filename_pattern: Optional[str] = typer.Option(
        None, "--filename-pattern", help="strftime pattern for batch names; PID is replaced by the process id."
    ),
    flush_frequency: Optional[float] = typer.Option(
        None, "--flush-frequency", help="How often the store flushes messages, in seconds."
    ),
    visibility_timeout: Optional[int] = typer.Option(
        None, "--visibility-timeout", help="Lease duration in seconds (default: 1.25 x flush frequency)."
    ),
    receivers: Optional[int] = typer.Option(None, "--receivers", help="Number of concurrent polling loops."),
    daemon: Optional[bool] = typer.Option(
        None, "--daemon/--no-daemon", help="Keep running once the queue is empty and wait for further messages."
    ),
    log_raw_message: Optional[bool] = typer.Option(
        None, "--log-raw-message/--no-log-raw-message", help="Store the raw queue message instead of the body."
    ),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="A file to write logs to."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (DEBUG, INFO, ...)."),
) -> None:
    store_backend = _select_store_backend(out_dir, s3_bucket, stdout)
    settings = _settings_or_exit(
        options_file,
        queue_name=queue_name,
        queue_url=queue_url,
        aws_region=region,
        aws_endpoint_url=endpoint_url,
        aws_access_key_id=access_key_id,
        aws_secret_access_key=secret_access_key,
        consumer_backend=consumer_backend,
        store_backend=store_backend,
        s3_bucket=s3_bucket,
        out_dir=out_dir,
        filename_pattern=filename_pattern,
        flush_interval_seconds=flush_frequency,
        visibility_timeout_seconds=visibility_timeout,
        max_concurrent_receivers=receivers,
        daemon=daemon,
        log_raw_message=log_raw_message,
        log_file=log_file,
        log_level=log_level,
    )
    try:
        asyncio.run(run_drainer(settings))
    except QueueNotFoundError as exc:
        _exit(1, f"Unable to resolve queue: {exc}")
    except (ConfigurationError, ValueError) as exc:
        _exit(1, str(exc))


async def _with_transport(settings: Settings, action: Any) -> int:
    transport = create_queue_transport(settings)
    await transport.connect()
    try:
        return await action(transport)
    finally:
        await transport.close()


@app.command(name="fill", help="Send batches of 10 junk messages to the queue for testing.")
def fill_cmd(
    batches: int = typer.Option(10, "--batches", min=0, help="How many batches of 10 messages to send."),
    options_file: Optional[Path] = _options_file_option(),
    queue_name: Optional[str] = _queue_name_option(),
    queue_url: Optional[str] = _queue_url_option(),
    region: Optional[str] = _region_option(),
    endpoint_url: Optional[str] = _endpoint_option(),
    consumer_backend: Optional[str] = _backend_option(),
) -> None:
    settings = _settings_or_exit(
        options_file,
        queue_name=queue_name,
        queue_url=queue_url,
        aws_region=region,
        aws_endpoint_url=endpoint_url,
        consumer_backend=consumer_backend,
    )
    try:
        sent = asyncio.run(_with_transport(settings, lambda transport: fill_queue(transport, batches)))
    except QueueTransportError as exc:
        _exit(1, str(exc))
    typer.echo(f"{sent} messages sent")


@app.command(name="replay", help="Send each line read from stdin to the queue as one message.")
def replay_cmd(
    options_file: Optional[Path] = _options_file_option(),
    queue_name: Optional[str] = _queue_name_option(),
    queue_url: Optional[str] = _queue_url_option(),
    region: Optional[str] = _region_option(),
    endpoint_url: Optional[str] = _endpoint_option(),
    consumer_backend: Optional[str] = _backend_option(),
) -> None:
    settings = _settings_or_exit(
        options_file,
        queue_name=queue_name,
        queue_url=queue_url,
        aws_region=region,
        aws_endpoint_url=endpoint_url,
        consumer_backend=consumer_backend,
    )
    lines = sys.stdin.read().split("\n")
    try:
        sent = asyncio.run(_with_transport(settings, lambda transport: replay_lines(transport, lines)))
    except QueueTransportError as exc:
        _exit(1, str(exc))
    typer.echo(f"{sent} messages sent")
