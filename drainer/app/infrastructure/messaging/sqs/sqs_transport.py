"""
SQS transport: queue URL resolution, long-poll receive, batch delete and attribute queries.

boto3 is synchronous; every call runs in a worker thread through asyncio.to_thread so
only the awaiting polling loop (or flush) suspends, never the event loop. botocore
errors are mapped to QueueTransportError, which callers treat as transient.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Sequence

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from drainer.app.config.settings import Settings
from drainer.app.core import SERVICE_NAME
from drainer.app.core.backoff import exponential_backoff
from drainer.app.domain.models import DeleteBatchResult, QueueAttributes, QueueMessage, SendBatchResult
from drainer.app.infrastructure.aws import create_aws_client
from drainer.app.ports.queue_transport import QueueNotFoundError, QueueTransportError

NONEXISTENT_QUEUE_CODES = frozenset({"AWS.SimpleQueueService.NonExistentQueue", "QueueDoesNotExist"})
COUNT_ATTRIBUTES = (
    "ApproximateNumberOfMessages",
    "ApproximateNumberOfMessagesNotVisible",
    "ApproximateNumberOfMessagesDelayed",
)


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def _failed_entries(response: dict[str, Any]) -> dict[str, str]:
    return {
        str(entry["Id"]): f"{entry.get('Code', 'Unknown')}: {entry.get('Message', '')}".rstrip(": ")
        for entry in response.get("Failed", [])
    }


def _succeeded_ids(response: dict[str, Any]) -> frozenset[str]:
    return frozenset(str(entry["Id"]) for entry in response.get("Successful", []))


class SqsQueueTransport:
    """QueueTransport implementation backed by a boto3 SQS client."""

    def __init__(self, settings: Settings, *, client: Any | None = None) -> None:
        self._settings = settings
        self._client = client
        self._queue_url: str | None = settings.queue_url or None
        self._log_raw_message = settings.log_raw_message

    @property
    def queue_url(self) -> str | None:
        return self._queue_url

    async def connect(self) -> None:
        if self._client is None:
            self._client = create_aws_client("sqs", self._settings)
        if self._queue_url:
            _log("sqs_queue_configured", queue_url=self._queue_url)
            return

        queue_name = self._settings.queue_name
        if not queue_name:
            raise QueueNotFoundError("no queue name or queue url configured")

        attempt = 0
        async for delay in exponential_backoff(
            self._settings.initial_backoff_seconds,
            self._settings.max_backoff_seconds,
            self._settings.backoff_multiplier,
            self._settings.max_connection_attempts,
        ):
            attempt += 1
            _log("sqs_resolve_attempt", queue_name=queue_name, attempt=attempt, delay=delay)
            try:
                response = await asyncio.to_thread(self._client.get_queue_url, QueueName=queue_name)
                self._queue_url = response["QueueUrl"]
                break
            except ClientError as exc:
                code = exc.response.get("Error", {}).get("Code", "")
                if code in NONEXISTENT_QUEUE_CODES:
                    raise QueueNotFoundError(f'unable to resolve queue "{queue_name}": {exc}') from exc
                logger.warning("sqs queue resolution failed: {}", exc)
                if attempt >= self._settings.max_connection_attempts:
                    raise QueueNotFoundError(f'unable to resolve queue "{queue_name}": {exc}') from exc
            except BotoCoreError as exc:
                logger.warning("sqs queue resolution failed: {}", exc)
                if attempt >= self._settings.max_connection_attempts:
                    raise QueueNotFoundError(f'unable to resolve queue "{queue_name}": {exc}') from exc

        if not self._queue_url:
            raise QueueNotFoundError(f'unable to resolve queue "{queue_name}"')
        _log("sqs_queue_resolved", queue_name=queue_name, queue_url=self._queue_url)

    async def _call(self, operation: str, **params: Any) -> dict[str, Any]:
        if self._client is None or not self._queue_url:
            raise QueueTransportError("sqs transport is not connected")
        method = getattr(self._client, operation)
        try:
            return await asyncio.to_thread(method, QueueUrl=self._queue_url, **params)
        except (BotoCoreError, ClientError) as exc:
            raise QueueTransportError(f"sqs {operation} failed: {exc}") from exc

    def _body_of(self, message: dict[str, Any]) -> bytes:
        if self._log_raw_message:
            return json.dumps(message, default=str).encode("utf-8")
        return str(message.get("Body", "")).encode("utf-8")

    async def receive(
        self,
        max_count: int,
        wait_time_seconds: int,
        visibility_timeout_seconds: int,
    ) -> list[QueueMessage]:
        response = await self._call(
            "receive_message",
            MaxNumberOfMessages=max_count,
            WaitTimeSeconds=wait_time_seconds,
            VisibilityTimeout=visibility_timeout_seconds,
        )
        return [
            QueueMessage(handle=message["ReceiptHandle"], body=self._body_of(message))
            for message in response.get("Messages", [])
        ]

    async def delete_batch(self, entries: Sequence[tuple[str, str]]) -> DeleteBatchResult:
        response = await self._call(
            "delete_message_batch",
            Entries=[{"Id": local_id, "ReceiptHandle": handle} for local_id, handle in entries],
        )
        return DeleteBatchResult(succeeded=_succeeded_ids(response), failed=_failed_entries(response))

    async def get_queue_attributes(self) -> QueueAttributes:
        response = await self._call("get_queue_attributes", AttributeNames=list(COUNT_ATTRIBUTES))
        attributes = response.get("Attributes", {})
        return QueueAttributes(
            visible=int(attributes.get("ApproximateNumberOfMessages", 0) or 0),
            in_flight=int(attributes.get("ApproximateNumberOfMessagesNotVisible", 0) or 0),
            delayed=int(attributes.get("ApproximateNumberOfMessagesDelayed", 0) or 0),
        )

    async def send_batch(self, bodies: Sequence[str]) -> SendBatchResult:
        response = await self._call(
            "send_message_batch",
            Entries=[{"Id": str(index), "MessageBody": body} for index, body in enumerate(bodies)],
        )
        return SendBatchResult(succeeded=_succeeded_ids(response), failed=_failed_entries(response))

    async def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except Exception as exc:
                logger.warning("sqs client close failed: {}", exc)
            self._client = None
