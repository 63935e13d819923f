"""BatchWriter that uploads each flushed batch as one S3 object."""
from __future__ import annotations

import asyncio
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from drainer.app.ports.batch_writer import StorageWriteError

CONTENT_TYPE = "text/plain"
OBJECT_ACL = "private"


class S3BatchWriter:
    """Uploads to s3://bucket/identifier. The client is a boto3 S3 client built by the factory."""

    def __init__(self, client: Any, bucket: str) -> None:
        if not bucket:
            raise ValueError("bucket must not be empty")
        self._client = client
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    async def write(self, data: bytes, identifier: str) -> str:
        location = f"s3://{self._bucket}/{identifier}"
        try:
            await asyncio.to_thread(
                self._client.put_object,
                ACL=OBJECT_ACL,
                Bucket=self._bucket,
                Key=identifier,
                ContentType=CONTENT_TYPE,
                Body=data,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageWriteError(f"failed uploading {location}: {exc}") from exc
        return location

    async def verify_writable(self) -> bool:
        try:
            await asyncio.to_thread(self._client.head_bucket, Bucket=self._bucket)
        except ClientError as exc:
            error = exc.response.get("Error", {})
            logger.warning(
                "s3 bucket {} not writable: {} {}", self._bucket, error.get("Code", ""), error.get("Message", "")
            )
            return False
        except BotoCoreError as exc:
            logger.warning("s3 bucket {} check failed: {}", self._bucket, exc)
            return False
        return True

    async def close(self) -> None:
        try:
            self._client.close()
        except Exception as exc:
            logger.warning("s3 client close failed: {}", exc)
