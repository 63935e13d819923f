"""boto3 client construction shared by the SQS transport and the S3 writer."""
from __future__ import annotations

from typing import Any

import boto3

from drainer.app.config.settings import Settings


def create_aws_client(service_name: str, settings: Settings) -> Any:
    """Build a boto3 client. Without explicit keys boto3's default chain (env, profile, IAM role) applies."""
    kwargs: dict[str, Any] = {"region_name": settings.aws_region}
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    return boto3.client(service_name, **kwargs)
