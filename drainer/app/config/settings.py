from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from drainer.app.core.filenames import DEFAULT_FILENAME_PATTERN

# Extra 25% leeway over the flush interval so a batch can be written and acked
# before its messages become visible again.
VISIBILITY_TIMEOUT_LEEWAY = 1.25


class ConfigurationError(Exception):
    """Raised for unusable startup configuration (bad options file, no backend)."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    queue_name: str = Field("", validation_alias="QUEUE_NAME")
    queue_url: str = Field("", validation_alias="QUEUE_URL")
    aws_region: str = Field("us-east-1", validation_alias="AWS_REGION")
    aws_endpoint_url: str = Field("", validation_alias="AWS_ENDPOINT_URL")
    aws_access_key_id: str = Field("", validation_alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str = Field("", validation_alias="AWS_SECRET_ACCESS_KEY")

    consumer_backend: str = Field("sqs", validation_alias="CONSUMER_BACKEND")
    # One of "file", "s3", "console". Inferred from out_dir / s3_bucket when empty.
    store_backend: str = Field("", validation_alias="STORE_BACKEND")
    out_dir: str = Field("", validation_alias="OUT_DIR")
    s3_bucket: str = Field("", validation_alias="S3_BUCKET")
    filename_pattern: str = Field(DEFAULT_FILENAME_PATTERN, validation_alias="FILENAME_PATTERN")
    flush_interval_seconds: float = Field(60.0, gt=0, validation_alias="FLUSH_INTERVAL_SECONDS")

    # Defaults to flush_interval_seconds * 1.25 when unset.
    visibility_timeout_seconds: int | None = Field(
        None, ge=0, le=43200, validation_alias="VISIBILITY_TIMEOUT_SECONDS"
    )
    max_messages: int = Field(10, ge=1, le=10, validation_alias="MAX_MESSAGES")
    wait_time_seconds: int = Field(10, ge=0, le=20, validation_alias="WAIT_TIME_SECONDS")
    max_concurrent_receivers: int = Field(1, ge=1, validation_alias="MAX_CONCURRENT_RECEIVERS")
    daemon: bool = Field(False, validation_alias="DAEMON")
    log_raw_message: bool = Field(False, validation_alias="LOG_RAW_MESSAGE")

    backoff_step_seconds: float = Field(2.0, ge=0, validation_alias="BACKOFF_STEP_SECONDS")
    max_empty_poll_delay_seconds: float = Field(15.0, ge=0, validation_alias="MAX_EMPTY_POLL_DELAY_SECONDS")

    initial_backoff_seconds: float = Field(1.0, validation_alias="INITIAL_BACKOFF_SECONDS")
    max_backoff_seconds: float = Field(10.0, validation_alias="MAX_BACKOFF_SECONDS")
    max_connection_attempts: int = Field(3, ge=1, validation_alias="MAX_CONNECTION_ATTEMPTS")
    backoff_multiplier: float = Field(2.0, validation_alias="BACKOFF_MULTIPLIER")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_file: str = Field("", validation_alias="LOG_FILE")
    log_json: bool = Field(False, validation_alias="LOG_JSON")

    def resolved_visibility_timeout_seconds(self) -> int:
        if self.visibility_timeout_seconds is not None:
            return self.visibility_timeout_seconds
        return math.ceil(self.flush_interval_seconds * VISIBILITY_TIMEOUT_LEEWAY)


def load_settings(options_file: str | Path | None = None, **overrides: Any) -> Settings:
    """Build Settings: explicit overrides beat the JSON options file, which beats the environment."""
    values: dict[str, Any] = {}
    if options_file:
        path = Path(options_file)
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f'unable to load options from "{path}": {exc}') from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError(f'options file "{path}" must contain a JSON object')
        values.update(loaded)
    values.update({key: value for key, value in overrides.items() if value is not None})
    return Settings(**values)
