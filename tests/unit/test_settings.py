"""Unit tests for Settings defaults, environment aliases and the options file."""
from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from drainer.app.config.settings import ConfigurationError, Settings, load_settings
from drainer.app.core.filenames import DEFAULT_FILENAME_PATTERN

ENV_VARS = ("QUEUE_NAME", "FLUSH_INTERVAL_SECONDS", "VISIBILITY_TIMEOUT_SECONDS", "DAEMON", "OUT_DIR", "AWS_REGION")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings()

    assert settings.consumer_backend == "sqs"
    assert settings.flush_interval_seconds == 60
    assert settings.max_messages == 10
    assert settings.wait_time_seconds == 10
    assert settings.max_concurrent_receivers == 1
    assert settings.daemon is False
    assert settings.filename_pattern == DEFAULT_FILENAME_PATTERN
    assert settings.aws_region == "us-east-1"


def test_visibility_timeout_defaults_to_flush_interval_with_leeway():
    assert Settings().resolved_visibility_timeout_seconds() == 75
    assert Settings(flush_interval_seconds=10).resolved_visibility_timeout_seconds() == 13
    assert Settings(visibility_timeout_seconds=300).resolved_visibility_timeout_seconds() == 300


def test_environment_aliases(monkeypatch):
    monkeypatch.setenv("QUEUE_NAME", "from-env")
    monkeypatch.setenv("FLUSH_INTERVAL_SECONDS", "5")
    monkeypatch.setenv("DAEMON", "true")

    settings = Settings()

    assert settings.queue_name == "from-env"
    assert settings.flush_interval_seconds == 5
    assert settings.daemon is True


@pytest.mark.parametrize(
    "overrides",
    [{"max_messages": 11}, {"max_messages": 0}, {"flush_interval_seconds": 0}, {"max_concurrent_receivers": 0}],
)
def test_rejects_out_of_range_values(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_options_file_beats_environment_and_overrides_beat_file(monkeypatch, tmp_path):
    monkeypatch.setenv("QUEUE_NAME", "from-env")
    options = tmp_path / "options.json"
    options.write_text(json.dumps({"queue_name": "from-file", "out_dir": "/data", "flush_interval_seconds": 30}))

    settings = load_settings(options, flush_interval_seconds=15, daemon=None)

    assert settings.queue_name == "from-file"
    assert settings.out_dir == "/data"
    assert settings.flush_interval_seconds == 15
    assert settings.daemon is False


def test_missing_options_file_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="unable to load options"):
        load_settings(tmp_path / "missing.json")


@pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]"])
def test_malformed_options_file_is_a_configuration_error(tmp_path, content):
    options = tmp_path / "options.json"
    options.write_text(content)
    with pytest.raises(ConfigurationError):
        load_settings(options)
