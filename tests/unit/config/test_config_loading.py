"""Tests for YAML configuration loading and validation."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pydantic
import pytest

from notification_queue.config import (
    ConfigurationError,
    EnvironmentVariableError,
    EnvLoader,
    NotificationConfig,
    QueueConfig,
    load_config,
    resolve_env_var,
    resolve_env_vars,
)
from notification_queue.config.loader import deep_merge
from notification_queue.models.enums import Channel


def _write(tmp_path: Path, content: str) -> Path:
    config_file = tmp_path / "config.yaml"
    _ = config_file.write_text(content, encoding="utf-8")
    return config_file


def _no_env() -> EnvLoader:
    return EnvLoader(environ={})


class TestDefaults:
    def test_defaults_without_file(self) -> None:
        """Every tunable has a default."""
        config = load_config(env_loader=_no_env())

        assert config.queue.max_size == 10_000
        assert config.queue.retry_delays == [1.0, 5.0, 15.0, 60.0, 300.0]
        assert config.queue.max_retries == 5
        assert config.queue.processing_timeout == 300.0
        assert config.rate_limits.per_minute == 100
        assert config.rate_limits.burst_size == 10
        assert config.redis.url is None
        assert config.channels.enabled_channels() == frozenset(Channel)

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        config = load_config(_write(tmp_path, ""), env_loader=_no_env())

        assert config == NotificationConfig()


class TestYamlLoading:
    def test_values_from_file(self, tmp_path: Path) -> None:
        config_file = _write(
            tmp_path,
            """
queue:
  max_size: 50
  retry_delays: [2, 4]
channels:
  email:
    enabled: false
webhook:
  urls:
    - https://hooks.example.com/notify
""",
        )

        config = load_config(config_file, env_loader=_no_env())

        assert config.queue.max_size == 50
        assert config.queue.retry_delays == [2.0, 4.0]
        assert config.channels.is_enabled(Channel.EMAIL) is False
        assert Channel.EMAIL not in config.channels.enabled_channels()
        assert config.webhook.urls == ["https://hooks.example.com/notify"]

    def test_env_var_references_are_resolved(self, tmp_path: Path) -> None:
        """``${VAR}`` references pull secrets from the environment."""
        config_file = _write(tmp_path, 'redis:\n  url: "redis://:${NQ_TEST_REDIS_PASSWORD}@cache:6379/0"\n')

        with patch.dict(os.environ, {"NQ_TEST_REDIS_PASSWORD": "s3cret"}):
            config = load_config(config_file, env_loader=_no_env())

        assert config.redis.url == "redis://:s3cret@cache:6379/0"

    def test_missing_env_var(self, tmp_path: Path) -> None:
        config_file = _write(tmp_path, "webhook:\n  urls: ['${NQ_TEST_UNSET_TOKEN}']\n")

        with patch.dict(os.environ, {}, clear=True), pytest.raises(EnvironmentVariableError) as exc_info:
            _ = load_config(config_file, env_loader=_no_env())

        assert "NQ_TEST_UNSET_TOKEN" in str(exc_info.value)
        assert str(config_file) in str(exc_info.value)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            _ = load_config(tmp_path / "absent.yaml", env_loader=_no_env())

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_file = _write(tmp_path, "queue: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Failed to parse YAML"):
            _ = load_config(config_file, env_loader=_no_env())

    def test_root_must_be_mapping(self, tmp_path: Path) -> None:
        config_file = _write(tmp_path, "- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="Expected YAML mapping at root level, got: list"):
            _ = load_config(config_file, env_loader=_no_env())


class TestValidation:
    def test_field_level_diagnostics(self, tmp_path: Path) -> None:
        """Validation failures name the offending field path and the source."""
        config_file = _write(tmp_path, "queue:\n  max_size: 0\n")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = load_config(config_file, env_loader=_no_env())

        message = str(exc_info.value)
        assert "Field: queue → max_size" in message
        assert f"Configuration source: {config_file}" in message

    def test_unknown_keys_rejected(self, tmp_path: Path) -> None:
        config_file = _write(tmp_path, "queue:\n  max_sise: 10\n")

        with pytest.raises(ConfigurationError, match="max_sise"):
            _ = load_config(config_file, env_loader=_no_env())

    def test_negative_retry_delay(self) -> None:
        with pytest.raises(pydantic.ValidationError, match="must be non-negative"):
            _ = QueueConfig(retry_delays=[1.0, -5.0])

    def test_empty_retry_delays(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            _ = QueueConfig(retry_delays=[])

    def test_invalid_log_level(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            _ = NotificationConfig.model_validate({"logging": {"level": "LOUD"}})

    def test_assignment_is_validated(self) -> None:
        config = QueueConfig()

        with pytest.raises(pydantic.ValidationError):
            config.batch_size = 0


class TestOverrides:
    def test_environment_beats_file(self, tmp_path: Path) -> None:
        config_file = _write(tmp_path, "queue:\n  max_size: 50\n  batch_size: 7\n")
        env = EnvLoader(
            environ={
                "NOTIFICATION_QUEUE__QUEUE__MAX_SIZE": "500",
                "NOTIFICATION_QUEUE__CHANNELS__PUSH__ENABLED": "false",
            }
        )

        config = load_config(config_file, env_loader=env)

        assert config.queue.max_size == 500
        assert config.queue.batch_size == 7
        assert config.channels.is_enabled(Channel.PUSH) is False

    def test_invalid_override_reports_environment_source(self) -> None:
        env = EnvLoader(environ={"NOTIFICATION_QUEUE__RATE_LIMITS__PER_MINUTE": "0"})

        with pytest.raises(ConfigurationError, match="Configuration source: environment"):
            _ = load_config(env_loader=env)


class TestHelpers:
    def test_resolve_env_var_multiple_references(self) -> None:
        with patch.dict(os.environ, {"NQ_HOST": "cache", "NQ_PORT": "6380"}):
            assert resolve_env_var("redis://${NQ_HOST}:${NQ_PORT}/0") == "redis://cache:6380/0"

    def test_resolve_env_vars_walks_containers(self) -> None:
        data = {"a": ["${NQ_VALUE}", 3], "b": {"c": "${NQ_VALUE}"}, "d": None}

        with patch.dict(os.environ, {"NQ_VALUE": "x"}):
            resolved = resolve_env_vars(data)

        assert resolved == {"a": ["x", 3], "b": {"c": "x"}, "d": None}

    def test_lowercase_references_are_left_alone(self) -> None:
        assert resolve_env_var("${not_a_var}") == "${not_a_var}"

    def test_deep_merge(self) -> None:
        base: dict[str, object] = {"queue": {"max_size": 1, "batch_size": 2}, "redis": {"url": None}}
        override: dict[str, object] = {"queue": {"max_size": 9}, "redis": "replaced"}

        merged = deep_merge(base, override)

        assert merged == {"queue": {"max_size": 9, "batch_size": 2}, "redis": "replaced"}
        assert base["queue"] == {"max_size": 1, "batch_size": 2}
