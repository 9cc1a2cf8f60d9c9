"""Tests for prefixed environment variable overrides."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from notification_queue.config import EnvLoader, EnvLoadError


class TestEnvLoader:
    """Test suite for EnvLoader."""

    def test_nested_keys(self) -> None:
        """Double underscores separate levels; single underscores are kept."""
        loader = EnvLoader(
            environ={
                "NOTIFICATION_QUEUE__QUEUE__MAX_SIZE": "500",
                "NOTIFICATION_QUEUE__QUEUE__PROCESSING_INTERVAL": "0.5",
                "NOTIFICATION_QUEUE__REDIS__KEY_PREFIX": "nq",
                "OTHER__QUEUE__MAX_SIZE": "1",
            }
        )

        assert loader.load() == {
            "queue": {"max_size": 500, "processing_interval": 0.5},
            "redis": {"key_prefix": "nq"},
        }

    def test_reads_process_environment_by_default(self) -> None:
        with patch.dict(os.environ, {"NOTIFICATION_QUEUE__LOGGING__LEVEL": "DEBUG"}, clear=True):
            result = EnvLoader().load()

        assert result == {"logging": {"level": "DEBUG"}}

    def test_custom_prefix(self) -> None:
        loader = EnvLoader(prefix="NQ_", environ={"NQ_QUEUE__BATCH_SIZE": "4"})

        assert loader.load() == {"queue": {"batch_size": 4}}

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("42", 42),
            ("-3", -3),
            ("2.5", 2.5),
            ("1e3", 1000.0),
            ("true", True),
            ("On", True),
            ("no", False),
            ("FALSE", False),
            ("[1, 5, 15]", [1, 5, 15]),
            ('{"enabled": false}', {"enabled": False}),
            ("redis://cache:6379/0", "redis://cache:6379/0"),
            ("", ""),
        ],
    )
    def test_value_conversion(self, raw: str, expected: object) -> None:
        loader = EnvLoader(environ={"NOTIFICATION_QUEUE__VALUE": raw})

        assert loader.load() == {"value": expected}

    def test_conversion_can_be_disabled(self) -> None:
        loader = EnvLoader(convert_types=False, environ={"NOTIFICATION_QUEUE__QUEUE__MAX_SIZE": "500"})

        assert loader.load() == {"queue": {"max_size": "500"}}

    def test_invalid_json(self) -> None:
        loader = EnvLoader(environ={"NOTIFICATION_QUEUE__QUEUE__RETRY_DELAYS": "[1, 2"})

        with pytest.raises(EnvLoadError) as exc_info:
            _ = loader.load()

        assert exc_info.value.env_var == "NOTIFICATION_QUEUE__QUEUE__RETRY_DELAYS"

    def test_bare_prefix_is_ignored(self) -> None:
        loader = EnvLoader(environ={"NOTIFICATION_QUEUE__": "x"})

        assert loader.load() == {}

    def test_scalar_replaced_by_nested_value(self) -> None:
        loader = EnvLoader(
            environ={
                "NOTIFICATION_QUEUE__WEBHOOK": "plain",
                "NOTIFICATION_QUEUE__WEBHOOK__TIMEOUT": "3",
            }
        )

        assert loader.load() == {"webhook": {"timeout": 3}}
