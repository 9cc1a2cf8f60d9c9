"""Tests for the command-line entry point."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from notification_queue.__main__ import async_main, main, parse_arguments


class TestParseArguments:
    def test_defaults(self) -> None:
        args = parse_arguments([])

        assert args.config is None
        assert args.log_level is None
        assert args.no_syslog is False

    def test_all_options(self) -> None:
        args = parse_arguments(["-c", "/etc/nq.yaml", "--log-level", "DEBUG", "--no-syslog"])

        assert args.config == Path("/etc/nq.yaml")
        assert args.log_level == "DEBUG"
        assert args.no_syslog is True

    def test_rejects_unknown_level(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            _ = parse_arguments(["--log-level", "LOUD"])

        assert exc_info.value.code == 2


class TestMain:
    def test_missing_config_file_exits_with_config_error(
        self,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--config", str(tmp_path / "absent.yaml"), "--no-syslog"])

        assert exc_info.value.code == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_unset_variable_exits_with_config_error(
        self,
        tmp_path: Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        config_file = tmp_path / "config.yaml"
        _ = config_file.write_text("redis:\n  url: '${NQ_TEST_MISSING_URL}'\n", encoding="utf-8")

        with patch.dict(os.environ, {}, clear=True), pytest.raises(SystemExit) as exc_info:
            main(["--config", str(config_file), "--no-syslog"])

        assert exc_info.value.code == 1
        assert "Environment variable error" in capsys.readouterr().err

    def test_clean_run_exits_zero(self) -> None:
        with (
            patch("notification_queue.__main__.async_main", new=AsyncMock()) as run,
            pytest.raises(SystemExit) as exc_info,
        ):
            main(["--log-level", "WARNING", "--no-syslog"])

        assert exc_info.value.code == 0
        run.assert_awaited_once_with(config_path=None, log_level="WARNING", enable_syslog=False)

    def test_unexpected_error_exits_one(self, capsys: pytest.CaptureFixture[str]) -> None:
        failing = AsyncMock(side_effect=RuntimeError("boom"))

        with patch("notification_queue.__main__.async_main", new=failing), pytest.raises(SystemExit) as exc_info:
            main([])

        assert exc_info.value.code == 1
        assert "Unexpected error: boom" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_async_main_runs_until_shutdown(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    restore_root_logger: logging.Logger,
) -> None:
    """A preset shutdown event starts and stops the manager cleanly."""
    config_file = tmp_path / "config.yaml"
    _ = config_file.write_text(
        """
queue:
  processing_interval: 0.01
webhook:
  urls:
    - https://hooks.example.com/notify?token=abc
""",
        encoding="utf-8",
    )
    shutdown = asyncio.Event()
    shutdown.set()

    with patch.dict(os.environ, {}, clear=True):
        await asyncio.wait_for(
            async_main(config_path=config_file, log_level="INFO", enable_syslog=False, shutdown_event=shutdown),
            timeout=5,
        )

    assert restore_root_logger.level == logging.INFO
    output = capsys.readouterr().out
    assert "notification-queue starting" in output
    assert "notification-queue shutdown complete" in output
    assert "token=abc" not in output
