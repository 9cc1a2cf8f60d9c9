"""Environment variable overrides for configuration."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import cast

from notification_queue.config.exceptions import EnvLoadError

DEFAULT_ENV_PREFIX = "NOTIFICATION_QUEUE__"


class EnvLoader:
    """Build a nested override dict from prefixed environment variables.

    ``NOTIFICATION_QUEUE__QUEUE__MAX_SIZE=500`` becomes
    ``{"queue": {"max_size": 500}}``. Double underscores separate levels so
    single underscores inside field names survive.
    """

    def __init__(
        self,
        prefix: str = DEFAULT_ENV_PREFIX,
        *,
        convert_types: bool = True,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.prefix: str = prefix
        self.convert_types: bool = convert_types
        self._environ: Mapping[str, str] = environ if environ is not None else os.environ

    def load(self) -> dict[str, object]:
        """Collect overrides from the environment.

        Returns:
            Nested dictionary of overrides (empty when none are set)

        Raises:
            EnvLoadError: If a JSON-looking value fails to parse
        """
        config: dict[str, object] = {}

        for env_var, raw_value in sorted(self._environ.items()):
            if not env_var.startswith(self.prefix):
                continue
            config_key = env_var[len(self.prefix) :]
            path = [part for part in config_key.lower().split("__") if part]
            if not path:
                continue
            value: object = self._convert_value(raw_value, env_var) if self.convert_types else raw_value
            self._set_nested_value(config, path, value)

        return config

    def _convert_value(self, value: str, env_var: str) -> object:
        if not value:
            return value

        lowered = value.lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False

        try:
            if "." not in value and "e" not in lowered:
                return int(value)
            return float(value)
        except ValueError:
            pass

        if value.startswith(("[", "{")):
            try:
                return cast(object, json.loads(value))
            except json.JSONDecodeError as e:
                raise EnvLoadError(f"Failed to parse JSON for {env_var}: {e}", env_var) from e

        return value

    @staticmethod
    def _set_nested_value(config: dict[str, object], path: list[str], value: object) -> None:
        current = config
        for key in path[:-1]:
            child = current.get(key)
            if not isinstance(child, dict):
                child = {}
                current[key] = child
            current = cast(dict[str, object], child)
        current[path[-1]] = value
