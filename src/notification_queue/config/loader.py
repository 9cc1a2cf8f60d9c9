"""Load and validate configuration from YAML and the environment.

Precedence, lowest first: model defaults, the YAML file, then
``NOTIFICATION_QUEUE__*`` environment overrides. String values in the YAML
may reference environment variables with ``${VAR}`` syntax, which keeps
webhook tokens and store passwords out of the file.
"""

from __future__ import annotations

import copy
import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Final, cast

import yaml
from pydantic import ValidationError

from notification_queue.config.env_loader import EnvLoader
from notification_queue.config.exceptions import ConfigurationError, EnvironmentVariableError
from notification_queue.config.models import NotificationConfig

ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")


def resolve_env_var(value: str) -> str:
    """Replace every ``${VAR}`` reference in ``value``.

    Raises:
        EnvironmentVariableError: If a referenced variable is not set

    Examples:
        >>> os.environ["REDIS_PASSWORD"] = "s3cret"
        >>> resolve_env_var("redis://:${REDIS_PASSWORD}@cache:6379/0")
        'redis://:s3cret@cache:6379/0'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the service."
            )
            raise EnvironmentVariableError(msg)
        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def resolve_env_vars(data: object) -> object:
    """Recursively resolve ``${VAR}`` references in YAML data.

    Mappings and lists are rebuilt; other scalars pass through unchanged.
    """
    if isinstance(data, str):
        return resolve_env_var(data)
    if isinstance(data, Mapping):
        return {str(key): resolve_env_vars(value) for key, value in data.items()}  # pyright: ignore[reportUnknownVariableType]
    if isinstance(data, list):
        return [resolve_env_vars(item) for item in data]  # pyright: ignore[reportUnknownVariableType]  # YAML boundary
    return data


def deep_merge(base: Mapping[str, object], override: Mapping[str, object]) -> dict[str, object]:
    """Merge ``override`` into a copy of ``base``; nested mappings merge, everything else replaces."""
    result: dict[str, object] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)  # pyright: ignore[reportUnknownArgumentType]
        else:
            result[key] = copy.deepcopy(value)
    return result


def _read_yaml(config_path: Path) -> dict[str, object]:
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML mapping at root level, got: {type(raw_data).__name__}"
        )
        raise ConfigurationError(msg)

    try:
        resolved = resolve_env_vars(raw_data)
    except EnvironmentVariableError as e:
        msg = f"Environment variable resolution failed in: {config_path}\n{e}"
        raise EnvironmentVariableError(msg) from e
    return cast(dict[str, object], resolved)


def format_validation_error(error: ValidationError, source: str) -> str:
    """Render pydantic errors as field-level diagnostics."""
    error_lines = ["Configuration validation failed:", ""]
    for err in error.errors():
        field_path = " → ".join(str(loc) for loc in err["loc"])
        error_lines.append(f"  Field: {field_path}")
        error_lines.append(f"  Error: {err['msg']}")
        error_lines.append(f"  Type: {err['type']}")
        error_lines.append("")
    error_lines.append(f"Configuration source: {source}")
    error_lines.append("Please fix the above errors and try again.")
    return "\n".join(error_lines)


def load_config(
    config_path: Path | None = None,
    *,
    env_loader: EnvLoader | None = None,
) -> NotificationConfig:
    """Load, merge and validate the notification queue configuration.

    Args:
        config_path: YAML file to read; when None only defaults and
            environment overrides apply
        env_loader: Override source, defaults to the process environment

    Returns:
        Validated configuration

    Raises:
        ConfigurationError: If the file cannot be read, a ``${VAR}`` reference
            is unset, an override is malformed or validation fails
    """
    file_data = _read_yaml(config_path) if config_path is not None else {}
    overrides = (env_loader or EnvLoader()).load()
    merged = deep_merge(file_data, overrides)

    try:
        return NotificationConfig.model_validate(merged)
    except ValidationError as e:
        source = str(config_path) if config_path is not None else "environment"
        raise ConfigurationError(format_validation_error(e, source)) from e
