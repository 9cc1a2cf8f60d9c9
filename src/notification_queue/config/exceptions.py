"""Configuration error types."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Configuration could not be loaded or validated.

    Messages are multi-line and actionable: they name the file, the failing
    field and what to change.
    """


class EnvironmentVariableError(ConfigurationError):
    """A ``${VAR}`` reference names a variable that is not set."""


class EnvLoadError(ConfigurationError):
    """An environment override could not be parsed."""

    def __init__(self, message: str, env_var: str) -> None:
        super().__init__(message)
        self.env_var: str = env_var
