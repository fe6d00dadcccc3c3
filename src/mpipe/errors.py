"""Exceptions raised while resolving, executing and rendering a request."""

from __future__ import annotations


class MpipeError(Exception):
    """Base exception for mpipe errors."""


class ConfigError(MpipeError):
    """Invalid or incomplete configuration. Always fatal, never retried."""


class MissingModel(ConfigError):
    """No model was given by any configuration source."""


class MissingApiKey(ConfigError):
    """The selected provider's credential variable is not set."""

    def __init__(self, key_env: str):
        super().__init__(f"{key_env} is not set in the environment")
        self.key_env = key_env


class MissingPrompt(ConfigError):
    """Neither a prompt argument nor piped stdin was provided."""


class ProfileNotFound(ConfigError):
    """The profile file could not be read."""


class ProfileParseError(ConfigError):
    """The profile file is not valid TOML or holds values of the wrong type."""


class ProfileUnknown(ConfigError):
    """The requested profile name is not defined in the profile file."""


class InvalidValue(ConfigError):
    """A provider, output format or numeric value could not be parsed."""


class OutOfRange(ConfigError):
    """A numeric option was parsed but lies outside its allowed range."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class ProviderError(MpipeError):
    """A failed attempt against a provider."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status: int | None = None,
        retryable: bool = False,
    ):
        super().__init__(message)
        self.provider = provider
        self.status = status
        self.retryable = retryable


class EmptyAnswerError(MpipeError):
    """The provider answered with an empty string while --fail-on-empty is set."""

    def __init__(self, message: str = "Model response is empty and --fail-on-empty is enabled."):
        super().__init__(message)


class OutputError(MpipeError):
    """The rendered output could not be saved."""
