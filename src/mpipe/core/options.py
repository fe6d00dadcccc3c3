"""Layered option resolution.

Every scalar option is looked up in an ordered list of layers:

    CLI flag -> MP_* environment variable -> profile field -> built-in default

The first layer that defines a value wins. A layer "defines" a value when it
is not ``None`` (and, for strings, not blank), so ``temperature=0.0`` on the
command line is a real value that hides any environment or profile setting.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, Mapping

from ..errors import MissingModel, OutOfRange
from ..utils.config import (
    DEFAULT_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
    TEMPERATURE_RANGE,
    EnvSettings,
    OutputFormat,
    ProfileConfig,
    Provider,
    get_config_path,
    load_env_settings,
    load_profile,
    parse_output_format,
    parse_provider,
)

logger = logging.getLogger(__name__)


@dataclass
class CliOptions:
    """Flags as parsed from the command line; ``None`` means not given."""

    input: str | None = None
    preprompt: str | None = None
    postprompt: str | None = None
    system: str | None = None
    provider: str | None = None
    model: str | None = None
    profile: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    timeout: int | None = None
    retries: int | None = None
    retry_delay: int | None = None
    output: str | None = None
    json: bool = False
    show_usage: bool = False
    save: str | None = None
    fail_on_empty: bool = False
    verbose: bool = False
    debug: bool = False
    dry_run: bool = False
    version: bool = False

    @classmethod
    def from_namespace(cls, args: argparse.Namespace) -> "CliOptions":
        return cls(**{f.name: getattr(args, f.name, f.default) for f in fields(cls)})


@dataclass(frozen=True)
class EffectiveOptions:
    """Fully merged and validated configuration for one invocation."""

    provider: Provider
    model: str
    temperature: float | None = None
    max_tokens: int | None = None
    timeout: int | None = None
    retries: int = DEFAULT_RETRIES
    retry_delay: int = DEFAULT_RETRY_DELAY_MS
    output_format: OutputFormat = OutputFormat.TEXT
    show_usage: bool = False
    fail_on_empty: bool = False
    system_message: str | None = None
    preprompt: str | None = None
    prompt: str | None = None
    postprompt: str | None = None
    verbose: bool = False
    debug: bool = False
    dry_run: bool = False
    save: Path | None = None

    def request_echo(self) -> dict[str, Any]:
        """Request parameters as echoed in JSON and dry-run output."""
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "timeout_secs": self.timeout,
            "retries": self.retries,
            "retry_delay_ms": self.retry_delay,
        }


@dataclass(frozen=True)
class Layer:
    """One configuration source and the label used in its error messages."""

    name: str
    values: Mapping[str, Any]
    label: Callable[[str], str]

    def get(self, key: str) -> Any:
        value = self.values.get(key)
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        return value


ProfileLoader = Callable[[str, Path], ProfileConfig]


class ConfigResolver:
    """Merge CLI flags, environment, an optional profile and defaults.

    The profile file is only read when ``cli.profile`` names one.
    """

    def __init__(
        self,
        cli: CliOptions,
        env: EnvSettings | None = None,
        profile_loader: ProfileLoader = load_profile,
    ):
        self.cli = cli
        self.env = env
        self.profile_loader = profile_loader

    def resolve(self) -> EffectiveOptions:
        env = self.env if self.env is not None else load_env_settings()
        profile = self._load_profile(env)
        layers = [self._cli_layer(), self._env_layer(env), self._profile_layer(profile)]

        provider_raw, source = self._lookup(layers, "provider")
        provider = parse_provider(provider_raw, source) if provider_raw is not None else Provider.OPENAI

        model, _ = self._lookup(layers, "model")
        if model is None:
            raise MissingModel("No model provided. Use --model or set MP_MODEL.")

        output_raw, source = self._lookup(layers, "output")
        output_format = parse_output_format(output_raw, source) if output_raw is not None else OutputFormat.TEXT

        retries, _ = self._lookup(layers, "retries")
        retry_delay, _ = self._lookup(layers, "retry_delay")
        show_usage, _ = self._lookup(layers, "show_usage")
        system, _ = self._lookup(layers, "system")

        options = EffectiveOptions(
            provider=provider,
            model=model,
            temperature=self._lookup(layers, "temperature")[0],
            max_tokens=self._lookup(layers, "max_tokens")[0],
            timeout=self._lookup(layers, "timeout")[0],
            retries=DEFAULT_RETRIES if retries is None else retries,
            retry_delay=DEFAULT_RETRY_DELAY_MS if retry_delay is None else retry_delay,
            output_format=output_format,
            show_usage=bool(show_usage),
            fail_on_empty=self.cli.fail_on_empty,
            system_message=system,
            preprompt=self.cli.preprompt,
            prompt=self.cli.input,
            postprompt=self.cli.postprompt,
            verbose=self.cli.verbose,
            debug=self.cli.debug,
            dry_run=self.cli.dry_run,
            save=Path(self.cli.save).expanduser() if self.cli.save else None,
        )
        validate_ranges(options)
        logger.debug(f"Resolved options: provider={options.provider.value} model={options.model}")
        return options

    @staticmethod
    def _lookup(layers: list[Layer], key: str) -> tuple[Any, str]:
        for layer in layers:
            value = layer.get(key)
            if value is not None:
                return value, layer.label(key)
        return None, "default"

    def _load_profile(self, env: EnvSettings) -> ProfileConfig:
        if not self.cli.profile:
            return ProfileConfig()
        path = get_config_path(env.config)
        logger.debug(f"Loading profile '{self.cli.profile}' from {path}")
        return self.profile_loader(self.cli.profile, path)

    def _cli_layer(self) -> Layer:
        cli = self.cli
        values = {
            "provider": cli.provider,
            "model": cli.model,
            "temperature": cli.temperature,
            "max_tokens": cli.max_tokens,
            "timeout": cli.timeout,
            "retries": cli.retries,
            "retry_delay": cli.retry_delay,
            "output": OutputFormat.JSON.value if cli.json else cli.output,
            "show_usage": True if cli.show_usage else None,
            "system": cli.system,
        }
        return Layer("cli", values, lambda key: "--" + key.replace("_", "-"))

    @staticmethod
    def _env_layer(env: EnvSettings) -> Layer:
        return Layer("env", env.model_dump(exclude={"config"}), lambda key: f"MP_{key.upper()}")

    @staticmethod
    def _profile_layer(profile: ProfileConfig) -> Layer:
        return Layer("profile", profile.model_dump(), lambda key: f"profile {key}")


def validate_ranges(options: EffectiveOptions) -> None:
    """Reject out-of-range numeric options before any network activity."""
    low, high = TEMPERATURE_RANGE
    if options.temperature is not None and not low <= options.temperature <= high:
        raise OutOfRange("temperature", f"Invalid temperature {options.temperature}. Must be in [{low}, {high}].")
    if options.max_tokens is not None and options.max_tokens <= 0:
        raise OutOfRange("max_tokens", f"Invalid max tokens {options.max_tokens}. Must be > 0.")
    if options.timeout is not None and options.timeout <= 0:
        raise OutOfRange("timeout", f"Invalid timeout {options.timeout}. Must be > 0 seconds.")
    if options.retries < 0:
        raise OutOfRange("retries", f"Invalid retries {options.retries}. Must be >= 0.")
    if options.retry_delay <= 0:
        raise OutOfRange("retry_delay", f"Invalid retry delay {options.retry_delay}. Must be > 0 milliseconds.")
