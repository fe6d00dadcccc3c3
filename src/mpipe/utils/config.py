import logging
import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..errors import ConfigError, InvalidValue, ProfileNotFound, ProfileParseError, ProfileUnknown

DEFAULT_RETRIES = 0
DEFAULT_RETRY_DELAY_MS = 500
MAX_RETRY_DELAY_MS = 30_000
TEMPERATURE_RANGE = (0.0, 2.0)

logger = logging.getLogger(__name__)


class Provider(str, Enum):
    OPENAI = "openai"
    FIREWORKS = "fireworks"


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


def _parse_choice(enum_cls: type[Enum], raw: Any, source: str) -> Any:
    value = str(raw).strip().lower()
    for member in enum_cls:
        if member.value == value:
            return member
    supported = ", ".join(member.value for member in enum_cls)
    raise InvalidValue(f"Invalid {source} '{value}'. Supported values: {supported}.")


def parse_provider(raw: Any, source: str) -> Provider:
    return _parse_choice(Provider, raw, source)


def parse_output_format(raw: Any, source: str) -> OutputFormat:
    return _parse_choice(OutputFormat, raw, source)


class EnvSettings(BaseSettings):
    """MP_* environment overrides. ``None`` means the variable is not set."""

    provider: Optional[str] = Field(default=None, description="Provider name (Set via MP_PROVIDER)")
    model: Optional[str] = Field(default=None, description="Model id (Set via MP_MODEL)")
    temperature: Optional[float] = Field(default=None, description="Sampling temperature (Set via MP_TEMPERATURE)")
    max_tokens: Optional[int] = Field(default=None, description="Maximum tokens to generate (Set via MP_MAX_TOKENS)")
    timeout: Optional[int] = Field(default=None, description="Per-attempt timeout in seconds (Set via MP_TIMEOUT)")
    retries: Optional[int] = Field(default=None, description="Extra attempts after the first (Set via MP_RETRIES)")
    retry_delay: Optional[int] = Field(default=None, description="Base backoff delay in milliseconds (Set via MP_RETRY_DELAY)")
    config: Optional[str] = Field(default=None, description="Profile file path override (Set via MP_CONFIG)")

    model_config = SettingsConfigDict(
        env_prefix="MP_",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )


_ENV_HINTS = {
    "temperature": "Must be a float in [0.0, 2.0].",
    "max_tokens": "Must be an integer > 0.",
    "timeout": "Must be an integer > 0.",
    "retries": "Must be an integer >= 0.",
    "retry_delay": "Must be an integer > 0.",
}


def load_env_settings() -> EnvSettings:
    """Read MP_* variables, turning coercion failures into ``InvalidValue``."""
    try:
        return EnvSettings()
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error.get("loc") else "value"
        var_name = f"MP_{field.upper()}"
        hint = _ENV_HINTS.get(field, "")
        raise InvalidValue(f"Invalid {var_name} '{error.get('input')}'. {hint}".strip()) from e


class ProfileConfig(BaseModel):
    """One ``[profiles.<name>]`` table of the config file."""

    model_config = ConfigDict(extra="ignore")

    provider: Optional[str] = None
    model: Optional[str] = None
    system: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    timeout: Optional[int] = None
    retries: Optional[int] = None
    retry_delay: Optional[int] = None
    output: Optional[str] = None
    show_usage: Optional[bool] = None


def get_default_config_dir() -> Path:
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", "").strip()
    if xdg_config_home:
        return Path(xdg_config_home) / "mpipe"
    try:
        home = Path.home()
    except RuntimeError as e:
        raise ConfigError("Cannot resolve config path: set MP_CONFIG or HOME/XDG_CONFIG_HOME.") from e
    return home / ".config" / "mpipe"


def get_config_path(override: str | None = None) -> Path:
    """Resolve the profile file: MP_CONFIG, else $XDG_CONFIG_HOME/mpipe/config.toml."""
    if override and override.strip():
        return Path(override.strip()).expanduser()
    return get_default_config_dir() / "config.toml"


def load_config_file(path: Path) -> Dict[str, ProfileConfig]:
    """Parse the config file and return every profile it defines.

    Raises:
        ProfileNotFound: the file cannot be read.
        ProfileParseError: the file is not valid TOML or a profile has bad types.
        ProfileUnknown: the file has no ``[profiles]`` table.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ProfileNotFound(f"Failed to read config file '{path}': {e}") from e

    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ProfileParseError(f"Failed to parse config file '{path}': {e}") from e

    profiles = data.get("profiles")
    if not isinstance(profiles, dict):
        raise ProfileUnknown(f"Config file '{path}' does not contain a [profiles] section.")

    parsed: Dict[str, ProfileConfig] = {}
    for name, table in profiles.items():
        if not isinstance(table, dict):
            raise ProfileParseError(f"Failed to parse config file '{path}': profile '{name}' is not a table")
        try:
            parsed[name] = ProfileConfig.model_validate(table)
        except ValidationError as e:
            raise ProfileParseError(f"Failed to parse config file '{path}': {e}") from e
    logger.debug(f"Loaded {len(parsed)} profile(s) from {path}")
    return parsed


def load_profile(name: str, path: Path) -> ProfileConfig:
    profiles = load_config_file(path)
    if name not in profiles:
        raise ProfileUnknown(f"Profile '{name}' not found in config file '{path}'.")
    return profiles[name]
