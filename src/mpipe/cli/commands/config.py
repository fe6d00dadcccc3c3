"""``mpipe config check``: validate the profile file without sending anything."""

from __future__ import annotations

import sys

from rich.console import Console

from ...errors import ConfigError, ProfileUnknown
from ...utils.config import (
    ProfileConfig,
    get_config_path,
    load_config_file,
    load_env_settings,
    parse_output_format,
    parse_provider,
)
from ...utils.output import EXIT_OK, report_error


def _check_profile(profile: ProfileConfig) -> None:
    if profile.provider is not None:
        parse_provider(profile.provider, "profile provider")
    if profile.output is not None:
        parse_output_format(profile.output, "profile output")


def run_config_check(profile_name: str | None = None, console: Console | None = None) -> int:
    """Print ``config OK: <path>`` and return 0, or report the problem and return 1."""
    try:
        env = load_env_settings()
        path = get_config_path(env.config)
        profiles = load_config_file(path)
        if profile_name is not None:
            if profile_name not in profiles:
                raise ProfileUnknown(f"Profile '{profile_name}' not found in config file '{path}'.")
            _check_profile(profiles[profile_name])
        else:
            for profile in profiles.values():
                _check_profile(profile)
    except ConfigError as e:
        return report_error(e, console)

    sys.stdout.write(f"config OK: {path}\n")
    return EXIT_OK
