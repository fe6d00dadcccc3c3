"""Argument parsing for the mpipe CLI."""

import argparse
from typing import Sequence

from ..utils.config import OutputFormat, Provider

ASK_EXAMPLES = """Examples:
  mpipe ask --provider fireworks --model accounts/fireworks/models/kimi-k2-instruct-0905 "2+2?"
  echo "2+2?" | mpipe ask --provider openai --model gpt-4o-mini
  mpipe ask --model gpt-4o-mini --dry-run --json "Explain retries"
"""


def add_ask_arguments(parser: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Add the ``ask`` options to ``parser``.

    Every option defaults to None/False so the config resolver can tell
    "not given" apart from an explicit value.
    """
    parser.add_argument(
        "input",
        nargs="?",
        default=None,
        help="Prompt text. If omitted, the prompt is read from piped stdin."
    )

    # Prompt segments
    parser.add_argument(
        "--prompt",
        dest="preprompt",
        default=None,
        help="Text placed before the main prompt, separated by a blank line"
    )
    parser.add_argument(
        "--postprompt",
        default=None,
        help="Text placed after the main prompt, separated by a blank line"
    )
    parser.add_argument(
        "--system",
        default=None,
        help="System message sent before the user prompt"
    )

    # Provider and model
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider],
        default=None,
        help="Provider to query (env: MP_PROVIDER, default: openai)"
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Model id (env: MP_MODEL). Required."
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Named profile from the config file (MP_CONFIG or ~/.config/mpipe/config.toml)"
    )

    # Generation and retry parameters
    parser.add_argument("--temperature", type=float, default=None, help="Sampling temperature in [0.0, 2.0] (env: MP_TEMPERATURE)")
    parser.add_argument("--max-tokens", type=int, default=None, help="Maximum tokens to generate (env: MP_MAX_TOKENS)")
    parser.add_argument("--timeout", type=int, default=None, help="Per-attempt timeout in seconds (env: MP_TIMEOUT)")
    parser.add_argument("--retries", type=int, default=None, help="Extra attempts after the first on transient failures (env: MP_RETRIES, default: 0)")
    parser.add_argument("--retry-delay", type=int, default=None, help="Base backoff delay in milliseconds, doubled per retry (env: MP_RETRY_DELAY, default: 500)")

    # Output control
    parser.add_argument(
        "--output",
        choices=[f.value for f in OutputFormat],
        default=None,
        help="Output format (default: text)"
    )
    parser.add_argument("--json", action="store_true", help="Shortcut for --output json")
    parser.add_argument("--show-usage", action="store_true", help="Print token usage and latency to stderr")
    parser.add_argument("--save", metavar="PATH", default=None, help="Also write the stdout payload to PATH (overwrites)")
    parser.add_argument("--fail-on-empty", action="store_true", help="Exit non-zero if the model returns an empty answer")
    parser.add_argument("--verbose", action="store_true", help="Print resolved settings to stderr before the request")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging of each attempt")
    parser.add_argument("--dry-run", action="store_true", help="Print the request that would be sent, without sending it")
    parser.add_argument("-V", "--version", action="store_true", help="Print version and build metadata")
    return parser


def build_ask_parser(prog: str = "mpask") -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=prog,
        description="Ask a question to an LLM provider",
        epilog=ASK_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    return add_ask_arguments(parser)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mpipe",
        description="Multi-provider LLM CLI tools",
        epilog=ASK_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    ask = subparsers.add_parser(
        "ask",
        help="Ask a question to an LLM provider",
        epilog=ASK_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_ask_arguments(ask)

    config = subparsers.add_parser("config", help="Manage local config")
    config_sub = config.add_subparsers(dest="config_command", metavar="SUBCOMMAND")
    config_sub.required = True
    check = config_sub.add_parser("check", help="Validate the config file and optionally a profile")
    check.add_argument("--profile", default=None, help="Profile name that must exist and be valid")
    return parser


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse ``mpipe`` arguments."""
    return build_parser().parse_args(argv)


def parse_ask_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse ``mpask`` arguments."""
    return build_ask_parser().parse_args(argv)
