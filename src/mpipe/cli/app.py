import argparse
import logging
import os
import sys
from typing import Sequence

from mpipe import __version__
from mpipe.cli.commands.config import run_config_check
from mpipe.cli.parser import parse_arguments, parse_ask_arguments
from mpipe.clients import ProviderAdapter, get_adapter
from mpipe.core.options import CliOptions, ConfigResolver, EffectiveOptions
from mpipe.core.pipeline import RetryExecutor
from mpipe.core.prompt_builder import build_messages, compose_prompt, resolve_prompt
from mpipe.errors import MpipeError
from mpipe.shared.logging import LogConfig
from mpipe.utils.output import EXIT_OK, OutputRenderer, err_console, report_error

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def render_version() -> str:
    commit = os.environ.get("MP_GIT_SHA", "").strip() or "unknown"
    built = os.environ.get("MP_BUILD_TS", "").strip() or "unknown"
    return f"{__version__}\ncommit: {commit}\nbuilt: {built}"


def run_pipeline(options: EffectiveOptions, adapter: ProviderAdapter | None = None) -> int:
    """Run resolver output through adapter, executor and renderer.

    Returns the process exit status.
    """
    adapter = adapter or get_adapter(options.provider)
    prompt_input = resolve_prompt(options.prompt)
    prompt = compose_prompt(options.preprompt, prompt_input.text, options.postprompt)
    logger.debug(f"Prompt from {prompt_input.source.value}: {len(prompt)} chars")

    renderer = OutputRenderer(options)
    if options.verbose:
        messages = build_messages(options.system_message, prompt)
        renderer.log_verbose(adapter.endpoint, messages, prompt_input.source, adapter.is_api_key_present())

    request = adapter.build_request(options, prompt)
    if options.dry_run:
        return renderer.render_dry_run(request)

    executor = RetryExecutor(
        adapter.send,
        retries=options.retries,
        retry_delay_ms=options.retry_delay,
        fail_on_empty=options.fail_on_empty,
    )
    result = executor.execute(request)
    return renderer.render(result)


def run_ask(args: argparse.Namespace) -> int:
    cli = CliOptions.from_namespace(args)
    if cli.version:
        sys.stdout.write(render_version() + "\n")
        return EXIT_OK

    LogConfig.configure(verbose=cli.verbose, debug=cli.debug)
    try:
        options = ConfigResolver(cli).resolve()
        return run_pipeline(options)
    except MpipeError as e:
        return report_error(e)


def _guard(func, *args) -> int:
    try:
        return func(*args)
    except KeyboardInterrupt:
        err_console.print("Interrupted.", markup=False)
        return EXIT_INTERRUPTED


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for ``mpipe``."""
    args = parse_arguments(argv)
    if args.command == "config":
        return _guard(run_config_check, args.profile)
    return _guard(run_ask, args)


def ask_main(argv: Sequence[str] | None = None) -> int:
    """Entry point for ``mpask`` (same as ``mpipe ask``)."""
    return _guard(run_ask, parse_ask_arguments(argv))


if __name__ == "__main__":
    sys.exit(main())
