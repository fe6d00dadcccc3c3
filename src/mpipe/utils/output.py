"""Rendering of pipeline results.

stdout only ever receives one complete payload (answer text, a JSON line or
a dry-run description). Diagnostics, usage and errors go to stderr.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import sys
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Sequence, TextIO

from rich.console import Console
from rich.text import Text

from ..clients.base import RequestDescription
from ..errors import MpipeError, OutputError
from ..models.message import ChatMessage
from ..models.outcome import Answered, PipelineResult, Usage
from .config import OutputFormat

if TYPE_CHECKING:
    from ..core.options import EffectiveOptions
    from ..core.prompt_builder import PromptSource

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

err_console = Console(stderr=True, highlight=False, soft_wrap=True, emoji=False)


def _na(value: Any) -> str:
    return "n/a" if value is None else str(value)


def to_json_line(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":")) + "\n"


def report_error(error: MpipeError | str, console: Console | None = None) -> int:
    """Print a one-line cause to stderr and return the failure exit status."""
    console = console or err_console
    message = str(error).replace("\n", " ").strip()
    console.print(Text.assemble(("Error: ", "bold red"), message))
    return EXIT_FAILURE


def _target_mode(path: Path) -> int:
    """Mode of the existing file, else ``0o666`` minus the process umask."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except OSError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def write_output(path: Path, content: str) -> None:
    """Atomically replace ``path`` with ``content``, creating parent directories."""
    parent = path.parent
    try:
        if str(parent) and not parent.exists():
            parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"Failed to create output directory '{parent}': {e}") from e

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=parent or None)
    except OSError as e:
        raise OutputError(f"Failed to write output file '{path}': {e}") from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        # mkstemp creates 0600; keep the mode a plain overwrite would give
        os.chmod(tmp_name, _target_mode(path))
        os.replace(tmp_name, path)
    except OSError as e:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise OutputError(f"Failed to replace output file '{path}': {e}") from e
    logger.debug(f"Saved {len(content)} chars to {path}")


class OutputRenderer:
    """Turns a PipelineResult (or a dry-run request) into output and an exit status."""

    def __init__(
        self,
        options: "EffectiveOptions",
        stdout: TextIO | None = None,
        console: Console | None = None,
    ):
        self.options = options
        self._stdout = stdout
        self.console = console or err_console

    @property
    def stdout(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    def _err(self, line: str) -> None:
        self.console.print(line, markup=False)

    def render(self, result: PipelineResult) -> int:
        if isinstance(result, Answered):
            return self._render_answer(result)
        return report_error(result.error, self.console)

    def _render_answer(self, result: Answered) -> int:
        if self.options.show_usage:
            self.print_usage(result.usage, result.latency_ms)

        if self.options.output_format == OutputFormat.JSON:
            rendered = to_json_line(self._json_payload(result))
        else:
            rendered = result.answer
        return self._emit(rendered)

    def render_dry_run(self, request: RequestDescription) -> int:
        payload = {
            "dry_run": True,
            "provider": request.provider.value,
            "endpoint": request.endpoint,
            "model": request.model,
            "messages": request.api_messages(),
            "request": dict(request.echo),
            "output": self.options.output_format.value,
            "show_usage": self.options.show_usage,
            "authorization": request.redacted_headers()["Authorization"],
        }
        status = self._emit(to_json_line(payload))
        if status == EXIT_OK and self.options.show_usage:
            self._err("usage: unavailable latency_ms=0 (dry-run)")
        return status

    def print_usage(self, usage: Usage | None, latency_ms: int) -> None:
        if usage is None or usage.is_empty:
            self._err(f"usage: unavailable latency_ms={latency_ms}")
            return
        self._err(
            f"usage: prompt_tokens={_na(usage.prompt_tokens)} "
            f"completion_tokens={_na(usage.completion_tokens)} "
            f"total_tokens={_na(usage.total_tokens)} "
            f"latency_ms={latency_ms}"
        )

    def log_verbose(
        self,
        endpoint: str,
        messages: Sequence[ChatMessage],
        prompt_source: "PromptSource",
        api_key_present: bool,
    ) -> None:
        """Write resolved settings to stderr before execution.

        Runs before the credential check, so a missing key still gets
        ``api_key_present=false``. Never prints the key.
        """
        opts = self.options
        total_chars = sum(len(m.content) for m in messages)
        self._err(
            f"verbose: provider={opts.provider.value} endpoint={endpoint} "
            f"model={opts.model} output={opts.output_format.value} dry_run={str(opts.dry_run).lower()} "
            f"show_usage={str(opts.show_usage).lower()} prompt_source={prompt_source.value} "
            f"messages={len(messages)} chars={total_chars} "
            f"api_key_present={str(api_key_present).lower()}"
        )
        self._err(
            f"verbose: options temperature={_na(opts.temperature)} max_tokens={_na(opts.max_tokens)} "
            f"timeout_secs={_na(opts.timeout)} retries={opts.retries} "
            f"retry_delay_ms={opts.retry_delay} backoff=exponential"
        )

    def _json_payload(self, result: Answered) -> dict[str, Any]:
        usage = result.usage
        return {
            "provider": self.options.provider.value,
            "model": self.options.model,
            "answer": result.answer,
            "latency_ms": result.latency_ms,
            "request": dict(result.request_echo),
            "usage": None if usage is None or usage.is_empty else usage.to_dict(),
        }

    def _emit(self, rendered: str) -> int:
        self.stdout.write(rendered)
        self.stdout.flush()
        if self.options.save is not None:
            try:
                write_output(self.options.save, rendered)
            except OutputError as e:
                return report_error(e, self.console)
        return EXIT_OK
