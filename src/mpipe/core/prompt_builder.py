"""Prompt assembly.

PromptBuilder joins ordered, named sections with a blank line. Blank optional
sections are dropped together with their separator, so a missing preprompt or
postprompt never leaves a dangling ``"\\n\\n"``.

Usage:
    builder = PromptBuilder()
    builder.add_section("preprompt", "Summarize:", position=SectionPosition.PREPROMPT)
    builder.add_section("main", text, position=SectionPosition.MAIN, required=True)
    prompt = builder.build()
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from ..errors import MissingPrompt
from ..models.message import ChatMessage

logger = logging.getLogger(__name__)


class SectionPosition:
    """Standard ordering for prompt sections."""
    PREPROMPT = 0
    MAIN = 1
    POSTPROMPT = 2


@dataclass
class PromptSection:
    name: str
    content: str
    position: int
    # Required sections are kept even when blank
    required: bool = False

    def is_present(self) -> bool:
        return self.required or bool(self.content.strip())


class PromptBuilder:
    """Assembles the user prompt from ordered, named sections."""

    def __init__(self, separator: str = "\n\n"):
        self._sections: dict[str, PromptSection] = {}
        self._separator = separator

    def add_section(
        self,
        name: str,
        content: str | None,
        position: int,
        required: bool = False,
    ) -> "PromptBuilder":
        """Add or replace a section. Optional blank sections are skipped at build time."""
        self._sections[name] = PromptSection(
            name=name, content=content or "", position=position, required=required
        )
        return self

    def build(self) -> str:
        parts = [s.content for s in self._ordered() if s.is_present()]
        return self._separator.join(parts)

    def _ordered(self) -> list[PromptSection]:
        return sorted(self._sections.values(), key=lambda s: s.position)


class PromptSource(str, Enum):
    ARGUMENT = "argument"
    STDIN = "stdin"


@dataclass(frozen=True)
class PromptInput:
    text: str
    source: PromptSource


def resolve_prompt(argument: str | None, stdin: TextIO | None = None) -> PromptInput:
    """Pick the main prompt: the CLI argument verbatim, else all of piped stdin.

    stdin is not touched at all when an argument is given.
    """
    if argument is not None:
        return PromptInput(text=argument, source=PromptSource.ARGUMENT)

    stream = stdin if stdin is not None else sys.stdin
    if stream is None or stream.isatty():
        raise MissingPrompt("No prompt provided. Pass an argument or pipe stdin.")

    try:
        text = stream.read().strip()
    except (OSError, UnicodeDecodeError) as e:
        raise MissingPrompt(f"Failed to read stdin: {e}") from e
    if not text:
        raise MissingPrompt("Prompt is empty.")
    logger.debug(f"Read {len(text)} chars of prompt from stdin")
    return PromptInput(text=text, source=PromptSource.STDIN)


def compose_prompt(preprompt: str | None, main: str, postprompt: str | None) -> str:
    return (
        PromptBuilder()
        .add_section("preprompt", preprompt, position=SectionPosition.PREPROMPT)
        .add_section("main", main, position=SectionPosition.MAIN, required=True)
        .add_section("postprompt", postprompt, position=SectionPosition.POSTPROMPT)
        .build()
    )


def build_messages(system: str | None, prompt: str) -> list[ChatMessage]:
    """``[system, user]`` when a non-blank system message is set, else ``[user]``."""
    messages = []
    if system and system.strip():
        messages.append(ChatMessage.system(system.strip()))
    messages.append(ChatMessage.user(prompt))
    return messages
