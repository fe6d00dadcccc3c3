"""Attempt outcomes and the terminal pipeline result.

Each network attempt yields exactly one ``AttemptOutcome``:

- ``Success``: the provider answered (possibly with an empty string)
- ``RetryableFailure``: transport error, timeout, 429 or 5xx
- ``FatalFailure``: anything the retry loop must not repeat

The retry executor folds those into one ``PipelineResult`` (``Answered`` or
``Failed``) which the output renderer consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from ..errors import MpipeError


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    @classmethod
    def from_response(cls, usage: Any) -> "Usage | None":
        """Build usage from a provider usage object, or None if nothing was reported."""
        if usage is None:
            return None
        parsed = cls(
            prompt_tokens=getattr(usage, "prompt_tokens", None),
            completion_tokens=getattr(usage, "completion_tokens", None),
            total_tokens=getattr(usage, "total_tokens", None),
        )
        if parsed.is_empty:
            return None
        return parsed

    @property
    def is_empty(self) -> bool:
        return self.prompt_tokens is None and self.completion_tokens is None and self.total_tokens is None

    def to_dict(self) -> dict[str, int | None]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class Success:
    answer: str
    usage: Usage | None = None
    # Duration of this attempt only; the executor reports end-to-end latency.
    latency_ms: float = 0.0


@dataclass(frozen=True)
class RetryableFailure:
    cause: MpipeError


@dataclass(frozen=True)
class FatalFailure:
    cause: MpipeError


AttemptOutcome = Union[Success, RetryableFailure, FatalFailure]


@dataclass(frozen=True)
class Answered:
    answer: str
    usage: Usage | None
    latency_ms: int
    request_echo: Mapping[str, Any] = field(default_factory=dict)
    attempts: int = 1


@dataclass(frozen=True)
class Failed:
    error: MpipeError
    latency_ms: int = 0
    attempts: int = 1


PipelineResult = Union[Answered, Failed]
