"""Core request orchestration.

- ConfigResolver: layered option resolution into EffectiveOptions
- PromptBuilder: prompt segment assembly
- RetryExecutor: bounded retry with exponential backoff
"""

from .options import CliOptions, ConfigResolver, EffectiveOptions
from .pipeline import RetryExecutor, backoff_delay
from .prompt_builder import PromptBuilder, PromptInput, PromptSource, compose_prompt, resolve_prompt

__all__ = [
    "CliOptions",
    "ConfigResolver",
    "EffectiveOptions",
    "PromptBuilder",
    "PromptInput",
    "PromptSource",
    "RetryExecutor",
    "backoff_delay",
    "compose_prompt",
    "resolve_prompt",
]
