"""Value objects shared by the pipeline stages."""

from .message import ChatMessage
from .outcome import (
    Answered,
    AttemptOutcome,
    Failed,
    FatalFailure,
    PipelineResult,
    RetryableFailure,
    Success,
    Usage,
)

__all__ = [
    "Answered",
    "AttemptOutcome",
    "ChatMessage",
    "Failed",
    "FatalFailure",
    "PipelineResult",
    "RetryableFailure",
    "Success",
    "Usage",
]
