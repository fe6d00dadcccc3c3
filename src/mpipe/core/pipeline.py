"""Retry executor.

Runs one request as a small state machine:

    Attempting(0) -> Attempting(1) -> ... -> Attempting(retries)
         |                |                       |
         +--> Answered / Failed <-----------------+

``Success`` ends in ``Answered``; ``RetryableFailure`` moves to the next
attempt while budget remains; everything else ends in ``Failed``. Before
attempt ``n + 1`` the executor sleeps ``min(retry_delay * 2**n, 30s)``, so
``retries=2, retry_delay=300`` sleeps 300ms then 600ms. The attempt function
and the sleep/clock are injected so the schedule is testable offline.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable

from ..errors import EmptyAnswerError
from ..models.outcome import (
    Answered,
    AttemptOutcome,
    Failed,
    PipelineResult,
    RetryableFailure,
    Success,
)
from ..utils.config import DEFAULT_RETRIES, DEFAULT_RETRY_DELAY_MS, MAX_RETRY_DELAY_MS

if TYPE_CHECKING:
    from ..clients.base import RequestDescription

logger = logging.getLogger(__name__)

AttemptFn = Callable[["RequestDescription"], AttemptOutcome]


def backoff_delay(attempt: int, base_ms: int) -> float:
    """Seconds to sleep after failed attempt ``attempt`` (0-based)."""
    if attempt >= 32:
        return MAX_RETRY_DELAY_MS / 1000
    return min(base_ms * (2 ** attempt), MAX_RETRY_DELAY_MS) / 1000


class RetryExecutor:
    """Execute a RequestDescription with bounded retry and exponential backoff."""

    def __init__(
        self,
        attempt: AttemptFn,
        *,
        retries: int = DEFAULT_RETRIES,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        fail_on_empty: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._attempt = attempt
        self.retries = retries
        self.retry_delay_ms = retry_delay_ms
        self.fail_on_empty = fail_on_empty
        self._sleep = sleep
        self._clock = clock

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def execute(self, request: "RequestDescription") -> PipelineResult:
        start = self._clock()
        attempt = 0

        while True:
            logger.debug(f"Attempt {attempt + 1}/{self.max_attempts} to {request.endpoint}")
            outcome = self._attempt(request)

            if isinstance(outcome, Success):
                logger.debug(f"Attempt {attempt + 1} answered in {outcome.latency_ms:.0f}ms")
                latency_ms = self._elapsed_ms(start)
                if self.fail_on_empty and not outcome.answer.strip():
                    logger.debug("Empty answer with fail_on_empty set; not retrying")
                    return Failed(EmptyAnswerError(), latency_ms=latency_ms, attempts=attempt + 1)
                logger.debug(f"Answered after {attempt + 1} attempt(s) in {latency_ms}ms")
                return Answered(
                    answer=outcome.answer,
                    usage=outcome.usage,
                    latency_ms=latency_ms,
                    request_echo=dict(request.echo),
                    attempts=attempt + 1,
                )

            if isinstance(outcome, RetryableFailure) and attempt + 1 < self.max_attempts:
                delay = backoff_delay(attempt, self.retry_delay_ms)
                logger.info(
                    f"Attempt {attempt + 1} failed ({outcome.cause}); retrying in {delay * 1000:.0f}ms"
                )
                self._sleep(delay)
                attempt += 1
                continue

            logger.debug(f"Giving up after {attempt + 1} attempt(s): {outcome.cause}")
            return Failed(outcome.cause, latency_ms=self._elapsed_ms(start), attempts=attempt + 1)

    def _elapsed_ms(self, start: float) -> int:
        return int(round((self._clock() - start) * 1000))
