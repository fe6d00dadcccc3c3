"""OpenAI chat-completions adapter.

Also the base for any OpenAI-compatible endpoint (see FireworksAdapter).
The SDK's built-in retries are disabled; every call is a single attempt.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx
from openai import (
    APIConnectionError,
    APIError,
    APIStatusError,
    APITimeoutError,
    OpenAI,
)

from ..errors import ProviderError
from ..models.outcome import AttemptOutcome, FatalFailure, RetryableFailure, Success, Usage
from ..utils.config import Provider
from .base import ProviderAdapter, RequestDescription

logger = logging.getLogger(__name__)

MAX_ERROR_BODY_CHARS = 2000


def is_retryable_status(status: int) -> bool:
    return status == 429 or status >= 500


class OpenAIAdapter(ProviderAdapter):
    """Adapter for the OpenAI API."""

    provider = Provider.OPENAI
    BASE_URL = "https://api.openai.com/v1"
    API_KEY_ENV = "OPENAI_API_KEY"

    def __init__(self, http_client_factory: Callable[[], httpx.Client] | None = None):
        """
        Args:
            http_client_factory: Optional factory for the httpx client used by
                each attempt (tests pass one backed by ``httpx.MockTransport``).
        """
        self._http_client_factory = http_client_factory

    def _make_client(self, request: RequestDescription) -> OpenAI:
        kwargs: dict[str, Any] = {
            "api_key": request.api_key,
            "base_url": self.BASE_URL,
            "max_retries": 0,
        }
        if self._http_client_factory is not None:
            kwargs["http_client"] = self._http_client_factory()
        return OpenAI(**kwargs)

    def send(self, request: RequestDescription) -> AttemptOutcome:
        name = self.provider.value
        # Same body the dry run prints; the SDK adds the Authorization header
        kwargs: dict[str, Any] = request.body()
        if request.timeout is not None:
            kwargs["timeout"] = request.timeout

        start = time.perf_counter()
        try:
            with self._make_client(request) as client:
                completion = client.chat.completions.create(**kwargs)
        except APITimeoutError as e:
            return RetryableFailure(ProviderError(f"{name} request timed out: {e}", provider=name, retryable=True))
        except APIConnectionError as e:
            return RetryableFailure(ProviderError(f"{name} request failed: {e}", provider=name, retryable=True))
        except APIStatusError as e:
            return self._classify_status_error(e)
        except APIError as e:
            return FatalFailure(ProviderError(f"{name} response could not be parsed: {e}", provider=name))
        except ValueError as e:
            return FatalFailure(ProviderError(f"{name} response could not be parsed: {e}", provider=name))

        latency_ms = (time.perf_counter() - start) * 1000
        return self._parse_completion(completion, latency_ms)

    def _classify_status_error(self, err: APIStatusError) -> AttemptOutcome:
        name = self.provider.value
        response = err.response
        status = response.status_code
        try:
            body = response.text
        except httpx.ResponseNotRead:
            body = str(err.message)
        if body and len(body) > MAX_ERROR_BODY_CHARS:
            body = body[:MAX_ERROR_BODY_CHARS] + "...(truncated)"
        reason = response.reason_phrase
        status_text = f"{status} {reason}" if reason else str(status)
        retryable = is_retryable_status(status)
        logger.debug(f"{name} HTTP {status} (retryable={retryable}). Response body: {body or '<empty>'}")
        error = ProviderError(
            f"{name} API error {status_text}: {body}",
            provider=name,
            status=status,
            retryable=retryable,
        )
        return RetryableFailure(error) if retryable else FatalFailure(error)

    def _parse_completion(self, completion: Any, latency_ms: float) -> AttemptOutcome:
        name = self.provider.value
        choices = getattr(completion, "choices", None)
        if not choices:
            return FatalFailure(ProviderError(f"{name} response did not contain any choices", provider=name))
        message = getattr(choices[0], "message", None)
        if message is None:
            return FatalFailure(ProviderError(f"{name} response did not contain a message", provider=name))
        content = getattr(message, "content", None) or ""
        usage = Usage.from_response(getattr(completion, "usage", None))
        return Success(answer=content, usage=usage, latency_ms=latency_ms)
