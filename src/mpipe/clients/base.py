"""Base provider adapter.

An adapter turns EffectiveOptions plus the assembled prompt into a
RequestDescription for one provider's wire shape, and performs a single
attempt against that provider. Retrying is the executor's job.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from ..core.prompt_builder import build_messages
from ..errors import MissingApiKey
from ..models.message import ChatMessage
from ..models.outcome import AttemptOutcome
from ..utils.config import Provider

if TYPE_CHECKING:
    from ..core.options import EffectiveOptions

logger = logging.getLogger(__name__)

REDACTED_AUTHORIZATION = "Bearer ***REDACTED***"
DRY_RUN_API_KEY = "dry-run-placeholder"


@dataclass(frozen=True)
class RequestDescription:
    """Provider-specific request, built once per invocation and never mutated."""

    provider: Provider
    endpoint: str
    model: str
    messages: tuple[ChatMessage, ...]
    api_key: str
    # Only generation parameters that were actually set.
    params: Mapping[str, Any] = field(default_factory=dict)
    timeout: float | None = None
    echo: Mapping[str, Any] = field(default_factory=dict)

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def api_messages(self) -> list[dict]:
        return [m.to_api_format() for m in self.messages]

    def body(self) -> dict[str, Any]:
        return {"model": self.model, "messages": self.api_messages(), **self.params}

    def redacted_headers(self) -> dict[str, str]:
        return {**self.headers, "Authorization": REDACTED_AUTHORIZATION}


class ProviderAdapter(ABC):
    """Abstract base class for provider adapters."""

    provider: Provider
    BASE_URL: str
    API_KEY_ENV: str
    SUPPORTED_PARAMS: tuple[str, ...] = ("temperature", "max_tokens")

    @property
    def endpoint(self) -> str:
        return f"{self.BASE_URL}/chat/completions"

    def _get_api_key(self) -> str | None:
        value = os.getenv(self.API_KEY_ENV)
        if value and value.strip():
            return value.strip()
        return None

    def is_api_key_present(self) -> bool:
        return self._get_api_key() is not None

    def build_request(self, options: "EffectiveOptions", prompt: str) -> RequestDescription:
        """Build the request for ``prompt``.

        Raises:
            MissingApiKey: the credential is absent and this is not a dry run.
        """
        api_key = self._get_api_key()
        if api_key is None:
            if not options.dry_run:
                raise MissingApiKey(self.API_KEY_ENV)
            api_key = DRY_RUN_API_KEY

        params = {
            name: getattr(options, name)
            for name in self.SUPPORTED_PARAMS
            if getattr(options, name, None) is not None
        }
        messages = tuple(build_messages(options.system_message, prompt))
        logger.debug(f"Built {self.provider.value} request: {len(messages)} message(s), params={sorted(params)}")
        return RequestDescription(
            provider=self.provider,
            endpoint=self.endpoint,
            model=options.model,
            messages=messages,
            api_key=api_key,
            params=params,
            timeout=float(options.timeout) if options.timeout is not None else None,
            echo=options.request_echo(),
        )

    @abstractmethod
    def send(self, request: RequestDescription) -> AttemptOutcome:
        """Perform exactly one attempt and classify its outcome."""
        pass
