"""Fireworks AI adapter.

Fireworks exposes an OpenAI-compatible chat-completions API, so this extends
OpenAIAdapter with the Fireworks base URL and credential variable.
"""

from __future__ import annotations

from ..utils.config import Provider
from .openai_client import OpenAIAdapter


class FireworksAdapter(OpenAIAdapter):
    """Adapter for the Fireworks inference API."""

    provider = Provider.FIREWORKS
    BASE_URL = "https://api.fireworks.ai/inference/v1"
    API_KEY_ENV = "FIREWORKS_API_KEY"
