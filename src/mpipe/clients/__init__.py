"""Provider adapters, one per supported provider."""

from ..utils.config import Provider
from .base import ProviderAdapter, RequestDescription
from .fireworks_client import FireworksAdapter
from .openai_client import OpenAIAdapter

_ADAPTERS: dict[Provider, type[ProviderAdapter]] = {
    Provider.OPENAI: OpenAIAdapter,
    Provider.FIREWORKS: FireworksAdapter,
}


def get_adapter(provider: Provider, **kwargs) -> ProviderAdapter:
    """Return the adapter for ``provider``."""
    return _ADAPTERS[provider](**kwargs)


__all__ = [
    "FireworksAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "RequestDescription",
    "get_adapter",
]
