"""Provider adapters: the engine's only path to remote APIs."""

from .base import ProviderAdapter
from .local import LocalProvider
from .registry import SUPPORTED_PROVIDERS, create_provider

__all__ = ["ProviderAdapter", "LocalProvider", "SUPPORTED_PROVIDERS", "create_provider"]
