"""Declarative registry of provider adapters."""

import importlib
from typing import Any, Dict, Type
from .base import ProviderAdapter
from .local import LocalProvider
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("provider.registry")

SUPPORTED_PROVIDERS: Dict[str, Type[ProviderAdapter]] = {
    "local": LocalProvider,
}


def create_provider(name: str, **options: Any) -> ProviderAdapter:
    """
    Instantiate a provider adapter.

    Args:
        name: Registered provider name, or a 'package.module:ClassName' import path
        **options: Keyword arguments for the provider constructor

    Raises:
        ConfigError: If the provider cannot be found or constructed
    """
    provider_cls = SUPPORTED_PROVIDERS.get(name)
    if provider_cls is None:
        provider_cls = _import_provider(name)

    try:
        provider = provider_cls(**options)
    except TypeError as e:
        raise ConfigError(f"Invalid options for provider '{name}': {e}")

    logger.debug(f"Using provider '{name}' ({provider_cls.__name__})")
    return provider


def _import_provider(path: str) -> Type[ProviderAdapter]:
    module_name, sep, class_name = path.partition(":")
    if not sep or not class_name:
        raise ConfigError(
            f"Unknown provider '{path}'. Use one of: {', '.join(sorted(SUPPORTED_PROVIDERS))} "
            "or a 'module:ClassName' import path"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Cannot import provider module '{module_name}': {e}")

    provider_cls = getattr(module, class_name, None)
    if not isinstance(provider_cls, type) or not issubclass(provider_cls, ProviderAdapter):
        raise ConfigError(f"'{path}' is not a ProviderAdapter subclass")
    return provider_cls
