# src/llm/client_factory.py - v3
"""Factory: instantiate a remote batch client from a provider name.

Adapters are imported lazily so the SDK of an unused provider is never
loaded.
"""

from __future__ import annotations

import importlib
import logging

from docbatch.config.settings import ConfigurationError, Settings
from docbatch.llm.base_batch_client import BaseBatchClient

logger = logging.getLogger(__name__)

# Registry of provider name -> adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "openai": "docbatch.llm.adapters.openai_batch.OpenAIBatchClient",
    "anthropic": "docbatch.llm.adapters.anthropic_batch.AnthropicBatchClient",
    "mock": "docbatch.llm.adapters.mock_batch.MockBatchClient",
}

_KEYLESS_PROVIDERS = {"mock"}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_batch_client(
    provider: str,
    model: str | None = None,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseBatchClient:
    """Instantiate the adapter for a provider.

    Args:
        provider: Provider identifier (openai, anthropic, mock).
        model: Model name; defaults to ``settings.batch_model``.
        settings: Application settings (API keys, completion window).
        **kwargs: Additional adapter arguments.

    Raises:
        UnsupportedProviderError: If provider is not registered.
        ConfigurationError: If the provider needs an API key and none is set.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported batch provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    init_kwargs = dict(kwargs)
    if model is None and settings is not None:
        model = settings.batch_model
    if model is not None:
        init_kwargs["model"] = model

    if settings is not None:
        if provider == "openai":
            init_kwargs.setdefault("completion_window", settings.batch_completion_window)
        api_key = settings.api_key_for(provider)
        if api_key:
            init_kwargs.setdefault("api_key", api_key)

    if provider not in _KEYLESS_PROVIDERS and not init_kwargs.get("api_key"):
        raise ConfigurationError(
            f"BATCH_PROVIDER={provider} requires {provider.upper()}_API_KEY"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])
    logger.debug("Creating batch client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str, requires_api_key: bool = True) -> None:
    """Register a custom batch adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseBatchClient.
        requires_api_key: Whether creation must fail without an API key.
    """
    _PROVIDER_REGISTRY[name] = class_path
    if not requires_api_key:
        _KEYLESS_PROVIDERS.add(name)
    logger.info("Registered batch provider: %s -> %s", name, class_path)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
