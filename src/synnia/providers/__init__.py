"""
Compute Providers.

This package provides the integrations recipes call into:
- OpenAI: chat completions and image generation
- Ollama: local chat models, no key required

Usage:
    from synnia.providers import get_registry

    registry = get_registry()
    registry.load_config()

    provider = registry.resolve_provider(ProviderCategory.LLM)
    result = await provider.execute(ProviderInput(prompt="Hello"))
"""

from synnia.providers.base import (
    AuthenticationError,
    ComputeProvider,
    GenerationError,
    ProviderCategory,
    ProviderConfig,
    ProviderCredentials,
    ProviderError,
    ProviderInput,
    ProviderResult,
    RateLimitError,
)

from synnia.providers.registry import (
    ProviderRegistry,
    get_registry,
)

from synnia.providers.openai import (
    OllamaProvider,
    OpenAIChatProvider,
    OpenAIImageProvider,
)


BUILTIN_PROVIDERS: tuple[type[ComputeProvider], ...] = (
    OpenAIChatProvider,
    OllamaProvider,
    OpenAIImageProvider,
)


def register_builtin_providers(registry: ProviderRegistry | None = None) -> None:
    """Register the built-in providers, into the global registry by default."""
    registry = registry if registry is not None else get_registry()
    for provider_class in BUILTIN_PROVIDERS:
        registry.register_provider(provider_class)


__all__ = [
    # Base classes
    "ComputeProvider",
    "ProviderCategory",
    "ProviderConfig",
    "ProviderCredentials",
    "ProviderInput",
    "ProviderResult",
    # Exceptions
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "GenerationError",
    # Registry
    "ProviderRegistry",
    "get_registry",
    # Providers
    "BUILTIN_PROVIDERS",
    "OllamaProvider",
    "OpenAIChatProvider",
    "OpenAIImageProvider",
    "register_builtin_providers",
]
