"""
Provider Registry - Central registry for compute providers.

This module manages:
- Registration of provider implementations by category and capability
- Per-category default provider selection with credential fallback
- Provider configuration loading/saving
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from synnia.providers.base import (
    ComputeProvider,
    ProviderCategory,
    ProviderConfig,
)


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "synnia" / "providers.json"


class ProviderRegistry:
    """
    Central registry for providers.

    Handles:
    - Provider registration and instantiation
    - Default provider per category
    - Configuration management
    """

    _instance: ProviderRegistry | None = None

    @classmethod
    def instance(cls) -> ProviderRegistry:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self):
        self._providers: dict[str, type[ComputeProvider]] = {}
        self._provider_instances: dict[str, ComputeProvider] = {}
        self._configs: dict[str, ProviderConfig] = {}
        self._default_providers: dict[str, str] = {}
        self._config_path: Path | None = None

    # -------------------------------------------------------------------------
    # Provider Registration
    # -------------------------------------------------------------------------

    def register_provider(self, provider_class: type[ComputeProvider]) -> None:
        """Register a provider implementation."""
        if provider_class.id in self._providers and self._providers[provider_class.id] is not provider_class:
            logger.warning("Provider '%s' is being overwritten", provider_class.id)
        self._providers[provider_class.id] = provider_class
        self._provider_instances.pop(provider_class.id, None)

    def register_instance(self, provider: ComputeProvider) -> None:
        """Register an already constructed provider (stubs, custom setups)."""
        self._providers[provider.id] = type(provider)
        self._provider_instances[provider.id] = provider

    def get_provider(self, provider_id: str) -> ComputeProvider | None:
        """Get an instantiated provider."""
        if provider_id in self._provider_instances:
            return self._provider_instances[provider_id]

        if provider_id not in self._providers:
            return None

        provider = self._providers[provider_id](self.get_config(provider_id))
        self._provider_instances[provider_id] = provider
        return provider

    def list_providers(
        self,
        category: ProviderCategory | None = None,
        capability: str | None = None,
    ) -> list[str]:
        """Registered provider ids, optionally filtered."""
        result = []
        for pid, cls in self._providers.items():
            if category is not None and cls.category != category:
                continue
            if capability is not None and capability not in cls.capabilities:
                continue
            result.append(pid)
        return result

    def list_configured_providers(self, category: ProviderCategory | None = None) -> list[str]:
        """Providers whose credentials are configured (or not needed)."""
        return [
            pid for pid in self.list_providers(category)
            if (provider := self.get_provider(pid)) is not None and provider.is_configured
        ]

    # -------------------------------------------------------------------------
    # Default selection
    # -------------------------------------------------------------------------

    def set_default_provider(self, category: ProviderCategory, provider_id: str | None) -> None:
        if provider_id is None:
            self._default_providers.pop(category.value, None)
        else:
            self._default_providers[category.value] = provider_id

    def get_default_provider(self, category: ProviderCategory) -> str | None:
        return self._default_providers.get(category.value)

    def resolve_provider_id(
        self,
        category: ProviderCategory,
        capability: str | None = None,
    ) -> str | None:
        """
        Pick the provider for a category.

        The configured default wins if it is registered; otherwise the
        first registered provider whose credential is configured.
        """
        default = self._default_providers.get(category.value)
        if default and default in self.list_providers(category, capability):
            return default
        if default:
            logger.warning("Default %s provider '%s' is not registered", category.value, default)

        for pid in self.list_providers(category, capability):
            provider = self.get_provider(pid)
            if provider is not None and provider.is_configured:
                return pid
        return None

    def resolve_provider(
        self,
        category: ProviderCategory,
        capability: str | None = None,
    ) -> ComputeProvider | None:
        provider_id = self.resolve_provider_id(category, capability)
        return self.get_provider(provider_id) if provider_id else None

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_config(self, provider_id: str, config: ProviderConfig) -> None:
        """Set configuration for a provider."""
        self._configs[provider_id] = config
        # Invalidate cached instance
        self._provider_instances.pop(provider_id, None)

    def get_config(self, provider_id: str) -> ProviderConfig:
        """Get configuration for a provider."""
        return self._configs.get(provider_id, ProviderConfig())

    def load_config(self, path: Path | None = None) -> None:
        """
        Load provider configurations from file.

        A missing file leaves the defaults in place; an unreadable one is
        logged and ignored.
        """
        path = path or DEFAULT_CONFIG_PATH
        self._config_path = path

        if not path.exists():
            return

        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Failed to load provider config %s: %s", path, e)
            return

        for provider_id, cfg_data in (data.get("providers") or {}).items():
            self.set_config(provider_id, ProviderConfig.from_dict(cfg_data))

        for category, provider_id in (data.get("default_providers") or {}).items():
            self._default_providers[category] = provider_id

    def save_config(self, path: Path | None = None) -> None:
        """Save provider configurations to file."""
        path = path or self._config_path or DEFAULT_CONFIG_PATH

        # Ensure directory exists
        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "providers": {pid: cfg.to_dict() for pid, cfg in self._configs.items()},
            "default_providers": dict(self._default_providers),
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    def clear(self) -> None:
        """Forget all providers and configuration (for testing)."""
        self._providers.clear()
        self._provider_instances.clear()
        self._configs.clear()
        self._default_providers.clear()


# ============================================================================
# Module-level convenience functions
# ============================================================================

def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return ProviderRegistry.instance()
