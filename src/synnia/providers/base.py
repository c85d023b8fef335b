"""
Provider Base - Contract for external compute providers.

This module provides the foundation for all compute providers:
- ProviderCategory: Language model vs image/video generation
- ProviderInput / ProviderResult: The execute() request and response
- ProviderConfig: Credentials and endpoint overrides
- ComputeProvider: Abstract base class for provider implementations
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProviderCategory(Enum):
    """Kinds of compute a provider offers."""
    LLM = "llm"
    IMAGE = "image-generation"
    VIDEO = "video-generation"


# Capability tags
CAP_CHAT = "chat"
CAP_JSON_MODE = "json-mode"
CAP_VISION = "vision"
CAP_TEXT_TO_IMAGE = "text-to-image"


@dataclass
class ProviderCredentials:
    """Credentials passed along with each request."""
    api_key: str = ""
    base_url: str | None = None


@dataclass
class ProviderInput:
    """
    Request for one provider execution.

    Attributes:
        prompt: User prompt
        system_prompt: Optional system prompt
        images: Reference images (urls or data urls)
        config: Provider/model specific options
        credentials: Resolved credentials
        model: Model id, provider default when None
    """
    prompt: str = ""
    system_prompt: str | None = None
    images: list[Any] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)
    credentials: ProviderCredentials = field(default_factory=ProviderCredentials)
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    json_mode: bool = False
    negative_prompt: str | None = None


@dataclass
class ProviderResult:
    """Result of one provider execution."""
    success: bool
    text: str | None = None
    data: Any = None
    images: list[dict[str, Any]] = field(default_factory=list)
    video_url: str | None = None
    error: str | None = None
    was_truncated: bool = False

    @classmethod
    def failure(cls, error: str) -> ProviderResult:
        return cls(success=False, error=error)


@dataclass
class ProviderConfig:
    """Configuration for a provider."""
    api_key: str = ""
    enabled: bool = True
    base_url: str | None = None  # Override default URL
    default_model: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "api_key": self.api_key,
            "enabled": self.enabled,
            "base_url": self.base_url,
            "default_model": self.default_model,
            "extra": self.extra,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderConfig:
        return cls(
            api_key=data.get("api_key", ""),
            enabled=data.get("enabled", True),
            base_url=data.get("base_url"),
            default_model=data.get("default_model"),
            extra=data.get("extra", {}),
        )


class ProviderError(Exception):
    """Base exception for provider errors."""
    pass


class AuthenticationError(ProviderError):
    """API key invalid or missing."""
    pass


class RateLimitError(ProviderError):
    """Rate limit exceeded."""
    retry_after: float | None = None


class GenerationError(ProviderError):
    """Error during generation."""
    pass


class ComputeProvider(ABC):
    """
    Abstract base class for compute providers.

    Each provider handles communication with one backend and exposes it
    through the single `execute(input) -> result` contract.
    """

    # Provider identification
    id: str = ""
    name: str = ""
    category: ProviderCategory = ProviderCategory.LLM
    capabilities: frozenset[str] = frozenset()
    base_url: str = ""
    default_model: str = ""
    # Local backends run without a key
    requires_credential: bool = True

    def __init__(self, config: ProviderConfig | None = None):
        self.config = config or ProviderConfig()
        if self.config.base_url:
            self.base_url = self.config.base_url

    @property
    def api_key(self) -> str:
        return self.config.api_key

    @property
    def is_configured(self) -> bool:
        """Check if provider has necessary configuration."""
        if not self.config.enabled:
            return False
        return bool(self.config.api_key) or not self.requires_credential

    def credentials(self) -> ProviderCredentials:
        return ProviderCredentials(api_key=self.config.api_key, base_url=self.base_url)

    def model_for(self, request: ProviderInput) -> str:
        return request.model or self.config.default_model or self.default_model

    @abstractmethod
    async def execute(self, request: ProviderInput) -> ProviderResult:
        """
        Run one request against the backend.

        Raises:
            AuthenticationError: Invalid API key
            RateLimitError: Rate limit exceeded
            GenerationError: Backend reported a failure
        """
        ...

    def get_headers(self, api_key: str | None = None) -> dict[str, str]:
        """Get default headers for API requests."""
        headers = {"Content-Type": "application/json"}
        key = api_key if api_key is not None else self.api_key
        if key:
            headers["Authorization"] = f"Bearer {key}"
        return headers
