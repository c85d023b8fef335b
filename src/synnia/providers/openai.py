"""
OpenAI Providers - Chat completions and image generation.

Supports:
- OpenAIChatProvider: /chat/completions for language-model recipes
- OllamaProvider: Local OpenAI-compatible endpoint, no key required
- OpenAIImageProvider: /images/generations for media recipes

API Reference: https://platform.openai.com/docs/api-reference
"""

from __future__ import annotations

import base64
import logging
from io import BytesIO
from typing import Any

import aiohttp
from PIL import Image

from synnia.providers.base import (
    CAP_CHAT,
    CAP_JSON_MODE,
    CAP_TEXT_TO_IMAGE,
    CAP_VISION,
    AuthenticationError,
    ComputeProvider,
    GenerationError,
    ProviderCategory,
    ProviderInput,
    ProviderResult,
    RateLimitError,
)


logger = logging.getLogger(__name__)


class _OpenAIHTTP(ComputeProvider):
    """Shared request/response handling for OpenAI-style endpoints."""

    provider_label = "OpenAI"

    async def _post(self, url: str, body: dict, api_key: str | None = None) -> dict:
        """Make POST request with JSON body."""
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url,
                json=body,
                headers=self.get_headers(api_key),
            ) as resp:
                data = await resp.json(content_type=None)
                self._check_error(resp.status, data)
                return data

    def _check_error(self, status: int, data: Any) -> None:
        """Check for API errors."""
        if status == 401:
            raise AuthenticationError(f"Invalid {self.provider_label} API key")
        elif status == 429:
            error = RateLimitError(f"{self.provider_label} rate limit exceeded")
            error.retry_after = 60
            raise error
        elif status >= 400:
            error_msg = "Unknown error"
            if isinstance(data, dict):
                err = data.get("error")
                if isinstance(err, dict):
                    error_msg = err.get("message", error_msg)
                elif isinstance(err, str):
                    error_msg = err
            raise GenerationError(f"{self.provider_label} API error ({status}): {error_msg}")

    def _url(self, request: ProviderInput, path: str) -> str:
        base = request.credentials.base_url or self.base_url
        return f"{base.rstrip('/')}/{path}"

    def _key(self, request: ProviderInput) -> str:
        return request.credentials.api_key or self.api_key


class OpenAIChatProvider(_OpenAIHTTP):
    """Chat completions provider."""

    id = "openai"
    name = "OpenAI"
    category = ProviderCategory.LLM
    capabilities = frozenset({CAP_CHAT, CAP_JSON_MODE, CAP_VISION})
    base_url = "https://api.openai.com/v1"
    default_model = "gpt-4o-mini"

    def build_messages(self, request: ProviderInput) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        for turn in request.config.get("history") or []:
            messages.append({"role": turn["role"], "content": turn["content"]})

        if request.images:
            content: list[dict[str, Any]] = [{"type": "text", "text": request.prompt}]
            for image in request.images:
                url = image.get("url") if isinstance(image, dict) else image
                content.append({"type": "image_url", "image_url": {"url": url}})
            messages.append({"role": "user", "content": content})
        else:
            messages.append({"role": "user", "content": request.prompt})
        return messages

    async def execute(self, request: ProviderInput) -> ProviderResult:
        body: dict[str, Any] = {
            "model": self.model_for(request),
            "messages": self.build_messages(request),
        }
        if request.temperature is not None:
            body["temperature"] = request.temperature
        if request.max_tokens is not None:
            body["max_tokens"] = request.max_tokens
        if request.json_mode:
            body["response_format"] = {"type": "json_object"}

        data = await self._post(self._url(request, "chat/completions"), body, self._key(request))
        return self._parse_response(data)

    def _parse_response(self, data: dict) -> ProviderResult:
        choices = data.get("choices") or []
        if not choices:
            return ProviderResult.failure(f"{self.provider_label} returned no choices")

        choice = choices[0]
        text = (choice.get("message") or {}).get("content") or ""
        truncated = choice.get("finish_reason") == "length"
        if truncated:
            logger.warning("%s response was truncated by the token limit", self.provider_label)
        return ProviderResult(success=True, text=text, data=text, was_truncated=truncated)


class OllamaProvider(OpenAIChatProvider):
    """Local Ollama server through its OpenAI-compatible API."""

    id = "ollama"
    name = "Ollama"
    provider_label = "Ollama"
    capabilities = frozenset({CAP_CHAT, CAP_JSON_MODE})
    base_url = "http://localhost:11434/v1"
    default_model = "llama3.1"
    requires_credential = False


class OpenAIImageProvider(_OpenAIHTTP):
    """Image generation provider."""

    id = "openai-image"
    name = "OpenAI Images"
    category = ProviderCategory.IMAGE
    capabilities = frozenset({CAP_TEXT_TO_IMAGE})
    base_url = "https://api.openai.com/v1"
    default_model = "gpt-image-1"

    async def execute(self, request: ProviderInput) -> ProviderResult:
        body: dict[str, Any] = {
            "model": self.model_for(request),
            "prompt": request.prompt,
            "n": int(request.config.get("n", 1)),
        }
        if "size" in request.config:
            body["size"] = request.config["size"]
        for key in ("quality", "style", "background"):
            if key in request.config:
                body[key] = request.config[key]

        data = await self._post(self._url(request, "images/generations"), body, self._key(request))
        return self._parse_response(data)

    def _parse_response(self, data: dict) -> ProviderResult:
        images = []
        for item in data.get("data") or []:
            if item.get("b64_json"):
                images.append(self._decode_b64(item["b64_json"]))
            elif item.get("url"):
                images.append({"url": item["url"]})

        if not images:
            return ProviderResult.failure(f"{self.provider_label} returned no images")
        return ProviderResult(
            success=True,
            images=images,
            data={"type": "images", "images": images},
        )

    @staticmethod
    def _decode_b64(b64: str) -> dict[str, Any]:
        """Turn base64 image data into a data url, with its pixel size."""
        img_bytes = base64.b64decode(b64)
        with Image.open(BytesIO(img_bytes)) as img:
            width, height = img.size
            mime_type = Image.MIME.get(img.format or "PNG", "image/png")
        return {
            "url": f"data:{mime_type};base64,{b64}",
            "width": width,
            "height": height,
        }
