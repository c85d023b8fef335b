"""
Tests for the provider registry and the OpenAI-style providers.

HTTP is never performed; `_post` is patched where a request is made.
"""

import asyncio
import base64
from io import BytesIO
from unittest.mock import AsyncMock, patch

import pytest
from PIL import Image

from synnia.providers import BUILTIN_PROVIDERS, register_builtin_providers
from synnia.providers.base import (
    AuthenticationError,
    GenerationError,
    ProviderCategory,
    ProviderConfig,
    ProviderInput,
    RateLimitError,
)
from synnia.providers.openai import OllamaProvider, OpenAIChatProvider, OpenAIImageProvider
from synnia.providers.registry import ProviderRegistry


@pytest.fixture
def registry():
    registry = ProviderRegistry()
    register_builtin_providers(registry)
    return registry


class TestProviderRegistry:
    """Registration, default selection and configuration."""

    def test_builtins_registered(self, registry):
        assert set(registry.list_providers()) == {p.id for p in BUILTIN_PROVIDERS}
        assert registry.list_providers(ProviderCategory.IMAGE) == ["openai-image"]
        assert registry.list_providers(ProviderCategory.LLM, "vision") == ["openai"]

    def test_local_provider_needs_no_key(self, registry):
        assert registry.list_configured_providers(ProviderCategory.LLM) == ["ollama"]
        assert registry.resolve_provider_id(ProviderCategory.LLM) == "ollama"

    def test_configured_default_wins(self, registry):
        registry.set_config("openai", ProviderConfig(api_key="sk-test"))
        registry.set_default_provider(ProviderCategory.LLM, "openai")
        assert registry.resolve_provider(ProviderCategory.LLM).id == "openai"

    def test_unregistered_default_falls_back(self, registry):
        registry.set_default_provider(ProviderCategory.LLM, "ghost")
        assert registry.resolve_provider_id(ProviderCategory.LLM) == "ollama"

    def test_capability_filter(self, registry):
        assert registry.resolve_provider_id(ProviderCategory.LLM, "vision") is None

    def test_disabled_provider_is_not_configured(self, registry):
        registry.set_config("ollama", ProviderConfig(enabled=False))
        assert registry.resolve_provider_id(ProviderCategory.LLM) is None

    def test_set_config_replaces_instance(self, registry):
        before = registry.get_provider("openai")
        registry.set_config("openai", ProviderConfig(api_key="sk-new"))
        after = registry.get_provider("openai")
        assert after is not before
        assert after.api_key == "sk-new"

    def test_config_round_trip(self, registry, tmp_path):
        path = tmp_path / "providers.json"
        registry.set_config("openai", ProviderConfig(api_key="sk-test", default_model="gpt-4o"))
        registry.set_default_provider(ProviderCategory.LLM, "openai")
        registry.save_config(path)

        restored = ProviderRegistry()
        register_builtin_providers(restored)
        restored.load_config(path)

        assert restored.get_config("openai").api_key == "sk-test"
        assert restored.get_default_provider(ProviderCategory.LLM) == "openai"
        assert restored.get_provider("openai").model_for(ProviderInput()) == "gpt-4o"

    def test_unreadable_config_is_ignored(self, registry, tmp_path):
        path = tmp_path / "providers.json"
        path.write_text("{not json")
        registry.load_config(path)
        assert registry.get_config("openai").api_key == ""


class TestOpenAIChat:
    """Chat completions request building and response parsing."""

    def test_build_messages(self):
        provider = OpenAIChatProvider()
        request = ProviderInput(
            prompt="Describe it",
            system_prompt="Be short",
            images=["data:image/png;base64,AAAA"],
            config={"history": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}]},
        )

        messages = provider.build_messages(request)

        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert messages[-1]["content"][1] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}}

    def test_parse_response(self):
        result = OpenAIChatProvider()._parse_response({
            "choices": [{"message": {"content": "hi"}, "finish_reason": "length"}],
        })
        assert result.success
        assert result.text == "hi"
        assert result.was_truncated

    def test_parse_response_without_choices(self):
        result = OpenAIChatProvider()._parse_response({"choices": []})
        assert not result.success
        assert result.error == "OpenAI returned no choices"

    def test_check_error(self):
        provider = OpenAIChatProvider()
        with pytest.raises(AuthenticationError):
            provider._check_error(401, {})
        with pytest.raises(RateLimitError) as exc_info:
            provider._check_error(429, {})
        assert exc_info.value.retry_after == 60
        with pytest.raises(GenerationError, match="bad model"):
            provider._check_error(400, {"error": {"message": "bad model"}})
        provider._check_error(200, {})

    def test_execute_posts_json_mode_body(self):
        provider = OpenAIChatProvider(ProviderConfig(api_key="sk-test"))
        reply = {"choices": [{"message": {"content": "[]"}, "finish_reason": "stop"}]}

        with patch.object(OpenAIChatProvider, "_post", new=AsyncMock(return_value=reply)) as post:
            result = asyncio.run(provider.execute(ProviderInput(prompt="go", json_mode=True, max_tokens=50)))

        url, body, key = post.call_args.args
        assert url == "https://api.openai.com/v1/chat/completions"
        assert body["model"] == "gpt-4o-mini"
        assert body["response_format"] == {"type": "json_object"}
        assert body["max_tokens"] == 50
        assert "temperature" not in body
        assert key == "sk-test"
        assert result.text == "[]"

    def test_ollama_uses_local_endpoint(self):
        provider = OllamaProvider()
        assert provider.is_configured
        assert provider._url(ProviderInput(), "chat/completions") == "http://localhost:11434/v1/chat/completions"

    def test_base_url_override(self):
        provider = OllamaProvider(ProviderConfig(base_url="http://gpu-box:11434/v1/"))
        assert provider._url(ProviderInput(), "chat/completions") == "http://gpu-box:11434/v1/chat/completions"


class TestOpenAIImages:
    """Image generation response handling."""

    def _png_b64(self, size=(8, 4)):
        buffer = BytesIO()
        Image.new("RGB", size, (255, 0, 0)).save(buffer, format="PNG")
        return base64.b64encode(buffer.getvalue()).decode("ascii")

    def test_b64_images_become_data_urls(self):
        result = OpenAIImageProvider()._parse_response({"data": [{"b64_json": self._png_b64()}]})

        image = result.images[0]
        assert image["url"].startswith("data:image/png;base64,")
        assert (image["width"], image["height"]) == (8, 4)
        assert result.data == {"type": "images", "images": result.images}

    def test_url_images_pass_through(self):
        result = OpenAIImageProvider()._parse_response({"data": [{"url": "https://cdn.test/a.png"}]})
        assert result.images == [{"url": "https://cdn.test/a.png"}]

    def test_no_images_is_a_failure(self):
        result = OpenAIImageProvider()._parse_response({"data": []})
        assert not result.success
