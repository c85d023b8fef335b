"""
Tests for recipe manifests, executors and output synthesis.
"""

import asyncio
import math
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from synnia.core.errors import ManifestError
from synnia.providers.base import ComputeProvider, ProviderCategory, ProviderResult
from synnia.providers.registry import ProviderRegistry
from synnia.recipes.executors import create_executor, has_executor_type, register_executor_factory
from synnia.recipes.loader import (
    create_recipe_from_manifest,
    field_from_manifest,
    load_manifest_dir,
    parse_manifest,
    register_builtin_recipes,
)
from synnia.recipes.output import build_nodes_from_config
from synnia.recipes.registry import RecipeRegistry
from synnia.recipes.types import ExecutionContext, ExecutionResult, OutputConfig
from synnia.recipes.utils import (
    extract_json,
    extract_number,
    extract_text,
    interpolate,
    repair_truncated_json_array,
)


MANIFEST = """
version: 2
id: tagline
name: Tagline
category: Writing
input:
  - key: product
    label: Product
    type: string
    required: true
  - key: voice
    type: select
    default: playful
    options: [playful, formal]
model:
  category: llm
  capabilities: [json-mode]
  defaultParams:
    temperature: 0.3
    maxTokens: 256
prompt:
  system: Write in a {{voice}} voice.
  user: "Product: {{product}}"
output:
  format: text
  node: text
"""


class EchoLLM(ComputeProvider):
    id = "echo"
    category = ProviderCategory.LLM
    capabilities = frozenset({"json-mode"})
    requires_credential = False

    def __init__(self, reply=None):
        super().__init__()
        self.reply = reply
        self.requests = []

    async def execute(self, request):
        self.requests.append(request)
        text = self.reply if self.reply is not None else request.prompt
        return ProviderResult(success=True, text=text)


class StubImages(ComputeProvider):
    id = "images"
    category = ProviderCategory.IMAGE

    async def execute(self, request):
        return ProviderResult(success=True, images=[{"url": "a.png"}, {"url": "b.png"}])


def registry_with(*providers):
    registry = ProviderRegistry()
    for provider in providers:
        registry.register_instance(provider)
    return registry


class TestManifests:
    """Parsing and validation of version 2 manifests."""

    def test_parse_and_build(self):
        recipe = create_recipe_from_manifest(parse_manifest(MANIFEST))

        assert recipe.id == "tagline"
        assert recipe.category == "Writing"
        assert recipe.manifest.executor_type == "llm-agent"
        assert recipe.manifest.executor["default_params"] == {"temperature": 0.3, "max_tokens": 256}
        assert recipe.manifest.output.node == "text"
        assert recipe.defaults() == {"voice": "playful"}

    def test_select_field_becomes_string_with_options(self):
        f = field_from_manifest({"key": "voice", "type": "select", "options": ["a", "b"]})
        assert f.type == "string"
        assert f.widget == "select"
        assert f.config["options"] == ["a", "b"]

    def test_wrong_version(self):
        with pytest.raises(ManifestError, match="Expected version 2, got 1"):
            parse_manifest(MANIFEST.replace("version: 2", "version: 1"))

    def test_missing_section(self):
        text = MANIFEST.split("output:")[0]
        with pytest.raises(ManifestError, match='missing "output"'):
            parse_manifest(text)

    def test_invalid_yaml(self):
        with pytest.raises(ManifestError):
            parse_manifest("version: [2")

    def test_unknown_field_type(self):
        with pytest.raises(ManifestError, match="unknown type"):
            field_from_manifest({"key": "x", "type": "color"})

    def test_media_manifest_uses_media_executor(self):
        raw = parse_manifest(MANIFEST.replace("category: llm", "category: image-generation"))
        recipe = create_recipe_from_manifest(raw)
        assert recipe.manifest.executor == {"type": "media", "mode": "image-generation", "capability": "json-mode"}

    def test_load_dir_skips_broken_manifests(self, tmp_path):
        (tmp_path / "good.yaml").write_text(MANIFEST)
        (tmp_path / "bad.yaml").write_text("version: 1\n")
        registry = RecipeRegistry()

        loaded = load_manifest_dir(tmp_path, registry)

        assert [r.id for r in loaded] == ["tagline"]
        assert registry.has("tagline")

    def test_bundled_recipes(self):
        registry = RecipeRegistry()
        register_builtin_recipes(registry)

        assert {"math.divide", "text.concat", "storyteller", "naming-master"} <= {r.id for r in registry.all()}
        assert registry.get("storyteller").manifest.output.node == "form"
        assert "Math" in registry.by_category()


class TestUtils:
    """Helpers shared by executors."""

    def test_interpolate(self):
        assert interpolate("Hi {{name}}{{missing}}!", {"name": {"content": "Ada"}}) == "Hi Ada!"

    def test_extract_text_and_number(self):
        assert extract_text({"value": 3.0}) == "3"
        assert extract_number("7") == 7.0
        assert math.isnan(extract_number("seven"))

    def test_extract_json_prefers_fenced_block(self):
        ok, data = extract_json('noise ```json\n{"a": 1}\n``` more')
        assert ok and data == {"a": 1}

    def test_extract_json_finds_embedded_array(self):
        ok, data = extract_json('Sure! [{"a": 1}, {"a": 2}] Enjoy.')
        assert ok and data == [{"a": 1}, {"a": 2}]

    def test_truncated_array_is_repaired(self):
        text = '[{"a": 1}, {"a": 2}, {"a": '
        assert repair_truncated_json_array(text) == '[{"a": 1}, {"a": 2}]'
        ok, data = extract_json(text)
        assert ok and data == [{"a": 1}, {"a": 2}]

    def test_unparseable_text(self):
        assert extract_json("no json here") == (False, None)


class TestExecutors:
    """Executors called directly with a hand-built context."""

    def test_template(self):
        execute = create_executor({"type": "template", "template": "{{a}}-{{b}}"})
        result = asyncio.run(execute(ExecutionContext(inputs={"a": 1, "b": "x"})))
        assert result.data == {"result": "1-x"}

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown executor type: nope"):
            create_executor({"type": "nope"})

    def test_custom_factory(self):
        def factory(config):
            async def execute(ctx):
                return ExecutionResult.ok(config["value"])
            return execute

        register_executor_factory("constant", factory)
        assert has_executor_type("constant")
        result = asyncio.run(create_executor({"type": "constant", "value": 7})(ExecutionContext(inputs={})))
        assert result.data == 7

    def test_llm_without_provider(self):
        execute = create_executor({"type": "llm-agent", "user_prompt_template": "hi"})
        ctx = ExecutionContext(inputs={}, providers=ProviderRegistry())
        result = asyncio.run(execute(ctx))
        assert result.error == "No model selected"

    def test_llm_empty_prompt(self):
        execute = create_executor({"type": "llm-agent", "user_prompt_template": "{{topic}}"})
        ctx = ExecutionContext(inputs={}, providers=registry_with(EchoLLM()))
        assert asyncio.run(execute(ctx)).error == "User prompt is empty"

    def test_llm_parameter_precedence(self):
        provider = EchoLLM()
        execute = create_executor({
            "type": "llm-agent",
            "system_prompt": "Be {{mood}}",
            "user_prompt_template": "{{topic}}",
            "default_params": {"temperature": 0.2, "max_tokens": 100},
        })
        ctx = ExecutionContext(
            inputs={"topic": "tides", "mood": "brief"},
            model_config={"params": {"temperature": 0.9}, "model_id": "small"},
            providers=registry_with(provider),
        )

        result = asyncio.run(execute(ctx))

        request = provider.requests[0]
        assert result.data == "tides"
        assert request.system_prompt == "Be brief"
        assert request.temperature == 0.9
        assert request.max_tokens == 100
        assert request.model == "small"

    def test_llm_answers_latest_user_message(self):
        provider = EchoLLM()
        execute = create_executor({"type": "llm-agent", "user_prompt_template": "first prompt"})
        chat = [
            {"role": "user", "content": "first prompt"},
            {"role": "assistant", "content": "an answer"},
            {"role": "user", "content": "shorter please"},
        ]
        ctx = ExecutionContext(inputs={}, chat_context=chat, providers=registry_with(provider))

        asyncio.run(execute(ctx))

        assert provider.requests[0].prompt == "shorter please"
        assert provider.requests[0].config["history"] == chat[:-1]

    def test_llm_json_parse_failure(self):
        execute = create_executor({"type": "llm-agent", "user_prompt_template": "go", "parse_as": "json"})
        ctx = ExecutionContext(inputs={}, providers=registry_with(EchoLLM(reply="not json")))
        assert asyncio.run(execute(ctx)).error == "Failed to parse JSON response"

    def test_explicit_provider_wins(self):
        chosen = EchoLLM(reply="chosen")
        execute = create_executor({"type": "llm-agent", "user_prompt_template": "go"})
        ctx = ExecutionContext(
            inputs={},
            model_config={"provider": "echo"},
            providers=registry_with(chosen),
        )
        assert asyncio.run(execute(ctx)).data == "chosen"

    def test_media_requires_credentials(self):
        execute = create_executor({"type": "media", "mode": "image-generation"})
        registry = registry_with(StubImages())
        registry.set_default_provider(ProviderCategory.IMAGE, "images")
        result = asyncio.run(execute(ExecutionContext(inputs={"prompt": "a cat"}, providers=registry)))
        assert result.error == "No credentials configured for images"

    def test_media_returns_gallery_items(self):
        provider = StubImages()
        provider.config.api_key = "sk-test"
        execute = create_executor({"type": "media", "mode": "image-generation"})
        ctx = ExecutionContext(inputs={"prompt": "a cat"}, providers=registry_with(provider))

        result = asyncio.run(execute(ctx))

        assert [item["src"] for item in result.data] == ["a.png", "b.png"]
        assert all(item["id"].startswith("gen-") for item in result.data)
        assert result.data[0]["caption"] == "a cat"

    def test_http_executor(self):
        resp = MagicMock(status=200)
        resp.json = AsyncMock(return_value={"temp": 21})
        session = MagicMock()
        session.request.return_value.__aenter__.return_value = resp
        execute = create_executor({"type": "http", "url": "https://example.test/{{city}}", "output_key": "weather"})

        with patch("synnia.recipes.executors.aiohttp.ClientSession") as session_cls:
            session_cls.return_value.__aenter__.return_value = session
            result = asyncio.run(execute(ExecutionContext(inputs={"city": "Oslo"})))

        assert result.data == {"weather": {"temp": 21}}
        session.request.assert_called_once_with("GET", "https://example.test/Oslo", data=None, headers={})

    def test_http_error_status(self):
        resp = MagicMock(status=404, reason="Not Found")
        session = MagicMock()
        session.request.return_value.__aenter__.return_value = resp
        execute = create_executor({"type": "http", "url": "https://example.test"})

        with patch("synnia.recipes.executors.aiohttp.ClientSession") as session_cls:
            session_cls.return_value.__aenter__.return_value = session
            result = asyncio.run(execute(ExecutionContext(inputs={})))

        assert result.error == "HTTP 404: Not Found"

    def test_delegate_refuses_nested_delegates(self):
        recipes = RecipeRegistry()
        inner = create_recipe_from_manifest({
            **parse_manifest(MANIFEST),
            "id": "inner",
            "executor": {"type": "delegate", "recipe": "tagline"},
        })
        recipes.register(inner)
        execute = create_executor({"type": "delegate", "recipe": "inner"})

        result = asyncio.run(execute(ExecutionContext(inputs={}, recipes=recipes)))

        assert result.error == "Delegate target 'inner' is itself a delegate"

    def test_delegate_unknown_target(self):
        execute = create_executor({"type": "delegate", "recipe": "ghost"})
        result = asyncio.run(execute(ExecutionContext(inputs={}, recipes=RecipeRegistry())))
        assert result.error == "Recipe not found: ghost"


class TestOutputSynthesis:
    """Node specs built from an output config."""

    def test_collection_gets_one_node(self, engine):
        specs = build_nodes_from_config(
            [{"name": "a"}, {"name": "b"}],
            OutputConfig(node="selector", title="Names ({{count}})"),
            engine.node_types,
        )
        assert len(specs) == 1
        assert specs[0].data["title"] == "Names (2)"
        assert specs[0].data["collapsed"] is False
        assert specs[0].position == "below"

    def test_items_are_chained(self, engine):
        specs = build_nodes_from_config(
            [{"title": "x"}, {"title": "y"}],
            OutputConfig(node="form"),
            engine.node_types,
        )
        assert [s.data["title"] for s in specs] == ["#1", "#2"]
        assert [s.docked_to for s in specs] == [None, "$prev"]
        assert all(s.data["collapsed"] for s in specs)

    def test_scalar_result_is_one_item(self, engine):
        specs = build_nodes_from_config("hello", OutputConfig(node="text", collapsed=False), engine.node_types)
        assert len(specs) == 1
        assert specs[0].data["content"] == "hello"
        assert specs[0].data["collapsed"] is False

    def test_unknown_node_type(self, engine):
        assert build_nodes_from_config([1], OutputConfig(node="hologram"), engine.node_types) == []
