"""
Recipe Executors - Factories that turn executor config into coroutines.

Each manifest names an executor `type`; the matching factory receives
the executor config and returns `async execute(ctx) -> ExecutionResult`.

Built-in types:
- template: `{{key}}` interpolation into one output key
- llm-agent: Prompt templates sent to a language-model provider
- media: Image or video generation through a media provider
- http: Templated HTTP request
- delegate: Run another registered recipe (single level)
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import Any, Callable

import aiohttp

from synnia.providers.base import (
    ComputeProvider,
    ProviderCategory,
    ProviderError,
    ProviderInput,
    ProviderResult,
)
from synnia.providers.registry import get_registry
from synnia.recipes.registry import get_recipe_registry
from synnia.recipes.types import ExecutionContext, ExecutionResult, Executor
from synnia.recipes.utils import extract_json, extract_text, extract_value, interpolate


logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[dict[str, Any]], Executor]

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def resolve_provider(
    ctx: ExecutionContext,
    category: ProviderCategory,
    capability: str | None = None,
) -> ComputeProvider | None:
    """
    Provider for a run.

    An explicit `provider` in the node's model config wins; otherwise the
    registry's default for the category.
    """
    registry = ctx.providers if ctx.providers is not None else get_registry()
    provider_id = ctx.model_config.get("provider")
    if provider_id:
        return registry.get_provider(provider_id)
    return registry.resolve_provider(category, capability)


async def call_provider(provider: ComputeProvider, request: ProviderInput) -> ProviderResult:
    """Execute a provider request; provider errors become failed results."""
    try:
        return await provider.execute(request)
    except ProviderError as e:
        logger.warning("Provider '%s' failed: %s", provider.id, e)
        return ProviderResult.failure(str(e))


# ============================================================================
# template
# ============================================================================

def create_template_executor(config: dict[str, Any]) -> Executor:
    template = config.get("template", "")
    output_key = config.get("output_key") or "result"

    async def execute(ctx: ExecutionContext) -> ExecutionResult:
        return ExecutionResult.ok({output_key: interpolate(template, ctx.inputs)})

    return execute


# ============================================================================
# llm-agent
# ============================================================================

def create_llm_agent_executor(config: dict[str, Any]) -> Executor:
    """
    Language-model executor.

    Config keys: system_prompt, user_prompt_template, parse_as (json or
    text), temperature, max_tokens, default_params, capability.
    """
    system_template = config.get("system_prompt") or ""
    user_template = config.get("user_prompt_template") or ""
    parse_as = "json" if config.get("parse_as") == "json" else "text"
    default_params = config.get("default_params") or {}

    async def execute(ctx: ExecutionContext) -> ExecutionResult:
        provider = resolve_provider(ctx, ProviderCategory.LLM, config.get("capability"))
        if provider is None:
            return ExecutionResult.fail("No model selected")

        system_prompt = interpolate(system_template, ctx.inputs)
        user_prompt = ""
        if ctx.chat_context:
            # Follow-up turn: answer the latest user message
            for message in reversed(ctx.chat_context):
                if message.get("role") == "user":
                    user_prompt = message.get("content") or ""
                    break
        if not user_prompt:
            user_prompt = interpolate(user_template, ctx.inputs)
        if not user_prompt.strip():
            return ExecutionResult.fail("User prompt is empty")

        params = ctx.model_config.get("params") or {}
        request = ProviderInput(
            prompt=user_prompt,
            system_prompt=system_prompt or None,
            model=ctx.model_id,
            credentials=provider.credentials(),
            temperature=_first(
                params.get("temperature"),
                config.get("temperature"),
                default_params.get("temperature"),
                ctx.inputs.get("temperature"),
                DEFAULT_TEMPERATURE,
            ),
            max_tokens=_first(
                params.get("max_tokens"),
                config.get("max_tokens"),
                default_params.get("max_tokens"),
                ctx.inputs.get("max_tokens"),
                DEFAULT_MAX_TOKENS,
            ),
            json_mode=parse_as == "json" and params.get("json_mode") is not False,
            config={"history": ctx.chat_context[:-1]} if ctx.chat_context else {},
        )

        result = await call_provider(provider, request)
        if not result.success:
            return ExecutionResult.fail(result.error or "LLM call failed")
        if result.was_truncated:
            logger.warning("Recipe output was truncated by the token limit")

        text = result.text if result.text is not None else extract_text(result.data)
        if parse_as != "json":
            return ExecutionResult.ok(text)

        ok, data = extract_json(text)
        if not ok:
            return ExecutionResult.fail("Failed to parse JSON response")
        return ExecutionResult.ok(data)

    return execute


# ============================================================================
# media
# ============================================================================

def to_gallery_images(images: list[dict[str, Any]], prompt: str) -> list[dict[str, Any]]:
    stamp = int(time.time() * 1000)
    return [
        {
            "id": f"gen-{stamp}-{i}",
            "src": image.get("url") or image.get("src") or "",
            "starred": False,
            "caption": prompt[:50],
        }
        for i, image in enumerate(images)
    ]


def create_media_executor(config: dict[str, Any]) -> Executor:
    """Image or video generation; `mode` selects the provider category."""
    category = ProviderCategory(config.get("mode") or ProviderCategory.IMAGE.value)

    async def execute(ctx: ExecutionContext) -> ExecutionResult:
        provider = resolve_provider(ctx, category, config.get("capability"))
        if provider is None:
            return ExecutionResult.fail("No model selected")
        if not provider.is_configured:
            return ExecutionResult.fail(f"No credentials configured for {provider.id}")

        prompt = extract_text(ctx.inputs.get("prompt"))
        negative = ctx.inputs.get("negative_prompt")
        image = ctx.inputs.get("image")
        request = ProviderInput(
            prompt=prompt,
            negative_prompt=extract_text(negative) if negative else None,
            images=[extract_value(image)] if image else [],
            model=ctx.model_id,
            config=dict(ctx.model_config.get("config") or {}),
            credentials=provider.credentials(),
        )

        result = await call_provider(provider, request)
        if not result.success:
            return ExecutionResult.fail(result.error or "Media generation failed")

        if result.images:
            return ExecutionResult.ok(to_gallery_images(result.images, prompt))
        if result.video_url:
            return ExecutionResult.ok({"video_url": result.video_url})
        return ExecutionResult.ok(result.data)

    return execute


# ============================================================================
# http
# ============================================================================

def create_http_executor(config: dict[str, Any]) -> Executor:
    """
    Templated HTTP request.

    Config keys: url, method, headers, body, response_type (json or
    text), output_key.
    """
    method = (config.get("method") or "GET").upper()
    output_key = config.get("output_key") or "response"
    response_type = config.get("response_type") or "json"

    async def execute(ctx: ExecutionContext) -> ExecutionResult:
        url = interpolate(config.get("url", ""), ctx.inputs)
        headers = {k: interpolate(v, ctx.inputs) for k, v in (config.get("headers") or {}).items()}
        body = None
        if config.get("body") and method != "GET":
            body = interpolate(config["body"], ctx.inputs)
            headers.setdefault("Content-Type", "application/json")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(method, url, data=body, headers=headers) as resp:
                    if resp.status >= 400:
                        return ExecutionResult.fail(f"HTTP {resp.status}: {resp.reason}")
                    if response_type == "text":
                        data = await resp.text()
                    else:
                        data = await resp.json(content_type=None)
        except aiohttp.ClientError as e:
            return ExecutionResult.fail(str(e) or "HTTP request failed")

        return ExecutionResult.ok({output_key: data})

    return execute


# ============================================================================
# delegate
# ============================================================================

def create_delegate_executor(config: dict[str, Any]) -> Executor:
    """
    Run another recipe with this run's inputs.

    `inputs` maps target keys to templates over the caller's inputs.
    Delegation is one level deep.
    """
    target_id = config.get("recipe")
    mapping: dict[str, str] = config.get("inputs") or {}

    async def execute(ctx: ExecutionContext) -> ExecutionResult:
        recipes = ctx.recipes if ctx.recipes is not None else get_recipe_registry()
        target = recipes.get(target_id) if target_id else None
        if target is None:
            return ExecutionResult.fail(f"Recipe not found: {target_id}")
        if target.manifest is not None and target.manifest.executor_type == "delegate":
            return ExecutionResult.fail(f"Delegate target '{target_id}' is itself a delegate")

        inputs = {**target.defaults(), **ctx.inputs}
        inputs.update({key: interpolate(tpl, ctx.inputs) for key, tpl in mapping.items()})
        return await target.execute(dataclasses.replace(ctx, inputs=inputs, manifest=target.manifest))

    return execute


# ============================================================================
# Factory registry
# ============================================================================

_FACTORIES: dict[str, ExecutorFactory] = {
    "template": create_template_executor,
    "llm-agent": create_llm_agent_executor,
    "media": create_media_executor,
    "http": create_http_executor,
    "delegate": create_delegate_executor,
}


def register_executor_factory(executor_type: str, factory: ExecutorFactory) -> None:
    if executor_type in _FACTORIES:
        logger.warning("Executor type '%s' is being overwritten", executor_type)
    _FACTORIES[executor_type] = factory


def has_executor_type(executor_type: str) -> bool:
    return executor_type in _FACTORIES


def create_executor(config: dict[str, Any]) -> Executor:
    """
    Build an executor from its config.

    Raises:
        ValueError: Unknown executor type
    """
    executor_type = config.get("type")
    factory = _FACTORIES.get(executor_type)
    if factory is None:
        available = ", ".join(sorted(_FACTORIES))
        raise ValueError(f"Unknown executor type: {executor_type}. Available: {available}")
    return factory(config)
