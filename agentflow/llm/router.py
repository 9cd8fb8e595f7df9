"""
Model Router — the Designer Agent's text-generation capability.

Everything in the designer that needs an LLM goes through one narrow
method, `complete(system_prompt, messages, context)`. The router decides
which provider serves it (by intent), retries once on the fallback
profile, and normalises failures into GenerationFailure.

Providers:
- deepseek: OpenAI-compatible chat completions over httpx
- anthropic: an injected anthropic.Anthropic client

Usage:
    from agentflow.llm.router import ModelRouter

    router = ModelRouter(api_keys={"deepseek": "sk-..."})
    text = await router.complete(
        DESIGNER_SYSTEM_PROMPT,
        [{"role": "user", "content": "Sync Shopify orders to Notion"}],
        context={"industry": "E-commerce"},
    )
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol, Sequence, runtime_checkable

import httpx

from agentflow.config.settings import DesignerSettings
from agentflow.exceptions import GenerationFailure
from agentflow.llm.llm_config import LLMConfig, LLMIntent, ModelProfile

logger = logging.getLogger(__name__)

Message = Mapping[str, str]


# ---------------------------------------------------------------------------
# Capability Interface
# ---------------------------------------------------------------------------

@runtime_checkable
class TextGenerator(Protocol):
    """What the designer needs from an LLM. Fakes in tests implement this."""

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[Message],
        context: Any = None,
        *,
        intent: LLMIntent = LLMIntent.CONVERSATION,
    ) -> str:
        ...


# ---------------------------------------------------------------------------
# Response Type
# ---------------------------------------------------------------------------

@dataclass
class LLMResponse:
    """Unified response from any provider."""

    text: str
    provider: str
    model: str
    intent: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: float = 0.0
    is_fallback: bool = False

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


def build_messages(
    system_prompt: str,
    messages: Sequence[Message],
    context: Any = None,
) -> list[dict[str, str]]:
    """
    Assemble the provider-neutral message list:
    system prompt, then history, then an optional context note.
    """
    built = [{"role": "system", "content": system_prompt}]
    for message in messages:
        built.append({"role": message["role"], "content": message["content"]})
    if context:
        built.append({
            "role": "system",
            "content": f"Current conversation context: {json.dumps(context, default=str)}",
        })
    return built


# ---------------------------------------------------------------------------
# Model Router
# ---------------------------------------------------------------------------

class ModelRouter:
    """
    Routes designer LLM calls by intent with automatic fallback.

    Holds no conversation state: one router can serve many sessions.
    """

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        *,
        anthropic_client: Any = None,
        api_keys: Optional[dict[str, str]] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config or LLMConfig()
        self._anthropic = anthropic_client
        self._api_keys = dict(api_keys or {})
        self._timeout = timeout
        self._transport = transport

        self._call_count: int = 0
        self.last_response: Optional[LLMResponse] = None

    @property
    def call_count(self) -> int:
        return self._call_count

    @property
    def config(self) -> LLMConfig:
        return self._config

    # --- TextGenerator ---

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[Message],
        context: Any = None,
        *,
        intent: LLMIntent = LLMIntent.CONVERSATION,
    ) -> str:
        response = await self.route(
            intent, build_messages(system_prompt, messages, context),
        )
        return response.text

    # --- Routing ---

    async def route(
        self,
        intent: str | LLMIntent,
        messages: list[dict[str, str]],
    ) -> LLMResponse:
        """
        Send `messages` to the primary model for `intent`, falling back
        once if the primary fails.

        Raises:
            GenerationFailure: If every configured profile failed.
        """
        route = self._config.get_route(intent)
        intent_str = intent if isinstance(intent, str) else intent.value

        try:
            response = await self._call_model(route.primary, messages)
        except GenerationFailure as primary_error:
            logger.warning(
                "llm_primary_failed",
                extra={
                    "intent": intent_str,
                    "provider": route.primary.provider,
                    "model": route.primary.model,
                    "error": str(primary_error)[:200],
                },
            )
            if route.fallback is None:
                raise

            try:
                response = await self._call_model(route.fallback, messages)
            except GenerationFailure as fallback_error:
                logger.error(
                    "llm_fallback_also_failed",
                    extra={
                        "intent": intent_str,
                        "primary_error": str(primary_error)[:100],
                        "error": str(fallback_error)[:100],
                    },
                )
                raise fallback_error from primary_error
            response.is_fallback = True

        response.intent = intent_str
        self._call_count += 1
        self.last_response = response

        logger.info(
            "llm_routed",
            extra={
                "intent": intent_str,
                "provider": response.provider,
                "model": response.model,
                "tokens": response.total_tokens,
                "latency_ms": round(response.latency_ms, 1),
                "is_fallback": response.is_fallback,
            },
        )
        return response

    # --- Provider Adapters ---

    async def _call_model(
        self,
        profile: ModelProfile,
        messages: list[dict[str, str]],
    ) -> LLMResponse:
        if profile.provider == "deepseek":
            return await self._deepseek_call(profile, messages)
        elif profile.provider == "anthropic":
            return await self._anthropic_call(profile, messages)
        raise GenerationFailure(
            f"Unsupported provider: {profile.provider}",
            provider=profile.provider, model=profile.model,
        )

    async def _deepseek_call(
        self,
        profile: ModelProfile,
        messages: list[dict[str, str]],
    ) -> LLMResponse:
        """POST an OpenAI-compatible chat completion via httpx."""
        api_key = self._api_keys.get(profile.provider) or os.environ.get(
            profile.api_key_env or "DEEPSEEK_API_KEY", ""
        )
        if not api_key:
            raise GenerationFailure(
                f"{profile.api_key_env or 'DEEPSEEK_API_KEY'} is not configured",
                provider=profile.provider, model=profile.model,
            )

        start = time.monotonic()
        base_url = (profile.base_url or "https://api.deepseek.com/v1").rstrip("/")

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport,
            ) as client:
                resp = await client.post(
                    f"{base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {api_key}"},
                    json={
                        "model": profile.model,
                        "messages": messages,
                        "temperature": profile.temperature,
                        "max_tokens": profile.max_tokens,
                        "top_p": profile.top_p,
                    },
                )
        except httpx.HTTPError as e:
            raise GenerationFailure(
                f"DeepSeek request failed: {e}",
                provider=profile.provider, model=profile.model,
            ) from e

        if resp.status_code >= 400:
            raise GenerationFailure(
                f"DeepSeek API error: {resp.status_code} - {resp.text[:200]}",
                provider=profile.provider,
                model=profile.model,
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationFailure(
                "DeepSeek returned a non-JSON body",
                provider=profile.provider, model=profile.model,
                status_code=resp.status_code,
            ) from e

        choices = data.get("choices") or []
        if not choices:
            raise GenerationFailure(
                "No response from DeepSeek API",
                provider=profile.provider, model=profile.model,
                status_code=resp.status_code,
            )

        usage = data.get("usage") or {}
        return LLMResponse(
            text=(choices[0].get("message") or {}).get("content") or "",
            provider=profile.provider,
            model=data.get("model", profile.model),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            latency_ms=(time.monotonic() - start) * 1000,
        )

    async def _anthropic_call(
        self,
        profile: ModelProfile,
        messages: list[dict[str, str]],
    ) -> LLMResponse:
        """Call Claude. System messages are folded into `system`."""
        if self._anthropic is None:
            raise GenerationFailure(
                "Anthropic client not configured. "
                "Pass anthropic_client to ModelRouter().",
                provider=profile.provider, model=profile.model,
            )

        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        dialogue = [m for m in messages if m["role"] != "system"]
        # The Messages API wants the first turn to come from the user.
        while dialogue and dialogue[0]["role"] != "user":
            dialogue.pop(0)

        start = time.monotonic()
        try:
            response = self._anthropic.messages.create(
                model=profile.model,
                max_tokens=profile.max_tokens,
                temperature=profile.temperature,
                system=system,
                messages=dialogue,
            )
        except Exception as e:
            raise GenerationFailure(
                f"Anthropic request failed: {e}",
                provider=profile.provider, model=profile.model,
                status_code=getattr(e, "status_code", None),
            ) from e

        if not response.content:
            raise GenerationFailure(
                "Empty response from Anthropic",
                provider=profile.provider, model=profile.model,
            )

        return LLMResponse(
            text=response.content[0].text,
            provider=profile.provider,
            model=profile.model,
            input_tokens=getattr(response.usage, "input_tokens", 0),
            output_tokens=getattr(response.usage, "output_tokens", 0),
            latency_ms=(time.monotonic() - start) * 1000,
        )


def build_router(settings: DesignerSettings) -> ModelRouter:
    """Construct a router from settings, creating SDK clients only if needed."""
    config = LLMConfig.from_settings(settings.llm)

    anthropic_client = None
    if "anthropic" in config.providers():
        from anthropic import Anthropic

        anthropic_client = Anthropic()

    return ModelRouter(
        config,
        anthropic_client=anthropic_client,
        timeout=settings.llm.timeout_seconds,
    )
