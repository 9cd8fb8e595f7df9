"""
Tests for the model router and routing configuration.

Covers:
1. LLMConfig: default routes, intent resolution, settings mapping
2. build_messages: system prompt, history, context note
3. ModelRouter: DeepSeek over httpx, Anthropic via injected client,
   fallback, failure wrapping, usage tracking

All tests use mocks: httpx.MockTransport for DeepSeek and a MagicMock
Anthropic client. No network calls.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import httpx
import pytest

from agentflow.config.settings import DesignerSettings, LLMSettings
from agentflow.exceptions import GenerationFailure
from agentflow.llm.llm_config import (
    CLAUDE_HAIKU,
    DEEPSEEK_CHAT,
    LLMConfig,
    LLMIntent,
    RouteConfig,
)
from agentflow.llm.router import (
    LLMResponse,
    ModelRouter,
    TextGenerator,
    build_messages,
    build_router,
)


# ===========================================================================
# Fixtures
# ===========================================================================

@pytest.fixture
def mock_anthropic():
    client = MagicMock()
    response = MagicMock()
    response.content = [MagicMock(text="Claude says hello")]
    response.usage = MagicMock(input_tokens=100, output_tokens=50)
    client.messages.create.return_value = response
    return client


def _deepseek_transport(requests: list, status: int = 200, body: dict | None = None):
    payload = body if body is not None else {
        "model": "deepseek-chat",
        "choices": [{"message": {"role": "assistant", "content": "DeepSeek says hello"}}],
        "usage": {"prompt_tokens": 12, "completion_tokens": 7},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, json=payload)

    return httpx.MockTransport(handler)


def _anthropic_only() -> LLMConfig:
    return LLMConfig({
        LLMIntent.CONVERSATION: RouteConfig(intent=LLMIntent.CONVERSATION, primary=CLAUDE_HAIKU),
    })


# ===========================================================================
# LLMConfig
# ===========================================================================

class TestLLMConfig:
    def test_default_routes_use_deepseek(self):
        config = LLMConfig()
        assert config.get_model_for_intent(LLMIntent.CONVERSATION).provider == "deepseek"
        analysis = config.get_model_for_intent(LLMIntent.ANALYSIS)
        assert analysis.temperature == 0.3
        assert analysis.max_tokens == 1000

    def test_string_intent_resolves(self):
        assert LLMConfig().get_route("analysis").intent == LLMIntent.ANALYSIS

    def test_unknown_intent_falls_back_to_conversation(self):
        assert LLMConfig().get_route("poetry").intent == LLMIntent.CONVERSATION

    def test_from_settings_maps_temperatures(self):
        config = LLMConfig.from_settings(LLMSettings(
            conversation_temperature=0.5, analysis_temperature=0.1,
        ))
        assert config.get_model_for_intent(LLMIntent.CONVERSATION).temperature == 0.5
        assert config.get_model_for_intent(LLMIntent.ANALYSIS).temperature == 0.1

    def test_from_settings_fallback(self):
        config = LLMConfig.from_settings(LLMSettings(fallback_provider="anthropic"))
        route = config.get_route(LLMIntent.CONVERSATION)
        assert route.fallback is not None
        assert route.fallback.model == CLAUDE_HAIKU.model
        assert config.providers() == {"deepseek", "anthropic"}

    def test_list_routes(self):
        routes = LLMConfig().list_routes()
        assert {r["intent"] for r in routes} == {"conversation", "analysis"}
        assert routes[0]["primary"] == DEEPSEEK_CHAT.display_name


# ===========================================================================
# build_messages
# ===========================================================================

class TestBuildMessages:
    def test_system_then_history(self):
        built = build_messages("SYS", [{"role": "user", "content": "hi"}])
        assert built == [
            {"role": "system", "content": "SYS"},
            {"role": "user", "content": "hi"},
        ]

    def test_context_appended_as_system_note(self):
        built = build_messages("SYS", [], context={"industry": "Retail"})
        assert built[-1]["role"] == "system"
        assert built[-1]["content"].startswith("Current conversation context: ")
        assert json.loads(built[-1]["content"].split(": ", 1)[1]) == {"industry": "Retail"}

    def test_no_context_note_when_empty(self):
        assert len(build_messages("SYS", [], context=None)) == 1


# ===========================================================================
# ModelRouter
# ===========================================================================

class TestModelRouterDeepSeek:
    @pytest.mark.asyncio
    async def test_complete_posts_chat_completion(self):
        requests: list[httpx.Request] = []
        router = ModelRouter(
            api_keys={"deepseek": "sk-test"}, transport=_deepseek_transport(requests),
        )

        text = await router.complete("SYS", [{"role": "user", "content": "hello"}])

        assert text == "DeepSeek says hello"
        request = requests[0]
        assert str(request.url) == "https://api.deepseek.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body["model"] == "deepseek-chat"
        assert body["messages"][0] == {"role": "system", "content": "SYS"}
        assert body["temperature"] == 0.8

    @pytest.mark.asyncio
    async def test_tracks_usage(self):
        router = ModelRouter(api_keys={"deepseek": "k"}, transport=_deepseek_transport([]))
        await router.complete("SYS", [], intent=LLMIntent.ANALYSIS)

        assert router.call_count == 1
        assert isinstance(router.last_response, LLMResponse)
        assert router.last_response.total_tokens == 19
        assert router.last_response.intent == "analysis"
        assert router.last_response.is_fallback is False

    @pytest.mark.asyncio
    async def test_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-env")
        requests: list[httpx.Request] = []
        router = ModelRouter(transport=_deepseek_transport(requests))
        await router.complete("SYS", [])
        assert requests[0].headers["Authorization"] == "Bearer sk-env"

    @pytest.mark.asyncio
    async def test_missing_key_raises(self, monkeypatch):
        monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
        router = ModelRouter(transport=_deepseek_transport([]))
        with pytest.raises(GenerationFailure, match="DEEPSEEK_API_KEY"):
            await router.complete("SYS", [])

    @pytest.mark.asyncio
    async def test_http_error_status_wrapped(self):
        router = ModelRouter(
            api_keys={"deepseek": "k"},
            transport=_deepseek_transport([], status=503, body={"error": "busy"}),
        )
        with pytest.raises(GenerationFailure) as exc_info:
            await router.complete("SYS", [])
        assert exc_info.value.status_code == 503
        assert exc_info.value.provider == "deepseek"

    @pytest.mark.asyncio
    async def test_empty_choices_wrapped(self):
        router = ModelRouter(
            api_keys={"deepseek": "k"},
            transport=_deepseek_transport([], body={"choices": []}),
        )
        with pytest.raises(GenerationFailure, match="No response"):
            await router.complete("SYS", [])

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        router = ModelRouter(api_keys={"deepseek": "k"}, transport=httpx.MockTransport(handler))
        with pytest.raises(GenerationFailure, match="request failed"):
            await router.complete("SYS", [])


class TestModelRouterAnthropic:
    @pytest.mark.asyncio
    async def test_folds_system_messages(self, mock_anthropic):
        router = ModelRouter(_anthropic_only(), anthropic_client=mock_anthropic)

        text = await router.complete(
            "SYS",
            [
                {"role": "assistant", "content": "Hi! What do you want to automate?"},
                {"role": "user", "content": "Sync orders"},
            ],
            context={"industry": "Retail"},
        )

        assert text == "Claude says hello"
        kwargs = mock_anthropic.messages.create.call_args.kwargs
        assert kwargs["system"].startswith("SYS")
        assert "Current conversation context" in kwargs["system"]
        # Leading assistant greeting is dropped; the API wants a user turn first.
        assert kwargs["messages"] == [{"role": "user", "content": "Sync orders"}]

    @pytest.mark.asyncio
    async def test_missing_client_raises(self):
        router = ModelRouter(_anthropic_only())
        with pytest.raises(GenerationFailure, match="not configured"):
            await router.complete("SYS", [{"role": "user", "content": "x"}])

    @pytest.mark.asyncio
    async def test_sdk_error_wrapped(self, mock_anthropic):
        mock_anthropic.messages.create.side_effect = RuntimeError("overloaded")
        router = ModelRouter(_anthropic_only(), anthropic_client=mock_anthropic)
        with pytest.raises(GenerationFailure, match="overloaded"):
            await router.complete("SYS", [{"role": "user", "content": "x"}])


class TestFallback:
    @pytest.mark.asyncio
    async def test_falls_back_to_anthropic(self, mock_anthropic):
        config = LLMConfig({
            LLMIntent.CONVERSATION: RouteConfig(
                intent=LLMIntent.CONVERSATION, primary=DEEPSEEK_CHAT, fallback=CLAUDE_HAIKU,
            ),
        })
        router = ModelRouter(
            config,
            anthropic_client=mock_anthropic,
            api_keys={"deepseek": "k"},
            transport=_deepseek_transport([], status=500, body={}),
        )

        text = await router.complete("SYS", [{"role": "user", "content": "x"}])

        assert text == "Claude says hello"
        assert router.last_response.is_fallback is True
        assert router.last_response.provider == "anthropic"

    @pytest.mark.asyncio
    async def test_both_fail_raises_fallback_error(self, mock_anthropic):
        mock_anthropic.messages.create.side_effect = RuntimeError("also down")
        config = LLMConfig({
            LLMIntent.CONVERSATION: RouteConfig(
                intent=LLMIntent.CONVERSATION, primary=DEEPSEEK_CHAT, fallback=CLAUDE_HAIKU,
            ),
        })
        router = ModelRouter(
            config,
            anthropic_client=mock_anthropic,
            api_keys={"deepseek": "k"},
            transport=_deepseek_transport([], status=500, body={}),
        )

        with pytest.raises(GenerationFailure) as exc_info:
            await router.complete("SYS", [{"role": "user", "content": "x"}])
        assert exc_info.value.provider == "anthropic"
        assert router.call_count == 0


class TestBuildRouter:
    def test_router_satisfies_protocol(self):
        assert isinstance(ModelRouter(), TextGenerator)

    def test_deepseek_only_skips_anthropic_client(self):
        router = build_router(DesignerSettings())
        assert router.config.providers() == {"deepseek"}
        assert router._anthropic is None
