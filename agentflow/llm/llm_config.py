"""
LLM Configuration — Model routing rules for the Designer Agent.

The designer makes two kinds of calls:
- conversation: free-text replies in the designer persona (warm, 0.8)
- analysis: structured JSON extraction from a goal description (cool, 0.3)

Each intent maps to a primary ModelProfile and an optional fallback.

Usage:
    from agentflow.llm.llm_config import LLMConfig, LLMIntent

    config = LLMConfig.from_settings(settings.llm)
    profile = config.get_model_for_intent(LLMIntent.ANALYSIS)
    # → ModelProfile(provider="deepseek", model="deepseek-chat", temperature=0.3, ...)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from agentflow.config.settings import LLMSettings


class LLMIntent(str, Enum):
    """Categories of designer work that may route to different models."""

    CONVERSATION = "conversation"  # Designer persona replies
    ANALYSIS = "analysis"          # Goal → structured JSON facts


@dataclass
class ModelProfile:
    """A specific model configuration for an LLM call."""

    provider: str           # "deepseek", "anthropic"
    model: str
    temperature: float = 0.7
    max_tokens: int = 2000
    top_p: float = 0.9
    base_url: Optional[str] = None   # Required for deepseek
    api_key_env: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.provider}/{self.model}"


@dataclass
class RouteConfig:
    """Routing rule: intent → primary model + optional fallback."""

    intent: LLMIntent
    primary: ModelProfile
    fallback: Optional[ModelProfile] = None
    description: str = ""


# ---------------------------------------------------------------------------
# Default Model Profiles
# ---------------------------------------------------------------------------

DEEPSEEK_CHAT = ModelProfile(
    provider="deepseek",
    model="deepseek-chat",
    temperature=0.8,
    max_tokens=2000,
    base_url="https://api.deepseek.com/v1",
    api_key_env="DEEPSEEK_API_KEY",
)

DEEPSEEK_ANALYSIS = replace(DEEPSEEK_CHAT, temperature=0.3, max_tokens=1000)

CLAUDE_HAIKU = ModelProfile(
    provider="anthropic",
    model="claude-3-5-haiku-20241022",
    temperature=0.3,
    max_tokens=2048,
)


DEFAULT_ROUTING: dict[LLMIntent, RouteConfig] = {
    LLMIntent.CONVERSATION: RouteConfig(
        intent=LLMIntent.CONVERSATION,
        primary=DEEPSEEK_CHAT,
        description="Designer persona: clarifications, approval chatter",
    ),
    LLMIntent.ANALYSIS: RouteConfig(
        intent=LLMIntent.ANALYSIS,
        primary=DEEPSEEK_ANALYSIS,
        description="Structured capability analysis of a goal description",
    ),
}


class LLMConfig:
    """
    Manages model routing configuration.

    Falls back to the CONVERSATION route for unknown intents.
    """

    def __init__(
        self,
        routing: Optional[dict[LLMIntent, RouteConfig]] = None,
    ):
        self._routing = routing or dict(DEFAULT_ROUTING)

    @classmethod
    def from_settings(cls, settings: LLMSettings) -> "LLMConfig":
        """Build both routes from the user-facing LLM settings block."""
        base = ModelProfile(
            provider=settings.provider,
            model=settings.model,
            top_p=settings.top_p,
            base_url=settings.base_url if settings.provider == "deepseek" else None,
            api_key_env=settings.api_key_env,
        )
        fallback: Optional[ModelProfile] = None
        if settings.fallback_provider:
            fallback = ModelProfile(
                provider=settings.fallback_provider,
                model=settings.fallback_model or _default_model(settings.fallback_provider),
                top_p=settings.top_p,
                base_url=settings.base_url if settings.fallback_provider == "deepseek" else None,
                api_key_env=settings.api_key_env,
            )

        def _tuned(profile: Optional[ModelProfile], temperature: float, max_tokens: int):
            if profile is None:
                return None
            return replace(profile, temperature=temperature, max_tokens=max_tokens)

        return cls({
            LLMIntent.CONVERSATION: RouteConfig(
                intent=LLMIntent.CONVERSATION,
                primary=_tuned(base, settings.conversation_temperature, settings.max_tokens),
                fallback=_tuned(fallback, settings.conversation_temperature, settings.max_tokens),
            ),
            LLMIntent.ANALYSIS: RouteConfig(
                intent=LLMIntent.ANALYSIS,
                primary=_tuned(base, settings.analysis_temperature, settings.analysis_max_tokens),
                fallback=_tuned(fallback, settings.analysis_temperature, settings.analysis_max_tokens),
            ),
        })

    def get_route(self, intent: str | LLMIntent) -> RouteConfig:
        """Get the routing config for an intent."""
        if isinstance(intent, str):
            try:
                intent = LLMIntent(intent)
            except ValueError:
                intent = LLMIntent.CONVERSATION

        return self._routing.get(intent, self._routing[LLMIntent.CONVERSATION])

    def get_model_for_intent(self, intent: str | LLMIntent) -> ModelProfile:
        return self.get_route(intent).primary

    def providers(self) -> set[str]:
        """Every provider any route may call (primary or fallback)."""
        names: set[str] = set()
        for route in self._routing.values():
            names.add(route.primary.provider)
            if route.fallback is not None:
                names.add(route.fallback.provider)
        return names

    def list_routes(self) -> list[dict[str, Any]]:
        """Return a summary of all configured routes."""
        return [
            {
                "intent": route.intent.value,
                "primary": route.primary.display_name,
                "fallback": route.fallback.display_name if route.fallback else None,
                "description": route.description,
            }
            for route in self._routing.values()
        ]


def _default_model(provider: str) -> str:
    return {
        "deepseek": DEEPSEEK_CHAT.model,
        "anthropic": CLAUDE_HAIKU.model,
    }.get(provider, DEEPSEEK_CHAT.model)
