"""
Pydantic settings schema for AgentFlow PRO.

A single optional YAML file (config/agentflow.yaml) tunes which model
the Designer Agent talks to and how. Everything has a working default,
so the file is only needed to deviate from DeepSeek defaults.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

SUPPORTED_PROVIDERS = ("deepseek", "anthropic")


class LLMSettings(BaseModel):
    """Which text-generation backend the designer uses, and how."""
    provider: str = Field(
        "deepseek", description="Primary provider: deepseek | anthropic",
    )
    model: str = Field("deepseek-chat")
    base_url: str = Field(
        "https://api.deepseek.com/v1",
        description="OpenAI-compatible base URL for the deepseek provider",
    )
    api_key_env: str = Field(
        "DEEPSEEK_API_KEY",
        description="Environment variable holding the provider API key",
    )
    fallback_provider: Optional[str] = None
    fallback_model: Optional[str] = None

    conversation_temperature: float = Field(0.8, ge=0.0, le=2.0)
    analysis_temperature: float = Field(0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(2000, ge=1)
    analysis_max_tokens: int = Field(1000, ge=1)
    top_p: float = Field(0.9, gt=0.0, le=1.0)
    timeout_seconds: float = Field(60.0, gt=0.0)

    @field_validator("provider", "fallback_provider")
    @classmethod
    def validate_provider(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.lower().strip()
        if v not in SUPPORTED_PROVIDERS:
            raise ValueError(
                f"Unsupported provider '{v}'. "
                f"Choose one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        return v


class DesignerSettings(BaseModel):
    """Top-level settings for the designer library and CLI."""
    llm: LLMSettings = Field(default_factory=LLMSettings)
    ai_step_llm: str = Field(
        "deepseek",
        description="LLM name written into Automation blueprint ai_steps",
    )
    default_user_id: str = Field("default-user", min_length=1)
