"""
ConversationState — one design session, as a persistable document.

The hosting application stores this verbatim and hands it back on the
next turn; there is no partial-update API. Round-tripping through
to_document()/from_document() reproduces the state exactly.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, Field

from agentflow.designer.blueprint import Blueprint
from agentflow.designer.models import (
    AutomationStep,
    BusinessContext,
    ChatMessage,
    ConversationStage,
    CredentialReference,
    DesignMode,
    DiscoveredIntegration,
    MessageRole,
    Recommendation,
    TeamDesign,
    utc_now,
)


class ConversationState(BaseModel):
    session_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = "default-user"
    stage: ConversationStage = ConversationStage.INITIAL
    design_mode: DesignMode = DesignMode.AUTOMATION
    messages: list[ChatMessage] = Field(default_factory=list)

    business_context: Optional[BusinessContext] = None
    automation_steps: list[AutomationStep] = Field(default_factory=list)
    team_design: Optional[TeamDesign] = None

    # platform -> vault reference metadata, never secret values
    credentials: dict[str, CredentialReference] = Field(default_factory=dict)

    # Transient working lists
    discovered_integrations: list[DiscoveredIntegration] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)

    blueprint: Optional[Blueprint] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def required_integrations(self) -> list[str]:
        if self.business_context is None:
            return []
        return list(self.business_context.required_integrations)

    def add_message(self, role: MessageRole | str, content: str) -> None:
        self.messages.append(ChatMessage(role=role, content=content))

    def touch(self) -> None:
        self.updated_at = utc_now()

    def history(self) -> list[dict[str, str]]:
        """Messages as plain role/content dicts for the text generator."""
        return [{"role": m.role, "content": m.content} for m in self.messages]

    def to_document(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_document(cls, document: Union[str, bytes, Mapping[str, Any]]) -> "ConversationState":
        if isinstance(document, (str, bytes)):
            return cls.model_validate_json(document)
        return cls.model_validate(dict(document))
