"""
Designer data model — what a design session accumulates.

Pydantic models for the pieces the Conversation State Machine gathers
on its way to a blueprint: chat history, business facts, the step
graph (Automation mode) and the agent team (legacy AI Workforce mode).

All models serialise to plain JSON so a hosting application can store
them as an opaque document and restore them later.

Data flow:
    user goal text      → CapabilityAnalysis → BusinessContext
    BusinessContext     → parse_steps()      → list[AutomationStep]
    BusinessContext     → BusinessAnalyzer   → TeamDesign
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ConversationStage(str, Enum):
    """Guided protocol phases, in the only order they may be visited."""
    INITIAL = "initial"                  # Capture the automation goal
    DIAGRAM_DRAFT = "diagram_draft"      # Draft shown, forward to clarification
    CLARIFICATION = "clarification"      # Targeted follow-ups
    RECOMMENDATIONS = "recommendations"  # Advisory improvements
    CREDENTIALS = "credentials"          # Collect credential references
    APPROVAL = "approval"                # Blueprint generated, awaiting yes
    COMPLETE = "complete"                # Terminal

    @property
    def ordinal(self) -> int:
        return _STAGE_ORDER.index(self)

    def next(self) -> "ConversationStage":
        """The stage after this one (COMPLETE is its own successor)."""
        index = min(self.ordinal + 1, len(_STAGE_ORDER) - 1)
        return _STAGE_ORDER[index]


_STAGE_ORDER: tuple[ConversationStage, ...] = tuple(ConversationStage)


class DesignMode(str, Enum):
    AUTOMATION = "Automation"
    AI_WORKFORCE = "AI Workforce"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class StepType(str, Enum):
    """Closed set of step graph node kinds."""
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    AI_AGENT = "ai-agent"
    FILTER = "filter"
    SEARCH = "search"
    LOOP = "loop"
    VALIDATION = "validation"
    NOTIFICATION = "notification"
    DATA_TRANSFORM = "data-transform"
    INTEGRATION = "integration"
    ERROR_HANDLER = "error-handler"
    DELAY = "delay"
    SUCCESS = "success"


TERMINAL_STEP_TYPES = frozenset({StepType.SUCCESS.value, StepType.ERROR_HANDLER.value})


class RetryPolicyKind(str, Enum):
    IMMEDIATE = "immediate"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class AgentType(str, Enum):
    MANAGER = "Manager"
    SPECIALIST = "Specialist"
    INTEGRATION = "Integration"


class WorkflowPattern(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    CONDITIONAL = "conditional"


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    """One entry of the append-only conversation history."""
    model_config = ConfigDict(use_enum_values=True)

    role: MessageRole
    content: str


# ---------------------------------------------------------------------------
# Step Graph (Automation mode)
# ---------------------------------------------------------------------------

class RetryPolicy(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    policy: RetryPolicyKind = RetryPolicyKind.EXPONENTIAL
    max_attempts: int = Field(3, ge=1, le=20)
    backoff: Optional[str] = Field(None, description="e.g. '2s'")


class AIAgentSpec(BaseModel):
    """How an ai-agent step calls its model."""
    llm: str
    prompt: str
    goal: str
    tools: list[str] = Field(default_factory=list)


class FieldMapping(BaseModel):
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] = Field(default_factory=dict)


class StepConfig(BaseModel):
    integration: Optional[str] = None
    ai_agent: Optional[AIAgentSpec] = None
    mapping: Optional[FieldMapping] = None
    retry: Optional[RetryPolicy] = None
    timeout: Optional[int] = Field(None, ge=0, description="Milliseconds")


class NextStep(BaseModel):
    """An outgoing edge; `condition` labels a branch."""
    step_id: str
    condition: Optional[str] = None


class AutomationStep(BaseModel):
    """
    A node in the step graph.

    `step_number` is the 1-based position in default execution order
    (the trigger is always 1). A step with no `next_steps` is terminal.
    """
    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(..., min_length=1)
    step_number: int = Field(..., ge=1)
    type: StepType
    name: str
    description: Optional[str] = None
    config: Optional[StepConfig] = None
    next_steps: list[NextStep] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return not self.next_steps

    @property
    def has_retry(self) -> bool:
        return self.config is not None and self.config.retry is not None


# ---------------------------------------------------------------------------
# Business Context
# ---------------------------------------------------------------------------

class BusinessContext(BaseModel):
    """
    Structured facts about what the user wants automated.

    Populated once from the capability analysis; later refinements go
    through `refined_with`, which adds information but never drops it.
    """
    industry: Optional[str] = None
    business_type: Optional[str] = None
    platform: Optional[str] = None
    scale: Optional[str] = None
    primary_goals: list[str] = Field(default_factory=list)
    required_functions: list[str] = Field(default_factory=list)
    automation_opportunities: list[str] = Field(default_factory=list)
    required_integrations: list[str] = Field(default_factory=list)
    challenges: list[str] = Field(default_factory=list)

    def refined_with(self, other: "BusinessContext") -> "BusinessContext":
        """Merge `other` into a copy: fill empty scalars, union lists in order."""
        merged = self.model_copy(deep=True)
        for name in ("industry", "business_type", "platform", "scale"):
            if getattr(merged, name) is None and getattr(other, name) is not None:
                setattr(merged, name, getattr(other, name))
        for name in (
            "primary_goals", "required_functions", "automation_opportunities",
            "required_integrations", "challenges",
        ):
            current: list[str] = getattr(merged, name)
            for item in getattr(other, name):
                if item not in current:
                    current.append(item)
        return merged


# ---------------------------------------------------------------------------
# Team Design (legacy AI Workforce mode)
# ---------------------------------------------------------------------------

class AgentDefinition(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    type: AgentType
    name: str
    role: str
    responsibilities: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    reports_to: Optional[str] = None
    manages: list[str] = Field(default_factory=list)


class TeamDesign(BaseModel):
    """Optional single manager plus N specialists."""
    model_config = ConfigDict(use_enum_values=True)

    has_manager: bool
    total_agents: int = Field(..., ge=0)
    agents: list[AgentDefinition] = Field(default_factory=list)
    workflow_pattern: WorkflowPattern = WorkflowPattern.SEQUENTIAL
    communication_pattern: str = "sequential"

    @property
    def manager(self) -> Optional[AgentDefinition]:
        for agent in self.agents:
            if agent.type == AgentType.MANAGER:
                return agent
        return None

    @property
    def specialists(self) -> list[AgentDefinition]:
        return [a for a in self.agents if a.type == AgentType.SPECIALIST]

    @model_validator(mode="after")
    def validate_hierarchy(self) -> "TeamDesign":
        """Specialists report to the manager iff there is one."""
        managers = [a for a in self.agents if a.type == AgentType.MANAGER]
        if self.has_manager:
            if len(managers) != 1:
                raise ValueError(
                    f"has_manager requires exactly one Manager, found {len(managers)}"
                )
            manager_id = managers[0].id
            for agent in self.specialists:
                if agent.reports_to != manager_id:
                    raise ValueError(
                        f"Specialist {agent.id} must report to {manager_id}"
                    )
        else:
            if managers:
                raise ValueError("Team without a manager cannot contain a Manager agent")
            for agent in self.agents:
                if agent.reports_to is not None:
                    raise ValueError(
                        f"Agent {agent.id} reports to {agent.reports_to} "
                        f"but the team has no manager"
                    )
        return self


# ---------------------------------------------------------------------------
# Integrations, Credentials, Recommendations
# ---------------------------------------------------------------------------

class CredentialRequirement(BaseModel):
    """A credential field we need the user to supply for a platform."""
    name: str
    description: str = ""


class DiscoveredIntegration(BaseModel):
    platform: str
    credentials: list[CredentialRequirement] = Field(default_factory=list)


class CredentialReference(BaseModel):
    """
    Pointer to secrets held in an external vault.

    Never carries a secret value: only which fields were supplied and
    the vault id they live under.
    """
    platform: str
    reference_id: str = Field(..., min_length=1)
    fields: list[str] = Field(default_factory=list)
    provided_at: Optional[datetime] = None

    @property
    def marker(self) -> str:
        return f"vault://{self.reference_id}"


class Recommendation(BaseModel):
    title: str
    rationale: str
    type: str  # "ai-agent" | "retry" | "alert"
    target_step_number: Optional[int] = None
