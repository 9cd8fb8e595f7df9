"""
Blueprint — the terminal artifact handed to the Builder Agent.

A blueprint is a tagged sum type: the `type` field says which shape the
payload takes.

    AutomationBlueprint (type="Automation")
        steps + ai_steps + triggers + mappings + resilience/logging policy
    WorkforceBlueprint (type="AI Workforce")
        team_structure + agents + communication_patterns + workflow rules

Both share identity (fresh workflow_id per generation), a denormalised
business_context snapshot, integrations, opaque credential markers and
a derived ReactFlow diagram.

Blueprints are frozen: a new approval cycle produces a new object.
Referential integrity (reports_to, next_steps) is deliberately NOT
enforced at construction so that stored documents can be loaded and
re-validated; see blueprint_generator.validate_blueprint.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from agentflow.designer.models import AIAgentSpec, AutomationStep, RetryPolicy

AUTOMATION = "Automation"
AI_WORKFORCE = "AI Workforce"


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------

class BlueprintBusinessContext(BaseModel):
    """Snapshot copy of the session's business facts."""
    model_config = ConfigDict(frozen=True)

    industry: str
    business_type: str
    platform: Optional[str] = None
    scale: Optional[str] = None
    primary_goals: list[str] = Field(default_factory=list)


class BlueprintIntegration(BaseModel):
    model_config = ConfigDict(frozen=True)

    integration_id: str
    service: str
    purpose: str
    required_credentials: list[str] = Field(
        default_factory=list, description="Field names, never values",
    )
    endpoints_used: list[str] = Field(default_factory=list)
    used_by: list[str] = Field(
        default_factory=list, description="Consuming step or agent ids",
    )


class DiagramPosition(BaseModel):
    x: float
    y: float


class DiagramNode(BaseModel):
    id: str
    type: str
    position: DiagramPosition
    data: dict[str, Any] = Field(default_factory=dict)


class DiagramEdge(BaseModel):
    id: str
    source: str
    target: str
    type: str = "smoothstep"
    label: Optional[str] = None
    animated: bool = True
    style: dict[str, Any] = Field(default_factory=dict)


class ReactFlowDiagram(BaseModel):
    """Presentational projection of steps or agents; always re-derivable."""
    nodes: list[DiagramNode] = Field(default_factory=list)
    edges: list[DiagramEdge] = Field(default_factory=list)

    def node(self, node_id: str) -> Optional[DiagramNode]:
        return next((n for n in self.nodes if n.id == node_id), None)


# ---------------------------------------------------------------------------
# Automation payload
# ---------------------------------------------------------------------------

class TriggerSpec(BaseModel):
    type: Literal["webhook", "scheduled"]
    webhook: Optional[dict[str, Any]] = None  # filled in by the webhook service
    schedule: Optional[str] = None


class ResiliencePolicy(BaseModel):
    retries: RetryPolicy = Field(
        default_factory=lambda: RetryPolicy(
            policy="exponential", max_attempts=3, backoff="2s",
        )
    )
    fallbacks: list[str] = Field(default_factory=list)
    timeouts: dict[str, int] = Field(default_factory=lambda: {"default": 30000})


class LoggingPolicy(BaseModel):
    level: str = "info"
    redactions: list[str] = Field(
        default_factory=lambda: ["password", "secret", "token"],
    )
    metrics: list[str] = Field(
        default_factory=lambda: ["success_rate", "latency", "retry_count"],
    )


class SandboxPlan(BaseModel):
    """Sample payloads for 'Test Trigger' and expected outputs for dry runs."""
    sample_payloads: list[dict[str, Any]] = Field(default_factory=list)
    expected_outputs: list[dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Workforce payload
# ---------------------------------------------------------------------------

class BlueprintAgent(BaseModel):
    agent_id: str
    agent_type: str  # Manager | Specialist | Integration
    name: str
    role: str
    responsibilities: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    decision_authority: Literal["high", "medium", "low"] = "medium"
    can_modify_workflow: bool = False
    reports_to: Optional[str] = None
    manages: list[str] = Field(default_factory=list)
    collaborates_with: Optional[list[str]] = None


class TeamStructure(BaseModel):
    has_manager: bool
    total_agents: int
    agent_count_by_type: dict[str, int] = Field(default_factory=dict)


class CommunicationPattern(BaseModel):
    pattern_type: Literal["request_response", "event_driven", "broadcast"]
    from_agent: str
    to_agent: str
    trigger: str
    flow: str


class WorkflowRule(BaseModel):
    rule_id: str
    condition: str
    action: str
    priority: Literal["high", "medium", "low"]


class MonitoringConfig(BaseModel):
    health_check_interval: str = "30s"
    performance_metrics: list[str] = Field(
        default_factory=lambda: [
            "response_time", "success_rate", "task_completion_rate", "error_rate",
        ]
    )
    alert_thresholds: dict[str, float] = Field(
        default_factory=lambda: {
            "response_time_ms": 5000,
            "error_rate_percent": 5,
            "success_rate_percent": 95,
        }
    )


# ---------------------------------------------------------------------------
# Blueprint variants
# ---------------------------------------------------------------------------

class _BlueprintBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    workflow_id: str
    workflow_name: str
    created_at: datetime
    user_id: str
    business_context: BlueprintBusinessContext
    integrations: list[BlueprintIntegration] = Field(default_factory=list)
    credentials: dict[str, str] = Field(
        default_factory=dict, description="field name -> opaque vault marker",
    )
    reactflow_diagram: ReactFlowDiagram = Field(default_factory=ReactFlowDiagram)
    status: str = "draft"
    approved_by_user: bool = False
    approval_timestamp: Optional[datetime] = None


class AutomationBlueprint(_BlueprintBase):
    type: Literal["Automation"] = AUTOMATION
    steps: list[AutomationStep] = Field(default_factory=list)
    ai_steps: dict[str, AIAgentSpec] = Field(default_factory=dict)
    triggers: TriggerSpec
    mappings: dict[str, Any] = Field(default_factory=dict)
    resilience: ResiliencePolicy = Field(default_factory=ResiliencePolicy)
    logging: LoggingPolicy = Field(default_factory=LoggingPolicy)
    testing: SandboxPlan = Field(default_factory=SandboxPlan)


class WorkforceBlueprint(_BlueprintBase):
    type: Literal["AI Workforce"] = AI_WORKFORCE
    blueprint_version: str = "1.0"
    team_structure: TeamStructure
    agents: list[BlueprintAgent] = Field(default_factory=list)
    communication_patterns: list[CommunicationPattern] = Field(default_factory=list)
    workflow_rules: list[WorkflowRule] = Field(default_factory=list)
    monitoring_config: MonitoringConfig = Field(default_factory=MonitoringConfig)


Blueprint = Annotated[
    Union[AutomationBlueprint, WorkforceBlueprint],
    Field(discriminator="type"),
]

_BLUEPRINT_ADAPTER: TypeAdapter[Blueprint] = TypeAdapter(Blueprint)


def parse_blueprint(data: dict[str, Any] | str) -> AutomationBlueprint | WorkforceBlueprint:
    """Load a stored blueprint document (dict or JSON string) into its variant."""
    if isinstance(data, str):
        return _BLUEPRINT_ADAPTER.validate_json(data)
    return _BLUEPRINT_ADAPTER.validate_python(data)
