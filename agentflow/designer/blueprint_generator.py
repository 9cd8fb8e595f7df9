"""
Blueprint Generator — session facts → validated, frozen blueprint.

Pure functions with no retained state. Every call assigns a fresh
workflow id and timestamp, so regenerating from the same session gives
a new blueprint with identical content.

    generate_blueprint(context, steps | team, credentials, user_id)
        → AutomationBlueprint | WorkforceBlueprint
    validate_blueprint(blueprint | stored dict)
        → ValidationReport (never raises)
    convert_to_builder_format(blueprint)
        → camel-cased hand-off document for the Builder Agent

Usage:
    blueprint = generate_blueprint(state.business_context, state.automation_steps,
                                   state.credentials, state.user_id)
    report = validate_blueprint(blueprint)
    if not report.is_valid:
        logger.warning("blueprint_invalid", extra={"errors": report.errors})
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from agentflow.designer.blueprint import (
    AI_WORKFORCE,
    AutomationBlueprint,
    BlueprintAgent,
    BlueprintBusinessContext,
    BlueprintIntegration,
    CommunicationPattern,
    LoggingPolicy,
    MonitoringConfig,
    ResiliencePolicy,
    TeamStructure,
    TriggerSpec,
    WorkflowRule,
    WorkforceBlueprint,
)
from agentflow.designer.credentials import (
    build_credential_markers,
    normalize_platform,
    required_credential_fields,
)
from agentflow.designer.diagram import build_automation_diagram, build_workforce_diagram
from agentflow.designer.models import (
    AgentType,
    AIAgentSpec,
    AutomationStep,
    BusinessContext,
    CredentialReference,
    StepType,
    TeamDesign,
    utc_now,
)
from agentflow.designer.policies import WEBHOOK_TRIGGER_NAME
from agentflow.designer.step_parser import check_step_graph
from agentflow.exceptions import StateConsistencyViolation

logger = logging.getLogger(__name__)

AnyBlueprint = Union[AutomationBlueprint, WorkforceBlueprint]

DEFAULT_AI_STEP_LLM = "deepseek"

SERVICE_ENDPOINTS: dict[str, list[str]] = {
    "shopify": ["/admin/api/products", "/admin/api/orders", "/admin/api/inventory"],
    "woocommerce": ["/wp-json/wc/v3/products", "/wp-json/wc/v3/orders"],
    "openai": ["/v1/chat/completions", "/v1/embeddings"],
}
DEFAULT_ENDPOINTS = ["/api"]


def endpoints_for_service(service: str) -> list[str]:
    return list(SERVICE_ENDPOINTS.get(normalize_platform(service), DEFAULT_ENDPOINTS))


def _integration_id(index: int) -> str:
    return f"int-{index + 1:03d}"


def _snapshot(context: Optional[BusinessContext]) -> BlueprintBusinessContext:
    context = context or BusinessContext()
    return BlueprintBusinessContext(
        industry=context.industry or "General",
        business_type=context.business_type or "Custom",
        platform=context.platform,
        scale=context.scale,
        primary_goals=list(context.primary_goals),
    )


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def generate_automation_blueprint(
    business_context: Optional[BusinessContext],
    steps: Sequence[AutomationStep],
    credentials: Optional[Mapping[str, CredentialReference]] = None,
    user_id: str = "default-user",
    *,
    ai_step_llm: str = DEFAULT_AI_STEP_LLM,
    resilience: Optional[ResiliencePolicy] = None,
    logging_policy: Optional[LoggingPolicy] = None,
) -> AutomationBlueprint:
    context = business_context or BusinessContext()
    copied_steps = [step.model_copy(deep=True) for step in steps]

    ai_steps: dict[str, AIAgentSpec] = {}
    for step in copied_steps:
        if step.type != StepType.AI_AGENT:
            continue
        configured = step.config.ai_agent if step.config else None
        ai_steps[step.id] = AIAgentSpec(
            llm=(configured.llm if configured and configured.llm else ai_step_llm),
            prompt=(configured.prompt if configured and configured.prompt
                    else f"Execute {step.name}"),
            goal=(configured.goal if configured and configured.goal
                  else step.description or step.name),
            tools=list(configured.tools) if configured else [],
        )

    first_name = copied_steps[0].name if copied_steps else ""
    trigger = TriggerSpec(type="webhook" if WEBHOOK_TRIGGER_NAME in first_name else "scheduled")

    working_ids = [
        s.id for s in copied_steps
        if s.type not in (StepType.TRIGGER, StepType.SUCCESS)
    ]
    integrations = []
    for index, service in enumerate(context.required_integrations):
        consumers = [
            s.id for s in copied_steps
            if s.config and s.config.integration
            and normalize_platform(s.config.integration) == normalize_platform(service)
        ]
        integrations.append(BlueprintIntegration(
            integration_id=_integration_id(index),
            service=service,
            purpose=f"{service} integration",
            required_credentials=required_credential_fields(service),
            endpoints_used=endpoints_for_service(service),
            used_by=consumers or list(working_ids),
        ))

    snapshot = _snapshot(context)
    blueprint = AutomationBlueprint(
        workflow_id=str(uuid.uuid4()),
        workflow_name=f"{context.business_type or 'Custom'} Automation",
        created_at=utc_now(),
        user_id=user_id,
        business_context=snapshot,
        steps=copied_steps,
        ai_steps=ai_steps,
        triggers=trigger,
        integrations=integrations,
        credentials=build_credential_markers(credentials or {}),
        reactflow_diagram=build_automation_diagram(copied_steps, snapshot.industry),
        resilience=resilience or ResiliencePolicy(),
        logging=logging_policy or LoggingPolicy(),
    )

    logger.info(
        "blueprint_generated",
        extra={
            "workflow_id": blueprint.workflow_id,
            "blueprint_type": blueprint.type,
            "step_count": len(copied_steps),
            "ai_step_count": len(ai_steps),
        },
    )
    return blueprint


def _communication_patterns(team: TeamDesign) -> list[CommunicationPattern]:
    manager = team.manager
    if team.has_manager and manager is not None:
        return [
            CommunicationPattern(
                pattern_type="request_response",
                from_agent=manager.id,
                to_agent=specialist.id,
                trigger="task_assignment",
                flow=f"{manager.name} assigns task → {specialist.name} executes → Reports back",
            )
            for specialist in team.specialists
        ]

    patterns = []
    for current, successor in zip(team.agents, team.agents[1:]):
        patterns.append(CommunicationPattern(
            pattern_type="event_driven",
            from_agent=current.id,
            to_agent=successor.id,
            trigger="task_completion",
            flow=f"{current.name} completes → {successor.name} starts",
        ))
    return patterns


def _workflow_rules(has_manager: bool) -> list[WorkflowRule]:
    rules = []
    if has_manager:
        rules.append(WorkflowRule(
            rule_id="rule-001",
            condition='task_complexity == "high" OR error_count > 3',
            action="escalate_to_manager",
            priority="high",
        ))
    rules.append(WorkflowRule(
        rule_id="rule-002",
        condition="response_time > 10000ms",
        action="trigger_performance_alert",
        priority="medium",
    ))
    return rules


def generate_workforce_blueprint(
    business_context: Optional[BusinessContext],
    team: TeamDesign,
    credentials: Optional[Mapping[str, CredentialReference]] = None,
    user_id: str = "default-user",
) -> WorkforceBlueprint:
    context = business_context or BusinessContext()

    agents = [
        BlueprintAgent(
            agent_id=agent.id,
            agent_type=agent.type,
            name=agent.name,
            role=agent.role,
            responsibilities=list(agent.responsibilities),
            tools=list(agent.tools),
            decision_authority="high" if agent.type == AgentType.MANAGER else "medium",
            can_modify_workflow=agent.type == AgentType.MANAGER,
            reports_to=agent.reports_to,
            manages=list(agent.manages),
            collaborates_with=[] if team.has_manager else None,
        )
        for agent in team.agents
    ]
    worker_ids = [a.agent_id for a in agents if a.agent_type != AgentType.MANAGER]

    integrations = [
        BlueprintIntegration(
            integration_id=_integration_id(index),
            service=service,
            purpose=f"{service} integration",
            required_credentials=required_credential_fields(service),
            endpoints_used=endpoints_for_service(service),
            used_by=list(worker_ids),
        )
        for index, service in enumerate(context.required_integrations)
    ]

    snapshot = _snapshot(context)
    created_at = utc_now()
    blueprint = WorkforceBlueprint(
        workflow_id=str(uuid.uuid4()),
        workflow_name=f"{context.business_type or 'Custom'} AI Workforce",
        created_at=created_at,
        user_id=user_id,
        business_context=snapshot,
        team_structure=TeamStructure(
            has_manager=team.has_manager,
            total_agents=len(agents),
            agent_count_by_type=dict(Counter(a.agent_type for a in agents)),
        ),
        agents=agents,
        integrations=integrations,
        credentials=build_credential_markers(credentials or {}),
        communication_patterns=_communication_patterns(team),
        workflow_rules=_workflow_rules(team.has_manager),
        monitoring_config=MonitoringConfig(),
        reactflow_diagram=build_workforce_diagram(agents, team.has_manager, snapshot.industry),
        status="ready_for_build",
        approved_by_user=True,
        approval_timestamp=created_at,
    )

    logger.info(
        "blueprint_generated",
        extra={
            "workflow_id": blueprint.workflow_id,
            "blueprint_type": blueprint.type,
            "agent_count": len(agents),
            "has_manager": team.has_manager,
        },
    )
    return blueprint


def generate_blueprint(
    business_context: Optional[BusinessContext],
    steps_or_team: Union[Sequence[AutomationStep], TeamDesign],
    credentials: Optional[Mapping[str, CredentialReference]] = None,
    user_id: str = "default-user",
    **options: Any,
) -> AnyBlueprint:
    """
    Build the blueprint variant matching the design input.

    A TeamDesign produces a WorkforceBlueprint; a step list produces an
    AutomationBlueprint. Extra keyword options (ai_step_llm, resilience,
    logging_policy) only apply to Automation blueprints.
    """
    if isinstance(steps_or_team, TeamDesign):
        return generate_workforce_blueprint(
            business_context, steps_or_team, credentials, user_id,
        )
    return generate_automation_blueprint(
        business_context, list(steps_or_team), credentials, user_id, **options,
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@dataclass
class ValidationReport:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


MALFORMED_DOCUMENT = "Malformed blueprint document"


def _as_document(blueprint: Any) -> Optional[dict[str, Any]]:
    """Plain dict for a model or mapping; None for anything else."""
    if isinstance(blueprint, (AutomationBlueprint, WorkforceBlueprint)):
        return blueprint.model_dump(mode="json")
    if isinstance(blueprint, Mapping):
        return dict(blueprint)
    return None


def _validate_agents(document: Mapping[str, Any]) -> list[str]:
    agents = document.get("agents") or []
    if not isinstance(agents, list):
        return [MALFORMED_DOCUMENT]
    if not agents:
        return ["No agents defined"]

    errors: list[str] = []
    well_formed: list[Mapping[str, Any]] = []
    for index, agent in enumerate(agents, start=1):
        if isinstance(agent, Mapping):
            well_formed.append(agent)
        else:
            errors.append(f"Agent {index} is malformed")

    known: set[str] = set()
    for agent in well_formed:
        agent_id = agent.get("agent_id") or agent.get("id")
        if not isinstance(agent_id, str):
            continue
        if agent_id in known:
            errors.append(f"Duplicate agent id {agent_id}")
        known.add(agent_id)

    for agent in well_formed:
        agent_id = agent.get("agent_id") or agent.get("id")
        manager_ref = agent.get("reports_to")
        # Non-string references cannot name an agent, so they dangle.
        if manager_ref and (not isinstance(manager_ref, str) or manager_ref not in known):
            errors.append(f"Agent {agent_id} reports to non-existent agent {manager_ref}")
        managed_refs = agent.get("manages") or []
        if not isinstance(managed_refs, list):
            managed_refs = [managed_refs]
        for managed in managed_refs:
            if not isinstance(managed, str) or managed not in known:
                errors.append(f"Agent {agent_id} manages non-existent agent {managed}")
    return errors


def _validate_steps(document: Mapping[str, Any]) -> list[str]:
    raw_steps = document.get("steps") or []
    if not isinstance(raw_steps, list):
        return [MALFORMED_DOCUMENT]
    if not raw_steps:
        return ["No steps defined"]

    errors: list[str] = []
    steps: list[AutomationStep] = []
    for index, raw in enumerate(raw_steps, start=1):
        try:
            steps.append(AutomationStep.model_validate(raw))
        except ValidationError as e:
            errors.append(f"Step {index} is malformed: {e.error_count()} field error(s)")
    if errors:
        return errors
    return check_step_graph(steps)


def validate_blueprint(blueprint: Union[AnyBlueprint, Mapping[str, Any]]) -> ValidationReport:
    """
    Check required fields and referential integrity.

    Accepts a model or a stored plain dict. Never raises and never
    mutates its input.
    """
    document = _as_document(blueprint)
    if document is None:
        logger.info("blueprint_validation_failed", extra={"error_count": 1})
        return ValidationReport(is_valid=False, errors=[MALFORMED_DOCUMENT])
    errors: list[str] = []

    if not document.get("workflow_id"):
        errors.append("Missing workflow_id")
    if not document.get("workflow_name"):
        errors.append("Missing workflow_name")

    if document.get("type") == AI_WORKFORCE or (
        "type" not in document and "agents" in document
    ):
        errors.extend(_validate_agents(document))
    else:
        errors.extend(_validate_steps(document))

    report = ValidationReport(is_valid=not errors, errors=errors)
    if not report.is_valid:
        logger.info(
            "blueprint_validation_failed",
            extra={"workflow_id": document.get("workflow_id"), "error_count": len(errors)},
        )
    return report


def ensure_valid(blueprint: Union[AnyBlueprint, Mapping[str, Any]]) -> ValidationReport:
    """Like validate_blueprint, but raise StateConsistencyViolation on failure."""
    report = validate_blueprint(blueprint)
    if not report.is_valid:
        raise StateConsistencyViolation(
            f"Blueprint failed validation with {len(report.errors)} error(s)",
            errors=report.errors,
        )
    return report


# ---------------------------------------------------------------------------
# Builder hand-off
# ---------------------------------------------------------------------------

def convert_to_builder_format(blueprint: AnyBlueprint) -> dict[str, Any]:
    """Camel-cased document the Builder Agent consumes."""
    if isinstance(blueprint, WorkforceBlueprint):
        return {
            "workflowId": blueprint.workflow_id,
            "workflowName": blueprint.workflow_name,
            "agents": [
                {
                    "id": agent.agent_id,
                    "type": agent.agent_type,
                    "name": agent.name,
                    "role": agent.role,
                    "responsibilities": list(agent.responsibilities),
                    "tools": list(agent.tools),
                    "reportsTo": agent.reports_to,
                    "manages": list(agent.manages),
                }
                for agent in blueprint.agents
            ],
            "integrations": [
                {
                    "service": integration.service,
                    "credentials": list(integration.required_credentials),
                    "endpoints": list(integration.endpoints_used),
                }
                for integration in blueprint.integrations
            ],
            "communicationPatterns": [
                p.model_dump(mode="json") for p in blueprint.communication_patterns
            ],
            "rules": [r.model_dump(mode="json") for r in blueprint.workflow_rules],
            "monitoring": blueprint.monitoring_config.model_dump(mode="json"),
        }

    return {
        "workflowId": blueprint.workflow_id,
        "workflowName": blueprint.workflow_name,
        "steps": [s.model_dump(mode="json") for s in blueprint.steps],
        "aiSteps": {k: v.model_dump(mode="json") for k, v in blueprint.ai_steps.items()},
        "triggers": blueprint.triggers.model_dump(mode="json"),
        "integrations": [
            {
                "service": integration.service,
                "credentials": list(integration.required_credentials),
                "usedBy": list(integration.used_by),
            }
            for integration in blueprint.integrations
        ],
        "resilience": blueprint.resilience.model_dump(mode="json"),
    }
