"""
Diagram derivation — steps or agents → ReactFlow nodes and edges.

Pure and deterministic: the same input always gives the same diagram,
so a blueprint's diagram can be regenerated at any time. Where the
rendered cards show performance figures, fixed placeholder values are
used.

Layouts:
    Automation:               start → step → step → ... → end, left to right
    AI Workforce + manager:   manager on top, specialists in a square grid
    AI Workforce, no manager: specialists left to right, chained
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from agentflow.designer.blueprint import (
    BlueprintAgent,
    DiagramEdge,
    DiagramNode,
    DiagramPosition,
    ReactFlowDiagram,
)
from agentflow.designer.models import AgentType, AutomationStep, StepType


# ---------------------------------------------------------------------------
# Palettes & icons
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Palette:
    primary: str
    secondary: str
    accent: str


NEUTRAL_PALETTE = Palette(primary="#6b7280", secondary="#4b5563", accent="#9ca3af")

# (name, keywords, palette); first keyword hit in table order wins.
INDUSTRY_PALETTES: tuple[tuple[str, tuple[str, ...], Palette], ...] = (
    ("e-commerce", ("e-commerce", "ecommerce"),
     Palette(primary="#3b82f6", secondary="#1d4ed8", accent="#60a5fa")),
    ("healthcare", ("healthcare", "health"),
     Palette(primary="#10b981", secondary="#059669", accent="#34d399")),
    ("finance", ("finance", "financial", "fintech"),
     Palette(primary="#8b5cf6", secondary="#7c3aed", accent="#a78bfa")),
    ("education", ("education",),
     Palette(primary="#f59e0b", secondary="#d97706", accent="#fbbf24")),
)

STEP_ICONS: dict[str, str] = {
    StepType.TRIGGER.value: "🚀",
    StepType.CONDITION.value: "❓",
    StepType.ACTION.value: "⚡",
    StepType.FILTER.value: "🔍",
    StepType.AI_AGENT.value: "🤖",
    StepType.SEARCH.value: "🔎",
    StepType.LOOP.value: "🔄",
    StepType.VALIDATION.value: "✅",
    StepType.NOTIFICATION.value: "📢",
    StepType.DATA_TRANSFORM.value: "🔄",
    StepType.INTEGRATION.value: "🔗",
    StepType.ERROR_HANDLER.value: "⚠️",
    StepType.DELAY.value: "⏱️",
    StepType.SUCCESS.value: "🎉",
}
DEFAULT_ICON = "🎯"
MANAGER_ICON = "👔"

# Layout constants (pixels)
ORIGIN_X = 50
ROW_Y = 200
STEP_SPACING = 250
MANAGER_X = 400
MANAGER_Y = 50
GRID_SPACING = 200
GRID_TOP = 200
GRID_ROW_HEIGHT = 150
CHAIN_START_X = 100
CHAIN_SPACING = 200


def palette_for(industry: Optional[str]) -> Palette:
    """Pick the palette whose keyword appears in `industry`; neutral otherwise."""
    lowered = (industry or "").lower()
    for _name, keywords, palette in INDUSTRY_PALETTES:
        if any(keyword in lowered for keyword in keywords):
            return palette
    return NEUTRAL_PALETTE


def icon_for(step_type: str) -> str:
    return STEP_ICONS.get(step_type, DEFAULT_ICON)


# ---------------------------------------------------------------------------
# Automation
# ---------------------------------------------------------------------------

def build_automation_diagram(
    steps: Sequence[AutomationStep],
    industry: Optional[str] = None,
) -> ReactFlowDiagram:
    colors = palette_for(industry)
    nodes: list[DiagramNode] = [
        DiagramNode(
            id="start-trigger",
            type="trigger-node",
            position=DiagramPosition(x=ORIGIN_X, y=ROW_Y),
            data={
                "label": "Start",
                "nodeType": "trigger",
                "icon": icon_for(StepType.TRIGGER.value),
                "color": colors.primary,
                "backgroundColor": colors.primary + "20",
                "borderColor": colors.primary,
                "status": "ready",
            },
        )
    ]
    edges: list[DiagramEdge] = []

    for index, step in enumerate(steps):
        is_ai = step.type == StepType.AI_AGENT
        nodes.append(DiagramNode(
            id=step.id,
            type="automation-node",
            position=DiagramPosition(x=ORIGIN_X + (index + 1) * STEP_SPACING, y=ROW_Y),
            data={
                "label": step.name,
                "nodeType": step.type,
                "stepNumber": step.step_number,
                "description": step.description,
                "icon": icon_for(step.type),
                "color": colors.accent if is_ai else colors.primary,
                "backgroundColor": colors.accent + "20",
                "borderColor": colors.secondary,
                "isAI": is_ai,
                "status": "active",
                "performance": {
                    "responseTime": "2.3s",
                    "successRate": "98.5%",
                    "uptime": "99.9%",
                },
            },
        ))
        if index < len(steps) - 1:
            successor = steps[index + 1]
            edges.append(DiagramEdge(
                id=f"flow-{step.id}-{successor.id}",
                source=step.id,
                target=successor.id,
                label="Data Flow",
                style={
                    "stroke": colors.secondary,
                    "strokeWidth": 3,
                    "strokeDasharray": "5,5",
                },
            ))

    nodes.append(DiagramNode(
        id="end-success",
        type="success-node",
        position=DiagramPosition(x=ORIGIN_X + (len(steps) + 1) * STEP_SPACING, y=ROW_Y),
        data={
            "label": "Complete",
            "nodeType": "success",
            "icon": icon_for(StepType.SUCCESS.value),
            "color": colors.secondary,
            "backgroundColor": colors.secondary + "20",
            "borderColor": colors.secondary,
            "status": "completed",
        },
    ))

    if steps:
        edges.insert(0, DiagramEdge(
            id="start-flow",
            source="start-trigger",
            target=steps[0].id,
            label="Initiate",
            style={"stroke": colors.primary, "strokeWidth": 3},
        ))
        edges.append(DiagramEdge(
            id="end-flow",
            source=steps[-1].id,
            target="end-success",
            label="Complete",
            style={"stroke": colors.secondary, "strokeWidth": 3},
        ))

    return ReactFlowDiagram(nodes=nodes, edges=edges)


# ---------------------------------------------------------------------------
# AI Workforce
# ---------------------------------------------------------------------------

def _agent_node(
    agent: BlueprintAgent,
    node_type: str,
    x: float,
    y: float,
    color: str,
    icon: str,
    performance: dict,
) -> DiagramNode:
    return DiagramNode(
        id=agent.agent_id,
        type=node_type,
        position=DiagramPosition(x=x, y=y),
        data={
            "label": agent.name,
            "nodeType": "manager" if node_type == "manager-node" else "specialist",
            "role": agent.role,
            "icon": icon,
            "color": color,
            "backgroundColor": color + "20",
            "borderColor": color,
            "responsibilities": list(agent.responsibilities),
            "tools": list(agent.tools),
            "status": "active",
            "performance": performance,
        },
    )


def build_workforce_diagram(
    agents: Sequence[BlueprintAgent],
    has_manager: bool,
    industry: Optional[str] = None,
) -> ReactFlowDiagram:
    colors = palette_for(industry)
    nodes: list[DiagramNode] = []
    edges: list[DiagramEdge] = []

    manager = next((a for a in agents if a.agent_type == AgentType.MANAGER), None)

    if has_manager and manager is not None:
        specialists = [a for a in agents if a.agent_type == AgentType.SPECIALIST]
        nodes.append(_agent_node(
            manager, "manager-node", MANAGER_X, MANAGER_Y, colors.primary, MANAGER_ICON,
            {"responseTime": "1.8s", "successRate": "99.2%", "teamSize": len(specialists)},
        ))

        cols = max(1, math.ceil(math.sqrt(len(specialists))))
        start_x = MANAGER_X - ((cols - 1) * GRID_SPACING) / 2
        for index, specialist in enumerate(specialists):
            row, col = divmod(index, cols)
            nodes.append(_agent_node(
                specialist, "specialist-node",
                start_x + col * GRID_SPACING, GRID_TOP + row * GRID_ROW_HEIGHT,
                colors.secondary, DEFAULT_ICON,
                {"responseTime": "2.1s", "successRate": "97.8%", "tasksCompleted": 0},
            ))
            edges.append(DiagramEdge(
                id=f"manage-{manager.agent_id}-{specialist.agent_id}",
                source=manager.agent_id,
                target=specialist.agent_id,
                label="Manages",
                style={"stroke": colors.primary, "strokeWidth": 2, "strokeDasharray": "10,5"},
            ))
        return ReactFlowDiagram(nodes=nodes, edges=edges)

    for index, agent in enumerate(agents):
        nodes.append(_agent_node(
            agent, "specialist-node",
            CHAIN_START_X + index * CHAIN_SPACING, ROW_Y,
            colors.secondary, DEFAULT_ICON,
            {"responseTime": "2.0s", "successRate": "98.1%", "tasksCompleted": 0},
        ))
        if index < len(agents) - 1:
            successor = agents[index + 1]
            edges.append(DiagramEdge(
                id=f"collaborate-{agent.agent_id}-{successor.agent_id}",
                source=agent.agent_id,
                target=successor.agent_id,
                label="Collaborates",
                style={"stroke": colors.accent, "strokeWidth": 2, "strokeDasharray": "5,5"},
            ))

    return ReactFlowDiagram(nodes=nodes, edges=edges)
