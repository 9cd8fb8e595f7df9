"""
Team designer for the legacy AI Workforce mode.

Turns the required business functions into one Specialist agent each,
plus an Operations Manager when the team is large enough to need one
(AI Workforce mode with three or more functions). Automation mode never
gets a manager.

Usage:
    analyzer = BusinessAnalyzer(context, DesignMode.AI_WORKFORCE)
    team = analyzer.design_team_structure()
    team.manager.id   # "manager-001"
"""

from __future__ import annotations

import logging

from agentflow.designer.models import (
    AgentDefinition,
    AgentType,
    BusinessContext,
    DesignMode,
    TeamDesign,
    WorkflowPattern,
)

logger = logging.getLogger(__name__)

MANAGER_ID = "manager-001"
MANAGER_THRESHOLD = 3

RESPONSIBILITIES: dict[str, list[str]] = {
    "Customer Support": [
        "Answer customer inquiries",
        "Handle returns and refunds",
        "Manage support tickets",
        "Escalate complex issues",
    ],
    "Inventory Management": [
        "Monitor stock levels",
        "Trigger reorder alerts",
        "Forecast demand",
        "Optimize inventory",
    ],
    "Marketing": [
        "Create marketing campaigns",
        "Manage social media",
        "Generate content",
        "Track campaign performance",
    ],
    "Order Processing": [
        "Process new orders",
        "Update order status",
        "Coordinate shipping",
        "Handle order modifications",
    ],
    "Analytics": [
        "Generate reports",
        "Track KPIs",
        "Analyze trends",
        "Provide insights",
    ],
}

TOOLS: dict[str, list[str]] = {
    "Customer Support": ["email_client", "knowledge_base", "ticket_system", "sentiment_analyzer"],
    "Inventory Management": ["inventory_tracker", "demand_forecaster", "reorder_calculator"],
    "Marketing": ["campaign_manager", "social_media_api", "content_generator", "analytics"],
    "Order Processing": ["order_manager", "shipping_api", "payment_processor"],
    "Analytics": ["data_analyzer", "report_generator", "dashboard", "metrics_tracker"],
}


def specialist_id(index: int) -> str:
    """0-based index → 'specialist-001'."""
    return f"specialist-{index + 1:03d}"


class BusinessAnalyzer:
    """Designs a manager/specialist team for a business context."""

    def __init__(self, business_context: BusinessContext, design_mode: DesignMode | str):
        self.business_context = business_context
        self.design_mode = DesignMode(design_mode)

    def design_team_structure(self) -> TeamDesign:
        functions = list(self.business_context.required_functions)
        has_manager = (
            self.design_mode == DesignMode.AI_WORKFORCE
            and len(functions) >= MANAGER_THRESHOLD
        )

        agents: list[AgentDefinition] = []
        if has_manager:
            agents.append(AgentDefinition(
                id=MANAGER_ID,
                type=AgentType.MANAGER,
                name="Operations Manager",
                role="Team Coordinator",
                responsibilities=[
                    "Task distribution and prioritization",
                    "Monitor team performance",
                    "Handle escalations",
                    "Generate reports",
                ],
                tools=["task_scheduler", "team_monitor", "report_generator"],
                manages=[specialist_id(i) for i in range(len(functions))],
            ))

        for index, function in enumerate(functions):
            agents.append(AgentDefinition(
                id=specialist_id(index),
                type=AgentType.SPECIALIST,
                name=f"{function} Agent",
                role=function,
                responsibilities=self.responsibilities_for(function),
                tools=self.tools_for(function),
                reports_to=MANAGER_ID if has_manager else None,
            ))

        logger.info(
            "team_designed",
            extra={
                "design_mode": self.design_mode.value,
                "has_manager": has_manager,
                "agent_count": len(agents),
            },
        )

        return TeamDesign(
            has_manager=has_manager,
            total_agents=len(agents),
            agents=agents,
            workflow_pattern=WorkflowPattern.PARALLEL if has_manager else WorkflowPattern.SEQUENTIAL,
            communication_pattern="hub_and_spoke" if has_manager else "sequential",
        )

    @staticmethod
    def responsibilities_for(function_name: str) -> list[str]:
        return list(RESPONSIBILITIES.get(function_name) or [
            f"Handle {function_name} tasks",
            f"Monitor {function_name} processes",
            f"Report {function_name} metrics",
        ])

    @staticmethod
    def tools_for(function_name: str) -> list[str]:
        return list(TOOLS.get(function_name) or ["generic_tool", "api_connector"])
