"""
Recommendation Engine — advisory improvements for a step graph.

Rules run per step, in graph order, each independently of the others:

    email action      → "Add AI Email Summarizer" after that step
    action w/o retry  → "Add Retry with Exponential Backoff" for that step

then once for the whole graph:

    no error-handler  → "Add Slack Alert on Failure"

The list is cut to the first MAX_RECOMMENDATIONS in evaluation order.
Recommendations are shown to the user but never merged into the graph.
"""

from __future__ import annotations

from typing import Sequence

from agentflow.designer.models import AutomationStep, Recommendation, StepType
from agentflow.designer.policies import EMAIL_STEP

MAX_RECOMMENDATIONS = 3


def recommend(steps: Sequence[AutomationStep]) -> list[Recommendation]:
    """Propose up to three improvements for `steps`, in a stable order."""
    recommendations: list[Recommendation] = []

    for step in steps:
        if step.type != StepType.ACTION:
            continue

        if EMAIL_STEP.matches(step.name):
            recommendations.append(Recommendation(
                title="Add AI Email Summarizer",
                rationale="Automatically summarize email threads before processing",
                type="ai-agent",
                target_step_number=step.step_number,
            ))

        if not step.has_retry:
            recommendations.append(Recommendation(
                title="Add Retry with Exponential Backoff",
                rationale=f"Ensure {step.name} succeeds even if temporary failures occur",
                type="retry",
                target_step_number=step.step_number,
            ))

    if not any(step.type == StepType.ERROR_HANDLER for step in steps):
        recommendations.append(Recommendation(
            title="Add Slack Alert on Failure",
            rationale="Get notified immediately when automation fails",
            type="alert",
        ))

    return recommendations[:MAX_RECOMMENDATIONS]


def format_recommendations(recommendations: Sequence[Recommendation]) -> str:
    """Render the numbered list the designer shows the user."""
    text = f"I have {len(recommendations)} recommendations to improve your automation:\n\n"
    for index, rec in enumerate(recommendations, start=1):
        text += f"{index}. **{rec.title}**\n   {rec.rationale}\n\n"
    text += 'Would you like to add any of these? (Just say the number, or "skip" to continue)'
    return text
