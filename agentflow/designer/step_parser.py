"""
Step Parser — natural-language goal → linked step graph.

Deterministic: the same goal text and analysis always give the same
graph. The shape is always

    trigger (step-1) → one step per required function → success

with each node pointing only at its immediate successor. Functions
whose name matches the AI_WORTHY policy become `ai-agent` steps, the
rest plain `action` steps; nothing is ever dropped.

Also home to `check_step_graph`, the well-formedness rules the blueprint
validator applies to any step graph (parsed or hand-edited).
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Mapping, Optional, Sequence

from agentflow.designer.models import (
    TERMINAL_STEP_TYPES,
    AutomationStep,
    NextStep,
    StepType,
)
from agentflow.designer.policies import AI_WORTHY, WEBHOOK_TRIGGER

logger = logging.getLogger(__name__)

TRIGGER_STEP_ID = "step-1"
SUCCESS_STEP_ID = "step-success"
WEBHOOK_TRIGGER_LABEL = "Trigger: Webhook event"
SCHEDULED_TRIGGER_LABEL = "Trigger: Scheduled trigger"
SUCCESS_LABEL = "Complete"


def parse_steps(free_text: str, analysis: Any) -> list[AutomationStep]:
    """
    Build the initial step graph for a goal.

    Args:
        free_text: The user's goal, checked for webhook keywords.
        analysis: Anything exposing `required_functions` (a
            CapabilityAnalysis or BusinessContext) or a mapping with
            a `required_functions` / `requiredFunctions` key.

    Returns:
        Ordered steps: trigger, functions in input order, success.
    """
    functions = _required_functions(analysis)

    trigger_name = (
        WEBHOOK_TRIGGER_LABEL if WEBHOOK_TRIGGER.matches(free_text)
        else SCHEDULED_TRIGGER_LABEL
    )

    steps: list[AutomationStep] = [
        AutomationStep(
            id=TRIGGER_STEP_ID,
            step_number=1,
            type=StepType.TRIGGER,
            name=trigger_name,
        )
    ]

    for index, function in enumerate(functions):
        step_number = index + 2
        steps.append(AutomationStep(
            id=f"step-{step_number}",
            step_number=step_number,
            type=StepType.AI_AGENT if AI_WORTHY.matches(function) else StepType.ACTION,
            name=function,
        ))

    steps.append(AutomationStep(
        id=SUCCESS_STEP_ID,
        step_number=len(steps) + 1,
        type=StepType.SUCCESS,
        name=SUCCESS_LABEL,
    ))

    # Chain linearly; the success step stays terminal.
    for current, successor in zip(steps, steps[1:]):
        current.next_steps = [NextStep(step_id=successor.id)]

    logger.debug(
        "steps_parsed",
        extra={
            "step_count": len(steps),
            "ai_steps": sum(1 for s in steps if s.type == StepType.AI_AGENT),
            "trigger": trigger_name,
        },
    )
    return steps


def _required_functions(analysis: Any) -> list[str]:
    if analysis is None:
        return []
    if isinstance(analysis, Mapping):
        raw = analysis.get("required_functions", analysis.get("requiredFunctions"))
    else:
        raw = getattr(analysis, "required_functions", None)
    # Blank names still become steps; classification falls back to action.
    return [str(f) for f in (raw or [])]


# ---------------------------------------------------------------------------
# Graph well-formedness
# ---------------------------------------------------------------------------

def find_step(steps: Sequence[AutomationStep], step_id: str) -> Optional[AutomationStep]:
    return next((s for s in steps if s.id == step_id), None)


def reachable_ids(steps: Sequence[AutomationStep], start_id: str) -> set[str]:
    """Breadth-first walk over next_steps from `start_id`."""
    by_id = {s.id: s for s in steps}
    seen: set[str] = set()
    queue = deque([start_id])
    while queue:
        step_id = queue.popleft()
        if step_id in seen or step_id not in by_id:
            continue
        seen.add(step_id)
        queue.extend(edge.step_id for edge in by_id[step_id].next_steps)
    return seen


def check_step_graph(steps: Sequence[AutomationStep]) -> list[str]:
    """
    Return human-readable problems with a step graph (empty if sound).

    Checks unique ids and step numbers, a single trigger at step 1,
    resolvable next_steps, reachability from the trigger, and that only
    success / error-handler steps are terminal.
    """
    errors: list[str] = []
    if not steps:
        return errors

    seen_ids: set[str] = set()
    seen_numbers: set[int] = set()
    for step in steps:
        if step.id in seen_ids:
            errors.append(f"Duplicate step id {step.id}")
        seen_ids.add(step.id)
        if step.step_number in seen_numbers:
            errors.append(f"Duplicate step number {step.step_number}")
        seen_numbers.add(step.step_number)

    triggers = [s for s in steps if s.type == StepType.TRIGGER]
    if len(triggers) != 1:
        errors.append(f"Step graph must have exactly one trigger (found {len(triggers)})")
    for trigger in triggers:
        if trigger.step_number != 1:
            errors.append(f"Trigger step {trigger.id} must be step number 1")

    for step in steps:
        for edge in step.next_steps:
            if edge.step_id not in seen_ids:
                errors.append(f"Step {step.id} points to non-existent step {edge.step_id}")
        if step.is_terminal and step.type not in TERMINAL_STEP_TYPES:
            errors.append(
                f"Step {step.id} ({step.type}) has no next steps "
                f"but is not a success or error-handler step"
            )
        if step.type == StepType.SUCCESS and not step.is_terminal:
            errors.append(f"Success step {step.id} must not have next steps")

    if len(triggers) == 1:
        reachable = reachable_ids(steps, triggers[0].id)
        for step in steps:
            if step.id not in reachable:
                errors.append(f"Step {step.id} is not reachable from the trigger")

    return errors
