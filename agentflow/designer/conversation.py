"""
Conversation State Machine — the Designer Agent's guided protocol.

One user message in, one assistant response out. The stage decides
which handler runs:

    INITIAL → DIAGRAM_DRAFT → CLARIFICATION → RECOMMENDATIONS
            → CREDENTIALS → APPROVAL → COMPLETE

The protocol is a LangGraph StateGraph with one node per stage. A
handler either finishes the turn or returns a StageOutcome with
`delegate=True` after advancing the stage, in which case the graph
routes straight to the next stage's node within the same turn
(DIAGRAM_DRAFT → CLARIFICATION, RECOMMENDATIONS → CREDENTIALS).

DesignerStateMachine.step(state, message) is a pure fold: it never
mutates the state it is given. ConversationManager is the stateful
facade the hosting application talks to; it owns one session, turns
any failure into a fixed apology, and exposes get/load for persistence.

Usage:
    manager = ConversationManager(user_id="u-1", generator=router)
    greeting = manager.initialize_conversation()
    reply = await manager.process_user_message("Sync Shopify orders to Slack")
    store.save(manager.get_state().to_document())
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional, TypedDict, Union

from langgraph.graph import END, StateGraph

from agentflow.config.settings import DesignerSettings
from agentflow.designer.analyzer import CapabilityAnalyzer
from agentflow.designer.blueprint import AutomationBlueprint, WorkforceBlueprint
from agentflow.designer.blueprint_generator import (
    AnyBlueprint,
    ValidationReport,
    generate_automation_blueprint,
    generate_workforce_blueprint,
    validate_blueprint,
)
from agentflow.designer.credentials import (
    CredentialCollector,
    discover_integrations,
    format_scope_summary,
)
from agentflow.designer.models import (
    AutomationStep,
    BusinessContext,
    ConversationStage,
    DesignMode,
    MessageRole,
    StepType,
)
from agentflow.designer.policies import APPROVAL_PHRASES, COMPLETION_PHRASES
from agentflow.designer.prompts import DESIGNER_SYSTEM_PROMPT
from agentflow.designer.recommendations import format_recommendations, recommend
from agentflow.designer.state import ConversationState
from agentflow.designer.step_parser import parse_steps
from agentflow.designer.team import BusinessAnalyzer
from agentflow.exceptions import AgentFlowError
from agentflow.llm.router import TextGenerator
from agentflow.observability.logging_config import clear_session_id, set_session_id

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Fixed responses
# ---------------------------------------------------------------------------

GREETING = (
    "Hi! I'm your Designer Agent for Automation.\n\n"
    "What do you want to automate? "
    "(Describe your goal and I'll draft a diagram immediately)"
)

ERROR_RESPONSE = "I'm sorry, I encountered an error processing your message. Please try again."

TROUBLE_RESPONSE = (
    "I'm sorry, I'm having trouble processing your message right now. "
    "Could you please try again?"
)

ALREADY_COMPLETE_RESPONSE = (
    "Your automation blueprint is complete! The Builder Agent will now implement it."
)

RECOMMENDATIONS_TRANSITION = (
    "\n\nI have a few recommendations to make your automation more robust..."
)

READY_TO_FINALIZE_RESPONSE = (
    "Great! All credentials are saved. Ready to finalize this Automation blueprint?\n\n"
    'Just say "Yes, finalize it!" and I\'ll prepare the complete blueprint '
    "for the Builder Agent."
)


def draft_summary(steps: list[AutomationStep], integrations: list[str]) -> str:
    text = "Perfect! Here's my initial understanding:\n\n**Your Automation:**\n"
    for index, step in enumerate(steps, start=1):
        marker = " 🤖 (AI)" if step.type == StepType.AI_AGENT else ""
        text += f"{index}. {step.name}{marker}\n"
    text += f"\nI've drafted a {len(steps)}-step workflow for you. "
    if integrations:
        text += (
            f"\nLet me clarify one thing: For {integrations[0]}, which specific "
            "service do you use? (e.g., Gmail, SendGrid, Outlook, etc.)"
        )
    else:
        text += "\nDoes this flow look correct, or would you like me to adjust any steps?"
    return text


def credential_enumeration(integrations: list[str]) -> str:
    text = "Perfect! Now I need credentials for the following integrations:\n\n"
    for index, integration in enumerate(integrations, start=1):
        text += (
            f"{index}. **{integration}** - I'll collect the exact fields needed "
            "(API key, OAuth, etc.)\n"
        )
    text += (
        "\nPlease provide these credentials when ready, "
        "and I'll verify them for your automation."
    )
    return text


def approval_summary(state: ConversationState, blueprint: AnyBlueprint) -> str:
    integrations = ", ".join(state.required_integrations) or "None"

    if isinstance(blueprint, WorkforceBlueprint):
        return (
            "Perfect! Here's your AI Workforce summary:\n\n"
            "**Type:** AI Workforce (manager + specialist team)\n"
            f"**Total Agents:** {blueprint.team_structure.total_agents}\n"
            f"**Has Manager:** {'Yes' if blueprint.team_structure.has_manager else 'No'}\n"
            f"**Integrations:** {integrations}\n\n"
            "Everything looks good! Ready to finalize this AI Workforce blueprint?\n\n"
            'Just say "Yes, finalize it!" and I\'ll prepare everything '
            "for the Builder Agent."
        )

    steps = state.automation_steps
    ai_count = sum(1 for s in steps if s.type == StepType.AI_AGENT)
    functions = state.business_context.required_functions if state.business_context else []
    key_actions = ", ".join(functions[:3]) or "Various actions"
    trigger = steps[0].name if steps else "Not specified"
    return (
        "Perfect! Here's your Automation summary:\n\n"
        "**Type:** Automation (step-based workflow)\n"
        f"**Total Steps:** {len(steps)}\n"
        f"**AI-Powered Steps:** {ai_count}\n"
        f"**Integrations:** {integrations}\n\n"
        f"**Trigger:** {trigger}\n"
        f"**Key Actions:** {key_actions}\n\n"
        "Everything looks good! Ready to finalize this Automation blueprint?\n\n"
        'Just say "Yes, finalize it!" and I\'ll prepare everything for the Builder Agent.'
    )


def completion_summary(state: ConversationState) -> str:
    blueprint = state.blueprint
    if isinstance(blueprint, WorkforceBlueprint):
        return (
            "Perfect! Your AI Workforce blueprint is ready! 🎉\n\n"
            "**Blueprint Summary:**\n"
            "- Type: AI Workforce\n"
            f"- Agents: {len(blueprint.agents)}\n"
            f"- Integrations: {len(blueprint.integrations)}\n\n"
            "The Builder Agent will now set up your team with all the specified "
            "roles, tools, and communication patterns.\n\n"
            "You'll be able to monitor the build progress in real-time. "
            "This usually takes 2-5 minutes."
        )

    steps = state.automation_steps
    ai_count = sum(1 for s in steps if s.type == StepType.AI_AGENT)
    return (
        "Perfect! Your Automation blueprint is ready! 🎉\n\n"
        "**Blueprint Summary:**\n"
        "- Type: Automation\n"
        f"- Steps: {len(steps)}\n"
        f"- AI Agents: {ai_count}\n"
        f"- Integrations: {len(state.required_integrations)}\n\n"
        "The Builder Agent will now implement your automation with all the "
        "specified triggers, actions, and AI steps.\n\n"
        "You'll be able to monitor the build progress in real-time. "
        "This usually takes 2-5 minutes.\n\n"
        "Your automation will be ready to run!"
    )


# ---------------------------------------------------------------------------
# Graph plumbing
# ---------------------------------------------------------------------------

@dataclass
class StageOutcome:
    """
    What a stage handler produced.

    `delegate=True` means the handler advanced the stage and the next
    stage's handler must process the same message in this turn.
    """
    response: str = ""
    delegate: bool = False


@dataclass
class TurnResult:
    state: ConversationState
    response: str


class DesignerGraphState(TypedDict, total=False):
    conversation: ConversationState
    user_message: str
    response: str
    delegate: bool


StageHandler = Callable[[ConversationState, str], Awaitable[StageOutcome]]

NODE_BY_STAGE: dict[ConversationStage, str] = {
    stage: f"handle_{stage.value}" for stage in ConversationStage
}


def route_by_stage(graph_state: DesignerGraphState) -> str:
    return NODE_BY_STAGE[graph_state["conversation"].stage]


def route_after_turn(graph_state: DesignerGraphState) -> str:
    if graph_state.get("delegate"):
        return NODE_BY_STAGE[graph_state["conversation"].stage]
    return END


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class DesignerStateMachine:
    """
    Pure per-turn transition: (state, message) → (new state, response).

    Handlers receive a private working copy of the conversation and may
    mutate it freely; the caller's state is never touched.
    """

    def __init__(
        self,
        generator: TextGenerator,
        analyzer: Optional[CapabilityAnalyzer] = None,
        settings: Optional[DesignerSettings] = None,
    ):
        self.generator = generator
        self.analyzer = analyzer or CapabilityAnalyzer(generator)
        self.settings = settings or DesignerSettings()
        self._graph = self._build_graph()

    def _build_graph(self):
        handlers: dict[ConversationStage, StageHandler] = {
            ConversationStage.INITIAL: self.handle_initial,
            ConversationStage.DIAGRAM_DRAFT: self.handle_diagram_draft,
            ConversationStage.CLARIFICATION: self.handle_clarification,
            ConversationStage.RECOMMENDATIONS: self.handle_recommendations,
            ConversationStage.CREDENTIALS: self.handle_credentials,
            ConversationStage.APPROVAL: self.handle_approval,
            ConversationStage.COMPLETE: self.handle_complete,
        }

        graph = StateGraph(DesignerGraphState)
        for stage, handler in handlers.items():
            graph.add_node(NODE_BY_STAGE[stage], self._node(handler))

        targets = {name: name for name in NODE_BY_STAGE.values()}
        graph.set_conditional_entry_point(route_by_stage, targets)
        for name in NODE_BY_STAGE.values():
            graph.add_conditional_edges(name, route_after_turn, {**targets, END: END})

        return graph.compile()

    @staticmethod
    def _node(handler: StageHandler):
        async def run(graph_state: DesignerGraphState) -> dict[str, Any]:
            conversation = graph_state["conversation"].model_copy(deep=True)
            before = conversation.stage
            outcome = await handler(conversation, graph_state["user_message"])
            if conversation.stage != before:
                logger.info(
                    "conversation_stage_advanced",
                    extra={
                        "stage": before.value,
                        "next_stage": conversation.stage.value,
                    },
                )
            return {
                "conversation": conversation,
                "response": outcome.response,
                "delegate": outcome.delegate,
            }
        return run

    async def step(self, state: ConversationState, message: str) -> TurnResult:
        working = state.model_copy(deep=True)
        working.add_message(MessageRole.USER, message)

        result = await self._graph.ainvoke({
            "conversation": working,
            "user_message": message,
            "response": "",
            "delegate": False,
        })

        final: ConversationState = result["conversation"]
        response: str = result["response"]
        final.add_message(MessageRole.ASSISTANT, response)
        final.touch()
        return TurnResult(state=final, response=response)

    # ── Stage handlers ───────────────────────────────────────────────

    async def handle_initial(self, state: ConversationState, message: str) -> StageOutcome:
        try:
            analysis = await self.analyzer.analyze(message)
        except AgentFlowError as e:
            logger.warning(
                "analysis_failed_fallback",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            try:
                response = await self.generator.complete(
                    DESIGNER_SYSTEM_PROMPT, state.history(),
                )
            except AgentFlowError as fallback_error:
                logger.warning(
                    "fallback_generation_failed",
                    extra={"error": str(fallback_error)},
                )
                response = TROUBLE_RESPONSE
            return StageOutcome(response=response)

        context = analysis.to_business_context()
        if state.business_context is not None:
            context = state.business_context.refined_with(context)
        state.business_context = context
        state.automation_steps = parse_steps(message, analysis)
        state.stage = ConversationStage.DIAGRAM_DRAFT

        return StageOutcome(
            response=draft_summary(state.automation_steps, state.required_integrations),
        )

    async def handle_diagram_draft(self, state: ConversationState, message: str) -> StageOutcome:
        state.stage = ConversationStage.CLARIFICATION
        return StageOutcome(delegate=True)

    async def handle_clarification(self, state: ConversationState, message: str) -> StageOutcome:
        context = state.business_context.model_dump() if state.business_context else None
        response = await self.generator.complete(
            DESIGNER_SYSTEM_PROMPT, state.history(), context=context,
        )

        if state.required_integrations and len(state.automation_steps) > 2:
            state.stage = ConversationStage.RECOMMENDATIONS
            response += RECOMMENDATIONS_TRANSITION
        return StageOutcome(response=response)

    async def handle_recommendations(self, state: ConversationState, message: str) -> StageOutcome:
        if state.recommendations:
            # Already presented last turn; the reply is not interpreted.
            state.recommendations = []
            state.stage = ConversationStage.CREDENTIALS
            return StageOutcome(delegate=True)

        recommendations = recommend(state.automation_steps)
        if not recommendations:
            state.stage = ConversationStage.CREDENTIALS
            return StageOutcome(delegate=True)

        state.recommendations = recommendations
        return StageOutcome(response=format_recommendations(recommendations))

    async def handle_credentials(self, state: ConversationState, message: str) -> StageOutcome:
        integrations = state.required_integrations

        if COMPLETION_PHRASES.matches(message) or not integrations:
            blueprint = self.generate_blueprint(state)
            state.blueprint = blueprint
            state.discovered_integrations = []
            state.stage = ConversationStage.APPROVAL
            return StageOutcome(response=approval_summary(state, blueprint))

        state.discovered_integrations = discover_integrations(integrations)
        response = credential_enumeration(integrations)
        response += "\n\n" + CredentialCollector(
            state.discovered_integrations
        ).generate_credential_request()
        scopes = format_scope_summary(integrations)
        if scopes:
            response += "\n\n" + scopes
        return StageOutcome(response=response)

    async def handle_approval(self, state: ConversationState, message: str) -> StageOutcome:
        if COMPLETION_PHRASES.matches(message):
            return StageOutcome(response=READY_TO_FINALIZE_RESPONSE)

        if APPROVAL_PHRASES.matches(message):
            if state.blueprint is None:
                state.blueprint = self.generate_blueprint(state)
            state.stage = ConversationStage.COMPLETE
            logger.info(
                "blueprint_approved",
                extra={"workflow_id": state.blueprint.workflow_id},
            )
            return StageOutcome(response=completion_summary(state))

        context = {
            "business_context": (
                state.business_context.model_dump() if state.business_context else None
            ),
            "automation_steps": [s.model_dump(mode="json") for s in state.automation_steps],
        }
        response = await self.generator.complete(
            DESIGNER_SYSTEM_PROMPT, state.history(), context=context,
        )
        return StageOutcome(response=response)

    async def handle_complete(self, state: ConversationState, message: str) -> StageOutcome:
        return StageOutcome(response=ALREADY_COMPLETE_RESPONSE)

    # ── Blueprint ────────────────────────────────────────────────────

    def generate_blueprint(self, state: ConversationState) -> AnyBlueprint:
        """Fresh blueprint from the session's current facts; state is not modified."""
        if state.design_mode == DesignMode.AI_WORKFORCE:
            team = state.team_design or BusinessAnalyzer(
                state.business_context or BusinessContext(), state.design_mode,
            ).design_team_structure()
            return generate_workforce_blueprint(
                state.business_context, team, state.credentials, state.user_id,
            )
        return generate_automation_blueprint(
            state.business_context,
            state.automation_steps,
            state.credentials,
            state.user_id,
            ai_step_llm=self.settings.ai_step_llm,
        )


# ---------------------------------------------------------------------------
# Session facade
# ---------------------------------------------------------------------------

class ConversationManager:
    """
    Owns one design session.

    Not safe for concurrent calls on the same session; the host must
    serialise messages per session. Separate managers share nothing.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
        generator: Optional[TextGenerator] = None,
        *,
        analyzer: Optional[CapabilityAnalyzer] = None,
        settings: Optional[DesignerSettings] = None,
        state: Optional[ConversationState] = None,
    ):
        if generator is None:
            raise ValueError("ConversationManager requires a text generator")
        self.settings = settings or DesignerSettings()
        self.machine = DesignerStateMachine(generator, analyzer, self.settings)
        self._state = state.model_copy(deep=True) if state else ConversationState(
            session_id=session_id or str(uuid.uuid4()),
            user_id=user_id or self.settings.default_user_id,
        )

    @property
    def stage(self) -> ConversationStage:
        return self._state.stage

    def initialize_conversation(self) -> str:
        self._state.design_mode = DesignMode.AUTOMATION
        self._state.add_message(MessageRole.ASSISTANT, GREETING)
        self._state.touch()
        return GREETING

    async def process_user_message(self, message: str) -> str:
        set_session_id(self._state.session_id)
        try:
            logger.info(
                "user_message_received",
                extra={"stage": self._state.stage.value, "message_length": len(message)},
            )
            result = await self.machine.step(self._state, message)
            self._state = result.state
            return result.response
        except Exception as e:
            logger.error(
                "conversation_turn_failed",
                extra={
                    "stage": self._state.stage.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            failed = self._state.model_copy(deep=True)
            failed.add_message(MessageRole.USER, message)
            failed.add_message(MessageRole.ASSISTANT, ERROR_RESPONSE)
            failed.touch()
            self._state = failed
            return ERROR_RESPONSE
        finally:
            clear_session_id()

    def get_state(self) -> ConversationState:
        return self._state.model_copy(deep=True)

    def load_state(self, state: Union[ConversationState, Mapping[str, Any], str]) -> None:
        """Replace the whole session state; there is no partial update."""
        if isinstance(state, ConversationState):
            self._state = state.model_copy(deep=True)
        else:
            self._state = ConversationState.from_document(state)

    def generate_blueprint(self) -> AnyBlueprint:
        return self.machine.generate_blueprint(self._state)

    def validate_blueprint(
        self, blueprint: Union[AutomationBlueprint, WorkforceBlueprint, Mapping[str, Any], None] = None,
    ) -> ValidationReport:
        """Validate `blueprint`, or the session's own blueprint when omitted."""
        target = blueprint if blueprint is not None else self._state.blueprint
        if target is None:
            return ValidationReport(is_valid=False, errors=["No blueprint generated"])
        return validate_blueprint(target)
