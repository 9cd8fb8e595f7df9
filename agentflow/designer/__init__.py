"""
Designer Agent — conversation-driven blueprint compiler.

Turns a chat about "what do you want to automate?" into a validated
blueprint the Builder Agent can deploy, in five moves:

1. Analyze: free-text goal → business facts (CapabilityAnalyzer)
2. Draft: facts → linear step graph (parse_steps)
3. Refine: clarifying questions, advisory recommendations
4. Credentials: which fields and scopes each integration needs
5. Approve: generate, validate and hand off the blueprint

Usage:
    from agentflow.designer import ConversationManager

    manager = ConversationManager(user_id="u-1", generator=router)
    manager.initialize_conversation()
    reply = await manager.process_user_message("Summarize new Gmail threads into Notion")
"""

from agentflow.designer.blueprint import (
    AutomationBlueprint,
    WorkforceBlueprint,
    parse_blueprint,
)
from agentflow.designer.blueprint_generator import (
    ValidationReport,
    convert_to_builder_format,
    ensure_valid,
    generate_blueprint,
    validate_blueprint,
)
from agentflow.designer.conversation import (
    ConversationManager,
    DesignerStateMachine,
    TurnResult,
)
from agentflow.designer.models import ConversationStage, DesignMode
from agentflow.designer.state import ConversationState

__all__ = [
    "AutomationBlueprint",
    "ConversationManager",
    "ConversationStage",
    "ConversationState",
    "DesignMode",
    "DesignerStateMachine",
    "TurnResult",
    "ValidationReport",
    "WorkforceBlueprint",
    "convert_to_builder_format",
    "ensure_valid",
    "generate_blueprint",
    "parse_blueprint",
    "validate_blueprint",
]
