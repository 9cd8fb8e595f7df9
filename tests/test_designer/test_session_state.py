"""
Tests for ConversationState persistence.
"""

from __future__ import annotations

import json

import pytest

from agentflow.designer.blueprint import AutomationBlueprint, WorkforceBlueprint
from agentflow.designer.blueprint_generator import generate_blueprint
from agentflow.designer.models import (
    BusinessContext,
    ConversationStage,
    CredentialReference,
    DesignMode,
    MessageRole,
)
from agentflow.designer.recommendations import recommend
from agentflow.designer.state import ConversationState
from agentflow.designer.step_parser import parse_steps
from agentflow.designer.team import BusinessAnalyzer


@pytest.fixture
def context():
    return BusinessContext(
        industry="Healthcare",
        business_type="Clinic",
        required_functions=["Send appointment email", "Summarize notes"],
        required_integrations=["Gmail"],
    )


def _populated(context, mode=DesignMode.AUTOMATION) -> ConversationState:
    steps = parse_steps("webhook from booking tool", context)
    state = ConversationState(
        session_id="sess-42",
        user_id="user-7",
        stage=ConversationStage.APPROVAL,
        design_mode=mode,
        business_context=context,
        automation_steps=steps,
        credentials={
            "Gmail": CredentialReference(
                platform="Gmail", reference_id="vault-9",
                fields=["client_id", "client_secret", "refresh_token"],
            ),
        },
        recommendations=recommend(steps),
    )
    state.add_message(MessageRole.ASSISTANT, "Hi!")
    state.add_message("user", "Book appointments")
    if mode == DesignMode.AI_WORKFORCE:
        state.team_design = BusinessAnalyzer(
            context.model_copy(update={"required_functions": ["A", "B", "C"]}), mode,
        ).design_team_structure()
        state.blueprint = generate_blueprint(context, state.team_design, state.credentials)
    else:
        state.blueprint = generate_blueprint(context, steps, state.credentials)
    return state


class TestConversationStateDocument:
    def test_defaults(self):
        state = ConversationState()
        assert state.stage == ConversationStage.INITIAL
        assert state.design_mode == DesignMode.AUTOMATION
        assert state.session_id
        assert state.required_integrations == []
        assert ConversationState().session_id != state.session_id

    @pytest.mark.parametrize("mode", [DesignMode.AUTOMATION, DesignMode.AI_WORKFORCE])
    def test_round_trip_is_exact(self, context, mode):
        state = _populated(context, mode)

        restored = ConversationState.from_document(state.to_document())
        assert restored == state

    def test_blueprint_variant_survives(self, context):
        automation = ConversationState.from_document(_populated(context).to_document())
        workforce = ConversationState.from_document(
            _populated(context, DesignMode.AI_WORKFORCE).to_document()
        )
        assert isinstance(automation.blueprint, AutomationBlueprint)
        assert isinstance(workforce.blueprint, WorkforceBlueprint)

    def test_from_bytes_and_mapping(self, context):
        state = _populated(context)
        document = state.to_document()

        assert ConversationState.from_document(document.encode()) == state
        assert ConversationState.from_document(json.loads(document)) == state

    def test_document_holds_no_secret_values(self, context):
        document = json.loads(_populated(context).to_document())
        assert document["credentials"]["Gmail"]["reference_id"] == "vault-9"
        assert document["blueprint"]["credentials"]["gmail_client_id"] == "vault://vault-9"

    def test_history(self, context):
        state = _populated(context)
        assert state.history() == [
            {"role": "assistant", "content": "Hi!"},
            {"role": "user", "content": "Book appointments"},
        ]

    def test_touch_moves_updated_at(self):
        state = ConversationState()
        before = state.updated_at
        state.touch()
        assert state.updated_at >= before
        assert state.created_at <= state.updated_at
