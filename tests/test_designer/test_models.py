"""
Tests for the designer data model and keyword policies.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from agentflow.designer.models import (
    AgentDefinition,
    AgentType,
    AutomationStep,
    BusinessContext,
    ChatMessage,
    ConversationStage,
    CredentialReference,
    NextStep,
    RetryPolicy,
    StepConfig,
    StepType,
    TeamDesign,
)
from agentflow.designer.policies import (
    AI_WORTHY,
    APPROVAL_PHRASES,
    COMPLETION_PHRASES,
    KeywordPolicy,
    WEBHOOK_TRIGGER,
)


class TestConversationStage:
    def test_canonical_order(self):
        assert [s.value for s in ConversationStage] == [
            "initial", "diagram_draft", "clarification", "recommendations",
            "credentials", "approval", "complete",
        ]

    def test_ordinals_increase(self):
        ordinals = [s.ordinal for s in ConversationStage]
        assert ordinals == sorted(ordinals)
        assert ConversationStage.INITIAL.ordinal == 0

    def test_next(self):
        assert ConversationStage.INITIAL.next() == ConversationStage.DIAGRAM_DRAFT
        assert ConversationStage.APPROVAL.next() == ConversationStage.COMPLETE

    def test_complete_is_its_own_successor(self):
        assert ConversationStage.COMPLETE.next() == ConversationStage.COMPLETE


class TestAutomationStep:
    def test_enum_stored_as_value(self):
        step = AutomationStep(id="s", step_number=1, type=StepType.AI_AGENT, name="x")
        assert step.type == "ai-agent"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            AutomationStep(id="s", step_number=1, type="teleport", name="x")

    def test_step_number_is_one_based(self):
        with pytest.raises(ValidationError):
            AutomationStep(id="s", step_number=0, type="action", name="x")

    def test_terminal_and_retry(self):
        step = AutomationStep(id="s", step_number=2, type="action", name="Send")
        assert step.is_terminal
        assert not step.has_retry

        step = AutomationStep(
            id="s", step_number=2, type="action", name="Send",
            config=StepConfig(retry=RetryPolicy(policy="linear", max_attempts=5)),
            next_steps=[NextStep(step_id="t", condition="ok")],
        )
        assert not step.is_terminal
        assert step.has_retry
        assert step.config.retry.policy == "linear"


class TestBusinessContext:
    def test_refined_with_fills_and_unions(self):
        base = BusinessContext(
            industry="E-commerce",
            required_integrations=["Shopify"],
            required_functions=["Sync orders"],
        )
        other = BusinessContext(
            industry="Retail",
            business_type="Online store",
            required_integrations=["Shopify", "Slack"],
        )

        merged = base.refined_with(other)

        assert merged.industry == "E-commerce"       # existing scalar kept
        assert merged.business_type == "Online store"
        assert merged.required_integrations == ["Shopify", "Slack"]
        assert merged.required_functions == ["Sync orders"]
        assert base.required_integrations == ["Shopify"]  # original untouched


class TestTeamDesign:
    def _manager(self):
        return AgentDefinition(
            id="manager-001", type=AgentType.MANAGER, name="Ops", role="Lead",
            manages=["specialist-001"],
        )

    def test_valid_hierarchy(self):
        team = TeamDesign(
            has_manager=True,
            total_agents=2,
            agents=[
                self._manager(),
                AgentDefinition(id="specialist-001", type="Specialist", name="A", role="A",
                                reports_to="manager-001"),
            ],
        )
        assert team.manager.id == "manager-001"
        assert [a.id for a in team.specialists] == ["specialist-001"]

    def test_specialist_must_report_to_manager(self):
        with pytest.raises(ValidationError, match="must report to"):
            TeamDesign(
                has_manager=True,
                total_agents=2,
                agents=[
                    self._manager(),
                    AgentDefinition(id="specialist-001", type="Specialist", name="A", role="A"),
                ],
            )

    def test_no_manager_means_no_reports_to(self):
        with pytest.raises(ValidationError, match="no manager"):
            TeamDesign(
                has_manager=False,
                total_agents=1,
                agents=[AgentDefinition(id="specialist-001", type="Specialist", name="A",
                                        role="A", reports_to="manager-001")],
            )


class TestCredentialReference:
    def test_marker_is_opaque(self):
        ref = CredentialReference(platform="Slack", reference_id="cred-42", fields=["bot_token"])
        assert ref.marker == "vault://cred-42"

    def test_reference_id_required(self):
        with pytest.raises(ValidationError):
            CredentialReference(platform="Slack", reference_id="")


class TestChatMessage:
    def test_role_stored_as_value(self):
        assert ChatMessage(role="user", content="hi").role == "user"


class TestKeywordPolicies:
    def test_case_insensitive_substring(self):
        assert WEBHOOK_TRIGGER.matches("When my WEBHOOK fires")
        assert not WEBHOOK_TRIGGER.matches("Every morning at 9")

    def test_none_and_empty_never_match(self):
        assert not AI_WORTHY.matches(None)
        assert AI_WORTHY.first_match("") is None

    def test_first_match_in_table_order(self):
        policy = KeywordPolicy(name="t", keywords=("b", "a"))
        assert policy.first_match("a b") == "b"

    @pytest.mark.parametrize("text", [
        "Summarize inbound emails", "Classify tickets", "Generate replies",
        "Enrich leads", "Analyze sentiment",
    ])
    def test_ai_worthy(self, text):
        assert AI_WORTHY.matches(text)

    def test_completion_and_approval_phrases(self):
        assert COMPLETION_PHRASES.matches("all done, credentials provided")
        assert not COMPLETION_PHRASES.matches("yes please")
        assert APPROVAL_PHRASES.matches("Yes, finalize it!")
        assert APPROVAL_PHRASES.matches("let's build")
