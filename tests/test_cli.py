"""
Tests for the agentflow command line.
"""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

import main
from agentflow.config.settings import DesignerSettings
from agentflow.designer import ConversationState, generate_blueprint
from agentflow.designer.models import BusinessContext, ConversationStage
from agentflow.designer.step_parser import parse_steps
from agentflow.llm.llm_config import LLMIntent

runner = CliRunner()

ANALYSIS = {
    "industry": "E-commerce",
    "businessType": "Online store",
    "requiredFunctions": ["Notify via Slack"],
    "requiredIntegrations": ["Shopify", "Slack"],
}


class FakeRouter:
    async def complete(self, system_prompt, messages, context=None, *, intent=LLMIntent.CONVERSATION):
        if intent == LLMIntent.ANALYSIS:
            return json.dumps(ANALYSIS)
        return "Got it."


@pytest.fixture
def fake_router(monkeypatch):
    monkeypatch.setattr(main, "load_settings", lambda path=None: DesignerSettings())
    monkeypatch.setattr(main, "build_router", lambda settings: FakeRouter())


@pytest.fixture
def blueprint_file(tmp_path):
    context = BusinessContext(
        industry="E-commerce",
        business_type="Online store",
        required_functions=["Notify via Slack"],
        required_integrations=["Slack"],
    )
    blueprint = generate_blueprint(context, parse_steps("webhook", context))
    path = tmp_path / "blueprint.json"
    path.write_text(blueprint.model_dump_json(), encoding="utf-8")
    return path


class TestPlatforms:
    def test_lists_registry(self):
        result = runner.invoke(main.app, ["platforms"])
        assert result.exit_code == 0
        assert "Credential Registry" in result.output
        assert "Slack" in result.output
        assert "HubSpot" in result.output


class TestValidate:
    def test_valid_blueprint(self, blueprint_file):
        result = runner.invoke(main.app, ["validate", str(blueprint_file)])
        assert result.exit_code == 0
        assert "Blueprint valid!" in result.output

    def test_invalid_blueprint(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text(json.dumps({"type": "Automation"}), encoding="utf-8")

        result = runner.invoke(main.app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "No steps defined" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(main.app, ["validate", str(tmp_path / "nope.json")])
        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_not_json(self, tmp_path):
        path = tmp_path / "notes.json"
        path.write_text("not json", encoding="utf-8")
        result = runner.invoke(main.app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Not valid JSON" in result.output


class TestDiagram:
    def test_shows_nodes_and_edges(self, blueprint_file):
        result = runner.invoke(main.app, ["diagram", str(blueprint_file)])
        assert result.exit_code == 0
        assert "Nodes (5)" in result.output
        assert "Edges (4)" in result.output
        assert "end-success" in result.output

    def test_unknown_document(self, tmp_path):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"type": "Spreadsheet"}), encoding="utf-8")
        result = runner.invoke(main.app, ["diagram", str(path)])
        assert result.exit_code == 1
        assert "Could not load blueprint" in result.output


class TestChat:
    def test_exit_immediately(self, fake_router):
        result = runner.invoke(main.app, ["chat"], input="exit\n")
        assert result.exit_code == 0
        assert "Designer Agent" in result.output

    def test_one_turn_saves_state(self, fake_router, tmp_path):
        state_file = tmp_path / "session.json"
        result = runner.invoke(
            main.app,
            ["chat", "--state-file", str(state_file), "--user-id", "user-3"],
            input="Shopify orders to Slack\nexit\n",
        )

        assert result.exit_code == 0
        assert "Your Automation" in result.output
        state = ConversationState.from_document(state_file.read_text(encoding="utf-8"))
        assert state.stage == ConversationStage.DIAGRAM_DRAFT
        assert state.user_id == "user-3"

    def test_resumes_from_state_file(self, fake_router, tmp_path):
        state_file = tmp_path / "session.json"
        state_file.write_text(
            ConversationState(session_id="resume-me", stage=ConversationStage.APPROVAL).to_document(),
            encoding="utf-8",
        )

        result = runner.invoke(
            main.app, ["chat", "--state-file", str(state_file)], input="exit\n",
        )
        assert result.exit_code == 0
        assert "resume-me" in result.output

    @pytest.mark.parametrize("content", ["{not json", json.dumps({"stage": "bogus"})])
    def test_corrupt_state_file(self, fake_router, tmp_path, content):
        state_file = tmp_path / "session.json"
        state_file.write_text(content, encoding="utf-8")

        result = runner.invoke(
            main.app, ["chat", "--state-file", str(state_file)], input="exit\n",
        )
        assert result.exit_code == 1
        assert "State File Error" in result.output
        assert state_file.read_text(encoding="utf-8") == content

    def test_workforce_mode(self, fake_router, tmp_path):
        state_file = tmp_path / "session.json"
        runner.invoke(
            main.app,
            ["chat", "--mode", "workforce", "--state-file", str(state_file)],
            input="Shopify orders to Slack\nexit\n",
        )
        state = ConversationState.from_document(state_file.read_text(encoding="utf-8"))
        assert state.design_mode == "AI Workforce"

    def test_unknown_mode(self):
        result = runner.invoke(main.app, ["chat", "--mode", "robots"])
        assert result.exit_code == 1
        assert "Unknown mode" in result.output
