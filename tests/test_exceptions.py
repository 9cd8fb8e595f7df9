"""
Unit tests for the exception hierarchy.

Validates construction, inheritance and the structured attributes each
error carries for operators.
"""

import pytest

from agentflow.exceptions import (
    AgentFlowError,
    AnalysisParseError,
    ConfigurationError,
    GenerationFailure,
    StateConsistencyViolation,
)


class TestAgentFlowError:
    """Tests for the base exception class."""

    def test_message_and_empty_details(self):
        err = AgentFlowError("something broke")
        assert str(err) == "something broke"
        assert err.details == {}

    def test_with_details(self):
        err = AgentFlowError("oops", details={"stage": "credentials"})
        assert err.details["stage"] == "credentials"

    @pytest.mark.parametrize("subclass", [
        ConfigurationError,
        AnalysisParseError,
        GenerationFailure,
        StateConsistencyViolation,
    ])
    def test_subclasses_are_catchable_as_base(self, subclass):
        with pytest.raises(AgentFlowError):
            raise subclass("failed")


class TestConfigurationError:
    def test_stores_config_path(self):
        err = ConfigurationError("bad yaml", config_path="config/agentflow.yaml")
        assert err.config_path == "config/agentflow.yaml"

    def test_config_path_optional(self):
        assert ConfigurationError("bad").config_path is None


class TestAnalysisParseError:
    """The analyzer keeps the raw model output for debugging."""

    def test_stores_raw_text(self):
        err = AnalysisParseError("not json", raw_text="Sure! Here is...")
        assert err.raw_text == "Sure! Here is..."

    def test_raw_text_defaults_empty(self):
        assert AnalysisParseError("not json").raw_text == ""


class TestGenerationFailure:
    def test_stores_provider_context(self):
        err = GenerationFailure(
            "DeepSeek API error: 503",
            provider="deepseek",
            model="deepseek-chat",
            status_code=503,
        )
        assert err.provider == "deepseek"
        assert err.model == "deepseek-chat"
        assert err.status_code == 503

    def test_status_code_optional(self):
        err = GenerationFailure("timeout", provider="deepseek")
        assert err.status_code is None


class TestStateConsistencyViolation:
    def test_stores_errors_copy(self):
        errors = ["Missing workflow_id"]
        err = StateConsistencyViolation("invalid", errors=errors)
        errors.append("later")
        assert err.errors == ["Missing workflow_id"]

    def test_errors_default_empty(self):
        assert StateConsistencyViolation("invalid").errors == []
