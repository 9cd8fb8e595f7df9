"""
Tests for the Capability Analyzer.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from agentflow.designer.analyzer import (
    CapabilityAnalysis,
    CapabilityAnalyzer,
    strip_code_fences,
)
from agentflow.designer.prompts import ANALYSIS_SYSTEM_PROMPT
from agentflow.exceptions import AnalysisParseError
from agentflow.llm.llm_config import LLMIntent

ANALYSIS = {
    "industry": "E-commerce",
    "businessType": "Online store",
    "requiredFunctions": ["Notify via Slack"],
    "automationOpportunities": ["Order alerts"],
    "requiredIntegrations": ["Shopify", "Slack"],
    "recommendedTeamSize": 2,
}


def _generator(reply: str) -> AsyncMock:
    generator = AsyncMock()
    generator.complete.return_value = reply
    return generator


class TestStripCodeFences:
    @pytest.mark.parametrize("raw", [
        '{"a": 1}',
        '```json\n{"a": 1}\n```',
        '```\n{"a": 1}\n```',
        '  \n{"a": 1}\n  ',
    ])
    def test_variants(self, raw):
        assert strip_code_fences(raw) == '{"a": 1}'


class TestCapabilityAnalyzer:
    @pytest.mark.asyncio
    async def test_parses_camel_case_json(self):
        generator = _generator(json.dumps(ANALYSIS))
        analysis = await CapabilityAnalyzer(generator).analyze("Shopify orders to Slack")

        assert analysis.industry == "E-commerce"
        assert analysis.business_type == "Online store"
        assert analysis.required_functions == ["Notify via Slack"]
        assert analysis.required_integrations == ["Shopify", "Slack"]
        assert analysis.recommended_team_size == 2

    @pytest.mark.asyncio
    async def test_uses_analysis_prompt_and_intent(self):
        generator = _generator(json.dumps(ANALYSIS))
        await CapabilityAnalyzer(generator).analyze("Shopify orders to Slack")

        args, kwargs = generator.complete.call_args
        assert args[0] == ANALYSIS_SYSTEM_PROMPT
        assert args[1] == [
            {"role": "user", "content": "Analyze this business: Shopify orders to Slack"},
        ]
        assert kwargs["intent"] == LLMIntent.ANALYSIS

    @pytest.mark.asyncio
    async def test_fenced_json(self):
        generator = _generator("```json\n" + json.dumps(ANALYSIS) + "\n```")
        analysis = await CapabilityAnalyzer(generator).analyze("x")
        assert analysis.industry == "E-commerce"

    @pytest.mark.asyncio
    async def test_missing_keys_default(self):
        analysis = await CapabilityAnalyzer(_generator("{}")).analyze("x")
        assert analysis.required_functions == []
        assert analysis.industry is None

    @pytest.mark.asyncio
    async def test_prose_raises_parse_error(self):
        generator = _generator("Sure! Your business sounds great.")
        with pytest.raises(AnalysisParseError) as exc_info:
            await CapabilityAnalyzer(generator).analyze("x")
        assert exc_info.value.raw_text == "Sure! Your business sounds great."

    @pytest.mark.asyncio
    async def test_non_object_raises(self):
        with pytest.raises(AnalysisParseError, match="JSON object"):
            await CapabilityAnalyzer(_generator("[1, 2]")).analyze("x")

    @pytest.mark.asyncio
    async def test_wrong_types_raise(self):
        bad = dict(ANALYSIS, requiredFunctions="not a list")
        with pytest.raises(AnalysisParseError, match="schema"):
            await CapabilityAnalyzer(_generator(json.dumps(bad))).analyze("x")

    @pytest.mark.asyncio
    async def test_generator_errors_propagate(self):
        generator = AsyncMock()
        generator.complete.side_effect = RuntimeError("boom")
        with pytest.raises(RuntimeError):
            await CapabilityAnalyzer(generator).analyze("x")


class TestCapabilityAnalysis:
    def test_populate_by_name(self):
        analysis = CapabilityAnalysis(business_type="Clinic", required_functions=["Book"])
        assert analysis.business_type == "Clinic"

    def test_to_business_context(self):
        context = CapabilityAnalysis.model_validate(ANALYSIS).to_business_context()
        assert context.industry == "E-commerce"
        assert context.business_type == "Online store"
        assert context.required_integrations == ["Shopify", "Slack"]
        assert context.automation_opportunities == ["Order alerts"]
