"""
Capability Analyzer — free-text goal → structured business facts.

A thin contract over the text-generation capability: ask for JSON with
the analysis prompt, strip markdown fences, parse, validate. Anything
that doesn't fit the schema raises AnalysisParseError, which the
INITIAL stage treats as recoverable.

Usage:
    analyzer = CapabilityAnalyzer(router)
    analysis = await analyzer.analyze("When a Shopify order arrives, ping Slack")
    context = analysis.to_business_context()
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentflow.designer.models import BusinessContext
from agentflow.designer.prompts import ANALYSIS_SYSTEM_PROMPT, analysis_user_message
from agentflow.exceptions import AnalysisParseError
from agentflow.llm.llm_config import LLMIntent
from agentflow.llm.router import TextGenerator

logger = logging.getLogger(__name__)


class CapabilityAnalysis(BaseModel):
    """Analyzer output. Accepts the camelCase keys the model is asked for."""
    model_config = ConfigDict(populate_by_name=True)

    industry: Optional[str] = None
    business_type: Optional[str] = Field(None, alias="businessType")
    required_functions: list[str] = Field(default_factory=list, alias="requiredFunctions")
    automation_opportunities: list[str] = Field(
        default_factory=list, alias="automationOpportunities",
    )
    required_integrations: list[str] = Field(
        default_factory=list, alias="requiredIntegrations",
    )
    recommended_team_size: int = Field(0, ge=0, alias="recommendedTeamSize")

    def to_business_context(self) -> BusinessContext:
        return BusinessContext(
            industry=self.industry,
            business_type=self.business_type,
            required_functions=list(self.required_functions),
            automation_opportunities=list(self.automation_opportunities),
            required_integrations=list(self.required_integrations),
        )


def strip_code_fences(text: str) -> str:
    """Remove a ```json ... ``` wrapper if the model added one."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class CapabilityAnalyzer:
    def __init__(self, generator: TextGenerator):
        self.generator = generator

    async def analyze(self, free_text: str) -> CapabilityAnalysis:
        raw = await self.generator.complete(
            ANALYSIS_SYSTEM_PROMPT,
            [{"role": "user", "content": analysis_user_message(free_text)}],
            intent=LLMIntent.ANALYSIS,
        )
        return self.parse(raw)

    @staticmethod
    def parse(raw: str) -> CapabilityAnalysis:
        text = strip_code_fences(raw or "")
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("analysis_parse_failed", extra={"error": str(e)})
            raise AnalysisParseError(
                "Capability analysis was not valid JSON", raw_text=raw or "",
            ) from e

        if not isinstance(data, dict):
            raise AnalysisParseError(
                "Capability analysis must be a JSON object", raw_text=raw,
            )

        try:
            analysis = CapabilityAnalysis.model_validate(data)
        except ValidationError as e:
            logger.warning(
                "analysis_parse_failed",
                extra={"error": f"{e.error_count()} schema error(s)"},
            )
            raise AnalysisParseError(
                "Capability analysis did not match the expected schema",
                raw_text=raw,
                details={"errors": e.errors(include_url=False)},
            ) from e

        logger.info(
            "capability_analyzed",
            extra={
                "function_count": len(analysis.required_functions),
                "integration_count": len(analysis.required_integrations),
            },
        )
        return analysis
