"""
Custom exception hierarchy for AgentFlow PRO.

Structured error handling with clear categories:
- Configuration errors (caught at startup)
- Analysis errors (LLM returned something we can't parse)
- Generation failures (LLM provider unreachable or erroring)
- State consistency violations (blueprint invariants broken)

None of these reach the end user directly: the conversation manager
turns them into a fixed apology. They exist so operators get precise
log lines and so library callers can catch narrowly.

Usage:
    from agentflow.exceptions import AnalysisParseError, GenerationFailure

    try:
        analysis = await analyzer.analyze(text)
    except AnalysisParseError as e:
        logger.warning("analysis_parse_failed", extra={"raw": e.raw_text[:200]})
"""

from __future__ import annotations

from typing import Optional


class AgentFlowError(Exception):
    """
    Base exception for all AgentFlow errors.

    All custom exceptions inherit from this, so you can catch
    `AgentFlowError` to handle any designer-specific error.
    """

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


# ── Configuration Errors ──────────────────────────────────────────


class ConfigurationError(AgentFlowError):
    """
    Raised when the settings file is missing, malformed, or fails
    schema validation.
    """

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.config_path = config_path


# ── Capability Errors ─────────────────────────────────────────────


class AnalysisParseError(AgentFlowError):
    """
    The capability analyzer got text back that is not the JSON shape
    we asked for.

    Recoverable: the INITIAL stage falls back to a free-text reply.
    """

    def __init__(
        self,
        message: str,
        *,
        raw_text: str = "",
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.raw_text = raw_text


class GenerationFailure(AgentFlowError):
    """
    An external text-generation call failed.

    Covers transport errors, non-2xx responses, empty completions and
    a provider that was never configured.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.provider = provider
        self.model = model
        self.status_code = status_code


# ── Data Invariant Errors ─────────────────────────────────────────


class StateConsistencyViolation(AgentFlowError):
    """
    A blueprint or step graph broke a referential invariant.

    The validator reports these as strings and never raises; this
    exception is only for callers that opt in via `ensure_valid`.
    """

    def __init__(
        self,
        message: str,
        *,
        errors: Optional[list[str]] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.errors = list(errors or [])
