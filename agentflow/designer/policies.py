"""
Keyword policies — every free-text heuristic the designer applies.

Each policy is a named, enumerable keyword table with one matching rule
(case-insensitive substring). Control flow asks a policy a question
instead of inlining `"x" in text.lower()` checks, so the tables can be
unit-tested and extended on their own.

Usage:
    from agentflow.designer.policies import AI_WORTHY, COMPLETION_PHRASES

    AI_WORTHY.matches("Summarize inbound emails")   # True
    COMPLETION_PHRASES.matches("all done")          # True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class KeywordPolicy:
    """
    A keyword table that classifies text by substring match.

    Attributes:
        name: Identifier used in logs.
        keywords: Lower-case phrases; any one occurring in the text is a hit.
    """
    name: str
    keywords: tuple[str, ...]

    def matches(self, text: Optional[str]) -> bool:
        return self.first_match(text) is not None

    def first_match(self, text: Optional[str]) -> Optional[str]:
        """The first keyword (in table order) found in `text`, if any."""
        if not text:
            return None
        lowered = text.lower()
        for keyword in self.keywords:
            if keyword in lowered:
                return keyword
        return None


# ── Step Parser ───────────────────────────────────────────────────

WEBHOOK_TRIGGER = KeywordPolicy(
    name="webhook_trigger",
    keywords=("webhook",),
)

AI_WORTHY = KeywordPolicy(
    name="ai_worthy",
    keywords=("summarize", "classify", "generate", "enrich", "analyze"),
)

# ── Conversation stages ───────────────────────────────────────────

COMPLETION_PHRASES = KeywordPolicy(
    name="credentials_complete",
    keywords=(
        "credentials saved", "saved successfully", "continue",
        "ready", "provided", "done",
    ),
)

APPROVAL_PHRASES = KeywordPolicy(
    name="approval",
    keywords=("approve", "finalize", "yes", "proceed", "let's build", "ready"),
)

# ── Recommendation Engine ─────────────────────────────────────────

EMAIL_STEP = KeywordPolicy(
    name="email_step",
    keywords=("email",),
)

# ── Blueprint Generator ───────────────────────────────────────────

# Checked against the trigger step's display name, which the parser
# capitalises ("Trigger: Webhook event"), hence case-sensitive use.
WEBHOOK_TRIGGER_NAME = "Webhook"
