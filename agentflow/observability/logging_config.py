"""
Structured logging configuration for AgentFlow PRO.

Modules log event names through the stdlib logger and attach structured
fields with `extra=`; this module decides how those records are
rendered and stamps each one with the design session it belongs to.

AGENTFLOW_ENV selects the renderer:
    production  one JSON object per line on stdout, for log shippers
    otherwise   short coloured lines on stderr, for people

Usage:
    from agentflow.observability.logging_config import configure_logging

    configure_logging()  # reads AGENTFLOW_ENV

    logger = logging.getLogger(__name__)
    logger.info("blueprint_generated", extra={"workflow_id": blueprint.workflow_id})
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

# ─── Session Context ──────────────────────────────────────────────────

# A ContextVar (not thread-local) so concurrent asyncio sessions each
# see their own id.
_session_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "agentflow_session_id", default=None,
)


def set_session_id(session_id: str) -> None:
    """
    Bind a design session id to the current context.

    The conversation manager sets this around each processed message
    so every log line from that turn carries the session id.
    """
    _session_id.set(session_id)


def get_session_id() -> Optional[str]:
    """Get the current session_id, or None outside a turn."""
    return _session_id.get()


def clear_session_id() -> None:
    """Clear the session_id from the current context."""
    _session_id.set(None)


class ContextFilter(logging.Filter):
    """Copies the active session id onto each record that passes through."""

    def filter(self, record: logging.LogRecord) -> bool:
        session_id = get_session_id()
        if session_id:
            record.session_id = session_id  # type: ignore[attr-defined]
        return True


# ─── Renderers ────────────────────────────────────────────────────────

# Attributes every LogRecord has; anything else arrived through `extra`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record:

        {"timestamp": "2026-01-05T09:12:44.120+00:00", "level": "INFO",
         "logger": "agentflow.designer.conversation",
         "message": "conversation_stage_advanced",
         "session_id": "s-1", "stage": "initial", "next_stage": "diagram_draft"}
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({key: _jsonable(value) for key, value in _extras(record).items()})
        if record.exc_info and record.exc_info[1] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class DevFormatter(logging.Formatter):
    """
    `09:12:44 INFO     agentflow.designer | event  session_id=s-1 stage=initial`

    Only the designer's well-known fields are shown inline; everything
    else stays available to the JSON renderer.
    """

    LEVEL_STYLES = {
        "DEBUG": "\033[2;36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;41m",
    }
    PLAIN = "\033[0m"

    _EXTRA_KEYS = (
        "session_id", "stage", "next_stage", "provider", "model",
        "intent", "workflow_id", "latency_ms", "error",
    )

    def format(self, record: logging.LogRecord) -> str:
        style = self.LEVEL_STYLES.get(record.levelname, self.PLAIN)
        fields = " ".join(
            f"{key}={getattr(record, key)}"
            for key in self._EXTRA_KEYS
            if getattr(record, key, None) is not None
        )
        line = (
            f"{self.formatTime(record, '%H:%M:%S')} "
            f"{style}{record.levelname:<8}{self.PLAIN} "
            f"{record.name} | {record.getMessage()}"
        )
        if fields:
            line += f"  {fields}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


# ─── Setup ────────────────────────────────────────────────────────────

QUIET_LOGGERS = ("httpx", "httpcore", "anthropic")


def _build_handler(env: str) -> logging.Handler:
    if env == "production":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(DevFormatter())
    handler.addFilter(ContextFilter())
    return handler


def configure_logging(
    env: Optional[str] = None,
    level: int = logging.INFO,
) -> None:
    """
    Install a single root handler for `env`, replacing any existing ones.

    Args:
        env: "production" for JSON output; None reads AGENTFLOW_ENV,
             which defaults to "development".
        level: Root log level.
    """
    env = (env or os.environ.get("AGENTFLOW_ENV", "development")).strip().lower()
    logging.basicConfig(level=level, handlers=[_build_handler(env)], force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
