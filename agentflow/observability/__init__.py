"""
Observability module for AgentFlow PRO.

Structured logging only: JSON in production, coloured text locally,
with the active design session id stamped on every record.
"""
