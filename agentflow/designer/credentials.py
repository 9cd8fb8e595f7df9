"""
Credential Collector — what to ask the user for, per integration.

Three pieces:
- a static registry (data/credential_registry.yaml) of the exact fields,
  auth type and minimum scopes for popular platforms;
- discovery: required integration names → DiscoveredIntegration entries
  (unknown platforms come back with an empty field list);
- the collector: pure formatting of a numbered, human-readable request.

Security model:
    - The designer never sees secret values. Sessions hold
      CredentialReference metadata (vault id + which fields exist).
    - Blueprints carry opaque `vault://<id>` markers keyed by field name.

Usage:
    from agentflow.designer.credentials import CredentialCollector, discover_integrations

    discovered = discover_integrations(["Shopify", "Slack"])
    text = CredentialCollector(discovered).generate_credential_request()
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from importlib import resources
from typing import Any, Iterable, Mapping, Optional, Sequence

import yaml

from agentflow.designer.models import (
    CredentialReference,
    CredentialRequirement,
    DiscoveredIntegration,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Registry types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CredentialField:
    """One input the user must supply for a platform."""
    name: str
    type: str  # text | password | email | url | textarea
    label: str
    required: bool = True
    description: str = ""
    placeholder: str = ""


@dataclass(frozen=True)
class CredentialSpec:
    """Everything needed to connect to one platform."""
    platform: str
    display_name: str
    auth_type: str  # oauth | api-key | basic | token
    fields: tuple[CredentialField, ...] = ()
    scopes: tuple[str, ...] = ()
    docs_url: Optional[str] = None
    setup_instructions: str = ""

    @property
    def required_fields(self) -> list[CredentialField]:
        return [f for f in self.fields if f.required]


# ---------------------------------------------------------------------------
# Registry loading
# ---------------------------------------------------------------------------

_REGISTRY_RESOURCE = "credential_registry.yaml"

# Module-level cache, populated on first access
_registry: Optional[dict[str, CredentialSpec]] = None


def normalize_platform(name: str) -> str:
    """'Google Sheets ' → 'googlesheets'."""
    return re.sub(r"\s+", "", name.lower())


def _load_registry() -> dict[str, CredentialSpec]:
    global _registry
    if _registry is not None:
        return _registry

    text = (
        (resources.files("agentflow.designer") / "data" / _REGISTRY_RESOURCE)
        .read_text(encoding="utf-8")
    )
    raw: dict[str, Any] = yaml.safe_load(text) or {}

    registry: dict[str, CredentialSpec] = {}
    for platform, entry in raw.items():
        registry[platform] = CredentialSpec(
            platform=platform,
            display_name=entry["display_name"],
            auth_type=entry["auth_type"],
            fields=tuple(
                CredentialField(
                    name=f["name"],
                    type=f.get("type", "text"),
                    label=f.get("label", f["name"]),
                    required=bool(f.get("required", True)),
                    description=f.get("description", ""),
                    placeholder=str(f.get("placeholder", "")),
                )
                for f in entry.get("fields", [])
            ),
            scopes=tuple(entry.get("scopes", [])),
            docs_url=entry.get("docs_url"),
            setup_instructions=entry.get("setup_instructions", ""),
        )

    logger.debug("credential_registry_loaded", extra={"platforms": len(registry)})
    _registry = registry
    return registry


def get_credential_spec(platform: str) -> Optional[CredentialSpec]:
    """Exact lookup after normalisation."""
    return _load_registry().get(normalize_platform(platform))


def find_platform(search_term: str) -> Optional[CredentialSpec]:
    """Exact match first, then the first partial match on key or display name."""
    normalized = normalize_platform(search_term)
    if not normalized:
        return None

    registry = _load_registry()
    if normalized in registry:
        return registry[normalized]

    for key, spec in registry.items():
        if normalized in key or normalized in spec.display_name.lower():
            return spec
    return None


def supported_platforms() -> list[str]:
    """Display names of every registry entry, in registry order."""
    return [spec.display_name for spec in _load_registry().values()]


def all_credential_specs() -> list[CredentialSpec]:
    return list(_load_registry().values())


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def discover_integrations(integrations: Iterable[str]) -> list[DiscoveredIntegration]:
    """
    Look up each required integration in the registry.

    Order is preserved and unknown platforms are kept with an empty
    credential list so the collector can say so explicitly.
    """
    discovered: list[DiscoveredIntegration] = []
    for name in integrations:
        spec = get_credential_spec(name)
        credentials = [
            CredentialRequirement(name=f.name, description=f.description or f.label)
            for f in (spec.fields if spec else ())
        ]
        discovered.append(DiscoveredIntegration(platform=name, credentials=credentials))
        if spec is None:
            logger.info("credential_spec_unknown", extra={"platform": name})
    return discovered


def format_scope_summary(integrations: Iterable[str]) -> str:
    """One line per known platform listing its minimum scopes."""
    lines = []
    for name in integrations:
        spec = get_credential_spec(name)
        if spec and spec.scopes:
            lines.append(f"- {spec.display_name}: {', '.join(spec.scopes)}")
    if not lines:
        return ""
    return "Minimum scopes:\n" + "\n".join(lines)


# ---------------------------------------------------------------------------
# Blueprint helpers
# ---------------------------------------------------------------------------

def _slug(service: str) -> str:
    return re.sub(r"\s+", "_", service.strip().lower())


def required_credential_fields(service: str) -> list[str]:
    """
    Credential field names a blueprint integration declares.

    Registry platforms list their required fields prefixed with the
    platform key; anything else gets a single `<service>_api_key`.
    """
    spec = get_credential_spec(service)
    if spec is None:
        return [f"{_slug(service)}_api_key"]
    return [f"{spec.platform}_{f.name}" for f in spec.required_fields]


def build_credential_markers(
    credentials: Mapping[str, CredentialReference],
) -> dict[str, str]:
    """field name → opaque vault marker; never a secret value."""
    markers: dict[str, str] = {}
    for platform, reference in credentials.items():
        prefix = _slug(reference.platform or platform)
        if not reference.fields:
            markers[f"{prefix}_credentials"] = reference.marker
            continue
        for field_name in reference.fields:
            markers[f"{prefix}_{field_name}"] = reference.marker
    return markers


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------

UNKNOWN_CREDENTIALS_NOTICE = (
    "I couldn't automatically determine the required credentials for this "
    "platform. You may need to provide them manually."
)


@dataclass
class CredentialCollector:
    """Formats the credential request for a list of discovered integrations."""
    discovered_integrations: Sequence[DiscoveredIntegration] = field(default_factory=list)

    def generate_credential_request(self) -> str:
        request = "Here's what I need for each integration:\n\n"

        for index, integration in enumerate(self.discovered_integrations, start=1):
            request += f"**{index}. {integration.platform}**\n"
            if integration.credentials:
                for cred in integration.credentials:
                    request += f"   - {cred.name}: {cred.description}\n"
            else:
                request += f"   - {UNKNOWN_CREDENTIALS_NOTICE}\n"
            request += "\n"

        request += (
            "You can provide these through the secure credential form, "
            "or let me know if you need help finding them."
        )
        return request
