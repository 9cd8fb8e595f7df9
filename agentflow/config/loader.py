"""
Settings loader for AgentFlow PRO.

Reads an optional YAML file, validates it against DesignerSettings,
and layers a few environment overrides on top.

Resolution order for the file:
    1. explicit `config_path` argument
    2. AGENTFLOW_CONFIG environment variable
    3. config/agentflow.yaml under the project root (if it exists)
    4. built-in defaults
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from agentflow.config.settings import DesignerSettings
from agentflow.exceptions import ConfigurationError

# Module-level cache: resolved path (or "<defaults>") -> DesignerSettings
_loaded_settings: dict[str, DesignerSettings] = {}

_DEFAULTS_KEY = "<defaults>"

# env var -> (section, field)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "AGENTFLOW_LLM_PROVIDER": ("llm", "provider"),
    "AGENTFLOW_LLM_MODEL": ("llm", "model"),
    "DEEPSEEK_API_URL": ("llm", "base_url"),
}


def find_default_config() -> Optional[Path]:
    """Locate config/agentflow.yaml relative to the project root."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        candidate = parent / "config" / "agentflow.yaml"
        if candidate.is_file():
            return candidate
    return None


def load_settings(config_path: Optional[str | Path] = None) -> DesignerSettings:
    """
    Load and validate designer settings.

    Args:
        config_path: Optional explicit path to a YAML settings file.

    Returns:
        Validated DesignerSettings instance.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    if config_path is None and os.environ.get("AGENTFLOW_CONFIG"):
        config_path = os.environ["AGENTFLOW_CONFIG"]
        if not Path(config_path).exists():
            raise ConfigurationError(
                f"AGENTFLOW_CONFIG points to a missing file: {config_path}",
                config_path=str(config_path),
            )
    elif config_path is None:
        config_path = find_default_config()

    cache_key = str(Path(config_path).resolve()) if config_path else _DEFAULTS_KEY
    if cache_key in _loaded_settings:
        return _loaded_settings[cache_key]

    raw: dict[str, Any] = {}
    if config_path is not None:
        raw = _read_yaml(Path(config_path))

    _apply_env_overrides(raw)

    try:
        settings = DesignerSettings(**raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid settings in {config_path or 'environment'}:\n{e}",
            config_path=str(config_path) if config_path else None,
        ) from e

    _loaded_settings[cache_key] = settings
    return settings


def clear_settings_cache() -> None:
    """Forget all loaded settings (used by tests and after env changes)."""
    _loaded_settings.clear()


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(
            f"Settings file not found: {path}", config_path=str(path),
        )

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Settings file is not valid YAML: {path}", config_path=str(path),
        ) from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Settings file must contain a mapping at the top level: {path}",
            config_path=str(path),
        )
    return raw


def _apply_env_overrides(raw: dict[str, Any]) -> None:
    for var_name, (section, field_name) in ENV_OVERRIDES.items():
        value = os.environ.get(var_name, "").strip()
        if not value:
            continue
        block = raw.get(section)
        if not isinstance(block, dict):
            block = {}
            raw[section] = block
        block[field_name] = value
