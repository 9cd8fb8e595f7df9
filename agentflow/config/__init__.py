from agentflow.config.loader import clear_settings_cache, load_settings
from agentflow.config.settings import DesignerSettings, LLMSettings

__all__ = [
    "DesignerSettings",
    "LLMSettings",
    "clear_settings_cache",
    "load_settings",
]
