"""Two-tier configuration (static + hot-reloadable) for callwatch."""

from .manager import ConfigManager, get_config_manager, initialize_config
from .registry import REGISTRY, ConfigKey

__all__ = ["ConfigManager", "ConfigKey", "REGISTRY", "get_config_manager", "initialize_config"]
