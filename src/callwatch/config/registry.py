"""Configuration Registry - Defines all configuration keys with tier classification.

This module provides the ConfigKey dataclass and REGISTRY dictionary that defines
all configuration options available in callwatch.

Two-Tier System:
- Static Config (tier="static"): Requires restart to apply changes
  Examples: database path, target listing, bot credentials, log paths
- Dynamic Config (tier="dynamic"): Can be hot-reloaded without restart
  Examples: check interval, cooldowns, timeouts, log level
"""

from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional


@dataclass
class ConfigKey:
    """Defines a single configuration key with validation and tier classification.

    Attributes:
        tier: "static" (restart required) or "dynamic" (hot-reloadable)
        value_type: Expected Python type (str, int, float, bool, list, dict)
        default: Default value if not specified in config files
        min_value: Minimum value for numeric types (optional)
        max_value: Maximum value for numeric types (optional)
        restart_required: Auto-derived from tier (True for static, False for dynamic)
        validator: Custom validation function (optional)
    """
    tier: Literal["static", "dynamic"]
    value_type: type
    default: Any
    min_value: Optional[Any] = None
    max_value: Optional[Any] = None
    restart_required: bool = False
    validator: Optional[Callable[[Any], bool]] = None

    def __post_init__(self):
        """Auto-derive restart_required from tier."""
        self.restart_required = (self.tier == "static")


# Configuration Registry
# =======================
# All configuration keys must be registered here with their tier classification.

REGISTRY: dict[str, ConfigKey] = {
    # ===== DATABASE (Static - Foundation) =====
    "database.path": ConfigKey(
        tier="static",
        value_type=str,
        default="data/callwatch.db",
    ),

    # ===== LOGGING (Static file path, Dynamic verbosity) =====
    "logging.file_path": ConfigKey(
        tier="static",
        value_type=str,
        default="data/callwatch.log",
    ),
    "logging.level": ConfigKey(
        tier="dynamic",
        value_type=str,
        default="INFO",
        validator=lambda v: v in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    ),

    # ===== TELEGRAM (Static for credentials, Dynamic for settings) =====
    "telegram.bot_token": ConfigKey(
        tier="static",
        value_type=str,
        default="",
    ),
    "telegram.admin_chat_id": ConfigKey(
        tier="static",
        value_type=str,
        default="",
        validator=lambda v: v == "" or v.lstrip("-").isdigit(),
    ),
    "telegram.send_timeout_seconds": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=30,
        min_value=5,
        max_value=300,
    ),

    # ===== MONITORED LISTING (Static - what is being watched) =====
    "monitor.target_url": ConfigKey(
        tier="static",
        value_type=str,
        default="https://empleo.enaire.es/empleo/",
        validator=lambda v: v.startswith(("http://", "https://")),
    ),
    "monitor.target_text": ConfigKey(
        tier="static",
        value_type=str,
        default="CONVOCATORIA EXTERNA CONTROLADORES 2025",
        validator=lambda v: len(v.strip()) > 0,
    ),
    "monitor.marker_selector": ConfigKey(
        tier="static",
        value_type=str,
        default="span.icon-enaire.enaire-star",
    ),
    "monitor.documents_url": ConfigKey(
        tier="static",
        value_type=str,
        default="",
    ),
    "monitor.documents_selector": ConfigKey(
        tier="static",
        value_type=str,
        default="table tr",
    ),
    "monitor.base_url": ConfigKey(
        tier="static",
        value_type=str,
        default="https://empleo.enaire.es/empleo/",
    ),
    "monitor.source_link": ConfigKey(
        tier="static",
        value_type=str,
        default=(
            "https://empleo.enaire.es/empleo/PFSrv?accion=avisos&codigo=20251120"
            "&titulo=CONVOCATORIA%20EXTERNA%20CONTROLADORES%202025"
        ),
    ),
    "monitor.screenshot_path": ConfigKey(
        tier="static",
        value_type=str,
        default="data/latest_update.png",
    ),
    "monitor.fetch_timeout_seconds": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=90,
        min_value=10,
        max_value=600,
    ),

    # ===== SCHEDULER (Dynamic - Operational tuning) =====
    "scheduler.check_interval_minutes": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=10,
        min_value=1,
        max_value=1440,
    ),

    # ===== COMMANDS (Dynamic - Rate limiting) =====
    "commands.status_cooldown_seconds": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=60,
        min_value=0,
        max_value=3600,
    ),

    # ===== SECONDARY PUSH CHANNEL (Static endpoint, Dynamic presentation) =====
    "ntfy.enabled": ConfigKey(
        tier="static",
        value_type=bool,
        default=False,
    ),
    "ntfy.base_url": ConfigKey(
        tier="static",
        value_type=str,
        default="https://ntfy.sh",
        validator=lambda v: v.startswith(("http://", "https://")),
    ),
    "ntfy.topic": ConfigKey(
        tier="static",
        value_type=str,
        default="",
    ),
    "ntfy.priority": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=4,
        min_value=1,
        max_value=5,
    ),
    "ntfy.tags": ConfigKey(
        tier="dynamic",
        value_type=list,
        default=["rotating_light"],
    ),
    "ntfy.timeout_seconds": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=10,
        min_value=1,
        max_value=120,
    ),
}


def get_config_key(key: str) -> ConfigKey:
    """Get configuration key definition from registry.

    Args:
        key: Configuration key path (e.g., "monitor.target_url")

    Returns:
        ConfigKey definition

    Raises:
        KeyError: If key not found in registry
    """
    if key not in REGISTRY:
        raise KeyError(f"Configuration key '{key}' not found in registry")
    return REGISTRY[key]


def validate_config_value(key: str, value: Any) -> tuple[bool, Optional[str]]:
    """Validate a configuration value against its registered definition.

    Args:
        key: Configuration key path
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
        error_message is None if valid
    """
    try:
        config_key = get_config_key(key)
    except KeyError as e:
        return False, str(e)

    # bool is an int subclass; reject it for numeric keys
    if isinstance(value, bool) and config_key.value_type is not bool:
        return False, f"Expected type {config_key.value_type.__name__}, got bool"

    if not isinstance(value, config_key.value_type):
        return False, f"Expected type {config_key.value_type.__name__}, got {type(value).__name__}"

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if config_key.min_value is not None and value < config_key.min_value:
            return False, f"Value {value} below minimum {config_key.min_value}"
        if config_key.max_value is not None and value > config_key.max_value:
            return False, f"Value {value} above maximum {config_key.max_value}"

    if config_key.validator is not None:
        try:
            if not config_key.validator(value):
                return False, f"Custom validation failed for value: {value}"
        except Exception as e:
            return False, f"Validator error: {str(e)}"

    return True, None


def get_default_values() -> dict[str, Any]:
    """Get default values for all configuration keys."""
    return {key: config_key.default for key, config_key in REGISTRY.items()}


def get_static_keys() -> list[str]:
    """Get list of all static configuration keys (restart required)."""
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "static"]


def get_dynamic_keys() -> list[str]:
    """Get list of all dynamic configuration keys (hot-reloadable)."""
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "dynamic"]
