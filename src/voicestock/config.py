"""Interpreter configuration loader.

Loads pipeline configuration from a YAML file with safe defaults.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_RELATIVE_TERMS = (
    "more",
    "another",
    "additional",
    "extra",
    "same",
    "again",
    "also",
    "too",
    "as well",
    "like before",
)


@dataclass(frozen=True)
class InterpreterConfig:
    """Read-only configuration shared by every session."""

    context_window_ms: int = 5000
    interpreter_timeout_seconds: float = 10.0
    max_history_entries: int = 8
    max_recent_commands: int = 2
    context_ttl_seconds: int = 3600
    context_key_prefix: str = "voice_context:"
    relative_terms: tuple[str, ...] = field(default=DEFAULT_RELATIVE_TERMS)


def _parse_interpreter_config(data: dict[str, Any]) -> InterpreterConfig:
    """Parse a configuration dictionary into an InterpreterConfig.

    Missing keys keep their defaults.

    Raises:
        ValueError: If a field has the wrong type or an invalid value.
    """
    defaults = InterpreterConfig()

    int_fields = [
        "context_window_ms",
        "max_history_entries",
        "max_recent_commands",
        "context_ttl_seconds",
    ]
    for name in int_fields:
        if name in data:
            value = data[name]
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"Field '{name}' must be an integer")
            if value < 0:
                raise ValueError(f"Field '{name}' must be non-negative")

    if data.get("context_ttl_seconds") == 0:
        raise ValueError("Field 'context_ttl_seconds' must be positive")

    key_prefix = data.get("context_key_prefix", defaults.context_key_prefix)
    if not isinstance(key_prefix, str) or not key_prefix:
        raise ValueError("Field 'context_key_prefix' must be a non-empty string")

    timeout = data.get("interpreter_timeout_seconds", defaults.interpreter_timeout_seconds)
    if not isinstance(timeout, int | float) or isinstance(timeout, bool) or timeout <= 0:
        raise ValueError("Field 'interpreter_timeout_seconds' must be a positive number")

    terms = data.get("relative_terms", list(defaults.relative_terms))
    if not isinstance(terms, list) or not all(isinstance(t, str) and t for t in terms):
        raise ValueError("Field 'relative_terms' must be a list of non-empty strings")

    return InterpreterConfig(
        context_window_ms=data.get("context_window_ms", defaults.context_window_ms),
        interpreter_timeout_seconds=float(timeout),
        max_history_entries=data.get("max_history_entries", defaults.max_history_entries),
        max_recent_commands=data.get("max_recent_commands", defaults.max_recent_commands),
        context_ttl_seconds=data.get("context_ttl_seconds", defaults.context_ttl_seconds),
        context_key_prefix=key_prefix,
        relative_terms=tuple(t.lower() for t in terms),
    )


def load_interpreter_config(config_path: str | None = None) -> InterpreterConfig:
    """Load interpreter configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. If None, uses VOICESTOCK_CONFIG_PATH
                    or the default path: config/interpreter.yaml

    Returns:
        InterpreterConfig. If the file is missing or invalid, returns safe defaults.
    """
    if config_path is None:
        config_path = os.environ.get("VOICESTOCK_CONFIG_PATH")
    if config_path is None:
        project_root = Path(__file__).parent.parent.parent
        config_path = os.path.join(project_root, "config", "interpreter.yaml")

    if not os.path.exists(config_path):
        return InterpreterConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f)

        if data is None:
            return InterpreterConfig()
        if not isinstance(data, dict):
            raise ValueError("Config file must contain a YAML dictionary")

        return _parse_interpreter_config(data)

    except (yaml.YAMLError, ValueError, OSError) as e:
        logger.warning("Failed to load interpreter config from %s: %s", config_path, e)
        logger.warning("Using default interpreter configuration")
        return InterpreterConfig()


_cached_config: InterpreterConfig | None = None


def get_interpreter_config(config_path: str | None = None) -> InterpreterConfig:
    """Get the interpreter configuration (cached)."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_interpreter_config(config_path)
    return _cached_config


def reload_interpreter_config(config_path: str | None = None) -> InterpreterConfig:
    """Reload interpreter configuration from file."""
    global _cached_config
    _cached_config = load_interpreter_config(config_path)
    return _cached_config


def clear_interpreter_config_cache() -> None:
    """Clear the cached configuration.

    Used primarily for testing to ensure clean state between tests.
    """
    global _cached_config
    _cached_config = None
