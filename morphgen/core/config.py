"""Centralized configuration loading for morphgen.

This module provides utilities for loading and accessing configuration from
morphgen.json with support for environment variable fallbacks and default values.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "morphgen.json"
CONFIG_PATH_ENV = "MORPHGEN_CONFIG"


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from JSON file.

    The path defaults to $MORPHGEN_CONFIG, then to morphgen.json in the
    working directory. A missing or unreadable file yields an empty dict so
    callers fall back to defaults.

    Args:
        config_path: Path to the config file (optional)

    Returns:
        Configuration dictionary, or empty dict if file not found/invalid
    """
    path = Path(config_path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))

    if not path.is_file():
        return {}

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {path}: top level must be an object")
        return {}
    return data


def get_config_value(
    keys: List[str], default: Any = None, config: Optional[Dict[str, Any]] = None
) -> Any:
    """Get nested configuration value with fallback to environment variable.

    Keys such as ["generation", "max_workers"] fall back to the environment
    variable GENERATION_MAX_WORKERS.

    Args:
        keys: List of keys to traverse (e.g., ["generation", "output_suffix"])
        default: Default value if key not found
        config: Optional config dict (uses load_config() if not provided)

    Returns:
        Configuration value, or default if not found
    """
    if config is None:
        config = load_config()

    value = config
    for key in keys:
        if isinstance(value, dict):
            value = value.get(key)
            if value is None:
                break
        else:
            return default

    if value is not None:
        return value

    env_key = "_".join(k.upper() for k in keys)
    env_value = os.environ.get(env_key)
    if env_value is not None:
        return env_value

    return default


def get_max_workers(config: Optional[Dict[str, Any]] = None) -> int:
    """Worker count for parallel generation (1 means sequential)."""
    value = get_config_value(["generation", "max_workers"], 1, config)
    try:
        return max(1, int(value))
    except (TypeError, ValueError):
        raise ValueError(f"generation.max_workers must be an integer, got {value!r}")


def get_output_suffix(config: Optional[Dict[str, Any]] = None) -> str:
    return str(get_config_value(["generation", "output_suffix"], ".morphy.dart", config))
