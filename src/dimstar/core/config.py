"""3-layer configuration system for DimStar.

Loads and merges configuration from:
1. Default settings (built-in)
2. Config file (--config, or .dimstar/config.yaml in the working directory)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "ai": {
        "provider": "nvidia",
        "endpoint": "https://integrate.api.nvidia.com/v1",
        "api_key_env": "NVIDIA_API_KEY",
        "max_tokens": 4096,
        "temperature": 0.7,
        "thinking_budget": 1024,
        "timeout_seconds": 300,
    },
    "rate_limit": {
        "calls_per_minute": 20,
        "safety_margin_seconds": 1.0,
    },
    "engine": {
        "threshold": 50,
    },
    "reasoner": {
        "max_retries": 3,
        "max_steps": 10,
    },
    "models": [],
}

DEFAULT_CONFIG_PATH = Path(".dimstar") / "config.yaml"


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_config_file(config_path: Optional[Path] = None) -> dict:
    """Load a YAML config file. Missing or unreadable files yield ``{}``."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        content = path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        data = yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError):
        return {}
    return data if isinstance(data, dict) else {}


def get_effective_config(
    config_path: Optional[Path] = None,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a run."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    file_config = load_config_file(config_path)
    if file_config:
        config = deep_merge(config, file_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    return config
