"""Global app configuration (LLM connections, default connection, history and summary limits)."""

import json
from pathlib import Path
from typing import Any

from .core import data_dir, read_json, write_json

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_connections": [],
    "default_connection": "",
    "recent_message_count": 20,
    "auto_summary_interval": 10,
    "summary_message_limit": 10,
}


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path()
    if path.is_file():
        stored = read_json(path)
        for key in _CONFIG_DEFAULTS:
            if key in stored:
                config[key] = stored[key]
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config.

    llm_connections is replaced wholesale; unknown keys are ignored.
    """
    config = get_config()
    for key in _CONFIG_DEFAULTS:
        if key in fields:
            config[key] = fields[key]
    write_json(_config_path(), config)
    return config
