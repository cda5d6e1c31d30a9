"""Configuration loading for the task list."""

import json
from pathlib import Path
from typing import Optional


DEFAULT_CONFIG_FILE = "qtask_config.json"

DEFAULT_CONFIG = {
    "storage_path": "~/.qtask/storage.json",  # JSON file used as the key-value store
    "storage_key": "qtask_manager_tasks",  # Key the task list lives under
    "export_prefix": "qtask-backup",  # Export files are named <prefix>-YYYY-MM-DD.json
    "log_level": "WARNING",
    "default_sort": "created",
    "default_order": "desc",
}


def load_config(config_path: Optional[str] = DEFAULT_CONFIG_FILE) -> dict:
    """Load configuration from a JSON file.

    If the file doesn't exist, returns the default configuration.

    Args:
        config_path: Path to the configuration file

    Returns:
        Dictionary with every key of DEFAULT_CONFIG

    Raises:
        ValueError: If the file is not a JSON object
    """
    result = DEFAULT_CONFIG.copy()
    if config_path is None:
        return result

    path = Path(config_path)
    if not path.exists():
        return result

    with open(path, encoding="utf-8") as f:
        config = json.load(f)

    if not isinstance(config, dict):
        raise ValueError(f"Configuration file '{config_path}' must contain a JSON object")

    # Merge with defaults to ensure all required keys exist
    result.update(config)
    return result


def save_default_config(config_path: str = DEFAULT_CONFIG_FILE) -> None:
    """Save the default configuration to a file.

    Args:
        config_path: Path where to save the configuration
    """
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(DEFAULT_CONFIG, f, indent=2)
