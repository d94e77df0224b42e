"""Config path resolution for two-tier config system."""

from pathlib import Path
from typing import Optional

CONFIG_DIR_NAME = ".stackforge"


def get_default_config_path() -> Path:
    """Packaged defaults shipped with stackforge."""
    return Path(__file__).parent / "defaults.yaml"


def get_user_config_path() -> Path:
    """Get user config path: ~/.stackforge/config.yaml"""
    return Path.home() / CONFIG_DIR_NAME / "config.yaml"


def get_project_config_path() -> Optional[Path]:
    """Get project config path: .stackforge/config.yaml (from current working directory)"""
    project_config = Path.cwd() / CONFIG_DIR_NAME / "config.yaml"
    if project_config.exists():
        return project_config
    return None
