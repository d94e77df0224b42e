"""Two-tier configuration manager (packaged defaults + user + project override)."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from .paths import get_default_config_path, get_user_config_path, get_project_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def read_yaml_config(path: Path) -> Dict[str, Any]:
    """
    Read one YAML config file.

    Raises:
        ConfigError: If the file is unreadable, not YAML, or not a mapping
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_layered_config(explicit_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the full config tree.

    Later layers win: packaged defaults, user config, project config, then
    the explicit file passed with --config.
    """
    config = read_yaml_config(get_default_config_path())

    user_config_path = get_user_config_path()
    if user_config_path.exists():
        try:
            _deep_merge(config, read_yaml_config(user_config_path))
            logger.debug(f"Loaded user config from {user_config_path}")
        except ConfigError as e:
            logger.warning(f"Ignoring user config: {e}")

    project_config_path = get_project_config_path()
    if project_config_path:
        _deep_merge(config, read_yaml_config(project_config_path))
        logger.info(f"Loaded project config from {project_config_path}")

    if explicit_path is not None:
        path = Path(explicit_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {explicit_path}")
        _deep_merge(config, read_yaml_config(path))
        logger.info(f"Loaded configuration from {explicit_path}")

    return config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
