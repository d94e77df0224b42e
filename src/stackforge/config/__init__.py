"""Configuration module: load and validate engine settings and policy overrides."""

from typing import Dict, Any, Optional
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_layered_config, read_yaml_config
from .paths import get_default_config_path, get_user_config_path, get_project_config_path

logger = get_logger("config")


def load_engine_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and validate configuration.

    Args:
        config_path: Optional explicit YAML file layered over defaults/user/project config

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If config cannot be loaded or is invalid
    """
    config = load_layered_config(config_path)

    validation_issues = []

    engine = config.get("engine")
    if not isinstance(engine, dict):
        validation_issues.append("engine is not a dict")
    else:
        concurrency = engine.get("concurrency")
        if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
            validation_issues.append(f"engine.concurrency must be a positive integer, got {concurrency!r}")
        if not isinstance(engine.get("refresh"), bool):
            validation_issues.append("engine.refresh must be true or false")

    state = config.get("state")
    if not isinstance(state, dict) or not isinstance(state.get("path"), str) or not state.get("path"):
        validation_issues.append("state.path must be a non-empty string")

    provider = config.get("provider")
    if not isinstance(provider, dict) or not isinstance(provider.get("name"), str):
        validation_issues.append("provider.name must be a string")
    elif provider.get("options") is not None and not isinstance(provider["options"], dict):
        validation_issues.append("provider.options must be a mapping")

    policies = config.get("policies")
    if policies is None:
        config["policies"] = {}
    elif not isinstance(policies, dict):
        validation_issues.append("policies must be a mapping of kind -> overrides")

    if validation_issues:
        raise ConfigError("Invalid configuration: " + "; ".join(validation_issues))

    return config


__all__ = [
    "load_engine_config",
    "load_layered_config",
    "read_yaml_config",
    "get_default_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
