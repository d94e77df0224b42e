"""CLI utilities package."""

import json
import click
from typing import NamedTuple, Optional, Dict, Any
from ...config import load_engine_config
from ...policy.registry import PolicyTable, build_policy_table
from ...provider.base import ProviderAdapter
from ...provider.registry import create_provider
from ...state.store import FileStateStore, StateStore
from ...utils.logging import get_logger

logger = get_logger("cli.utils")


class Runtime(NamedTuple):
    """Everything a command needs, wired from configuration."""
    config: Dict[str, Any]
    policies: PolicyTable
    state_store: StateStore
    provider: ProviderAdapter


def load_runtime(config_path: Optional[str] = None) -> Runtime:
    """
    Shared wiring helper - every engine command calls this.

    Raises:
        ConfigError: If configuration, policies or the provider are invalid
    """
    config = load_engine_config(config_path)
    policies = build_policy_table(config.get("policies"))

    provider_config = config["provider"]
    options = dict(provider_config.get("options") or {})
    if provider_config["name"] == "local":
        options.setdefault("policies", policies)
    provider = create_provider(provider_config["name"], **options)

    state_store = FileStateStore(config["state"]["path"])
    logger.debug(f"Runtime: provider={provider_config['name']}, state={config['state']['path']}")
    return Runtime(config=config, policies=policies, state_store=state_store, provider=provider)


def dump_json(model) -> str:
    """Serialize a pydantic model for --json output."""
    return json.dumps(model.model_dump(mode="json"), indent=2)


def echo_safe(text: str) -> None:
    """Echo text, degrading to ASCII on consoles that cannot encode it."""
    try:
        click.echo(text)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'))


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"Error: {message}"
    if suggestion:
        error += f"\nTip: {suggestion}"
    return error


__all__ = ["Runtime", "load_runtime", "dump_json", "echo_safe", "format_error"]
