"""State command group - inspect recorded state."""

import sys
import click
from ...presentation.human_formatter import format_state
from ...utils.errors import StackForgeError
from ..utils import load_runtime, format_error


@click.group()
def state():
    """Inspect the state store."""
    pass


@state.command("list")
@click.option('--config', 'config_path', type=click.Path(), help='Extra YAML config layered over defaults')
def list_entries(config_path):
    """List every resource recorded in state."""
    try:
        runtime = load_runtime(config_path)
        click.echo(format_state(runtime.state_store.load()))
    except StackForgeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
