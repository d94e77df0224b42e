"""Plan command - show what apply would do, without touching anything."""

import sys
import click
from ... import plan_stack
from ...ingest.declaration_loader import load_declaration
from ...presentation.human_formatter import format_plan
from ...utils.errors import StackForgeError
from ...utils.logging import get_logger
from ..utils import load_runtime, dump_json, echo_safe, format_error

logger = get_logger("cli.plan")


@click.command()
@click.argument('declaration', type=click.Path(exists=False))
@click.option('--config', 'config_path', type=click.Path(), help='Extra YAML config layered over defaults')
@click.option('--json', 'as_json', is_flag=True, help='Output the plan as JSON')
@click.option('--refresh/--no-refresh', default=None, help='Read remote state before planning (default: engine.refresh)')
@click.option('--show-unchanged', is_flag=True, help='List resources that need no change')
def plan(declaration, config_path, as_json, refresh, show_unchanged):
    """
    Build the ordered plan for DECLARATION and print it.

    Reference and cycle errors are reported here, before anything is changed.
    """
    try:
        runtime = load_runtime(config_path)
        stack = load_declaration(declaration)
        if refresh is None:
            refresh = runtime.config["engine"]["refresh"]

        _, planned = plan_stack(
            stack, runtime.state_store, runtime.policies, provider=runtime.provider, refresh=refresh
        )

        if as_json:
            click.echo(dump_json(planned))
        else:
            echo_safe(format_plan(planned, show_unchanged=show_unchanged))

    except StackForgeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Planning failed: {e}"), err=True)
        sys.exit(1)
