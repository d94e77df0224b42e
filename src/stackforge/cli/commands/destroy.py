"""Destroy command - tear down everything recorded in state."""

import sys
import click
from ... import plan_stack
from ...ingest.declaration_loader import load_declaration
from ...ingest.models import DeclaredStack
from ...utils.errors import StackForgeError
from ...utils.logging import get_logger
from ..utils import load_runtime, format_error
from .apply import run_plan

logger = get_logger("cli.destroy")


@click.command()
@click.argument('declaration', type=click.Path(exists=False))
@click.option('--config', 'config_path', type=click.Path(), help='Extra YAML config layered over defaults')
@click.option('--json', 'as_json', is_flag=True, help='Output the execution report as JSON')
@click.option('--concurrency', type=click.IntRange(min=1), help='Maximum concurrent actions per layer')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@click.option('--quiet', is_flag=True, help='Only print the execution report')
def destroy(declaration, config_path, as_json, concurrency, yes, quiet):
    """
    Destroy every resource recorded in state, dependents first.

    DECLARATION is validated but its resources are treated as no longer
    declared, so the plan contains only destroys.
    """
    try:
        runtime = load_runtime(config_path)
        load_declaration(declaration)
        if concurrency is None:
            concurrency = runtime.config["engine"]["concurrency"]

        _, planned = plan_stack(DeclaredStack(resources=[]), runtime.state_store, runtime.policies)

        if planned.has_changes and not yes:
            click.confirm(f"Destroy {len(planned.actions)} resource(s)?", abort=True, err=True)

        sys.exit(run_plan(planned, runtime, concurrency, as_json, quiet))

    except StackForgeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except click.Abort:
        raise
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Destroy failed: {e}"), err=True)
        sys.exit(1)
