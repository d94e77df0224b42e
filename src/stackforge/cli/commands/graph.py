"""Graph command - show resolved dependencies and apply order."""

import json
import sys
import click
from ... import resolve_stack
from ...ingest.declaration_loader import load_declaration
from ...presentation.human_formatter import format_graph
from ...utils.errors import StackForgeError
from ...utils.logging import get_logger
from ..utils import load_runtime, echo_safe, format_error

logger = get_logger("cli.graph")


@click.command()
@click.argument('declaration', type=click.Path(exists=False))
@click.option('--config', 'config_path', type=click.Path(), help='Extra YAML config layered over defaults')
@click.option('--layers', is_flag=True, help='Show parallelizable layers instead of the flat order')
@click.option('--json', 'as_json', is_flag=True, help='Output order and edges as JSON')
def graph(declaration, config_path, layers, as_json):
    """Resolve references in DECLARATION and print the dependency order."""
    try:
        runtime = load_runtime(config_path)
        resolved = resolve_stack(load_declaration(declaration), runtime.policies)

        if as_json:
            click.echo(json.dumps({
                "order": [ref.key for ref in resolved.topological_order()],
                "layers": [[ref.key for ref in layer] for layer in resolved.parallelizable_layers()],
                "edges": [
                    {
                        "from": edge.from_ref.key,
                        "to": edge.to_ref.key,
                        "origin": edge.origin,
                        "field": edge.field,
                    }
                    for edge in resolved.edges
                ],
            }, indent=2))
        elif layers:
            echo_safe(format_graph(resolved))
        else:
            for index, ref in enumerate(resolved.topological_order(), 1):
                click.echo(f"{index:>3}. {ref.key}")

    except StackForgeError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        click.echo(format_error(f"Graph failed: {e}"), err=True)
        sys.exit(1)
