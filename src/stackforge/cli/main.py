"""Main CLI entry point for stackforge."""

import click
from .commands.plan import plan
from .commands.apply import apply
from .commands.destroy import destroy
from .commands.graph import graph
from .commands.state import state
from .commands.version import version
from .. import __version__
from ..utils.logging import set_verbosity, get_logger

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="stackforge", message="%(prog)s version %(version)s")
@click.option('--verbose', '-v', is_flag=True, help='Debug logging')
@click.option('--quiet-logs', is_flag=True, help='Only log warnings and errors')
def cli(verbose, quiet_logs):
    """stackforge - Dependency-ordered provisioning of declared cloud resources."""
    set_verbosity(verbose=verbose, quiet=quiet_logs)


cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(graph)
cli.add_command(state)
cli.add_command(version)
