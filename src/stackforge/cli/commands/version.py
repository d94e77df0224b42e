"""Version command - show stackforge version."""

import click
from ... import __version__


@click.command()
def version():
    """Show stackforge version."""
    click.echo(f"stackforge version {__version__}")
