"""CLI command definitions for devsetup."""

import click

from devsetup import __version__
from devsetup.commands.apply import apply
from devsetup.commands.audit import audit
from devsetup.commands.catalog import catalog
from devsetup.commands.plan import plan


@click.group()
@click.version_option(__version__, prog_name="devsetup")
@click.option("--debug", is_flag=True, help="Enable debug output for troubleshooting")
@click.pass_context
def cli(ctx, debug):
    """Audit this machine against a project's .devsetup.json and install what is missing."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


cli.add_command(audit)
cli.add_command(plan)
cli.add_command(apply)
cli.add_command(catalog)

__all__ = ["cli"]


if __name__ == "__main__":
    cli()
