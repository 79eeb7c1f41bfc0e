"""Catalog command implementation."""

import sys

import click

from devsetup import setup_logging
from devsetup.catalog import PLATFORM_KEYS, load_catalog
from devsetup.commands.utils import EXIT_FATAL
from devsetup.config import Settings
from devsetup.errors import ConfigError, format_error, format_suggestion
from devsetup.executor import detect_linux_package_manager, resolve_platform_key
from devsetup.probe import SystemProbe


@click.command()
@click.option(
    "--platform",
    "platform_key",
    type=click.Choice(sorted(PLATFORM_KEYS)),
    help="Platform key to show (default: this machine)",
)
@click.pass_context
def catalog(ctx, platform_key: str | None):
    """List known dependency ids and their package names."""
    setup_logging(ctx.obj.get("debug", False))
    try:
        settings = Settings.from_env()
        packages = load_catalog(settings.catalog_path)
    except ConfigError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_FATAL)

    if platform_key is None:
        manager = None
        if sys.platform.startswith("linux"):
            manager = detect_linux_package_manager(SystemProbe())
        platform_key = resolve_platform_key(sys.platform, manager)
        if platform_key is None:
            click.echo(
                format_suggestion(
                    "no supported package manager on this machine",
                    "pass --platform to inspect another platform",
                ),
                err=True,
            )
            sys.exit(EXIT_FATAL)

    click.echo(f"Packages for {platform_key}:")
    for dep_id in packages.ids():
        name = packages.lookup(dep_id, platform_key)
        click.echo(f"  {dep_id:16s} {name or '(manual install)'}")
