"""Audit command implementation."""

import asyncio
import sys

import click

from devsetup import setup_logging
from devsetup.commands.utils import (
    EXIT_FATAL,
    format_audit_line,
    load_project,
    project_dir_option,
)
from devsetup.pipeline import build_auditor


@click.command()
@project_dir_option
@click.pass_context
def audit(ctx, project_dirs):
    """Check declared tools against what is installed. Changes nothing
    unless the platform's package manager itself is missing."""
    setup_logging(ctx.obj.get("debug", False))
    settings, requirements = load_project(project_dirs)

    results = asyncio.run(build_auditor(settings).run(requirements))
    if results is None:
        sys.exit(EXIT_FATAL)

    if not results:
        click.echo("No dependencies declared. Nothing to audit.")
        return

    for result in results:
        click.echo(format_audit_line(result))
