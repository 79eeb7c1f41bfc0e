"""Plan command implementation."""

import asyncio
import sys

import click

from devsetup import setup_logging
from devsetup.commands.utils import EXIT_FATAL, load_project, project_dir_option
from devsetup.pipeline import build_auditor, run_audit_and_plan
from devsetup.planner import render_plan


@click.command()
@project_dir_option
@click.pass_context
def plan(ctx, project_dirs):
    """Show what apply would do, without doing it."""
    setup_logging(ctx.obj.get("debug", False))
    settings, requirements = load_project(project_dirs)

    result = asyncio.run(run_audit_and_plan(requirements, build_auditor(settings)))
    if result.plan is None:
        sys.exit(EXIT_FATAL)

    click.echo(render_plan(result.plan))
