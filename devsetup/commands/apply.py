"""Apply command implementation."""

import asyncio
import sys

import click

from devsetup import setup_logging
from devsetup.commands.utils import (
    EXIT_FATAL,
    EXIT_STEPS_FAILED,
    load_project,
    project_dir_option,
)
from devsetup.errors import ConfigError, format_error
from devsetup.models import ExecutionReport, StepOutcome
from devsetup.pipeline import build_auditor, build_executor, run_pipeline
from devsetup.planner import render_plan
from devsetup.prompts import confirm_plan


def _print_report(report: ExecutionReport) -> None:
    icons = {
        StepOutcome.SUCCESS: "✅",
        StepOutcome.SKIPPED: "⏭️ ",
        StepOutcome.FAILED: "❌",
    }
    click.echo("")
    for result in report.results:
        line = f"{icons[result.outcome]} {result.dependency.name}: {result.outcome.value}"
        if result.outcome == StepOutcome.FAILED:
            line += f" - {result.detail}"
        click.echo(line)
        for command in result.commands:
            click.echo(f"     $ {command}")

    click.echo("")
    click.echo(
        f"{len(report.succeeded)} succeeded, {len(report.skipped)} skipped, "
        f"{len(report.failed)} failed."
    )


@click.command()
@project_dir_option
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
@click.option("--dry-run", is_flag=True, help="Print commands instead of running them")
@click.pass_context
def apply(ctx, project_dirs, yes: bool, dry_run: bool):
    """Audit, plan, and install or reinstall what is missing."""
    setup_logging(ctx.obj.get("debug", False))
    settings, requirements = load_project(project_dirs)

    try:
        executor = build_executor(settings, dry_run=dry_run)
    except ConfigError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_FATAL)

    def _confirm(plan) -> bool:
        click.echo(render_plan(plan))
        return confirm_plan(plan, skip_confirmation=yes or dry_run)

    result = asyncio.run(
        run_pipeline(requirements, build_auditor(settings), executor, confirm=_confirm)
    )

    if result.aborted:
        sys.exit(EXIT_FATAL)
    if result.declined:
        click.echo("Setup cancelled.")
        return
    if result.report is None:
        if requirements:
            click.echo("All requirements are already met.")
        else:
            click.echo("No dependencies declared. Nothing to do.")
        return

    _print_report(result.report)
    if not result.report.all_succeeded:
        sys.exit(EXIT_STEPS_FAILED)
