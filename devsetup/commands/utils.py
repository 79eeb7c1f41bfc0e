"""Shared helpers for commands."""

import sys
from pathlib import Path

import click

from devsetup.config import Settings, load_requirements
from devsetup.errors import ConfigError, format_error, format_suggestion
from devsetup.models import AuditResult, DependencyRequirement
from devsetup.paths import CONFIG_FILENAME, find_config_file
from devsetup.versions import satisfies

# Exit codes
EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_STEPS_FAILED = 5

project_dir_option = click.option(
    "--project-dir",
    "-C",
    "project_dirs",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help=f"Directory to search for {CONFIG_FILENAME} (repeatable, default: cwd)",
)


def load_project(
    project_dirs: tuple[Path, ...],
) -> tuple[Settings, list[DependencyRequirement]]:
    """Load settings and declared dependencies, exiting on config errors."""
    try:
        settings = Settings.from_env()
        path = find_config_file(list(project_dirs) or None)
        requirements = load_requirements(path)
    except ConfigError as e:
        click.echo(format_error(str(e)), err=True)
        sys.exit(EXIT_FATAL)

    if path is None:
        click.echo(
            format_suggestion(
                f"no {CONFIG_FILENAME} found",
                "add one to your project or pass --project-dir",
            ),
            err=True,
        )
    return settings, requirements


def format_audit_line(result: AuditResult) -> str:
    dep = result.dependency
    if not result.is_installed:
        return f"❌ {dep.name}: not installed (requires {dep.required_version})"
    version = result.installed_version or "unknown version"
    if result.installed_version and satisfies(result.installed_version, dep.required_version):
        return f"✅ {dep.name}: {version}"
    return f"⚠️  {dep.name}: {version} (requires {dep.required_version})"
