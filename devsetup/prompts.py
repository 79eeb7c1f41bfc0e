"""User-facing notifications and prompts.

- questionary for rich interactive choices (when a TTY is available)
- click for plain output and confirmations
"""

import sys

import click

from .errors import format_error
from .models import Action, ActionPlan

APP_INSTALLER_STORE_URI = "ms-windows-store://pdp/?productid=9NBLGGH4NNS1"
OPEN_STORE = "Open Microsoft Store"


def notify_error(message: str, hint: str | None = None) -> None:
    click.secho(format_error(message), fg="red", bold=True, err=True)
    if hint:
        click.echo(f"  {hint}", err=True)


def notify_info(message: str) -> None:
    click.echo(message)


def acknowledge_missing_winget() -> bool:
    """Tell the user winget is missing; return True if they want the Store opened."""
    notify_error(
        "Windows Package Manager (winget) is not installed, but it is required.",
        hint='Install the official "App Installer" from the Microsoft Store, '
        "then run setup again.",
    )
    if not sys.stdin.isatty():
        return False

    import questionary

    try:
        choice = questionary.select(
            "winget is required to continue:",
            choices=[
                questionary.Choice(title=OPEN_STORE, value=OPEN_STORE),
                questionary.Choice(title="Cancel", value=None),
            ],
        ).ask()
    except KeyboardInterrupt:
        return False
    return choice == OPEN_STORE


def open_app_installer_page() -> None:
    click.launch(APP_INSTALLER_STORE_URI)


def confirm_plan(plan: ActionPlan, skip_confirmation: bool = False) -> bool:
    """Summarize what will change and ask before running anything."""
    pending = plan.pending
    if not pending:
        return True
    if skip_confirmation:
        return True

    installs = sum(1 for s in pending if s.action == Action.INSTALL)
    reinstalls = len(pending) - installs

    click.echo("")
    click.echo("=" * 60)
    click.echo("Setup Summary")
    click.echo("=" * 60)
    click.echo(f"  To install:   {installs}")
    click.echo(f"  To reinstall: {reinstalls}")
    if reinstalls:
        click.secho(
            "  Reinstalling removes the current version before installing.",
            fg="yellow",
        )
    click.echo("=" * 60)

    return click.confirm("\nContinue with setup?", default=False)


__all__ = [
    "APP_INSTALLER_STORE_URI",
    "notify_error",
    "notify_info",
    "acknowledge_missing_winget",
    "open_app_installer_page",
    "confirm_plan",
]
