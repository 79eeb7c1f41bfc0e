"""Plan execution through the platform's package manager."""

import logging
import sys
from dataclasses import dataclass
from typing import Callable

from .catalog import PackageCatalog, load_catalog
from .errors import CommandError, NoCommandAvailable
from .execution import INSTALL_TIMEOUT, CommandChannel, CommandMode
from .models import (
    Action,
    ActionPlan,
    ActionStep,
    DependencyRequirement,
    ExecutionReport,
    PackageManager,
    StepOutcome,
    StepResult,
)
from .probe import SystemProbe
from .terminal import PtyTerminal, TerminalSession

_logging = logging.getLogger(__name__)

INSTALL_TEMPLATES = {
    "win32": "winget install -e --id {package}",
    "darwin": "brew install {package}",
    "apt": "sudo apt-get install -y {package}",
    "dnf": "sudo dnf install -y {package}",
    "pacman": "sudo pacman -S --noconfirm {package}",
}

UNINSTALL_TEMPLATES = {
    "win32": "winget uninstall -e --id {package}",
    "darwin": "brew uninstall {package}",
    "apt": "sudo apt-get remove -y {package}",
    "dnf": "sudo dnf remove -y {package}",
    "pacman": "sudo pacman -Rns --noconfirm {package}",
}

COMPLETION_MESSAGE = "All setup tasks complete. You can now close this terminal."


def is_linux(platform: str) -> bool:
    return platform.startswith("linux")


def detect_linux_package_manager(probe: SystemProbe) -> PackageManager:
    """Return the first supported package manager on PATH, or UNKNOWN."""
    _logging.info("[Executor] Detecting Linux package manager...")
    for manager in PackageManager.detection_order():
        if probe.check_package_manager_presence(manager.value):
            _logging.info(f"[Executor] Detected: {manager.value}")
            return manager
    _logging.warning("[Executor] Could not detect a supported Linux package manager.")
    return PackageManager.UNKNOWN


def resolve_platform_key(
    platform: str, package_manager: PackageManager | None
) -> str | None:
    """Map a platform (and on Linux, the detected manager) to a catalog key."""
    if platform in ("win32", "darwin"):
        return platform
    if is_linux(platform):
        if package_manager is None or package_manager == PackageManager.UNKNOWN:
            return None
        return package_manager.value
    return None


def _build_command(
    templates: dict[str, str],
    dependency: DependencyRequirement,
    platform: str,
    package_manager: PackageManager | None,
    catalog: PackageCatalog,
) -> str | None:
    key = resolve_platform_key(platform, package_manager)
    template = templates.get(key) if key else None
    if template is None:
        return None
    package = catalog.lookup(dependency.id, key)
    if not package:
        return None
    return template.format(package=package)


def get_install_command(
    dependency: DependencyRequirement,
    platform: str,
    package_manager: PackageManager | None,
    catalog: PackageCatalog,
) -> str | None:
    return _build_command(INSTALL_TEMPLATES, dependency, platform, package_manager, catalog)


def get_uninstall_command(
    dependency: DependencyRequirement,
    platform: str,
    package_manager: PackageManager | None,
    catalog: PackageCatalog,
) -> str | None:
    return _build_command(UNINSTALL_TEMPLATES, dependency, platform, package_manager, catalog)


@dataclass
class _RunContext:
    channel: CommandChannel
    mode: CommandMode
    package_manager: PackageManager | None
    terminal: TerminalSession | None = None
    # why the terminal could not be opened; every command then fails
    unavailable: str | None = None


class Executor:
    """Walks an action plan one step at a time.

    A failing step is recorded in the report and the loop moves on; only
    the steps themselves can fail, never the run.

    On Linux the commands need sudo, so they run interactively in a single
    visible terminal. On Windows and macOS they run silently.
    """

    def __init__(
        self,
        catalog: PackageCatalog | None = None,
        probe: SystemProbe | None = None,
        platform: str | None = None,
        terminal_factory: Callable[[str], TerminalSession] | None = None,
        silent_timeout: float = INSTALL_TIMEOUT,
        dry_run: bool = False,
    ):
        self.catalog = catalog if catalog is not None else load_catalog()
        self.probe = probe or SystemProbe()
        self.platform = platform or sys.platform
        self.terminal_factory = terminal_factory or (lambda name: PtyTerminal(name))
        self.silent_timeout = silent_timeout
        self.dry_run = dry_run

    async def execute(self, plan: ActionPlan) -> ExecutionReport:
        _logging.info(f"[Executor] Starting execution of {len(plan)}-step plan.")

        package_manager = None
        terminal = None
        unavailable = None
        if is_linux(self.platform):
            package_manager = detect_linux_package_manager(self.probe)
            if not self.dry_run and len(plan):
                terminal, unavailable = await self._open_terminal()

        ctx = _RunContext(
            channel=CommandChannel(terminal=terminal, silent_timeout=self.silent_timeout),
            mode=CommandMode.INTERACTIVE if terminal else CommandMode.SILENT,
            package_manager=package_manager,
            terminal=terminal,
            unavailable=unavailable,
        )
        report = ExecutionReport(package_manager=package_manager)

        try:
            for step in plan:
                report.results.append(await self._run_step(step, ctx))

            _logging.info("[Executor] Plan execution finished.")
            await self._notice(ctx, "SUCCESS", COMPLETION_MESSAGE)
        finally:
            if terminal is not None:
                await terminal.close()

        return report

    async def _open_terminal(self) -> tuple[TerminalSession | None, str | None]:
        terminal = self.terminal_factory("devsetup")
        try:
            await terminal.start()
        except (CommandError, OSError) as e:
            _logging.error(f"[Executor] Could not open a terminal for the install commands: {e}")
            return None, str(e)
        return terminal, None

    async def _run_step(self, step: ActionStep, ctx: _RunContext) -> StepResult:
        dependency = step.dependency

        if step.action == Action.ALREADY_MET:
            message = f"Skipping '{dependency.name}' - Requirement already met."
            _logging.info(f"[Executor] {message}")
            await self._notice(ctx, "INFO", message)
            return StepResult(dependency, step.action, StepOutcome.SKIPPED, step.reason)

        commands: list[str] = []
        try:
            if step.action == Action.REINSTALL:
                try:
                    await self._uninstall(dependency, ctx, commands)
                except (CommandError, NoCommandAvailable) as e:
                    _logging.warning(
                        f"[Executor] UNINSTALL of '{dependency.name}' failed, "
                        f"attempting install anyway: {e}"
                    )
            await self._install(dependency, ctx, commands)
        except (CommandError, NoCommandAvailable) as e:
            message = f"FAILED step for '{dependency.name}'. Check logs or terminal for details."
            _logging.error(f"[Executor] {message} {e}")
            await self._notice(ctx, "ERROR", message)
            return StepResult(dependency, step.action, StepOutcome.FAILED, str(e), commands)

        if self.dry_run:
            return StepResult(dependency, step.action, StepOutcome.SKIPPED, "dry-run", commands)
        return StepResult(dependency, step.action, StepOutcome.SUCCESS, step.reason, commands)

    async def _install(
        self, dependency: DependencyRequirement, ctx: _RunContext, commands: list[str]
    ) -> None:
        _logging.info(f"[Executor] Starting INSTALL for '{dependency.name}'...")
        command = get_install_command(
            dependency, self.platform, ctx.package_manager, self.catalog
        )
        await self._run(command, "install", dependency, ctx, commands)

    async def _uninstall(
        self, dependency: DependencyRequirement, ctx: _RunContext, commands: list[str]
    ) -> None:
        _logging.info(f"[Executor] Starting UNINSTALL for '{dependency.name}'...")
        command = get_uninstall_command(
            dependency, self.platform, ctx.package_manager, self.catalog
        )
        await self._run(command, "uninstall", dependency, ctx, commands)

    async def _run(
        self,
        command: str | None,
        operation: str,
        dependency: DependencyRequirement,
        ctx: _RunContext,
        commands: list[str],
    ) -> None:
        if not command:
            raise NoCommandAvailable(
                dependency.name,
                operation,
                resolve_platform_key(self.platform, ctx.package_manager),
            )
        commands.append(command)
        if self.dry_run:
            _logging.info(f"[DRY-RUN] Would execute: {command}")
            return
        if ctx.unavailable is not None:
            raise CommandError(command, CommandError.SPAWN_FAILURE, detail=ctx.unavailable)
        await ctx.channel.run(command, ctx.mode)

    async def _notice(self, ctx: _RunContext, level: str, message: str) -> None:
        """Echo a status line into the terminal, if there is one."""
        if ctx.terminal is None:
            return
        safe = message.replace("'", "'\\''")
        try:
            await ctx.channel.run_interactive(f"echo '[{level}] {safe}'")
        except CommandError as e:
            _logging.warning(f"[Executor] Could not write to terminal: {e}")


__all__ = [
    "INSTALL_TEMPLATES",
    "UNINSTALL_TEMPLATES",
    "COMPLETION_MESSAGE",
    "detect_linux_package_manager",
    "resolve_platform_key",
    "get_install_command",
    "get_uninstall_command",
    "Executor",
]
