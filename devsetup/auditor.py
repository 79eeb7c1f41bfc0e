"""System audit: package-manager pre-flight, then concurrent dependency probes."""

import asyncio
import logging
import sys
from enum import Enum
from typing import Callable

from . import prompts
from .errors import CommandError, PreflightError, ProbeError
from .execution import CommandChannel
from .models import AuditResult, DependencyRequirement
from .probe import SystemProbe
from .terminal import PtyTerminal, TerminalSession

_logging = logging.getLogger(__name__)

HOMEBREW_INSTALL_COMMAND = (
    '/bin/bash -c "$(curl -fsSL '
    'https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh)"'
)

SUPPORTED_DISTROS = frozenset(
    {"ubuntu", "debian", "fedora", "centos", "rhel", "arch", "suse", "opensuse"}
)

TerminalFactory = Callable[[str], TerminalSession]


class AuditState(Enum):
    PREFLIGHT_CHECK = "preflight_check"
    PROBE_FAN_OUT = "probe_fan_out"
    DONE = "done"
    ABORTED = "aborted"


class Auditor:
    """Runs one audit: ``PREFLIGHT_CHECK -> PROBE_FAN_OUT -> DONE`` or ``-> ABORTED``.

    Args:
        probe: Read-only system checks
        platform: ``sys.platform`` value to audit for
        terminal_factory: Builds the visible terminal used to install Homebrew
        acknowledge_missing_winget: Asks the user what to do about winget;
            returns True if the Store page should be opened
        open_store: Opens the App Installer Store page
        notify_error: Shows a fatal error to the user
    """

    def __init__(
        self,
        probe: SystemProbe | None = None,
        platform: str | None = None,
        terminal_factory: TerminalFactory | None = None,
        acknowledge_missing_winget: Callable[[], bool] | None = None,
        open_store: Callable[[], None] | None = None,
        notify_error: Callable[[str, str | None], None] | None = None,
    ):
        self.probe = probe or SystemProbe()
        self.platform = platform or sys.platform
        self.terminal_factory = terminal_factory or (lambda name: PtyTerminal(name))
        self.acknowledge_missing_winget = (
            acknowledge_missing_winget or prompts.acknowledge_missing_winget
        )
        self.open_store = open_store or prompts.open_app_installer_page
        self.notify_error = notify_error or prompts.notify_error
        self.state = AuditState.PREFLIGHT_CHECK
        self.distribution: str | None = None

    async def run(
        self, requirements: list[DependencyRequirement]
    ) -> list[AuditResult] | None:
        """Audit the machine against ``requirements``.

        Returns:
            One result per requirement in input order, an empty list when
            nothing is declared, or None if pre-flight failed fatally
        """
        self.state = AuditState.PREFLIGHT_CHECK
        _logging.info("[Auditor] Starting system audit...")

        try:
            await self.preflight()
        except PreflightError as e:
            self.state = AuditState.ABORTED
            _logging.error(f"[Auditor] FATAL: {e}")
            self.notify_error(f"Setup cannot continue: {e}", e.hint)
            return None

        if not requirements:
            _logging.info("[Auditor] No dependencies found in config. Audit finished.")
            self.state = AuditState.DONE
            return []

        self.state = AuditState.PROBE_FAN_OUT
        _logging.info(f"[Auditor] Found {len(requirements)} dependencies to check.")
        results = await asyncio.gather(
            *(self.probe.check_dependency(req) for req in requirements)
        )
        self.state = AuditState.DONE
        _logging.info("[Auditor] System audit complete.")
        return list(results)

    async def preflight(self) -> None:
        """Make sure a usable package manager exists for this platform.

        Raises:
            PreflightError: If the audit must not continue
        """
        _logging.info(f"[Auditor] Performing pre-flight check for OS: {self.platform}")
        if self.platform == "darwin":
            await self._ensure_homebrew()
        elif self.platform == "win32":
            self._ensure_winget()
        elif self.platform.startswith("linux"):
            self._detect_linux_distribution()
        else:
            raise PreflightError(f"Unsupported operating system: {self.platform}")

    async def _ensure_homebrew(self) -> None:
        if self.probe.check_package_manager_presence("brew"):
            _logging.info("[Auditor] Homebrew is installed.")
            return

        _logging.info("[Auditor] Homebrew not found. Starting automatic installation...")
        prompts.notify_info(
            "Homebrew is not installed. It will now be installed in the terminal."
        )

        terminal = self.terminal_factory("devsetup: Homebrew")
        try:
            async with terminal:
                # The installer asks for the user's password in this terminal.
                await CommandChannel(terminal=terminal).run_interactive(
                    HOMEBREW_INSTALL_COMMAND
                )
        except (CommandError, OSError) as e:
            raise PreflightError(f"Homebrew installation failed. {e}") from e
        _logging.info("[Auditor] Homebrew installation command finished.")

        if not self.probe.check_package_manager_presence("brew"):
            raise PreflightError(
                "Homebrew installation could not be verified.",
                hint="Check the terminal output for errors, then run setup again.",
            )
        _logging.info("[Auditor] Homebrew installation verified successfully.")
        prompts.notify_info("Homebrew has been successfully installed!")

    def _ensure_winget(self) -> None:
        if self.probe.check_package_manager_presence("winget"):
            _logging.info("[Auditor] Winget is installed.")
            return

        _logging.info("[Auditor] Winget not found. Prompting user...")
        if self.acknowledge_missing_winget():
            self.open_store()
            raise PreflightError(
                'Opened Microsoft Store. Please install "App Installer" and re-run the setup.'
            )
        raise PreflightError(
            "User cancelled setup. Winget installation is required.",
            hint='Install "App Installer" from the Microsoft Store.',
        )

    def _detect_linux_distribution(self) -> None:
        try:
            distro = self.probe.identify_linux_distribution()
        except ProbeError as e:
            raise PreflightError(f"Could not detect Linux distribution. {e}") from e

        self.distribution = distro
        if distro in SUPPORTED_DISTROS:
            _logging.info(f"[Auditor] Detected supported Linux distribution: {distro}")
        else:
            _logging.warning(
                f"[Auditor] WARNING: Detected unsupported Linux distribution: {distro}."
            )


__all__ = [
    "HOMEBREW_INSTALL_COMMAND",
    "SUPPORTED_DISTROS",
    "AuditState",
    "Auditor",
]
