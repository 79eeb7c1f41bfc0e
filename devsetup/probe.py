"""Read-only system checks.

Nothing in this module writes files, installs software or changes system
state; the audit phase relies on that to be safe to run at any time.
"""

import logging
import shutil
from pathlib import Path

from .errors import CommandError, ProbeError
from .execution import PROBE_TIMEOUT, run_exec_async
from .models import AuditResult, DependencyRequirement
from .versions import coerce

OS_RELEASE_PATH = Path("/etc/os-release")

_logging = logging.getLogger(__name__)


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``KEY=value`` lines of an os-release file."""
    info: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        info[key.strip()] = value.strip().strip("\"'")
    return info


class SystemProbe:
    def __init__(
        self,
        os_release_path: Path = OS_RELEASE_PATH,
        timeout: float = PROBE_TIMEOUT,
    ):
        self.os_release_path = os_release_path
        self.timeout = timeout

    def check_package_manager_presence(self, name: str) -> bool:
        """True if ``name`` is an executable on PATH."""
        found = shutil.which(name) is not None
        _logging.debug(f"Presence of {name}: {found}")
        return found

    def identify_linux_distribution(self) -> str:
        """Return the ``ID`` field of the os-release file.

        Raises:
            ProbeError: If the file is unreadable or has no ID
        """
        try:
            text = self.os_release_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ProbeError(
                f"Could not read {self.os_release_path}: {e}"
            ) from e

        distro_id = parse_os_release(text).get("ID", "").lower()
        if not distro_id:
            raise ProbeError(f"No ID field in {self.os_release_path}")
        return distro_id

    async def check_dependency(self, requirement: DependencyRequirement) -> AuditResult:
        """Run ``<cli> <version flag>`` and report what was found.

        The executable is resolved through PATH (and PATHEXT on Windows,
        so ``az.cmd`` answers to ``az``). Any failure means "not installed";
        this never raises for a missing or broken tool.
        """
        executable = shutil.which(requirement.cli_name)
        if executable is None:
            _logging.debug(f"{requirement.name}: {requirement.cli_name} not found on PATH")
            return AuditResult(dependency=requirement, is_installed=False)

        argv = [executable, *requirement.version_command[1:]]
        try:
            stdout, stderr, returncode = await run_exec_async(argv, timeout=self.timeout)
        except CommandError as e:
            _logging.debug(f"{requirement.name}: {e}")
            return AuditResult(dependency=requirement, is_installed=False)

        if returncode != 0:
            _logging.debug(
                f"{requirement.name}: '{' '.join(argv)}' exited with {returncode}"
            )
            return AuditResult(dependency=requirement, is_installed=False)

        # Some tools (java -version) print their version on stderr only.
        installed_version = coerce(stdout) or (None if stdout else coerce(stderr))
        return AuditResult(
            dependency=requirement,
            is_installed=True,
            installed_version=installed_version,
        )


__all__ = [
    "OS_RELEASE_PATH",
    "parse_os_release",
    "SystemProbe",
]
