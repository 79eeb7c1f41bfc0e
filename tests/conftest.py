"""Pytest fixtures and fakes for devsetup tests."""

import asyncio
import re
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from devsetup.catalog import PackageCatalog, clear_cache
from devsetup.models import AuditResult, DependencyRequirement
from devsetup.probe import SystemProbe
from devsetup.terminal import TerminalSession

_MARKED_COMMAND = re.compile(r"^(?P<command>.*); echo (?P<token>\S+):\$\?$", re.DOTALL)


class FakeTerminal(TerminalSession):
    """In-memory terminal that answers the exit-code marker protocol.

    ``exit_codes`` maps a command to the exit code it should report
    (default 0). Output is emitted on the next loop iterations, the way a
    real shell would answer, and the marker line is split across two
    chunks.
    """

    def __init__(
        self,
        name: str = "fake",
        exit_codes: dict[str, int] | None = None,
        respond: bool = True,
    ):
        super().__init__(name)
        self.exit_codes = exit_codes or {}
        self.respond = respond
        self.sent: list[str] = []
        self.started = False
        self.close_calls = 0

    @property
    def commands(self) -> list[str]:
        """Commands that were sent, without the marker suffix."""
        result = []
        for text in self.sent:
            match = _MARKED_COMMAND.match(text)
            result.append(match.group("command") if match else text)
        return result

    async def start(self) -> None:
        self.started = True

    def send_text(self, text: str, add_newline: bool = True) -> None:
        if self.is_closed:
            raise OSError(f"Terminal '{self.name}' is not running")
        self.sent.append(text)
        if not self.respond:
            return

        match = _MARKED_COMMAND.match(text)
        if not match:
            return
        code = self.exit_codes.get(match.group("command"), 0)
        token = match.group("token")
        loop = asyncio.get_running_loop()
        # The shell echoes the typed line, then the marker arrives in pieces.
        loop.call_soon(self._emit, f"$ {text}\r\n")
        loop.call_soon(self._emit, f"{token[:8]}")
        loop.call_soon(self._emit, f"{token[8:]}:{code}\r\n")

    async def close(self) -> None:
        self.close_calls += 1
        self._mark_closed()


class FakeProbe(SystemProbe):
    """Probe with scripted answers.

    ``installed`` maps a dependency id to its reported version; ids that
    are absent are not installed. A value of None means installed with an
    unreadable version.
    """

    def __init__(
        self,
        present: set[str] | None = None,
        distro: str | Exception = "ubuntu",
        installed: dict[str, str | None] | None = None,
    ):
        super().__init__()
        self.present = set(present or ())
        self.distro = distro
        self.installed = installed or {}
        self.presence_checks: list[str] = []
        self.checked: list[str] = []

    def check_package_manager_presence(self, name: str) -> bool:
        self.presence_checks.append(name)
        return name in self.present

    def identify_linux_distribution(self) -> str:
        if isinstance(self.distro, Exception):
            raise self.distro
        return self.distro

    async def check_dependency(self, requirement: DependencyRequirement) -> AuditResult:
        self.checked.append(requirement.id)
        if requirement.id not in self.installed:
            return AuditResult(dependency=requirement, is_installed=False)
        return AuditResult(
            dependency=requirement,
            is_installed=True,
            installed_version=self.installed[requirement.id],
        )


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def _fresh_catalog_cache():
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def node() -> DependencyRequirement:
    return DependencyRequirement(
        id="node",
        name="Node.js",
        required_version="^18.17.0",
        cli_name="node",
        version_flag="-v",
    )


@pytest.fixture
def git() -> DependencyRequirement:
    return DependencyRequirement(
        id="git",
        name="Git",
        required_version=">=2.30.0",
        cli_name="git",
        version_flag="--version",
    )


@pytest.fixture
def python_dep() -> DependencyRequirement:
    return DependencyRequirement(
        id="python",
        name="Python",
        required_version="~3.12.0",
        cli_name="python3",
        version_flag="--version",
    )


@pytest.fixture
def requirements(node, git, python_dep) -> list[DependencyRequirement]:
    return [node, git, python_dep]


@pytest.fixture
def catalog() -> PackageCatalog:
    return PackageCatalog(
        {
            "node": {
                "win32": "OpenJS.NodeJS",
                "darwin": "node",
                "apt": "nodejs",
                "dnf": "nodejs",
                "pacman": "nodejs",
            },
            "git": {
                "win32": "Git.Git",
                "darwin": "git",
                "apt": "git",
                "dnf": "git",
                "pacman": "git",
            },
            "python": {
                "win32": "Python.Python.3.12",
                "darwin": "python@3.12",
                "apt": "python3",
                "dnf": "python3",
                "pacman": None,
            },
        }
    )
