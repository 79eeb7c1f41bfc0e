"""Data models for the audit, plan and execute pipeline."""

from dataclasses import dataclass, field
from enum import Enum


class Action(Enum):
    INSTALL = "INSTALL"
    REINSTALL = "REINSTALL"
    ALREADY_MET = "ALREADY_MET"


class PackageManager(Enum):
    """Linux package managers, in detection priority order."""

    APT = "apt"
    DNF = "dnf"
    PACMAN = "pacman"
    UNKNOWN = "unknown"

    @classmethod
    def detection_order(cls) -> list["PackageManager"]:
        return [cls.APT, cls.DNF, cls.PACMAN]


class StepOutcome(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class DependencyRequirement:
    """One declared tool, as read from ``.devsetup.json``.

    ``id`` is the key into the package catalog; ``cli_name`` and
    ``version_flag`` form the version query (``node -v``).
    """

    id: str
    name: str
    required_version: str
    cli_name: str
    version_flag: str

    @property
    def version_command(self) -> list[str]:
        return [self.cli_name, *self.version_flag.split()]


@dataclass(frozen=True)
class AuditResult:
    dependency: DependencyRequirement
    is_installed: bool
    installed_version: str | None = None


@dataclass(frozen=True)
class ActionStep:
    dependency: DependencyRequirement
    action: Action
    reason: str


@dataclass
class ActionPlan:
    steps: list[ActionStep] = field(default_factory=list)

    def __iter__(self):
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def __getitem__(self, index: int) -> ActionStep:
        return self.steps[index]

    @property
    def pending(self) -> list[ActionStep]:
        """Steps that will run at least one command."""
        return [s for s in self.steps if s.action != Action.ALREADY_MET]

    def is_satisfied(self) -> bool:
        return not self.pending


@dataclass
class StepResult:
    dependency: DependencyRequirement
    action: Action
    outcome: StepOutcome
    detail: str = ""
    commands: list[str] = field(default_factory=list)


@dataclass
class ExecutionReport:
    results: list[StepResult] = field(default_factory=list)
    package_manager: PackageManager | None = None

    def _with_outcome(self, outcome: StepOutcome) -> list[StepResult]:
        return [r for r in self.results if r.outcome == outcome]

    @property
    def succeeded(self) -> list[StepResult]:
        return self._with_outcome(StepOutcome.SUCCESS)

    @property
    def skipped(self) -> list[StepResult]:
        return self._with_outcome(StepOutcome.SKIPPED)

    @property
    def failed(self) -> list[StepResult]:
        return self._with_outcome(StepOutcome.FAILED)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


__all__ = [
    "Action",
    "PackageManager",
    "StepOutcome",
    "DependencyRequirement",
    "AuditResult",
    "ActionStep",
    "ActionPlan",
    "StepResult",
    "ExecutionReport",
]
