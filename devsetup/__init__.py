"""devsetup: audit a machine against a project's declared tools and install what is missing."""

import logging

from .auditor import Auditor, AuditState
from .catalog import PackageCatalog, load_catalog
from .config import Settings, load_requirements
from .errors import (
    CommandError,
    ConfigError,
    DevsetupError,
    NoCommandAvailable,
    PreflightError,
    ProbeError,
    format_error,
)
from .execution import (
    INSTALL_TIMEOUT,
    CommandChannel,
    CommandMode,
    run_command_async,
)
from .executor import Executor
from .models import (
    Action,
    ActionPlan,
    ActionStep,
    AuditResult,
    DependencyRequirement,
    ExecutionReport,
    PackageManager,
    StepOutcome,
    StepResult,
)
from .planner import create_action_plan, determine_action, render_plan
from .probe import SystemProbe
from .versions import coerce, satisfies

__version__ = "0.1.0"

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(debug: bool = False) -> None:
    """Configure the root logger once; later calls only adjust the level."""
    level = logging.DEBUG if debug else logging.INFO
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=_LOG_FORMAT, datefmt="%H:%M:%S")
    root.setLevel(level)


__all__ = [
    "__version__",
    "setup_logging",
    "Auditor",
    "AuditState",
    "PackageCatalog",
    "load_catalog",
    "Settings",
    "load_requirements",
    "DevsetupError",
    "ConfigError",
    "ProbeError",
    "PreflightError",
    "CommandError",
    "NoCommandAvailable",
    "format_error",
    "INSTALL_TIMEOUT",
    "CommandChannel",
    "CommandMode",
    "run_command_async",
    "Executor",
    "Action",
    "ActionPlan",
    "ActionStep",
    "AuditResult",
    "DependencyRequirement",
    "ExecutionReport",
    "PackageManager",
    "StepOutcome",
    "StepResult",
    "create_action_plan",
    "determine_action",
    "render_plan",
    "SystemProbe",
    "coerce",
    "satisfies",
]
