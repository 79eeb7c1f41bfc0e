"""Audit -> Plan -> Execute."""

import logging
from dataclasses import dataclass
from typing import Callable

from .auditor import Auditor
from .catalog import load_catalog
from .config import Settings
from .executor import Executor
from .models import ActionPlan, AuditResult, DependencyRequirement, ExecutionReport
from .planner import create_action_plan
from .probe import SystemProbe

_logging = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    audit: list[AuditResult] | None = None
    plan: ActionPlan | None = None
    report: ExecutionReport | None = None
    declined: bool = False

    @property
    def aborted(self) -> bool:
        return self.audit is None


def build_auditor(settings: Settings, platform: str | None = None) -> Auditor:
    return Auditor(
        probe=SystemProbe(os_release_path=settings.os_release_path),
        platform=platform,
    )


def build_executor(
    settings: Settings, platform: str | None = None, dry_run: bool = False
) -> Executor:
    return Executor(
        catalog=load_catalog(settings.catalog_path),
        probe=SystemProbe(os_release_path=settings.os_release_path),
        platform=platform,
        silent_timeout=settings.silent_timeout,
        dry_run=dry_run,
    )


async def run_audit_and_plan(
    requirements: list[DependencyRequirement],
    auditor: Auditor,
) -> PipelineResult:
    audit = await auditor.run(requirements)
    if audit is None:
        return PipelineResult()
    return PipelineResult(audit=audit, plan=create_action_plan(audit))


async def run_pipeline(
    requirements: list[DependencyRequirement],
    auditor: Auditor,
    executor: Executor,
    confirm: Callable[[ActionPlan], bool] | None = None,
) -> PipelineResult:
    """Run the whole pipeline.

    Stops after planning when the audit aborts, when every requirement is
    already met, or when ``confirm`` returns False.
    """
    result = await run_audit_and_plan(requirements, auditor)
    if result.plan is None:
        return result

    if result.plan.is_satisfied():
        _logging.info("All requirements are already met.")
        return result

    if confirm is not None and not confirm(result.plan):
        _logging.info("Setup cancelled by user.")
        result.declined = True
        return result

    result.report = await executor.execute(result.plan)
    return result


__all__ = [
    "PipelineResult",
    "build_auditor",
    "build_executor",
    "run_audit_and_plan",
    "run_pipeline",
]
