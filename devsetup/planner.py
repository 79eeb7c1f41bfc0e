"""Turn audit results into an action plan."""

from .models import Action, ActionPlan, ActionStep, AuditResult
from .versions import satisfies


def determine_action(result: AuditResult) -> ActionStep:
    """Pick the action for one dependency. Every result maps to exactly one step."""
    dependency = result.dependency

    if not result.is_installed:
        return ActionStep(
            dependency=dependency,
            action=Action.INSTALL,
            reason=f"{dependency.name} is not installed.",
        )

    if result.installed_version and satisfies(
        result.installed_version, dependency.required_version
    ):
        return ActionStep(
            dependency=dependency,
            action=Action.ALREADY_MET,
            reason=(
                f"{dependency.name} is installed at a compatible version "
                f"({result.installed_version})."
            ),
        )

    return ActionStep(
        dependency=dependency,
        action=Action.REINSTALL,
        reason=(
            f"{dependency.name} is installed at an incompatible version "
            f"({result.installed_version or 'unknown'}). "
            f"Version {dependency.required_version} is required."
        ),
    )


def create_action_plan(results: list[AuditResult]) -> ActionPlan:
    return ActionPlan(steps=[determine_action(r) for r in results])


def render_plan(plan: ActionPlan) -> str:
    lines = ["Setup Plan", ""]

    if not plan.steps:
        lines.append("Nothing to do: no dependencies declared.")
        return "\n".join(lines)

    icons = {
        Action.ALREADY_MET: "✅",
        Action.INSTALL: "📦",
        Action.REINSTALL: "🔄",
    }
    lines.append("Steps:")
    for i, step in enumerate(plan.steps, 1):
        lines.append(f"  {i}. {icons[step.action]} {step.action.value} {step.dependency.name}")
        lines.append(f"     {step.reason}")

    if plan.is_satisfied():
        lines.append("")
        lines.append("All requirements are already met.")

    return "\n".join(lines)


__all__ = [
    "determine_action",
    "create_action_plan",
    "render_plan",
]
