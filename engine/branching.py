"""Routing for condition and branch steps. Steps reference each other by index only."""

from dataclasses import dataclass
from typing import List, Optional

from models import AutomationStep, ConditionOutcome

from .conditions import Context, evaluate_conditions

FALSE_BRANCH = "false"


@dataclass
class BranchDecision:
    next_step_index: Optional[int]
    branch: Optional[str] = None
    conditions_met: bool = True


def resolve_branch(
    step: AutomationStep, context: Context, trace: Optional[List[ConditionOutcome]] = None
) -> BranchDecision:
    """First branch whose conditions pass wins; otherwise the default branch, otherwise stop."""
    config = step.branch_config
    branches = config.branches if config else []
    for branch in branches:
        if evaluate_conditions(branch.conditions, context, trace):
            return BranchDecision(next_step_index=step.branch_step_indices.get(branch.name), branch=branch.name)

    default = config.default_branch if config else None
    if default is not None:
        return BranchDecision(next_step_index=step.branch_step_indices.get(default), branch=default)

    return BranchDecision(next_step_index=None, conditions_met=False)


def resolve_condition_gate(
    step: AutomationStep, context: Context, trace: Optional[List[ConditionOutcome]] = None
) -> BranchDecision:
    """Pass continues to next_step_index; failure takes the "false" route if one is mapped."""
    if evaluate_conditions(step.conditions, context, trace):
        return BranchDecision(next_step_index=step.next_step_index)
    return BranchDecision(
        next_step_index=step.branch_step_indices.get(FALSE_BRANCH),
        branch=FALSE_BRANCH,
        conditions_met=False,
    )
