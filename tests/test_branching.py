"""Tests for branch and condition-step routing."""

from engine.branching import FALSE_BRANCH, resolve_branch, resolve_condition_gate
from models import AutomationStep, Branch, BranchConfig, Condition, StepType


def _branch_step(default_branch=None) -> AutomationStep:
    return AutomationStep(
        step_index=0,
        type=StepType.BRANCH,
        branch_config=BranchConfig(
            branches=[
                Branch(name="high", conditions=[Condition(field="value", operator="greater_than", value=10000)]),
                Branch(name="mid", conditions=[Condition(field="value", operator="greater_than", value=1000)]),
            ],
            default_branch=default_branch,
        ),
        branch_step_indices={"high": 1, "mid": 2, "low": 3},
    )


class TestResolveBranch:
    def test_first_matching_branch_wins(self):
        decision = resolve_branch(_branch_step(), {"value": 15000})
        assert decision.branch == "high"
        assert decision.next_step_index == 1

    def test_later_branch_matches(self):
        decision = resolve_branch(_branch_step(), {"value": 5000})
        assert (decision.branch, decision.next_step_index) == ("mid", 2)

    def test_default_branch_when_nothing_matches(self):
        decision = resolve_branch(_branch_step(default_branch="low"), {"value": 10})
        assert (decision.branch, decision.next_step_index) == ("low", 3)

    def test_no_match_and_no_default_ends(self):
        decision = resolve_branch(_branch_step(), {"value": 10})
        assert decision.next_step_index is None
        assert decision.branch is None
        assert decision.conditions_met is False


class TestConditionGate:
    def _step(self, **kwargs) -> AutomationStep:
        return AutomationStep(
            step_index=0,
            type=StepType.CONDITION,
            conditions=[Condition(field="status", operator="equals", value="qualified")],
            next_step_index=1,
            **kwargs,
        )

    def test_pass_continues(self):
        decision = resolve_condition_gate(self._step(), {"status": "qualified"})
        assert decision.next_step_index == 1
        assert decision.conditions_met

    def test_fail_takes_false_route(self):
        decision = resolve_condition_gate(self._step(branch_step_indices={FALSE_BRANCH: 2}), {"status": "new"})
        assert decision.next_step_index == 2
        assert not decision.conditions_met

    def test_fail_without_false_route_ends(self):
        decision = resolve_condition_gate(self._step(), {"status": "new"})
        assert decision.next_step_index is None
        assert not decision.conditions_met
