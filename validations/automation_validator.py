import json
from typing import Any, Dict, Iterable

from pydantic import ValidationError

from models import Action, Automation, AutomationStep, Condition, NegativeCondition, StepType
from registry import Registry


class InvalidAutomationError(ValueError):
    """Raised when an automation definition is structurally unusable."""


class UnknownRegistryTypeError(InvalidAutomationError):
    """Raised when an automation references an unknown trigger, condition, action or step type."""


def parse_automation_json(text: str) -> Dict[str, Any]:
    """
    Decode a stringified automation definition.

    Raises json.JSONDecodeError if the input is not valid JSON.
    """
    return json.loads(text)


def _validate_conditions(conditions: Iterable[Condition], condition_registry: Registry, where: str) -> None:
    for condition in conditions:
        if condition.operator not in condition_registry:
            raise UnknownRegistryTypeError(f"Unknown condition operator in {where}: {condition.operator}")


def _validate_actions(actions: Iterable[Action], action_registry: Registry, where: str) -> None:
    for action in actions:
        item = action_registry.get(action.type)
        if item is None:
            raise UnknownRegistryTypeError(f"Unknown action type in {where}: {action.type}")
        if item.config_model is None:
            continue
        try:
            item.config_model.model_validate(action.config)
        except ValidationError as exc:
            raise InvalidAutomationError(f"Invalid config for action {action.type} in {where}: {exc}") from exc


def _validate_step_graph(steps: list[AutomationStep]) -> None:
    indices = [step.step_index for step in steps]
    if sorted(indices) != list(range(len(steps))):
        raise InvalidAutomationError(f"Step indices must be unique and contiguous from 0, got {indices}")

    def check_target(step: AutomationStep, target: int, label: str) -> None:
        if target < 0 or target >= len(steps):
            raise InvalidAutomationError(
                f"Step {step.step_index} {label} points at missing step {target}"
            )

    for step in steps:
        if step.next_step_index is not None:
            check_target(step, step.next_step_index, "next_step_index")
        for branch_name, target in step.branch_step_indices.items():
            check_target(step, target, f"branch '{branch_name}'")
        if step.type == StepType.BRANCH and step.branch_config is not None:
            default = step.branch_config.default_branch
            if default is not None and default not in step.branch_step_indices:
                raise InvalidAutomationError(
                    f"Step {step.step_index} default branch '{default}' has no entry in branch_step_indices"
                )


def _validate_against_registries(automation: Automation, registries: Dict[str, Registry]) -> Automation:
    trigger_registry = registries["trigger"]
    condition_registry = registries["condition"]
    action_registry = registries["action"]
    step_registry = registries["step"]

    if automation.trigger.type not in trigger_registry:
        known = ", ".join(item.type for item in trigger_registry.all())
        raise UnknownRegistryTypeError(f"Unknown trigger type: {automation.trigger.type} (known: {known})")

    _validate_conditions(automation.conditions, condition_registry, "automation conditions")
    _validate_actions(automation.actions, action_registry, "automation actions")
    for exit_condition in automation.exit_criteria.conditions:
        if isinstance(exit_condition, NegativeCondition):
            _validate_conditions([exit_condition.condition], condition_registry, "exit criteria")

    for step in automation.steps:
        where = f"step {step.step_index}"
        if step.type.value not in step_registry:
            raise UnknownRegistryTypeError(f"Unknown step type in {where}: {step.type.value}")
        _validate_conditions(step.conditions, condition_registry, where)
        _validate_actions(step.actions, action_registry, where)
        if step.branch_config is not None:
            for branch in step.branch_config.branches:
                _validate_conditions(branch.conditions, condition_registry, f"{where} branch '{branch.name}'")

    if automation.is_multi_step:
        _validate_step_graph(automation.steps)

    return automation


def parse_and_validate_automation(payload: dict, registries: Dict[str, Registry]) -> Automation:
    """
    Convert parsed JSON (dict) into Automation and validate registry membership,
    per-action configs and the step graph.
    Raises ValidationError or InvalidAutomationError on failure.
    """
    automation = Automation.model_validate(payload)
    return _validate_against_registries(automation, registries)
