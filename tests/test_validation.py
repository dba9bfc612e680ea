"""Tests for save-time validation of automation definitions."""

import json

import pytest
from pydantic import ValidationError

from main import orchestrate_definition
from registry import create_default_registries
from tests.factories import DELAYED_NURTURE, HIGH_VALUE_BRANCH, LEGACY_TAG
from validations import (
    InvalidAutomationError,
    UnknownRegistryTypeError,
    parse_and_validate_automation,
    parse_automation_json,
)


@pytest.fixture
def registries():
    return create_default_registries()


class TestValidDefinitions:
    @pytest.mark.parametrize("payload", [LEGACY_TAG, DELAYED_NURTURE, HIGH_VALUE_BRANCH])
    def test_shared_definitions_validate(self, payload, registries):
        automation = parse_and_validate_automation(payload, registries)
        assert automation.name == payload["name"]

    def test_steps_are_sorted_by_index(self, registries):
        payload = {**DELAYED_NURTURE, "steps": list(reversed(DELAYED_NURTURE["steps"]))}
        automation = parse_and_validate_automation(payload, registries)
        assert [step.step_index for step in automation.steps] == [0, 1]


class TestRejectedDefinitions:
    def test_tags_instead_of_tag_is_rejected(self, registries):
        payload = {**LEGACY_TAG, "actions": [{"type": "add_contact_tag", "config": {"tags": ["lead"]}}]}
        with pytest.raises(InvalidAutomationError, match="add_contact_tag"):
            parse_and_validate_automation(payload, registries)

    def test_unknown_trigger(self, registries):
        with pytest.raises(UnknownRegistryTypeError, match="known: contact_created"):
            parse_and_validate_automation({**LEGACY_TAG, "trigger": {"type": "page_viewed"}}, registries)

    def test_unknown_operator(self, registries):
        payload = {**LEGACY_TAG, "conditions": [{"field": "x", "operator": "sounds_like", "value": 1}]}
        with pytest.raises(UnknownRegistryTypeError, match="sounds_like"):
            parse_and_validate_automation(payload, registries)

    def test_unknown_operator_in_negative_exit_condition(self, registries):
        exit_criteria = {
            "conditions": [
                {"type": "negative_condition", "days": 3, "condition": {"field": "x", "operator": "sounds_like"}}
            ]
        }
        with pytest.raises(UnknownRegistryTypeError, match="exit criteria"):
            parse_and_validate_automation({**LEGACY_TAG, "exit_criteria": exit_criteria}, registries)

    def test_unknown_action(self, registries):
        payload = {**LEGACY_TAG, "actions": [{"type": "send_fax", "config": {}}]}
        with pytest.raises(UnknownRegistryTypeError):
            parse_and_validate_automation(payload, registries)

    def test_single_step_needs_actions(self, registries):
        with pytest.raises(ValidationError):
            parse_and_validate_automation({**LEGACY_TAG, "actions": []}, registries)

    def test_multi_step_needs_steps(self, registries):
        with pytest.raises(ValidationError):
            parse_and_validate_automation({**DELAYED_NURTURE, "steps": []}, registries)

    def test_delay_step_needs_delay_config(self, registries):
        steps = [{"step_index": 0, "type": "delay"}]
        with pytest.raises(ValidationError):
            parse_and_validate_automation({**DELAYED_NURTURE, "steps": steps}, registries)

    def test_gap_in_step_indices(self, registries):
        steps = [dict(DELAYED_NURTURE["steps"][0], next_step_index=None), dict(DELAYED_NURTURE["steps"][1], step_index=2)]
        with pytest.raises(InvalidAutomationError, match="contiguous"):
            parse_and_validate_automation({**DELAYED_NURTURE, "steps": steps}, registries)

    def test_dangling_next_step(self, registries):
        steps = [dict(DELAYED_NURTURE["steps"][0], next_step_index=5), DELAYED_NURTURE["steps"][1]]
        with pytest.raises(InvalidAutomationError, match="missing step 5"):
            parse_and_validate_automation({**DELAYED_NURTURE, "steps": steps}, registries)

    def test_default_branch_must_be_mapped(self, registries):
        branch_step = dict(HIGH_VALUE_BRANCH["steps"][0], branch_step_indices={"high_value": 1})
        payload = {**HIGH_VALUE_BRANCH, "steps": [branch_step, *HIGH_VALUE_BRANCH["steps"][1:]]}
        with pytest.raises(InvalidAutomationError, match="default branch"):
            parse_and_validate_automation(payload, registries)


class TestJsonIngestion:
    def test_invalid_json(self):
        with pytest.raises(json.JSONDecodeError):
            parse_automation_json("{not json")

    def test_orchestrate_definition_saves(self, automation_repo):
        automation_id = orchestrate_definition(json.dumps(HIGH_VALUE_BRANCH), automation_repo)

        stored = automation_repo.get(automation_id)
        assert stored.is_multi_step
        assert stored.get_step(0).branch_step_indices == {"high_value": 1, "standard": 2}
        assert automation_repo.list_active_by_trigger("deal_created")[0].id == automation_id
