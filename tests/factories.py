"""Automation definitions shared across tests."""

LEGACY_TAG = {
    "name": "Tag new contacts",
    "trigger": {"type": "contact_created"},
    "actions": [{"type": "add_contact_tag", "config": {"tag": "lead"}}],
}

COMPANY_LEAD = {
    **LEGACY_TAG,
    "name": "Tag contacts with a company",
    "conditions": [{"field": "company", "operator": "not_equals", "value": ""}],
}

DELAYED_NURTURE = {
    "name": "Nurture after a day",
    "trigger": {"type": "contact_created"},
    "is_multi_step": True,
    "steps": [
        {"step_index": 0, "type": "delay", "delay_config": {"value": 1, "unit": "days"}, "next_step_index": 1},
        {
            "step_index": 1,
            "type": "action",
            "actions": [{"type": "update_contact_field", "config": {"field": "status", "value": "nurtured"}}],
        },
    ],
}

HIGH_VALUE_BRANCH = {
    "name": "Route deals by value",
    "trigger": {"type": "deal_created"},
    "is_multi_step": True,
    "steps": [
        {
            "step_index": 0,
            "type": "branch",
            "branch_config": {
                "branches": [
                    {"name": "high_value", "conditions": [{"field": "deal.value", "operator": "greater_than", "value": 10000}]}
                ],
                "default_branch": "standard",
            },
            "branch_step_indices": {"high_value": 1, "standard": 2},
        },
        {"step_index": 1, "type": "action", "actions": [{"type": "move_deal_to_stage", "config": {"stage_id": "vip"}}]},
        {
            "step_index": 2,
            "type": "action",
            "actions": [{"type": "update_deal_field", "config": {"field": "priority", "value": "normal"}}],
        },
    ],
}
