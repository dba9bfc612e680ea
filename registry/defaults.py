from models.actions import (
    AddTagConfig,
    AssignPositionConfig,
    CandidateNoteConfig,
    CandidateRatingConfig,
    CandidateStageConfig,
    CandidateStatusConfig,
    CreateReminderConfig,
    CustomFieldUpdateConfig,
    FieldUpdateConfig,
    MoveToStageConfig,
    ScheduleInterviewConfig,
    SendEmailConfig,
)

from .registry import Registry


def create_default_registries() -> dict[str, Registry]:
    """Create the registries for triggers, condition operators, actions and step types."""
    trigger_registry = Registry(name="trigger")
    trigger_registry.register("contact_created", "Fires when a contact is created")
    trigger_registry.register("contact_updated", "Fires when a contact is updated")
    trigger_registry.register("deal_created", "Fires when a deal is created")
    trigger_registry.register("deal_updated", "Fires when a deal is updated")
    trigger_registry.register("deal_stage_changed", "Fires when a deal moves between pipeline stages")

    condition_registry = Registry(name="condition")
    condition_registry.register("equals", "Field equals value")
    condition_registry.register("not_equals", "Field differs from value")
    condition_registry.register("contains", "Stringified field contains value")
    condition_registry.register("not_contains", "Stringified field does not contain value")
    condition_registry.register("is_empty", "Field is missing, empty string or empty collection")
    condition_registry.register("is_not_empty", "Field has a non-empty value")
    condition_registry.register("greater_than", "Field is numerically greater than value")
    condition_registry.register("less_than", "Field is numerically less than value")
    condition_registry.register("greater_or_equal", "Field is numerically greater than or equal to value")
    condition_registry.register("less_or_equal", "Field is numerically less than or equal to value")
    condition_registry.register("has_tag", "Entity tags include value")
    condition_registry.register("not_has_tag", "Entity tags do not include value")

    action_registry = Registry(name="action")
    action_registry.register("update_contact_field", "Overwrite a contact field", FieldUpdateConfig)
    action_registry.register("update_deal_field", "Overwrite a deal field", FieldUpdateConfig)
    action_registry.register("update_custom_field", "Write a custom field on the entity", CustomFieldUpdateConfig)
    action_registry.register("add_contact_tag", "Add a tag to the contact", AddTagConfig)
    action_registry.register("move_deal_to_stage", "Move the deal to a pipeline stage", MoveToStageConfig)
    action_registry.register("create_reminder", "Create a reminder linked to the entity", CreateReminderConfig)
    action_registry.register("send_email", "Send a templated email to the entity", SendEmailConfig)
    action_registry.register("update_candidate_status", "Set a recruiting candidate's status", CandidateStatusConfig)
    action_registry.register("move_candidate_to_stage", "Move a candidate to a recruiting stage", CandidateStageConfig)
    action_registry.register("update_candidate_rating", "Rate a candidate", CandidateRatingConfig)
    action_registry.register("add_candidate_note", "Append a timestamped note to a candidate", CandidateNoteConfig)
    action_registry.register("schedule_interview", "Set a candidate's interview date", ScheduleInterviewConfig)
    action_registry.register("assign_to_position", "Assign a candidate to an open position", AssignPositionConfig)

    step_registry = Registry(name="step")
    step_registry.register("action", "Run an ordered list of actions")
    step_registry.register("delay", "Wait before the next step")
    step_registry.register("condition", "Continue only when conditions pass")
    step_registry.register("branch", "Route to the first branch whose conditions pass")

    return {
        "trigger": trigger_registry,
        "condition": condition_registry,
        "action": action_registry,
        "step": step_registry,
    }
