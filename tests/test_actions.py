"""Tests for the action executor.

Covers:
- Field, custom field and tag updates against the entity store
- Idempotent tag add
- First failure aborts the rest of the batch
- Entity-scoped actions are skipped on the wrong entity type
- Email templating and recipient resolution
- Reminder due dates
- Recruiting pipeline updates
"""

from datetime import datetime, timedelta

from engine import ActionExecutor
from models import Action, Enrollment, EntityType


def _enrollment(entity_type: str, entity_id: str) -> Enrollment:
    return Enrollment(
        id="enr-1",
        automation_id="auto-1",
        user_id="user-1",
        entity_type=EntityType(entity_type),
        entity_id=entity_id,
        enrolled_at=datetime(2025, 1, 1),
    )


class TestEntityUpdates:
    """Updates go through the entity store and return the fresh snapshot."""

    def test_update_contact_field(self, action_executor, entity_store):
        contact = entity_store.add("contact", {"id": "c1", "status": "new"})
        result = action_executor.execute(
            [Action(type="update_contact_field", config={"field": "status", "value": "nurtured"})],
            contact,
            _enrollment("contact", "c1"),
        )

        assert result.success
        assert entity_store.find_by_id("contact", "c1")["status"] == "nurtured"
        assert result.entity["status"] == "nurtured"

    def test_custom_field_prefix_merges_custom_fields(self, action_executor, entity_store):
        contact = entity_store.add("contact", {"id": "c1", "customFields": {"plan": "free", "seats": 3}})
        action_executor.execute(
            [Action(type="update_contact_field", config={"field": "customFields.plan", "value": "gold"})],
            contact,
            _enrollment("contact", "c1"),
        )

        assert entity_store.find_by_id("contact", "c1")["customFields"] == {"plan": "gold", "seats": 3}

    def test_update_custom_field(self, action_executor, entity_store):
        deal = entity_store.add("deal", {"id": "d1"})
        action_executor.execute(
            [Action(type="update_custom_field", config={"field_name": "source", "value": "webinar"})],
            deal,
            _enrollment("deal", "d1"),
        )

        assert entity_store.find_by_id("deal", "d1")["customFields"] == {"source": "webinar"}

    def test_tag_add_is_idempotent(self, action_executor, entity_store):
        contact = entity_store.add("contact", {"id": "c1", "tags": ["lead"]})
        actions = [Action(type="add_contact_tag", config={"tag": "lead"})]

        first = action_executor.execute(actions, contact, _enrollment("contact", "c1"))
        second = action_executor.execute(actions, first.entity, _enrollment("contact", "c1"))

        assert first.success and second.success
        assert entity_store.find_by_id("contact", "c1")["tags"] == ["lead"]

    def test_move_deal_to_stage(self, action_executor, entity_store):
        deal = entity_store.add("deal", {"id": "d1", "stageId": "s1"})
        action_executor.execute(
            [Action(type="move_deal_to_stage", config={"stage_id": "s2"})], deal, _enrollment("deal", "d1")
        )

        assert entity_store.find_by_id("deal", "d1")["stageId"] == "s2"


class TestBatchSemantics:
    """Ordering, abort on failure and skipped actions."""

    def test_first_failure_aborts_batch(self, action_executor, entity_store):
        contact = entity_store.add("contact", {"id": "c1"})
        entity_store.delete("contact", "c1")
        result = action_executor.execute(
            [
                Action(type="add_contact_tag", config={"tag": "lead"}),
                Action(type="update_contact_field", config={"field": "status", "value": "x"}),
            ],
            contact,
            _enrollment("contact", "c1"),
        )

        assert not result.success
        assert [outcome.status for outcome in result.outcomes] == ["failed"]
        assert "Entity not found" in result.error

    def test_invalid_config_fails_the_action(self, action_executor, entity_store):
        contact = entity_store.add("contact", {"id": "c1"})
        result = action_executor.execute(
            [Action(type="add_contact_tag", config={"tags": ["lead"]})], contact, _enrollment("contact", "c1")
        )

        assert not result.success
        assert result.outcomes[0].status == "failed"

    def test_contact_action_on_deal_is_skipped(self, action_executor, entity_store):
        deal = entity_store.add("deal", {"id": "d1"})
        result = action_executor.execute(
            [
                Action(type="add_contact_tag", config={"tag": "lead"}),
                Action(type="update_deal_field", config={"field": "priority", "value": "high"}),
            ],
            deal,
            _enrollment("deal", "d1"),
        )

        assert result.success
        assert [outcome.status for outcome in result.outcomes] == ["skipped", "success"]
        assert "tags" not in entity_store.find_by_id("deal", "d1")

    def test_unknown_action_type_is_skipped(self, action_executor, entity_store):
        contact = entity_store.add("contact", {"id": "c1"})
        result = action_executor.execute(
            [Action(type="send_sms", config={})], contact, _enrollment("contact", "c1")
        )

        assert result.success
        assert result.outcomes[0].status == "skipped"


class TestMessaging:
    """Email and reminders."""

    def test_email_renders_template_with_fallback(self, action_executor, entity_store, email_sender):
        contact = entity_store.add("contact", {"id": "c1", "email": "ada@example.com", "firstName": "Ada"})
        action_executor.execute(
            [
                Action(
                    type="send_email",
                    config={"subject": "Hi {{firstName}}", "body": "Dear {{lastName || 'friend'}}, {{fullName}}"},
                )
            ],
            contact,
            _enrollment("contact", "c1"),
        )

        assert len(email_sender.outbox) == 1
        sent = email_sender.outbox[0]
        assert sent.to == "ada@example.com"
        assert sent.subject == "Hi Ada"
        assert sent.body == "Dear friend, Ada"

    def test_deal_email_goes_to_linked_contact(self, action_executor, entity_store, email_sender):
        entity_store.add("contact", {"id": "c1", "email": "owner@example.com"})
        deal = entity_store.add("deal", {"id": "d1", "title": "Big one", "contactId": "c1"})
        action_executor.execute(
            [Action(type="send_email", config={"subject": "{{deal.title}}", "body": "x"})],
            deal,
            _enrollment("deal", "d1"),
        )

        assert email_sender.outbox[0].to == "owner@example.com"
        assert email_sender.outbox[0].subject == "Big one"

    def test_email_without_recipient_fails(self, action_executor, entity_store, email_sender):
        contact = entity_store.add("contact", {"id": "c1"})
        result = action_executor.execute(
            [Action(type="send_email", config={})], contact, _enrollment("contact", "c1")
        )

        assert not result.success
        assert email_sender.outbox == []

    def test_reminder_due_date_uses_clock(self, action_executor, entity_store, reminder_store, clock):
        contact = entity_store.add("contact", {"id": "c1", "firstName": "Ada"})
        action_executor.execute(
            [
                Action(
                    type="create_reminder",
                    config={"title": "Call {{firstName}}", "due_in": {"value": 2, "unit": "hours"}},
                )
            ],
            contact,
            _enrollment("contact", "c1"),
        )

        reminder = reminder_store.reminders[0]
        assert reminder.title == "Call Ada"
        assert reminder.due_at == clock.now + timedelta(hours=2)
        assert reminder.linked_entity == ("contact", "c1")
        assert reminder.user_id == "user-1"

    def test_reminder_without_store_fails(self, entity_store):
        executor = ActionExecutor(entity_store)
        contact = entity_store.add("contact", {"id": "c1"})
        result = executor.execute(
            [Action(type="create_reminder", config={"title": "Call"})], contact, _enrollment("contact", "c1")
        )

        assert not result.success
        assert "reminder" in result.error


class TestRecruiting:
    """Pipeline updates resolve the target from config or the entity."""

    def test_candidate_status_uses_entity_pipeline(self, action_executor, entity_store):
        entity_store.add("pipeline", {"id": "p1", "status": "applied"})
        contact = entity_store.add("contact", {"id": "c1", "pipelineId": "p1"})
        result = action_executor.execute(
            [Action(type="update_candidate_status", config={"status": "interviewing"})],
            contact,
            _enrollment("contact", "c1"),
        )

        assert result.success
        assert entity_store.find_by_id("pipeline", "p1")["status"] == "interviewing"

    def test_candidate_note_appends(self, action_executor, entity_store, clock):
        entity_store.add("pipeline", {"id": "p1", "notes": "first"})
        contact = entity_store.add("contact", {"id": "c1"})
        action_executor.execute(
            [Action(type="add_candidate_note", config={"note": "second", "pipeline_id": "p1"})],
            contact,
            _enrollment("contact", "c1"),
        )

        notes = entity_store.find_by_id("pipeline", "p1")["notes"]
        assert notes == f"first\n\n[{clock.now.isoformat()}] second"

    def test_missing_pipeline_fails(self, action_executor, entity_store):
        contact = entity_store.add("contact", {"id": "c1"})
        result = action_executor.execute(
            [Action(type="update_candidate_rating", config={"rating": 4})], contact, _enrollment("contact", "c1")
        )

        assert not result.success
