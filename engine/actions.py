"""
Side-effecting actions applied to an enrolled entity.

A batch runs strictly in order and stops at the first failure. Nothing is
rolled back: field updates are overwrites and tag adds are no-ops when the
tag is already present, which is what makes re-running a batch safe.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel

from db.models import utcnow
from exceptions import ActionExecutionError, EntityNotFoundError
from models import Action, ActionOutcome, Enrollment
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
from registry import Registry, create_default_registries

from .collaborators import EmailSender, EntityStore, ReminderStore, Snapshot
from .templating import render_template, template_variables

logger = logging.getLogger(__name__)

CUSTOM_FIELDS_PREFIX = "customFields."
PIPELINE_ENTITY_TYPE = "pipeline"

# Actions that only make sense for one entity type; others are skipped.
ENTITY_SCOPE: Dict[str, str] = {
    "update_contact_field": "contact",
    "add_contact_tag": "contact",
    "update_deal_field": "deal",
    "move_deal_to_stage": "deal",
}


@dataclass
class ActionBatchResult:
    success: bool
    outcomes: List[ActionOutcome] = field(default_factory=list)
    error: Optional[str] = None
    entity: Optional[Snapshot] = None


Handler = Callable[[Any, Snapshot, Enrollment], Optional[Snapshot]]


class ActionExecutor:
    def __init__(
        self,
        entity_store: EntityStore,
        email_sender: Optional[EmailSender] = None,
        reminder_store: Optional[ReminderStore] = None,
        action_registry: Optional[Registry] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._entity_store = entity_store
        self._email_sender = email_sender
        self._reminder_store = reminder_store
        self._action_registry = action_registry or create_default_registries()["action"]
        self._clock = clock
        self._handlers: Dict[str, Handler] = {
            "update_contact_field": self._update_field,
            "update_deal_field": self._update_field,
            "update_custom_field": self._update_custom_field,
            "add_contact_tag": self._add_contact_tag,
            "move_deal_to_stage": self._move_deal_to_stage,
            "create_reminder": self._create_reminder,
            "send_email": self._send_email,
            # Recruiting pipeline
            "update_candidate_status": self._update_candidate_status,
            "move_candidate_to_stage": self._move_candidate_to_stage,
            "update_candidate_rating": self._update_candidate_rating,
            "add_candidate_note": self._add_candidate_note,
            "schedule_interview": self._schedule_interview,
            "assign_to_position": self._assign_to_position,
        }

    def execute(self, actions: Iterable[Action], entity: Snapshot, enrollment: Enrollment) -> ActionBatchResult:
        """Run the actions in order; the first failure aborts the rest of the batch."""
        outcomes: List[ActionOutcome] = []
        for action in actions:
            try:
                status, entity = self._execute_one(action, entity, enrollment)
            except Exception as exc:
                error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "Action %s failed for %s %s (enrollment %s): %s",
                    action.type,
                    enrollment.entity_type.value,
                    enrollment.entity_id,
                    enrollment.id,
                    error,
                )
                outcomes.append(ActionOutcome(type=action.type, config=action.config, status="failed", error=error))
                return ActionBatchResult(success=False, outcomes=outcomes, error=error, entity=entity)
            outcomes.append(ActionOutcome(type=action.type, config=action.config, status=status))
        return ActionBatchResult(success=True, outcomes=outcomes, entity=entity)

    def _execute_one(self, action: Action, entity: Snapshot, enrollment: Enrollment) -> tuple[str, Snapshot]:
        handler = self._handlers.get(action.type)
        item = self._action_registry.get(action.type)
        if handler is None or item is None:
            logger.warning("Skipping unsupported action type %r", action.type)
            return "skipped", entity

        scope = ENTITY_SCOPE.get(action.type)
        if scope is not None and scope != enrollment.entity_type.value:
            logger.debug("Skipping %s on a %s", action.type, enrollment.entity_type.value)
            return "skipped", entity

        config: BaseModel | Dict[str, Any] = action.config
        if item.config_model is not None:
            config = item.config_model.model_validate(action.config)

        updated = handler(config, entity, enrollment)
        return "success", updated if updated is not None else entity

    # Entity updates ----------------------------------------------------------

    def _write(self, enrollment: Enrollment, fields: Snapshot) -> Snapshot:
        return self._entity_store.update(enrollment.entity_type.value, enrollment.entity_id, fields)

    def _update_field(self, config: FieldUpdateConfig, entity: Snapshot, enrollment: Enrollment) -> Snapshot:
        if config.field.startswith(CUSTOM_FIELDS_PREFIX):
            name = config.field[len(CUSTOM_FIELDS_PREFIX):]
            custom_fields = dict(entity.get("customFields") or {})
            custom_fields[name] = config.value
            return self._write(enrollment, {"customFields": custom_fields})
        return self._write(enrollment, {config.field: config.value})

    def _update_custom_field(
        self, config: CustomFieldUpdateConfig, entity: Snapshot, enrollment: Enrollment
    ) -> Snapshot:
        custom_fields = dict(entity.get("customFields") or {})
        custom_fields[config.field_name] = config.value
        return self._write(enrollment, {"customFields": custom_fields})

    def _add_contact_tag(self, config: AddTagConfig, entity: Snapshot, enrollment: Enrollment) -> Optional[Snapshot]:
        tags = list(entity.get("tags") or [])
        if config.tag in tags:
            return None
        return self._write(enrollment, {"tags": tags + [config.tag]})

    def _move_deal_to_stage(self, config: MoveToStageConfig, entity: Snapshot, enrollment: Enrollment) -> Snapshot:
        return self._write(enrollment, {"stageId": config.stage_id})

    # External collaborators --------------------------------------------------

    def _create_reminder(self, config: CreateReminderConfig, entity: Snapshot, enrollment: Enrollment) -> None:
        if self._reminder_store is None:
            raise ActionExecutionError("No reminder store configured", action_type="create_reminder")
        variables = template_variables(enrollment.entity_type.value, entity)
        self._reminder_store.create(
            title=render_template(config.title, variables),
            description=render_template(config.description, variables),
            due_at=self._clock() + config.due_in.as_timedelta(),
            linked_entity=(enrollment.entity_type.value, enrollment.entity_id),
            user_id=enrollment.user_id,
        )

    def _send_email(self, config: SendEmailConfig, entity: Snapshot, enrollment: Enrollment) -> None:
        if self._email_sender is None:
            raise ActionExecutionError("No email sender configured", action_type="send_email")
        recipient = self._recipient_email(entity, enrollment)
        if not recipient:
            raise ActionExecutionError(
                f"No recipient email found for {enrollment.entity_type.value} {enrollment.entity_id}",
                action_type="send_email",
            )
        variables = template_variables(enrollment.entity_type.value, entity)
        self._email_sender.send(
            to=recipient,
            subject=render_template(config.subject, variables),
            body=render_template(config.body, variables),
        )

    def _recipient_email(self, entity: Snapshot, enrollment: Enrollment) -> Optional[str]:
        if entity.get("email"):
            return entity["email"]
        contact = entity.get("contact")
        if isinstance(contact, dict) and contact.get("email"):
            return contact["email"]
        contact_id = entity.get("contactId")
        if enrollment.entity_type.value == "deal" and contact_id:
            contact = self._entity_store.find_by_id("contact", str(contact_id))
            if contact:
                return contact.get("email")
        return None

    # Recruiting pipeline -----------------------------------------------------

    def _update_pipeline(self, pipeline_id: Optional[str], entity: Snapshot, fields: Snapshot) -> None:
        target_id = pipeline_id or entity.get("pipelineId")
        if not target_id:
            raise ActionExecutionError("No pipeline ID available for update")
        pipeline = self._entity_store.find_by_id(PIPELINE_ENTITY_TYPE, str(target_id))
        if pipeline is None:
            raise EntityNotFoundError(PIPELINE_ENTITY_TYPE, str(target_id))
        self._entity_store.update(PIPELINE_ENTITY_TYPE, str(target_id), fields)

    def _update_candidate_status(self, config: CandidateStatusConfig, entity: Snapshot, enrollment: Enrollment) -> None:
        self._update_pipeline(config.pipeline_id, entity, {"status": config.status})

    def _move_candidate_to_stage(self, config: CandidateStageConfig, entity: Snapshot, enrollment: Enrollment) -> None:
        self._update_pipeline(config.pipeline_id, entity, {"stageId": config.stage_id})

    def _update_candidate_rating(self, config: CandidateRatingConfig, entity: Snapshot, enrollment: Enrollment) -> None:
        self._update_pipeline(config.pipeline_id, entity, {"rating": config.rating})

    def _add_candidate_note(self, config: CandidateNoteConfig, entity: Snapshot, enrollment: Enrollment) -> None:
        target_id = config.pipeline_id or entity.get("pipelineId")
        pipeline = self._entity_store.find_by_id(PIPELINE_ENTITY_TYPE, str(target_id)) if target_id else None
        existing = (pipeline or {}).get("notes") or ""
        entry = f"[{self._clock().isoformat()}] {config.note}"
        notes = f"{existing}\n\n{entry}" if existing else entry
        self._update_pipeline(config.pipeline_id, entity, {"notes": notes})

    def _schedule_interview(self, config: ScheduleInterviewConfig, entity: Snapshot, enrollment: Enrollment) -> None:
        self._update_pipeline(config.pipeline_id, entity, {"interviewDate": config.interview_date.isoformat()})

    def _assign_to_position(self, config: AssignPositionConfig, entity: Snapshot, enrollment: Enrollment) -> None:
        self._update_pipeline(config.pipeline_id, entity, {"positionId": config.position_id})
