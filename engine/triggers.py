"""Turns entity events into enrollments."""

import logging
from typing import Any, Dict, List, Optional

from db.repository import AutomationRepository
from models import Automation, EnrollmentResult, EntityType

from .collaborators import EventSource, Snapshot
from .conditions import build_context, evaluate_conditions
from .state_machine import AutomationEngine

logger = logging.getLogger(__name__)

ENTITY_TYPE_BY_TRIGGER: Dict[str, EntityType] = {
    "contact_created": EntityType.CONTACT,
    "contact_updated": EntityType.CONTACT,
    "deal_created": EntityType.DEAL,
    "deal_updated": EntityType.DEAL,
    "deal_stage_changed": EntityType.DEAL,
}


class TriggerHandler:
    def __init__(self, automations: AutomationRepository, engine: AutomationEngine) -> None:
        self._automations = automations
        self._engine = engine

    def attach(self, event_source: EventSource) -> None:
        event_source.subscribe(self.handle_event)

    def handle_event(
        self,
        trigger_type: str,
        entity: Snapshot,
        user_id: Optional[str] = None,
        previous_stage_id: Optional[str] = None,
        **details: Any,
    ) -> List[EnrollmentResult]:
        """Enroll the entity in every active automation listening for this trigger."""
        entity_type = ENTITY_TYPE_BY_TRIGGER.get(trigger_type)
        if entity_type is None:
            logger.debug("Ignoring unknown trigger type %r", trigger_type)
            return []
        if not entity.get("id"):
            logger.warning("Ignoring %s event without an entity id", trigger_type)
            return []

        results: List[EnrollmentResult] = []
        for automation in self._automations.list_active_by_trigger(trigger_type):
            if automation.user_id and user_id and automation.user_id != user_id:
                continue
            if not self.check_enrollment_criteria(automation, entity_type, entity, previous_stage_id):
                results.append(EnrollmentResult(success=False, reason="Enrollment criteria not met"))
                continue
            results.append(self._engine.enroll(automation, entity_type, str(entity["id"]), automation.user_id))
        return results

    def check_enrollment_criteria(
        self,
        automation: Automation,
        entity_type: EntityType,
        entity: Snapshot,
        previous_stage_id: Optional[str] = None,
    ) -> bool:
        if automation.trigger.type == "deal_stage_changed":
            from_stage_id = automation.trigger.config.get("from_stage_id")
            to_stage_id = automation.trigger.config.get("to_stage_id")
            if from_stage_id and previous_stage_id != from_stage_id:
                return False
            if to_stage_id and entity.get("stageId") != to_stage_id:
                return False

        return evaluate_conditions(automation.conditions, build_context(entity_type.value, entity))
