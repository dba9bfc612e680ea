"""
Early termination checks for an enrollment.

Evaluated on every processing tick, before and after the step runs. Order is
safety, then goals, then time limits; the first match wins and its reason is
stored verbatim on the enrollment.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models import (
    ActivityCountCondition,
    Automation,
    CustomFieldGoal,
    DealValueGoal,
    Enrollment,
    EntityType,
    FieldValueGoal,
    NegativeCondition,
    TagAppliedGoal,
    TimeInAutomationCondition,
)

from .collaborators import Snapshot, SuppressionList
from .conditions import build_context, compare_values, evaluate_condition, resolve_field

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class ExitDecision:
    should_exit: bool
    reason: Optional[str] = None
    category: Optional[str] = None  # "safety", "goal" or "time"


NO_EXIT = ExitDecision(should_exit=False)


def days_enrolled(enrollment: Enrollment, now: datetime) -> int:
    return int((now - enrollment.enrolled_at).total_seconds() // SECONDS_PER_DAY)


class ExitCriteriaEvaluator:
    def __init__(self, suppression_list: Optional[SuppressionList] = None) -> None:
        self._suppression_list = suppression_list

    def check(self, enrollment: Enrollment, automation: Automation, entity: Snapshot, now: datetime) -> ExitDecision:
        for category, check in (
            ("safety", self.check_safety),
            ("goal", self.check_goals),
            ("time", self.check_time),
        ):
            reason = check(enrollment, automation, entity, now)
            if reason is not None:
                logger.info(
                    "Exit criteria met for enrollment %s (%s): %s",
                    enrollment.id,
                    category,
                    reason,
                )
                return ExitDecision(should_exit=True, reason=reason, category=category)
        return NO_EXIT

    def check_safety(self, enrollment: Enrollment, automation: Automation, entity: Snapshot, now: datetime) -> Optional[str]:
        if not automation.safety_exit_enabled:
            return None
        safety = automation.exit_criteria.safety

        if safety.max_duration_days and days_enrolled(enrollment, now) >= safety.max_duration_days:
            return f"Safety exit: Exceeded maximum duration of {safety.max_duration_days} days"

        error_count = int(enrollment.metadata.get("error_count") or 0)
        if safety.max_errors and error_count >= safety.max_errors:
            return f"Safety exit: Reached maximum error count of {safety.max_errors}"

        if (
            (safety.exit_on_unsubscribe or safety.exit_on_bounce)
            and self._suppression_list is not None
            and enrollment.entity_type == EntityType.CONTACT
            and entity.get("email")
        ):
            suppression = self._suppression_list.lookup(entity["email"])
            if safety.exit_on_unsubscribe and suppression == "unsubscribe":
                return "Safety exit: Contact unsubscribed from emails"
            if safety.exit_on_bounce and suppression == "bounce":
                return "Safety exit: Email bounced"

        return None

    def check_goals(self, enrollment: Enrollment, automation: Automation, entity: Snapshot, now: datetime) -> Optional[str]:
        context = build_context(enrollment.entity_type.value, entity)
        for goal in automation.exit_criteria.goals:
            if isinstance(goal, FieldValueGoal):
                actual = resolve_field(goal.field, context)
                if actual is not None and compare_values(actual, goal.operator, goal.value):
                    return goal.description or f"Goal met: {goal.field} {goal.operator} {goal.value}"

            elif isinstance(goal, TagAppliedGoal):
                if enrollment.entity_type != EntityType.CONTACT:
                    continue
                tags = set(entity.get("tags") or [])
                matches = [tag in tags for tag in goal.tags]
                met = any(matches) if goal.match == "any" else all(matches)
                if met:
                    return goal.description or f"Goal met: contact has tag(s) {', '.join(goal.tags)}"

            elif isinstance(goal, DealValueGoal):
                if enrollment.entity_type != EntityType.DEAL:
                    continue
                if compare_values(entity.get("value"), goal.operator, goal.value):
                    return goal.description or f"Goal met: deal value {goal.operator} {goal.value}"

            elif isinstance(goal, CustomFieldGoal):
                actual = (entity.get("customFields") or {}).get(goal.field_name)
                if actual is not None and compare_values(actual, goal.operator, goal.value):
                    return goal.description or f"Goal met: custom field {goal.field_name} {goal.operator} {goal.value}"

        return None

    def check_time(self, enrollment: Enrollment, automation: Automation, entity: Snapshot, now: datetime) -> Optional[str]:
        days = days_enrolled(enrollment, now)
        if automation.max_duration_days and days >= automation.max_duration_days:
            return f"Reached maximum duration of {automation.max_duration_days} days"

        for condition in automation.exit_criteria.conditions:
            if isinstance(condition, TimeInAutomationCondition) and days >= condition.days:
                return condition.description or f"Reached time limit of {condition.days} days"
            if isinstance(condition, ActivityCountCondition):
                activity_count = int(enrollment.metadata.get("activity_count") or 0)
                if activity_count >= condition.count:
                    return condition.description or f"Reached {activity_count} activities"
            if isinstance(condition, NegativeCondition) and days >= condition.days:
                context = build_context(enrollment.entity_type.value, entity)
                if not evaluate_condition(condition.condition, context):
                    return condition.description or f"Condition not met after {condition.days} days"

        return None
