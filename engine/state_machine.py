"""
Enrollment lifecycle.

An enrollment is ``active`` until it reaches exactly one terminal state:
``completed``, ``failed``, ``exited`` or ``unenrolled``. Terminal rows are never
re-entered; re-enrolling creates a new row. Only this module mutates
enrollments.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from db.models import utcnow
from db.repository import AutomationLogRepository, AutomationRepository, EnrollmentRepository
from exceptions import (
    AutomationInactiveError,
    AutomationNotFoundError,
    EnrollmentConflictError,
    EntityNotFoundError,
)
from models import (
    ActionOutcome,
    Automation,
    AutomationLog,
    AutomationStep,
    ConditionOutcome,
    Enrollment,
    EnrollmentResult,
    EnrollmentStatus,
    EntityType,
    LogStatus,
    StepType,
)

from .actions import ActionExecutor
from .branching import resolve_branch, resolve_condition_gate
from .collaborators import EntityStore, Snapshot
from .conditions import build_context, evaluate_conditions
from .exit_criteria import ExitCriteriaEvaluator

logger = logging.getLogger(__name__)

STEP_EXECUTION_TRIGGER = "step_execution"

Dispatch = Callable[..., Any]


def calculate_next_step_time(step: Optional[AutomationStep], now: datetime) -> datetime:
    """A delay step wakes up after its delay; anything else runs right away."""
    if step is None or step.type != StepType.DELAY or step.delay_config is None:
        return now
    return now + step.delay_config.as_timedelta()


class AutomationEngine:
    """
    Owns enrollment creation, step processing and termination.

    Lifecycle:
        engine = AutomationEngine(...)
        engine.enroll(automation, "contact", contact_id, user_id)
        engine.process_enrollment_step(enrollment)   # scheduler tick or "process now"
        engine.shutdown()                            # stops the inline dispatch pool
    """

    def __init__(
        self,
        automations: AutomationRepository,
        enrollments: EnrollmentRepository,
        logs: AutomationLogRepository,
        entity_store: EntityStore,
        action_executor: ActionExecutor,
        exit_evaluator: Optional[ExitCriteriaEvaluator] = None,
        clock: Callable[[], datetime] = utcnow,
        dispatch: Optional[Dispatch] = None,
        inline_workers: int = 1,
    ) -> None:
        self._automations = automations
        self._enrollments = enrollments
        self._logs = logs
        self._entity_store = entity_store
        self._executor = action_executor
        self._exit_evaluator = exit_evaluator or ExitCriteriaEvaluator()
        self._clock = clock
        self._pool: Optional[ThreadPoolExecutor] = None
        if dispatch is None:
            self._pool = ThreadPoolExecutor(max_workers=inline_workers, thread_name_prefix="automation-inline")
            dispatch = self._dispatch_in_background
        self._dispatch = dispatch

    # Exposed operations ------------------------------------------------------

    def enroll(
        self,
        automation: Automation,
        entity_type: EntityType | str,
        entity_id: str,
        user_id: Optional[str] = None,
    ) -> EnrollmentResult:
        """Create an active enrollment unless one already exists for this entity."""
        if automation.id is None:
            return EnrollmentResult(success=False, reason="Automation has not been saved")
        if not automation.is_active:
            return EnrollmentResult(success=False, reason="Automation is inactive")

        now = self._clock()
        first_step = automation.get_step(0) if automation.is_multi_step else None
        enrollment = Enrollment(
            automation_id=automation.id,
            user_id=user_id,
            entity_type=EntityType(entity_type),
            entity_id=str(entity_id),
            current_step_index=0,
            status=EnrollmentStatus.ACTIVE,
            enrolled_at=now,
            next_step_at=calculate_next_step_time(first_step, now),
        )
        try:
            enrollment = self._enrollments.create(enrollment)
        except EnrollmentConflictError:
            logger.debug("%s %s already enrolled in automation %s", entity_type, entity_id, automation.id)
            return EnrollmentResult(success=False, reason="Already enrolled")

        self._automations.adjust_counters(automation.id, enrolled=1, active=1)
        logger.info(
            "Enrolled %s %s in automation %s (enrollment %s, next step at %s)",
            enrollment.entity_type.value,
            enrollment.entity_id,
            automation.id,
            enrollment.id,
            enrollment.next_step_at,
        )

        if not automation.is_multi_step:
            self._dispatch(self.process_enrollment_step, enrollment)

        return EnrollmentResult(success=True, enrollment=enrollment)

    def unenroll(self, automation_id: str, entity_type: EntityType | str, entity_id: str) -> None:
        """Flip the active enrollment, if any, to unenrolled. In-flight steps are not interrupted."""
        enrollment = self._enrollments.find_active(automation_id, EntityType(entity_type).value, str(entity_id))
        if enrollment is None:
            return
        enrollment.status = EnrollmentStatus.UNENROLLED
        enrollment.exited_at = self._clock()
        enrollment.next_step_at = None
        if not self._enrollments.save(enrollment):
            logger.debug("Enrollment %s finished before it could be unenrolled", enrollment.id)
            return
        self._automations.adjust_counters(automation_id, active=-1)
        logger.info("Unenrolled %s %s from automation %s", entity_type, entity_id, automation_id)

    def process_enrollment_step(self, enrollment: Enrollment, now: Optional[datetime] = None) -> Optional[Enrollment]:
        """
        Run the current step of one enrollment.

        No-op when the enrollment is no longer active or not yet due. Every
        error is converted into a terminal state here, so callers (the
        scheduler loop in particular) never see one.
        """
        now = now or self._clock()
        current = self._enrollments.get(enrollment.id) if enrollment.id else None
        if current is None:
            logger.warning("Enrollment %s no longer exists", enrollment.id)
            return None
        if current.status != EnrollmentStatus.ACTIVE:
            logger.debug("Enrollment %s is %s, nothing to do", current.id, current.status.value)
            return current
        if not current.is_due(now):
            logger.debug("Enrollment %s not due until %s", current.id, current.next_step_at)
            return current

        try:
            automation = self._load_automation(current)
            entity = self._load_entity(current)

            decision = self._exit_evaluator.check(current, automation, entity, now)
            if decision.should_exit:
                return self._exit(current, decision.reason, now)

            if automation.is_multi_step and automation.steps:
                return self._run_step(current, automation, entity, now)
            return self._run_legacy(current, automation, entity, now)
        except AutomationInactiveError as exc:
            logger.info("Leaving enrollment %s dormant: %s", current.id, exc)
            return current
        except EntityNotFoundError as exc:
            logger.info("Enrollment %s lost its entity (correlation_id=%s)", current.id, exc.correlation_id)
            return self._fail(current, str(exc), now)
        except Exception as exc:
            logger.exception("Error processing enrollment %s", current.id)
            return self._fail(current, str(exc) or exc.__class__.__name__, now)

    def get_enrollment_stats(self, automation_id: str) -> Dict[str, int]:
        """Enrollment counts by status; statuses with no rows report 0."""
        counts = self._enrollments.count_by_status(automation_id)
        return {status.value: counts.get(status.value, 0) for status in EnrollmentStatus}

    def get_enrollment_summary(self, automation_id: str, recent: int = 10) -> Dict[str, Any]:
        stats = self.get_enrollment_stats(automation_id)
        return {
            "total": sum(stats.values()),
            **stats,
            "recent_enrollments": self._enrollments.list_for_automation(automation_id, limit=recent),
        }

    def shutdown(self, wait: bool = True) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=wait)

    # Step processing ---------------------------------------------------------

    def _load_automation(self, enrollment: Enrollment) -> Automation:
        automation = self._automations.get(enrollment.automation_id)
        if automation is None:
            raise AutomationNotFoundError(f"Automation {enrollment.automation_id} not found")
        if not automation.is_active:
            raise AutomationInactiveError(f"Automation {automation.id} is inactive")
        return automation

    def _load_entity(self, enrollment: Enrollment) -> Snapshot:
        entity = self._entity_store.find_by_id(enrollment.entity_type.value, enrollment.entity_id)
        if entity is None:
            raise EntityNotFoundError(enrollment.entity_type.value, enrollment.entity_id)
        return entity

    def _run_step(self, enrollment: Enrollment, automation: Automation, entity: Snapshot, now: datetime) -> Enrollment:
        step = automation.get_step(enrollment.current_step_index)
        if step is None:
            return self._complete(enrollment, now)

        context = build_context(enrollment.entity_type.value, entity)
        conditions: List[ConditionOutcome] = []
        conditions_met = True

        if step.type == StepType.ACTION:
            result = self._executor.execute(step.actions, entity, enrollment)
            self._record_log(
                enrollment,
                automation,
                LogStatus.SUCCESS if result.success else LogStatus.FAILED,
                actions=result.outcomes,
                error=result.error,
                now=now,
            )
            if not result.success:
                return self._fail(enrollment, result.error, now)
            performed = sum(1 for outcome in result.outcomes if outcome.status == "success")
            enrollment.metadata["activity_count"] = int(enrollment.metadata.get("activity_count") or 0) + performed
            next_index = step.next_step_index

        elif step.type == StepType.DELAY:
            # The wait already happened through next_step_at
            next_index = step.next_step_index

        elif step.type == StepType.CONDITION:
            decision = resolve_condition_gate(step, context, conditions)
            conditions_met = decision.conditions_met
            self._record_log(
                enrollment,
                automation,
                LogStatus.SUCCESS if conditions_met else LogStatus.SKIPPED,
                conditions=conditions,
                conditions_met=conditions_met,
                now=now,
            )
            next_index = decision.next_step_index

        elif step.type == StepType.BRANCH:
            decision = resolve_branch(step, context, conditions)
            self._record_log(
                enrollment,
                automation,
                LogStatus.SUCCESS if decision.branch else LogStatus.SKIPPED,
                conditions=conditions,
                conditions_met=decision.conditions_met,
                now=now,
            )
            if decision.branch:
                enrollment.metadata["last_branch"] = decision.branch
            next_index = decision.next_step_index

        else:
            return self._fail(enrollment, f"Unknown step type: {step.type}", now)

        # Actions may have moved the entity onto a goal, including on the last step
        refreshed = self._load_entity(enrollment)
        decision = self._exit_evaluator.check(enrollment, automation, refreshed, now)
        if decision.should_exit:
            return self._exit(enrollment, decision.reason, now)

        if next_index is None:
            if not conditions_met:
                enrollment.metadata["completion"] = "conditions_not_met"
            return self._complete(enrollment, now)

        enrollment.current_step_index = next_index
        enrollment.next_step_at = calculate_next_step_time(automation.get_step(next_index), now)
        if not self._enrollments.save(enrollment):
            return self._stored(enrollment)
        logger.info(
            "Enrollment %s advanced from step %s to step %s (next run at %s)",
            enrollment.id,
            step.step_index,
            next_index,
            enrollment.next_step_at,
        )
        return enrollment

    def _run_legacy(self, enrollment: Enrollment, automation: Automation, entity: Snapshot, now: datetime) -> Enrollment:
        conditions: List[ConditionOutcome] = []
        context = build_context(enrollment.entity_type.value, entity)
        if automation.conditions and not evaluate_conditions(automation.conditions, context, conditions):
            self._record_log(
                enrollment,
                automation,
                LogStatus.SKIPPED,
                conditions=conditions,
                conditions_met=False,
                trigger_type=automation.trigger.type,
                now=now,
            )
            enrollment.metadata["completion"] = "conditions_not_met"
            return self._complete(enrollment, now)

        result = self._executor.execute(automation.actions, entity, enrollment)
        self._record_log(
            enrollment,
            automation,
            LogStatus.SUCCESS if result.success else LogStatus.FAILED,
            conditions=conditions,
            actions=result.outcomes,
            error=result.error,
            trigger_type=automation.trigger.type,
            now=now,
        )
        if not result.success:
            return self._fail(enrollment, result.error, now)
        return self._complete(enrollment, now)

    # Terminal transitions ----------------------------------------------------

    def _complete(self, enrollment: Enrollment, now: datetime) -> Enrollment:
        enrollment.status = EnrollmentStatus.COMPLETED
        enrollment.completed_at = now
        enrollment.next_step_at = None
        if not self._enrollments.save(enrollment):
            return self._stored(enrollment)
        self._automations.adjust_counters(enrollment.automation_id, active=-1, completed=1)
        logger.info("Enrollment %s completed", enrollment.id)
        return enrollment

    def _fail(self, enrollment: Enrollment, error: Optional[str], now: datetime) -> Enrollment:
        enrollment.status = EnrollmentStatus.FAILED
        enrollment.completed_at = now
        enrollment.next_step_at = None
        enrollment.metadata["error"] = error
        enrollment.metadata["error_count"] = int(enrollment.metadata.get("error_count") or 0) + 1
        if not self._enrollments.save(enrollment):
            return self._stored(enrollment)
        self._automations.adjust_counters(enrollment.automation_id, active=-1)
        logger.warning("Enrollment %s failed: %s", enrollment.id, error)
        return enrollment

    def _exit(self, enrollment: Enrollment, reason: Optional[str], now: datetime) -> Enrollment:
        enrollment.status = EnrollmentStatus.EXITED
        enrollment.exit_reason = reason
        enrollment.exited_at = now
        enrollment.next_step_at = None
        if not self._enrollments.save(enrollment):
            return self._stored(enrollment)
        self._automations.adjust_counters(enrollment.automation_id, active=-1)
        logger.info("Enrollment %s exited: %s", enrollment.id, reason)
        return enrollment

    def _stored(self, enrollment: Enrollment) -> Optional[Enrollment]:
        """The row as another writer left it after our write lost the race."""
        stored = self._enrollments.get(enrollment.id)
        logger.info(
            "Enrollment %s was already %s; discarding this step's transition",
            enrollment.id,
            stored.status.value if stored else "deleted",
        )
        return stored

    # Helpers -----------------------------------------------------------------

    def _record_log(
        self,
        enrollment: Enrollment,
        automation: Automation,
        status: LogStatus,
        *,
        now: datetime,
        conditions: Optional[List[ConditionOutcome]] = None,
        actions: Optional[List[ActionOutcome]] = None,
        conditions_met: bool = True,
        error: Optional[str] = None,
        trigger_type: str = STEP_EXECUTION_TRIGGER,
    ) -> None:
        self._logs.append(
            AutomationLog(
                automation_id=automation.id,
                user_id=enrollment.user_id,
                enrollment_id=enrollment.id,
                trigger_type=trigger_type,
                trigger_data={
                    "enrollment_id": enrollment.id,
                    "step_index": enrollment.current_step_index,
                    "entity_type": enrollment.entity_type.value,
                    "entity_id": enrollment.entity_id,
                },
                conditions_met=conditions_met,
                conditions_evaluated=conditions or [],
                actions_executed=actions or [],
                status=status,
                error=error,
                executed_at=now,
            )
        )

    def _dispatch_in_background(self, fn: Callable[..., Any], *args: Any) -> Future:
        future = self._pool.submit(fn, *args)
        future.add_done_callback(_log_dispatch_failure)
        return future


def _log_dispatch_failure(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Inline enrollment processing failed: %s", exc, exc_info=exc)
