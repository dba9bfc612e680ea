"""
Conversion utilities between Pydantic models and SQLAlchemy DB models.
"""

from typing import Any, Dict

from models import (
    Action,
    Automation,
    AutomationLog,
    AutomationStep,
    Condition,
    Enrollment,
    ExitCriteria,
    Trigger,
)

from .models import (
    AutomationEnrollmentModel,
    AutomationLogModel,
    AutomationModel,
    AutomationStepModel,
)


def _dump_list(items: list) -> list[Dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


def pydantic_to_db_step(step: AutomationStep) -> AutomationStepModel:
    return AutomationStepModel(
        step_index=step.step_index,
        name=step.name,
        type=step.type.value,
        actions=_dump_list(step.actions),
        conditions=_dump_list(step.conditions),
        delay_config=step.delay_config.model_dump(mode="json") if step.delay_config else None,
        branch_config=step.branch_config.model_dump(mode="json") if step.branch_config else None,
        next_step_index=step.next_step_index,
        branch_step_indices=dict(step.branch_step_indices),
    )


def db_to_pydantic_step(db_step: AutomationStepModel) -> AutomationStep:
    return AutomationStep.model_validate(
        {
            "step_index": db_step.step_index,
            "name": db_step.name,
            "type": db_step.type,
            "actions": db_step.actions or [],
            "conditions": db_step.conditions or [],
            "delay_config": db_step.delay_config,
            "branch_config": db_step.branch_config,
            "next_step_index": db_step.next_step_index,
            "branch_step_indices": db_step.branch_step_indices or {},
        }
    )


def pydantic_to_db_automation(automation: Automation, automation_id: str | None = None) -> AutomationModel:
    """
    Convert a Pydantic Automation model to a SQLAlchemy AutomationModel, steps included.

    Args:
        automation: Pydantic Automation model to convert
        automation_id: Optional ID to assign (if None, will be generated on save)
    """
    return AutomationModel(
        id=automation_id or automation.id,
        user_id=automation.user_id,
        name=automation.name,
        description=automation.description,
        trigger=automation.trigger.model_dump(mode="json"),
        trigger_type=automation.trigger.type,
        conditions=_dump_list(automation.conditions),
        actions=_dump_list(automation.actions),
        is_multi_step=automation.is_multi_step,
        is_active=automation.is_active,
        enrolled_count=automation.enrolled_count,
        active_enrollments=automation.active_enrollments,
        completed_enrollments=automation.completed_enrollments,
        exit_criteria=automation.exit_criteria.model_dump(mode="json"),
        max_duration_days=automation.max_duration_days,
        safety_exit_enabled=automation.safety_exit_enabled,
        steps=[pydantic_to_db_step(step) for step in automation.steps],
    )


def db_to_pydantic_automation(db_automation: AutomationModel) -> Automation:
    """
    Convert a SQLAlchemy AutomationModel to a Pydantic Automation model.
    """
    return Automation(
        id=db_automation.id,
        user_id=db_automation.user_id,
        name=db_automation.name,
        description=db_automation.description,
        trigger=Trigger.model_validate(db_automation.trigger),
        conditions=[Condition.model_validate(cond) for cond in db_automation.conditions or []],
        actions=[Action.model_validate(action) for action in db_automation.actions or []],
        steps=[db_to_pydantic_step(step) for step in db_automation.steps],
        is_multi_step=db_automation.is_multi_step,
        is_active=db_automation.is_active,
        exit_criteria=ExitCriteria.model_validate(db_automation.exit_criteria or {}),
        max_duration_days=db_automation.max_duration_days,
        safety_exit_enabled=db_automation.safety_exit_enabled,
        enrolled_count=db_automation.enrolled_count,
        active_enrollments=db_automation.active_enrollments,
        completed_enrollments=db_automation.completed_enrollments,
    )


def pydantic_to_db_enrollment(enrollment: Enrollment) -> AutomationEnrollmentModel:
    return AutomationEnrollmentModel(
        id=enrollment.id,
        automation_id=enrollment.automation_id,
        user_id=enrollment.user_id,
        entity_type=enrollment.entity_type.value,
        entity_id=enrollment.entity_id,
        current_step_index=enrollment.current_step_index,
        status=enrollment.status.value,
        enrolled_at=enrollment.enrolled_at,
        completed_at=enrollment.completed_at,
        exited_at=enrollment.exited_at,
        next_step_at=enrollment.next_step_at,
        metadata_=dict(enrollment.metadata),
        exit_reason=enrollment.exit_reason,
    )


def enrollment_state_values(enrollment: Enrollment) -> Dict[Any, Any]:
    """Column values for the mutable state of an enrollment."""
    return {
        AutomationEnrollmentModel.current_step_index: enrollment.current_step_index,
        AutomationEnrollmentModel.status: enrollment.status.value,
        AutomationEnrollmentModel.completed_at: enrollment.completed_at,
        AutomationEnrollmentModel.exited_at: enrollment.exited_at,
        AutomationEnrollmentModel.next_step_at: enrollment.next_step_at,
        AutomationEnrollmentModel.metadata_: dict(enrollment.metadata),
        AutomationEnrollmentModel.exit_reason: enrollment.exit_reason,
    }


def db_to_pydantic_enrollment(db_enrollment: AutomationEnrollmentModel) -> Enrollment:
    return Enrollment(
        id=db_enrollment.id,
        automation_id=db_enrollment.automation_id,
        user_id=db_enrollment.user_id,
        entity_type=db_enrollment.entity_type,
        entity_id=db_enrollment.entity_id,
        current_step_index=db_enrollment.current_step_index,
        status=db_enrollment.status,
        enrolled_at=db_enrollment.enrolled_at,
        completed_at=db_enrollment.completed_at,
        exited_at=db_enrollment.exited_at,
        next_step_at=db_enrollment.next_step_at,
        metadata=dict(db_enrollment.metadata_ or {}),
        exit_reason=db_enrollment.exit_reason,
    )


def pydantic_to_db_log(log: AutomationLog) -> AutomationLogModel:
    return AutomationLogModel(
        id=log.id,
        automation_id=log.automation_id,
        user_id=log.user_id,
        enrollment_id=log.enrollment_id,
        trigger_type=log.trigger_type,
        trigger_data=log.trigger_data,
        conditions_met=log.conditions_met,
        conditions_evaluated=_dump_list(log.conditions_evaluated),
        actions_executed=_dump_list(log.actions_executed),
        status=log.status.value,
        error=log.error,
        executed_at=log.executed_at,
    )


def db_to_pydantic_log(db_log: AutomationLogModel) -> AutomationLog:
    return AutomationLog.model_validate(
        {
            "id": db_log.id,
            "automation_id": db_log.automation_id,
            "user_id": db_log.user_id,
            "enrollment_id": db_log.enrollment_id,
            "trigger_type": db_log.trigger_type,
            "trigger_data": db_log.trigger_data or {},
            "conditions_met": db_log.conditions_met,
            "conditions_evaluated": db_log.conditions_evaluated or [],
            "actions_executed": db_log.actions_executed or [],
            "status": db_log.status,
            "error": db_log.error,
            "executed_at": db_log.executed_at,
        }
    )
