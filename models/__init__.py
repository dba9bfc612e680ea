from .automation import (
    Action,
    ActivityCountCondition,
    Automation,
    AutomationStep,
    Branch,
    BranchConfig,
    Condition,
    CustomFieldGoal,
    DealValueGoal,
    DelayConfig,
    ExitCriteria,
    FieldValueGoal,
    NegativeCondition,
    SafetyConfig,
    StepType,
    TagAppliedGoal,
    TimeInAutomationCondition,
    Trigger,
)
from .enrollment import (
    ActionOutcome,
    AutomationLog,
    ConditionOutcome,
    Enrollment,
    EnrollmentResult,
    EnrollmentStatus,
    EntityType,
    LogStatus,
)

__all__ = [
    "Action",
    "ActionOutcome",
    "ActivityCountCondition",
    "Automation",
    "AutomationLog",
    "AutomationStep",
    "Branch",
    "BranchConfig",
    "Condition",
    "ConditionOutcome",
    "CustomFieldGoal",
    "DealValueGoal",
    "DelayConfig",
    "Enrollment",
    "EnrollmentResult",
    "EnrollmentStatus",
    "EntityType",
    "ExitCriteria",
    "FieldValueGoal",
    "LogStatus",
    "NegativeCondition",
    "SafetyConfig",
    "StepType",
    "TagAppliedGoal",
    "TimeInAutomationCondition",
    "Trigger",
]
