from .actions import ActionBatchResult, ActionExecutor
from .branching import BranchDecision, resolve_branch, resolve_condition_gate
from .collaborators import (
    EmailSender,
    EntityStore,
    EventSource,
    InMemoryEntityStore,
    InMemoryEventSource,
    InMemoryReminderStore,
    InMemorySuppressionList,
    RecordingEmailSender,
    ReminderStore,
    SuppressionList,
)
from .conditions import build_context, compare_values, evaluate_condition, evaluate_conditions, resolve_field
from .exit_criteria import ExitCriteriaEvaluator, ExitDecision
from .scheduler import StepScheduler
from .state_machine import AutomationEngine, calculate_next_step_time
from .templating import render_template, template_variables
from .triggers import ENTITY_TYPE_BY_TRIGGER, TriggerHandler

__all__ = [
    "ActionBatchResult",
    "ActionExecutor",
    "AutomationEngine",
    "BranchDecision",
    "ENTITY_TYPE_BY_TRIGGER",
    "EmailSender",
    "EntityStore",
    "EventSource",
    "ExitCriteriaEvaluator",
    "ExitDecision",
    "InMemoryEntityStore",
    "InMemoryEventSource",
    "InMemoryReminderStore",
    "InMemorySuppressionList",
    "RecordingEmailSender",
    "ReminderStore",
    "StepScheduler",
    "SuppressionList",
    "TriggerHandler",
    "build_context",
    "calculate_next_step_time",
    "compare_values",
    "evaluate_condition",
    "evaluate_conditions",
    "render_template",
    "resolve_branch",
    "resolve_condition_gate",
    "resolve_field",
    "template_variables",
]
