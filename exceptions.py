"""Automation engine exception hierarchy.

Every per-enrollment error is caught at the top of step processing and turned
into a terminal or logged state, so none of these should ever escape the
scheduler loop.

Usage:
    from exceptions import ActionExecutionError, EntityNotFoundError

    try:
        store.update(entity_type, entity_id, fields)
    except EntityNotFoundError as e:
        logger.error("Entity vanished (correlation_id=%s)", e.correlation_id)
"""

import uuid


class AutomationEngineError(Exception):
    """Base exception for all automation engine errors.

    Carries a correlation_id for tracing an error across log lines.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class ConditionEvaluationError(AutomationEngineError):
    """A single condition could not be evaluated. Always treated as ``False``."""

    def __init__(self, message: str, *, field: str | None = None, operator: str | None = None, **kwargs):
        self.field = field
        self.operator = operator
        super().__init__(message, **kwargs)


class ActionExecutionError(AutomationEngineError):
    """An action failed; the remaining actions of the batch are aborted."""

    def __init__(self, message: str, *, action_type: str | None = None, **kwargs):
        self.action_type = action_type
        super().__init__(message, **kwargs)


class EntityNotFoundError(AutomationEngineError):
    """The enrolled entity no longer exists in the entity store."""

    def __init__(self, entity_type: str, entity_id: str, **kwargs):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"Entity not found: {entity_type} {entity_id}", **kwargs)


class EnrollmentConflictError(AutomationEngineError):
    """An active enrollment already exists for the (automation, entity) pair."""

    pass


class AutomationInactiveError(AutomationEngineError):
    """The parent automation is inactive; its enrollments stay dormant."""

    pass


class AutomationNotFoundError(AutomationEngineError):
    """The automation referenced by an enrollment does not exist."""

    pass


class ConfigurationError(AutomationEngineError):
    """Errors from application configuration or wiring."""

    pass
