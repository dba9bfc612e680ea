from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class EntityType(str, Enum):
    CONTACT = "contact"
    DEAL = "deal"


class EnrollmentStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    UNENROLLED = "unenrolled"
    EXITED = "exited"

    @property
    def is_terminal(self) -> bool:
        return self is not EnrollmentStatus.ACTIVE


class Enrollment(BaseModel):
    id: Optional[str] = None
    automation_id: str
    user_id: Optional[str] = None
    entity_type: EntityType
    entity_id: str
    current_step_index: int = 0
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    enrolled_at: datetime
    completed_at: Optional[datetime] = None
    exited_at: Optional[datetime] = None
    next_step_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    exit_reason: Optional[str] = None

    def is_due(self, now: datetime) -> bool:
        """An enrollment with no wake-up time, or one in the past, is due."""
        return self.next_step_at is None or self.next_step_at <= now


class EnrollmentResult(BaseModel):
    success: bool
    enrollment: Optional[Enrollment] = None
    reason: Optional[str] = None


class LogStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class ConditionOutcome(BaseModel):
    field: str
    operator: str
    value: Any = None
    logic: Optional[str] = None
    result: bool


class ActionOutcome(BaseModel):
    type: str
    config: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["success", "failed", "skipped"]
    error: Optional[str] = None


class AutomationLog(BaseModel):
    """One execution attempt. Written once, never updated."""

    id: Optional[str] = None
    automation_id: str
    user_id: Optional[str] = None
    enrollment_id: Optional[str] = None
    trigger_type: str
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    conditions_met: bool = True
    conditions_evaluated: List[ConditionOutcome] = Field(default_factory=list)
    actions_executed: List[ActionOutcome] = Field(default_factory=list)
    status: LogStatus
    error: Optional[str] = None
    executed_at: datetime
