"""
Typed config payloads, one per action type.

Action rows store ``config`` as JSON; the action registry maps each type to
one of these models so configs are validated when an automation is saved and
parsed again right before execution. Unknown keys are rejected, which is what
turns a ``tags`` vs ``tag`` mix-up into a save-time error.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .automation import DelayConfig


class ActionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")


class FieldUpdateConfig(ActionConfig):
    field: str = Field(..., min_length=1)
    value: Any = None


class CustomFieldUpdateConfig(ActionConfig):
    field_name: str = Field(..., min_length=1)
    value: Any = None


class AddTagConfig(ActionConfig):
    tag: str = Field(..., min_length=1)


class MoveToStageConfig(ActionConfig):
    stage_id: str


class CreateReminderConfig(ActionConfig):
    title: str = Field(..., min_length=1)
    description: str = ""
    due_in: DelayConfig = Field(default_factory=lambda: DelayConfig(value=1, unit="days"))


class SendEmailConfig(ActionConfig):
    subject: str = "Notification"
    body: str = "This is an automated message."


# Recruiting pipeline actions. pipeline_id defaults to the entity's pipelineId.


class CandidateStatusConfig(ActionConfig):
    status: str
    pipeline_id: Optional[str] = None


class CandidateStageConfig(ActionConfig):
    stage_id: str
    pipeline_id: Optional[str] = None


class CandidateRatingConfig(ActionConfig):
    rating: int = Field(..., ge=0, le=5)
    pipeline_id: Optional[str] = None


class CandidateNoteConfig(ActionConfig):
    note: str = Field(..., min_length=1)
    pipeline_id: Optional[str] = None


class ScheduleInterviewConfig(ActionConfig):
    interview_date: datetime
    pipeline_id: Optional[str] = None


class AssignPositionConfig(ActionConfig):
    position_id: str
    pipeline_id: Optional[str] = None
