from datetime import timedelta
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator


class Trigger(BaseModel):
    type: str = Field(..., description="Identifier registered in trigger registry")
    config: Dict[str, Any] = Field(default_factory=dict, description="Trigger-specific configuration")


class Condition(BaseModel):
    field: str = Field(..., description="Dotted path into the entity snapshot, e.g. deal.value")
    operator: str = Field(..., description="Identifier registered in condition registry")
    value: Any = None
    logic: Optional[Literal["AND", "OR"]] = Field(
        default=None,
        description="How this condition combines with the next one (defaults to AND)",
    )


class Action(BaseModel):
    type: str = Field(..., description="Identifier registered in action registry")
    config: Dict[str, Any] = Field(default_factory=dict, description="Action parameters, validated per type")


class DelayConfig(BaseModel):
    value: int = Field(..., ge=0)
    unit: Literal["minutes", "hours", "days"] = "days"

    def as_timedelta(self) -> timedelta:
        return timedelta(**{self.unit: self.value})


class Branch(BaseModel):
    name: str
    conditions: List[Condition] = Field(default_factory=list)


class BranchConfig(BaseModel):
    branches: List[Branch] = Field(default_factory=list)
    default_branch: Optional[str] = Field(
        default=None,
        description="Key in branch_step_indices used when no branch matches",
    )


class StepType(str, Enum):
    ACTION = "action"
    DELAY = "delay"
    CONDITION = "condition"
    BRANCH = "branch"


class AutomationStep(BaseModel):
    step_index: int = Field(..., ge=0)
    name: str = ""
    type: StepType
    actions: List[Action] = Field(default_factory=list)
    conditions: List[Condition] = Field(default_factory=list)
    delay_config: Optional[DelayConfig] = None
    branch_config: Optional[BranchConfig] = None
    next_step_index: Optional[int] = Field(default=None, ge=0)
    # Branch name -> step index. The "false" key routes a failed condition step.
    branch_step_indices: Dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def ensure_payload_matches_type(self) -> "AutomationStep":
        if self.type == StepType.ACTION and not self.actions:
            raise ValueError(f"Action step {self.step_index} must define at least one action")
        if self.type == StepType.DELAY and self.delay_config is None:
            raise ValueError(f"Delay step {self.step_index} requires delay_config")
        if self.type == StepType.BRANCH and self.branch_config is None:
            raise ValueError(f"Branch step {self.step_index} requires branch_config")
        return self


# Exit criteria -------------------------------------------------------------


class FieldValueGoal(BaseModel):
    type: Literal["field_value"] = "field_value"
    field: str
    operator: str = "equals"
    value: Any = None
    description: Optional[str] = None


class TagAppliedGoal(BaseModel):
    type: Literal["tag_applied"] = "tag_applied"
    tags: List[str] = Field(..., min_length=1)
    match: Literal["any", "all"] = "any"
    description: Optional[str] = None


class DealValueGoal(BaseModel):
    type: Literal["deal_value"] = "deal_value"
    operator: str = "greater_or_equal"
    value: float
    description: Optional[str] = None


class CustomFieldGoal(BaseModel):
    type: Literal["custom_field"] = "custom_field"
    field_name: str
    operator: str = "equals"
    value: Any = None
    description: Optional[str] = None


Goal = Annotated[
    Union[FieldValueGoal, TagAppliedGoal, DealValueGoal, CustomFieldGoal],
    Field(discriminator="type"),
]


class TimeInAutomationCondition(BaseModel):
    type: Literal["time_in_automation"] = "time_in_automation"
    days: int = Field(..., ge=0)
    description: Optional[str] = None


class ActivityCountCondition(BaseModel):
    type: Literal["activity_count"] = "activity_count"
    count: int = Field(..., ge=1)
    description: Optional[str] = None


class NegativeCondition(BaseModel):
    """Exit once `days` have passed and `condition` still does not hold."""

    type: Literal["negative_condition"] = "negative_condition"
    days: int = Field(..., ge=0)
    condition: Condition
    description: Optional[str] = None


ExitCondition = Annotated[
    Union[TimeInAutomationCondition, ActivityCountCondition, NegativeCondition],
    Field(discriminator="type"),
]


class SafetyConfig(BaseModel):
    max_duration_days: Optional[int] = Field(default=None, ge=1)
    max_errors: Optional[int] = Field(default=None, ge=1)
    exit_on_unsubscribe: bool = False
    exit_on_bounce: bool = False


class ExitCriteria(BaseModel):
    goals: List[Goal] = Field(default_factory=list)
    conditions: List[ExitCondition] = Field(default_factory=list)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)


# Automation ----------------------------------------------------------------


class Automation(BaseModel):
    id: Optional[str] = None
    user_id: Optional[str] = None
    name: str = Field(..., description="Human friendly name for the automation")
    description: Optional[str] = None
    trigger: Trigger
    conditions: List[Condition] = Field(default_factory=list, description="Enrollment conditions, chained left to right")
    actions: List[Action] = Field(default_factory=list, description="Legacy single-step action list")
    steps: List[AutomationStep] = Field(default_factory=list, description="Step arena, indexed by step_index")
    is_multi_step: bool = False
    is_active: bool = True
    exit_criteria: ExitCriteria = Field(default_factory=ExitCriteria)
    max_duration_days: Optional[int] = Field(default=None, ge=1)
    safety_exit_enabled: bool = True
    enrolled_count: int = 0
    active_enrollments: int = 0
    completed_enrollments: int = 0

    @model_validator(mode="before")
    @classmethod
    def ensure_lists_are_not_empty(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        if "trigger" not in values or values.get("trigger") is None:
            raise ValueError("Automation must define a trigger")
        if values.get("is_multi_step"):
            if not values.get("steps"):
                raise ValueError("Multi-step automation must define at least one step")
        elif not values.get("actions"):
            raise ValueError("Automation must define at least one action")
        return values

    @model_validator(mode="after")
    def sort_steps(self) -> "Automation":
        self.steps.sort(key=lambda step: step.step_index)
        return self

    def get_step(self, step_index: Optional[int]) -> Optional[AutomationStep]:
        """Look a step up in the arena by its index."""
        if step_index is None or step_index < 0 or step_index >= len(self.steps):
            return None
        step = self.steps[step_index]
        # Arena is only guaranteed contiguous after validation
        if step.step_index != step_index:
            return next((s for s in self.steps if s.step_index == step_index), None)
        return step
