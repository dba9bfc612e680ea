"""
SQLAlchemy ORM models for the persistence layer.
Trigger, conditions, actions, step payloads and exit criteria reference registry
types and are heterogeneous, so they are stored as JSON within their rows.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column here."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid.uuid4())


class AutomationModel(Base):
    """
    Database model for Automation.
    Counters are the only columns the engine mutates while enrollments run.
    """

    __tablename__ = "automations"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)

    # Trigger stored as JSON: {"type": "...", "config": {...}}
    trigger = Column(JSON, nullable=False)
    # Denormalised trigger type so triggers can be matched without JSON operators
    trigger_type = Column(String, nullable=False, index=True)

    # Conditions stored as JSON: [{"field": "...", "operator": "...", "value": ..., "logic": "AND"}, ...]
    conditions = Column(JSON, default=list, nullable=False)

    # Legacy single-step actions: [{"type": "...", "config": {...}}, ...]
    actions = Column(JSON, default=list, nullable=False)

    is_multi_step = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    enrolled_count = Column(Integer, default=0, nullable=False)
    active_enrollments = Column(Integer, default=0, nullable=False)
    completed_enrollments = Column(Integer, default=0, nullable=False)

    # {"goals": [...], "conditions": [...], "safety": {...}}
    exit_criteria = Column(JSON, default=dict, nullable=False)
    max_duration_days = Column(Integer, nullable=True)
    safety_exit_enabled = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    steps = relationship(
        "AutomationStepModel",
        back_populates="automation",
        order_by="AutomationStepModel.step_index",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<AutomationModel(id={self.id}, name={self.name})>"


class AutomationStepModel(Base):
    """One node of an automation's step arena, addressed by step_index."""

    __tablename__ = "automation_steps"
    __table_args__ = (UniqueConstraint("automation_id", "step_index", name="uq_automation_step_index"),)

    id = Column(String, primary_key=True, default=_uuid)
    automation_id = Column(String, ForeignKey("automations.id", ondelete="CASCADE"), nullable=False)
    step_index = Column(Integer, nullable=False)
    name = Column(String, nullable=False, default="")
    type = Column(String, nullable=False)

    actions = Column(JSON, default=list, nullable=False)
    conditions = Column(JSON, default=list, nullable=False)
    delay_config = Column(JSON, nullable=True)
    branch_config = Column(JSON, nullable=True)

    next_step_index = Column(Integer, nullable=True)
    branch_step_indices = Column(JSON, default=dict, nullable=False)

    automation = relationship("AutomationModel", back_populates="steps")

    def __repr__(self) -> str:
        return f"<AutomationStepModel(automation_id={self.automation_id}, step_index={self.step_index}, type={self.type})>"


class AutomationEnrollmentModel(Base):
    """
    Runtime record of one entity moving through one automation.
    At most one row per (automation, entity) may be active; terminal rows are kept for audit.
    """

    __tablename__ = "automation_enrollments"
    __table_args__ = (
        Index(
            "uq_active_enrollment",
            "automation_id",
            "entity_type",
            "entity_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index("ix_enrollment_due", "status", "next_step_at"),
    )

    id = Column(String, primary_key=True, default=_uuid)
    automation_id = Column(String, ForeignKey("automations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False)

    current_step_index = Column(Integer, default=0, nullable=False)
    status = Column(String, default="active", nullable=False)

    enrolled_at = Column(DateTime, default=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    exited_at = Column(DateTime, nullable=True)
    next_step_at = Column(DateTime, nullable=True)

    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSON, default=dict, nullable=False)
    exit_reason = Column(String(255), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AutomationEnrollmentModel(id={self.id}, automation_id={self.automation_id}, "
            f"entity={self.entity_type}:{self.entity_id}, status={self.status})>"
        )


class AutomationLogModel(Base):
    """Append-only audit record of one execution attempt."""

    __tablename__ = "automation_logs"

    id = Column(String, primary_key=True, default=_uuid)
    automation_id = Column(String, ForeignKey("automations.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=True, index=True)
    enrollment_id = Column(String, nullable=True, index=True)

    trigger_type = Column(String, nullable=False)
    trigger_data = Column(JSON, default=dict, nullable=False)

    conditions_met = Column(Boolean, nullable=False, default=True)
    conditions_evaluated = Column(JSON, default=list, nullable=True)
    actions_executed = Column(JSON, default=list, nullable=True)

    status = Column(String, nullable=False, index=True)
    error = Column(Text, nullable=True)
    executed_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<AutomationLogModel(id={self.id}, automation_id={self.automation_id}, status={self.status})>"
