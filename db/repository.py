import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from exceptions import EnrollmentConflictError
from models import Automation, AutomationLog, Enrollment, EnrollmentStatus

from .converters import (
    db_to_pydantic_automation,
    db_to_pydantic_enrollment,
    db_to_pydantic_log,
    enrollment_state_values,
    pydantic_to_db_automation,
    pydantic_to_db_enrollment,
    pydantic_to_db_log,
    pydantic_to_db_step,
)
from .models import AutomationEnrollmentModel, AutomationLogModel, AutomationModel

_UPDATABLE_AUTOMATION_COLUMNS = [
    column.key
    for column in AutomationModel.__table__.columns
    # Counters are owned by the engine and survive a re-save
    if column.key
    not in ("id", "created_at", "updated_at", "enrolled_count", "active_enrollments", "completed_enrollments")
]


class AutomationRepository(ABC):
    """
    Read access to automation definitions plus the aggregate counters the
    engine maintains. Implementations are responsible for durability,
    conflicts, and connectivity.
    """

    @abstractmethod
    def save(self, automation: Automation) -> str:
        """Persist the automation and return its generated identifier."""
        raise NotImplementedError

    @abstractmethod
    def get(self, record_id: str) -> Automation | None:
        """Fetch an automation by id, or None if missing."""
        raise NotImplementedError

    @abstractmethod
    def list_active_by_trigger(self, trigger_type: str) -> List[Automation]:
        """Active automations listening for the given trigger type."""
        raise NotImplementedError

    @abstractmethod
    def set_active(self, record_id: str, is_active: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    def adjust_counters(self, record_id: str, *, enrolled: int = 0, active: int = 0, completed: int = 0) -> None:
        """Atomically add the given deltas to the aggregate counters."""
        raise NotImplementedError


class EnrollmentRepository(ABC):
    """Persistence boundary for enrollment rows."""

    @abstractmethod
    def create(self, enrollment: Enrollment) -> Enrollment:
        """Insert a new active enrollment. Raises EnrollmentConflictError on a duplicate."""
        raise NotImplementedError

    @abstractmethod
    def get(self, record_id: str) -> Enrollment | None:
        raise NotImplementedError

    @abstractmethod
    def find_active(self, automation_id: str, entity_type: str, entity_id: str) -> Enrollment | None:
        raise NotImplementedError

    @abstractmethod
    def save(self, enrollment: Enrollment) -> bool:
        """
        Persist the mutable state (pointer, status, timestamps, metadata) of an
        enrollment, but only while the stored row is still active.

        Returns False when another writer already moved the row to a terminal
        state; the stored row is left untouched.
        """
        raise NotImplementedError

    @abstractmethod
    def list_due(self, now: datetime, limit: Optional[int] = None) -> List[Enrollment]:
        """Active enrollments of active automations whose next_step_at is null or <= now."""
        raise NotImplementedError

    @abstractmethod
    def count_by_status(self, automation_id: str) -> Dict[str, int]:
        raise NotImplementedError

    @abstractmethod
    def list_for_automation(
        self, automation_id: str, status: Optional[EnrollmentStatus] = None, limit: int = 100
    ) -> List[Enrollment]:
        """Enrollments of one automation, most recent first."""
        raise NotImplementedError


class AutomationLogRepository(ABC):
    """Append-only audit trail. There is deliberately no update method."""

    @abstractmethod
    def append(self, log: AutomationLog) -> str:
        raise NotImplementedError

    @abstractmethod
    def list_for_automation(self, automation_id: str, limit: int = 50) -> List[AutomationLog]:
        raise NotImplementedError


class SqlAlchemyAutomationRepository(AutomationRepository):
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def save(self, automation: Automation) -> str:
        record_id = automation.id or str(uuid.uuid4())
        db_automation = pydantic_to_db_automation(automation, automation_id=record_id)
        with self._session_factory() as session, session.begin():
            existing = session.get(AutomationModel, record_id)
            if existing is None:
                session.add(db_automation)
                return record_id
            # Drop the old arena first so (automation_id, step_index) stays unique during the flush
            existing.steps.clear()
            session.flush()
            for column in _UPDATABLE_AUTOMATION_COLUMNS:
                setattr(existing, column, getattr(db_automation, column))
            existing.steps = [pydantic_to_db_step(step) for step in automation.steps]
        return record_id

    def get(self, record_id: str) -> Automation | None:
        with self._session_factory() as session:
            db_automation = session.get(AutomationModel, record_id)
            return db_to_pydantic_automation(db_automation) if db_automation else None

    def list_active_by_trigger(self, trigger_type: str) -> List[Automation]:
        query = (
            select(AutomationModel)
            .where(AutomationModel.trigger_type == trigger_type, AutomationModel.is_active.is_(True))
            .order_by(AutomationModel.created_at)
        )
        with self._session_factory() as session:
            return [db_to_pydantic_automation(row) for row in session.scalars(query)]

    def set_active(self, record_id: str, is_active: bool) -> None:
        with self._session_factory() as session, session.begin():
            session.execute(
                update(AutomationModel).where(AutomationModel.id == record_id).values(is_active=is_active)
            )

    def adjust_counters(self, record_id: str, *, enrolled: int = 0, active: int = 0, completed: int = 0) -> None:
        with self._session_factory() as session, session.begin():
            session.execute(
                update(AutomationModel)
                .where(AutomationModel.id == record_id)
                .values(
                    enrolled_count=AutomationModel.enrolled_count + enrolled,
                    active_enrollments=AutomationModel.active_enrollments + active,
                    completed_enrollments=AutomationModel.completed_enrollments + completed,
                )
            )


class SqlAlchemyEnrollmentRepository(EnrollmentRepository):
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @staticmethod
    def _active_query(automation_id: str, entity_type: str, entity_id: str):
        return select(AutomationEnrollmentModel).where(
            AutomationEnrollmentModel.automation_id == automation_id,
            AutomationEnrollmentModel.entity_type == entity_type,
            AutomationEnrollmentModel.entity_id == entity_id,
            AutomationEnrollmentModel.status == EnrollmentStatus.ACTIVE.value,
        )

    def create(self, enrollment: Enrollment) -> Enrollment:
        entity_type = enrollment.entity_type.value
        db_enrollment = pydantic_to_db_enrollment(enrollment)
        db_enrollment.id = enrollment.id or str(uuid.uuid4())
        try:
            with self._session_factory() as session, session.begin():
                existing = session.scalars(
                    self._active_query(enrollment.automation_id, entity_type, enrollment.entity_id)
                ).first()
                if existing is not None:
                    raise EnrollmentConflictError(
                        f"Active enrollment {existing.id} already exists for "
                        f"{entity_type} {enrollment.entity_id} in automation {enrollment.automation_id}"
                    )
                session.add(db_enrollment)
        except IntegrityError as exc:
            # Lost a race against a concurrent enrollment; the partial unique index caught it
            raise EnrollmentConflictError(
                f"Active enrollment already exists for {entity_type} {enrollment.entity_id}"
            ) from exc
        return db_to_pydantic_enrollment(db_enrollment)

    def get(self, record_id: str) -> Enrollment | None:
        with self._session_factory() as session:
            db_enrollment = session.get(AutomationEnrollmentModel, record_id)
            return db_to_pydantic_enrollment(db_enrollment) if db_enrollment else None

    def find_active(self, automation_id: str, entity_type: str, entity_id: str) -> Enrollment | None:
        with self._session_factory() as session:
            db_enrollment = session.scalars(self._active_query(automation_id, entity_type, entity_id)).first()
            return db_to_pydantic_enrollment(db_enrollment) if db_enrollment else None

    def save(self, enrollment: Enrollment) -> bool:
        query = (
            update(AutomationEnrollmentModel)
            .where(
                AutomationEnrollmentModel.id == enrollment.id,
                AutomationEnrollmentModel.status == EnrollmentStatus.ACTIVE.value,
            )
            .values(enrollment_state_values(enrollment))
            .execution_options(synchronize_session=False)
        )
        with self._session_factory() as session, session.begin():
            return session.execute(query).rowcount == 1

    def list_due(self, now: datetime, limit: Optional[int] = None) -> List[Enrollment]:
        query = (
            select(AutomationEnrollmentModel)
            .join(AutomationModel, AutomationModel.id == AutomationEnrollmentModel.automation_id)
            .where(
                AutomationEnrollmentModel.status == EnrollmentStatus.ACTIVE.value,
                AutomationModel.is_active.is_(True),
                or_(
                    AutomationEnrollmentModel.next_step_at.is_(None),
                    AutomationEnrollmentModel.next_step_at <= now,
                ),
            )
            .order_by(AutomationEnrollmentModel.next_step_at, AutomationEnrollmentModel.enrolled_at)
        )
        if limit is not None:
            query = query.limit(limit)
        with self._session_factory() as session:
            return [db_to_pydantic_enrollment(row) for row in session.scalars(query)]

    def count_by_status(self, automation_id: str) -> Dict[str, int]:
        query = (
            select(AutomationEnrollmentModel.status, func.count(AutomationEnrollmentModel.id))
            .where(AutomationEnrollmentModel.automation_id == automation_id)
            .group_by(AutomationEnrollmentModel.status)
        )
        with self._session_factory() as session:
            return {status: count for status, count in session.execute(query)}

    def list_for_automation(
        self, automation_id: str, status: Optional[EnrollmentStatus] = None, limit: int = 100
    ) -> List[Enrollment]:
        query = select(AutomationEnrollmentModel).where(AutomationEnrollmentModel.automation_id == automation_id)
        if status is not None:
            query = query.where(AutomationEnrollmentModel.status == status.value)
        query = query.order_by(AutomationEnrollmentModel.enrolled_at.desc()).limit(limit)
        with self._session_factory() as session:
            return [db_to_pydantic_enrollment(row) for row in session.scalars(query)]


class SqlAlchemyAutomationLogRepository(AutomationLogRepository):
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def append(self, log: AutomationLog) -> str:
        db_log = pydantic_to_db_log(log)
        db_log.id = log.id or str(uuid.uuid4())
        with self._session_factory() as session, session.begin():
            session.add(db_log)
        return db_log.id

    def list_for_automation(self, automation_id: str, limit: int = 50) -> List[AutomationLog]:
        query = (
            select(AutomationLogModel)
            .where(AutomationLogModel.automation_id == automation_id)
            .order_by(AutomationLogModel.executed_at.desc())
            .limit(limit)
        )
        with self._session_factory() as session:
            return [db_to_pydantic_log(row) for row in session.scalars(query)]
