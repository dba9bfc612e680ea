from .converters import (
    db_to_pydantic_automation,
    db_to_pydantic_enrollment,
    db_to_pydantic_log,
    pydantic_to_db_automation,
    pydantic_to_db_enrollment,
    pydantic_to_db_log,
)
from .models import (
    AutomationEnrollmentModel,
    AutomationLogModel,
    AutomationModel,
    AutomationStepModel,
    Base,
    utcnow,
)
from .repository import (
    AutomationLogRepository,
    AutomationRepository,
    EnrollmentRepository,
    SqlAlchemyAutomationLogRepository,
    SqlAlchemyAutomationRepository,
    SqlAlchemyEnrollmentRepository,
)
from .session import create_db_engine, create_session_factory, init_db

__all__ = [
    "AutomationRepository",
    "EnrollmentRepository",
    "AutomationLogRepository",
    "SqlAlchemyAutomationRepository",
    "SqlAlchemyEnrollmentRepository",
    "SqlAlchemyAutomationLogRepository",
    "AutomationModel",
    "AutomationStepModel",
    "AutomationEnrollmentModel",
    "AutomationLogModel",
    "Base",
    "utcnow",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "pydantic_to_db_automation",
    "db_to_pydantic_automation",
    "pydantic_to_db_enrollment",
    "db_to_pydantic_enrollment",
    "pydantic_to_db_log",
    "db_to_pydantic_log",
]
