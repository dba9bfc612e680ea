"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database, in-memory collaborators,
a controllable clock and an engine that dispatches inline work synchronously.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List

import pytest

from db import (
    SqlAlchemyAutomationLogRepository,
    SqlAlchemyAutomationRepository,
    SqlAlchemyEnrollmentRepository,
    create_db_engine,
    create_session_factory,
    init_db,
)
from engine import (
    ActionExecutor,
    AutomationEngine,
    ExitCriteriaEvaluator,
    InMemoryEntityStore,
    InMemoryReminderStore,
    InMemorySuppressionList,
    RecordingEmailSender,
    StepScheduler,
    TriggerHandler,
)
from models import Automation
from settings import Settings


class FakeClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# =============================================================================
# SETTINGS
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="testing",
        database_url="sqlite:///:memory:",
        scheduler_enabled=False,
        scheduler_interval_seconds=1.0,
    )


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
def session_factory(test_settings: Settings):
    db_engine = create_db_engine(test_settings.database_url, echo=False)
    init_db(db_engine)
    yield create_session_factory(db_engine)
    db_engine.dispose()


@pytest.fixture
def automation_repo(session_factory) -> SqlAlchemyAutomationRepository:
    return SqlAlchemyAutomationRepository(session_factory)


@pytest.fixture
def enrollment_repo(session_factory) -> SqlAlchemyEnrollmentRepository:
    return SqlAlchemyEnrollmentRepository(session_factory)


@pytest.fixture
def log_repo(session_factory) -> SqlAlchemyAutomationLogRepository:
    return SqlAlchemyAutomationLogRepository(session_factory)


# =============================================================================
# COLLABORATORS
# =============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 6, 9, 0, 0))


@pytest.fixture
def entity_store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def reminder_store() -> InMemoryReminderStore:
    return InMemoryReminderStore()


@pytest.fixture
def suppression_list() -> InMemorySuppressionList:
    return InMemorySuppressionList()


@pytest.fixture
def action_executor(entity_store, email_sender, reminder_store, clock) -> ActionExecutor:
    return ActionExecutor(entity_store, email_sender=email_sender, reminder_store=reminder_store, clock=clock)


# =============================================================================
# ENGINE
# =============================================================================


@pytest.fixture
def dispatched() -> List[Any]:
    """Records every inline dispatch the engine performs."""
    return []


@pytest.fixture
def engine(
    automation_repo, enrollment_repo, log_repo, entity_store, action_executor, suppression_list, clock, dispatched
) -> AutomationEngine:
    def dispatch(fn, *args):
        dispatched.append(args)
        return fn(*args)

    automation_engine = AutomationEngine(
        automations=automation_repo,
        enrollments=enrollment_repo,
        logs=log_repo,
        entity_store=entity_store,
        action_executor=action_executor,
        exit_evaluator=ExitCriteriaEvaluator(suppression_list),
        clock=clock,
        dispatch=dispatch,
    )
    yield automation_engine
    automation_engine.shutdown()


@pytest.fixture
def scheduler(engine, enrollment_repo, clock) -> StepScheduler:
    step_scheduler = StepScheduler(engine, enrollment_repo, interval_seconds=1.0, clock=clock)
    yield step_scheduler
    step_scheduler.stop(wait=False)


@pytest.fixture
def trigger_handler(automation_repo, engine) -> TriggerHandler:
    return TriggerHandler(automation_repo, engine)


@pytest.fixture
def save_automation(automation_repo):
    """Persist a definition and return it as loaded back from the store."""

    def _save(payload: Dict[str, Any]) -> Automation:
        automation = Automation.model_validate(payload)
        return automation_repo.get(automation_repo.save(automation))

    return _save
