import json
import logging
from dataclasses import dataclass
from typing import Optional

from db import (
    AutomationLogRepository,
    AutomationRepository,
    EnrollmentRepository,
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
    EmailSender,
    EntityStore,
    ExitCriteriaEvaluator,
    InMemoryEntityStore,
    ReminderStore,
    StepScheduler,
    SuppressionList,
    TriggerHandler,
)
from exceptions import ConfigurationError
from logging_config import configure_logging
from models import Automation
from registry import create_default_registries
from settings import Settings, get_settings
from validations import parse_and_validate_automation, parse_automation_json

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    automations: AutomationRepository
    enrollments: EnrollmentRepository
    logs: AutomationLogRepository
    engine: AutomationEngine
    triggers: TriggerHandler
    scheduler: StepScheduler
    settings: Settings

    def start(self) -> None:
        if not self.settings.scheduler_enabled:
            logger.info("Step scheduler disabled via settings")
            return
        self.scheduler.start()

    def shutdown(self) -> None:
        self.scheduler.stop()
        self.engine.shutdown()


def build_runtime(
    entity_store: Optional[EntityStore] = None,
    email_sender: Optional[EmailSender] = None,
    reminder_store: Optional[ReminderStore] = None,
    suppression_list: Optional[SuppressionList] = None,
    settings: Optional[Settings] = None,
) -> Runtime:
    """
    Wire repositories, collaborators, engine, trigger handler and scheduler:
    1. Create the database engine and tables.
    2. Build the SQLAlchemy repositories.
    3. Build the engine around the given collaborators.

    The scheduler is returned stopped; call ``Runtime.start()``.
    """
    settings = settings or get_settings()
    if entity_store is None and settings.environment in ("staging", "production"):
        raise ConfigurationError(f"An entity store must be provided in {settings.environment}")

    db_engine = create_db_engine(settings.database_url, echo=settings.database_echo)
    init_db(db_engine)
    session_factory = create_session_factory(db_engine)

    automations = SqlAlchemyAutomationRepository(session_factory)
    enrollments = SqlAlchemyEnrollmentRepository(session_factory)
    logs = SqlAlchemyAutomationLogRepository(session_factory)

    entity_store = entity_store or InMemoryEntityStore()
    registries = create_default_registries()
    engine = AutomationEngine(
        automations=automations,
        enrollments=enrollments,
        logs=logs,
        entity_store=entity_store,
        action_executor=ActionExecutor(
            entity_store,
            email_sender=email_sender,
            reminder_store=reminder_store,
            action_registry=registries["action"],
        ),
        exit_evaluator=ExitCriteriaEvaluator(suppression_list),
        inline_workers=settings.inline_dispatch_workers,
    )
    scheduler = StepScheduler(
        engine,
        enrollments,
        interval_seconds=settings.scheduler_interval_seconds,
        batch_size=settings.scheduler_batch_size,
    )
    return Runtime(
        automations=automations,
        enrollments=enrollments,
        logs=logs,
        engine=engine,
        triggers=TriggerHandler(automations, engine),
        scheduler=scheduler,
        settings=settings,
    )


def orchestrate_definition(payload_text: str, repository: AutomationRepository) -> str:
    """
    Orchestrate the ingestion of an automation definition:
    1. Parse stringified JSON.
    2. Validate against Automation schema and registries.
    3. Save to persistence layer.

    Returns the saved automation id.
    """
    registries = create_default_registries()
    parsed_payload = parse_automation_json(payload_text)
    automation: Automation = parse_and_validate_automation(parsed_payload, registries)
    return repository.save(automation)


if __name__ == "__main__":
    import sys

    configure_logging()
    usage = "Usage: python main.py load <definition.json> | stats <automation_id>"

    if len(sys.argv) != 3 or sys.argv[1] not in ("load", "stats"):
        print(usage)
        sys.exit(1)

    command, argument = sys.argv[1], sys.argv[2]
    runtime = build_runtime()
    try:
        if command == "load":
            with open(argument, encoding="utf-8") as handle:
                automation_id = orchestrate_definition(handle.read(), runtime.automations)
            print(f"Automation saved with id: {automation_id}")
        else:
            if runtime.automations.get(argument) is None:
                print(f"Automation {argument} not found")
                sys.exit(1)
            print(json.dumps(runtime.engine.get_enrollment_stats(argument), indent=2))
    finally:
        runtime.shutdown()
