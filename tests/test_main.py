"""Tests for runtime wiring, settings and logging setup."""

import json
import logging

import pytest

from engine import InMemoryEntityStore
from exceptions import ConfigurationError
from logging_config import configure_logging
from main import build_runtime, orchestrate_definition
from models import EnrollmentStatus
from settings import Settings
from tests.factories import LEGACY_TAG


class TestBuildRuntime:
    def test_end_to_end_with_background_dispatch(self, test_settings):
        entity_store = InMemoryEntityStore()
        runtime = build_runtime(entity_store=entity_store, settings=test_settings)
        automation_id = orchestrate_definition(json.dumps(LEGACY_TAG), runtime.automations)
        contact = entity_store.add("contact", {"id": "c1"})

        results = runtime.triggers.handle_event("contact_created", contact)
        runtime.shutdown()

        assert results[0].success
        assert entity_store.find_by_id("contact", "c1")["tags"] == ["lead"]
        enrollment = runtime.enrollments.get(results[0].enrollment.id)
        assert enrollment.status == EnrollmentStatus.COMPLETED
        assert runtime.automations.get(automation_id).completed_enrollments == 1

    def test_disabled_scheduler_does_not_start(self, test_settings):
        runtime = build_runtime(settings=test_settings)
        runtime.start()
        try:
            assert not runtime.scheduler.is_running
        finally:
            runtime.shutdown()

    def test_production_requires_entity_store(self):
        settings = Settings(environment="production", database_url="sqlite:///:memory:")
        with pytest.raises(ConfigurationError):
            build_runtime(settings=settings)


class TestSettings:
    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("AUTOMATION_SCHEDULER_INTERVAL_SECONDS", "5")
        monkeypatch.setenv("AUTOMATION_LOG_LEVEL", "DEBUG")

        settings = Settings()

        assert settings.scheduler_interval_seconds == 5.0
        assert settings.log_level == "DEBUG"

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            Settings(scheduler_interval_seconds=0)


def test_configure_logging_quiets_sqlalchemy():
    configure_logging("INFO")

    assert logging.getLogger("engine").level == logging.INFO
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
