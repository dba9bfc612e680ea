"""Tests for the step scheduler.

Covers:
- Only due enrollments of active automations are picked up
- An overlapping tick is skipped rather than queued
- One failing enrollment does not stop the batch
- Batch size limit
- Start/stop lifecycle
"""

import threading

from engine import StepScheduler
from tests.factories import DELAYED_NURTURE


class TestTick:
    def test_picks_up_only_due_enrollments(self, engine, scheduler, save_automation, entity_store, enrollment_repo, clock):
        automation = save_automation(DELAYED_NURTURE)
        entity_store.add("contact", {"id": "early"})
        early = engine.enroll(automation, "contact", "early").enrollment
        clock.advance(hours=12)
        entity_store.add("contact", {"id": "late"})
        late = engine.enroll(automation, "contact", "late").enrollment

        clock.advance(hours=12)
        assert scheduler.tick() == 1

        assert enrollment_repo.get(early.id).current_step_index == 1
        assert enrollment_repo.get(late.id).current_step_index == 0

    def test_overlapping_tick_is_skipped(self, scheduler):
        scheduler._tick_lock.acquire()
        try:
            assert scheduler.tick() == 0
        finally:
            scheduler._tick_lock.release()

    def test_error_in_one_enrollment_does_not_stop_batch(self, engine, enrollment_repo, save_automation, entity_store, clock):
        automation = save_automation(DELAYED_NURTURE)
        for contact_id in ("c1", "c2"):
            entity_store.add("contact", {"id": contact_id})
            engine.enroll(automation, "contact", contact_id)
        clock.advance(days=1)

        calls = []
        original = engine.process_enrollment_step

        def flaky(enrollment, now=None):
            calls.append(enrollment.entity_id)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return original(enrollment, now=now)

        engine.process_enrollment_step = flaky
        scheduler = StepScheduler(engine, enrollment_repo, clock=clock)

        assert scheduler.tick() == 1
        assert len(calls) == 2

    def test_batch_size_limits_tick(self, engine, enrollment_repo, save_automation, entity_store, clock):
        automation = save_automation(DELAYED_NURTURE)
        for contact_id in ("c1", "c2", "c3"):
            entity_store.add("contact", {"id": contact_id})
            engine.enroll(automation, "contact", contact_id)
        clock.advance(days=1)

        scheduler = StepScheduler(engine, enrollment_repo, clock=clock, batch_size=2)

        assert scheduler.tick() == 2
        assert scheduler.tick() == 2


class TestLifecycle:
    def test_start_runs_ticks_in_background(self, engine, enrollment_repo, clock):
        ticked = threading.Event()
        scheduler = StepScheduler(engine, enrollment_repo, interval_seconds=0.05, clock=clock)
        original_tick = scheduler.tick

        def tick(now=None):
            ticked.set()
            return original_tick(now)

        scheduler.tick = tick
        scheduler.start()
        try:
            assert scheduler.is_running
            assert ticked.wait(timeout=5)
        finally:
            scheduler.stop()

        assert not scheduler.is_running

    def test_stop_without_start_is_harmless(self, scheduler):
        scheduler.stop()
        assert not scheduler.is_running
