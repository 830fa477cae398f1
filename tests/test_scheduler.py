"""
tests/test_scheduler.py — Durable Job Schedule & JobRunner
============================================================
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.orm import Session

from shipyard.database.models import JobStatus, ScheduledJob
from shipyard.engine.events import ReminderDue, SeasonEnded, SeasonStarted
from shipyard.engine.schedule import (
    RECURRING_JOBS,
    REMINDER,
    SEASON_ROLLOVER,
)
from shipyard.engine.weeks import as_utc
from shipyard.services.notification_service import Notifier
from shipyard.services.schedule_service import (
    cancel_job,
    get_pending_jobs,
    schedule_job,
)
from shipyard.services.scheduler import JobRunner, build_default_runner
from shipyard.services.season_service import get_or_start_current_season


def _job(engine, job_id: int) -> ScheduledJob:
    with Session(engine) as session:
        job = session.get(ScheduledJob, job_id)
        session.expunge(job)
        return job


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def runner(seeded_engine, cache, notifier) -> JobRunner:
    return build_default_runner(seeded_engine, cache, notifier)


class TestScheduleService:
    def test_cancel_only_pending(self, seeded_engine, now):
        job_id = schedule_job(seeded_engine, REMINDER, now)
        assert cancel_job(seeded_engine, job_id) is True
        assert cancel_job(seeded_engine, job_id) is False
        assert cancel_job(seeded_engine, 9999) is False
        assert _job(seeded_engine, job_id).status == JobStatus.CANCELLED.value

    def test_cancel_restricted_to_kind(self, seeded_engine, now):
        job_id = schedule_job(seeded_engine, SEASON_ROLLOVER, now, recurring=True)
        assert cancel_job(seeded_engine, job_id, kind=REMINDER) is False
        assert _job(seeded_engine, job_id).status == JobStatus.PENDING.value

    def test_pending_filter_by_kind(self, seeded_engine, now):
        schedule_job(seeded_engine, REMINDER, now)
        schedule_job(seeded_engine, "other", now)
        assert [j.kind for j in get_pending_jobs(seeded_engine, REMINDER)] == [REMINDER]
        assert len(get_pending_jobs(seeded_engine)) == 2


class TestTick:
    def test_first_tick_creates_recurring_jobs(self, runner, seeded_engine, now):
        assert runner.tick(now) == 0
        pending = get_pending_jobs(seeded_engine)
        assert {j.kind for j in pending} == set(RECURRING_JOBS)
        assert all(j.recurring for j in pending)

        runner.tick(now + timedelta(minutes=1))
        assert len(get_pending_jobs(seeded_engine)) == len(RECURRING_JOBS)

    def test_due_reminder_published_and_completed(self, runner, notifier, seeded_engine, now):
        seen: list[ReminderDue] = []
        notifier.subscribe(ReminderDue, seen.append)
        job_id = schedule_job(
            seeded_engine, REMINDER, now - timedelta(minutes=1), {"message": "demo day"}
        )

        assert runner.tick(now) == 1
        assert seen == [ReminderDue(job_id=job_id, payload={"message": "demo day"})]
        assert _job(seeded_engine, job_id).status == JobStatus.DONE.value

        assert runner.tick(now + timedelta(minutes=1)) == 0
        assert len(seen) == 1

    def test_future_job_waits(self, runner, seeded_engine, now):
        job_id = schedule_job(seeded_engine, REMINDER, now + timedelta(hours=1))
        assert runner.tick(now) == 0
        assert _job(seeded_engine, job_id).status == JobStatus.PENDING.value

    def test_cancelled_job_never_runs(self, runner, notifier, seeded_engine, now):
        seen: list[ReminderDue] = []
        notifier.subscribe(ReminderDue, seen.append)
        job_id = schedule_job(seeded_engine, REMINDER, now + timedelta(minutes=5))
        cancel_job(seeded_engine, job_id)
        runner.tick(now + timedelta(hours=1))
        assert seen == []

    def test_recurring_job_rescheduled(self, runner, seeded_engine, now):
        job_id = schedule_job(
            seeded_engine, SEASON_ROLLOVER, now - timedelta(minutes=1), recurring=True
        )
        assert runner.tick(now) == 1
        job = _job(seeded_engine, job_id)
        assert job.status == JobStatus.PENDING.value
        # 00:05 Europe/London the next day, still GMT in early March
        assert as_utc(job.due_at) == datetime(2026, 3, 5, 0, 5, tzinfo=UTC)

    def test_rollover_job_ends_expired_season(
        self, runner, notifier, seeded_engine, cache, now
    ):
        events: list = []
        notifier.subscribe(SeasonEnded, events.append)
        notifier.subscribe(SeasonStarted, events.append)
        old = get_or_start_current_season(seeded_engine, cache, now=now - timedelta(weeks=7))
        schedule_job(seeded_engine, SEASON_ROLLOVER, now - timedelta(minutes=1), recurring=True)

        runner.tick(now)
        assert [type(e) for e in events] == [SeasonEnded, SeasonStarted]
        assert events[0].season_id == old.id
        assert events[1].season_id != old.id


class TestFailures:
    def test_one_shot_retried_then_failed(self, seeded_engine, cache, now):
        cache.set("scheduler.max_attempts", 2)
        runner = JobRunner(seeded_engine, cache)
        runner.register("explode", lambda job, at: 1 / 0)
        job_id = schedule_job(seeded_engine, "explode", now)

        assert runner.tick(now) == 0
        job = _job(seeded_engine, job_id)
        assert (job.status, job.attempts) == (JobStatus.PENDING.value, 1)
        assert "ZeroDivisionError" in job.last_error

        runner.tick(now + timedelta(minutes=1))
        job = _job(seeded_engine, job_id)
        assert (job.status, job.attempts) == (JobStatus.FAILED.value, 2)

    def test_failing_kind_does_not_block_others(self, seeded_engine, cache, now):
        runner = JobRunner(seeded_engine, cache)
        ran: list[int] = []
        runner.register("explode", lambda job, at: 1 / 0)
        runner.register("fine", lambda job, at: ran.append(job.id))
        schedule_job(seeded_engine, "explode", now)
        ok_id = schedule_job(seeded_engine, "fine", now)

        assert runner.tick(now) == 1
        assert ran == [ok_id]

    def test_missing_handler_marks_failure(self, seeded_engine, cache, now):
        runner = JobRunner(seeded_engine, cache)
        job_id = schedule_job(seeded_engine, "mystery", now)
        assert runner.tick(now) == 0
        job = _job(seeded_engine, job_id)
        assert job.attempts == 1
        assert "no handler" in job.last_error


class TestExclusivity:
    def test_run_exclusive_skips_when_busy(self, runner):
        calls: list[int] = []
        guard = runner._guard(REMINDER)
        guard.acquire()
        try:
            assert runner.run_exclusive(REMINDER, calls.append, 1) is False
        finally:
            guard.release()
        assert runner.run_exclusive(REMINDER, calls.append, 2) is True
        assert calls == [2]

    def test_busy_kind_left_pending(self, runner, seeded_engine, now):
        job_id = schedule_job(seeded_engine, REMINDER, now)
        guard = runner._guard(REMINDER)
        guard.acquire()
        try:
            assert runner.tick(now) == 0
        finally:
            guard.release()
        job = _job(seeded_engine, job_id)
        assert (job.status, job.attempts) == (JobStatus.PENDING.value, 0)
        assert runner.tick(now) == 1

    def test_guard_released_after_exception(self, runner):
        with pytest.raises(ZeroDivisionError):
            runner.run_exclusive("kind", lambda: 1 / 0)
        assert runner.run_exclusive("kind", lambda: None) is True
