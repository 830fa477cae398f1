"""
shipyard.services.scheduler — Job Runner
==========================================

One ``tick(now)`` call per minute (from the bot's task loop) drives all
scheduled work:

1. Make sure each registered recurring kind has a pending job.
2. Dispatch every due job to its handler.
3. Move recurring jobs to their next occurrence; complete one-shots.

A kind never overlaps its own previous run: the per-kind guard is a
non-blocking lock, so a tick that finds the kind busy leaves the job
pending for the next tick.  Different kinds do not exclude each other.
A failing job is logged; one-shot jobs are retried on later ticks up to
``scheduler.max_attempts`` and recurring jobs wait for their next slot.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any

from shipyard.engine.events import ReminderDue
from shipyard.engine.schedule import (
    RECURRING_JOBS,
    REMINDER,
    SEASON_ROLLOVER,
    WEEKLY_DIGEST,
    WEEKLY_ROLLUP,
    next_run_for,
)
from shipyard.engine.weeks import as_utc, utcnow
from shipyard.services.digest_service import build_weekly_digest
from shipyard.services.ledger_service import community_timezone
from shipyard.services.notification_service import publish_safely
from shipyard.services.schedule_service import (
    ensure_recurring_job,
    get_due_jobs,
    mark_job_done,
    mark_job_failed,
)
from shipyard.services.season_service import rollover_if_due
from shipyard.services.streak_service import run_weekly_rollup

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from shipyard.database.models import ScheduledJob
    from shipyard.engine.cache import PolicyCache
    from shipyard.services.notification_service import Notifier

logger = logging.getLogger(__name__)

JobHandler = Callable[["ScheduledJob", datetime], Any]

DEFAULT_MAX_ATTEMPTS = 5


class JobRunner:
    """Dispatches due :class:`ScheduledJob` rows to registered handlers."""

    def __init__(
        self,
        engine: Engine,
        cache: PolicyCache,
        notifier: Notifier | None = None,
    ) -> None:
        self.engine = engine
        self.cache = cache
        self.notifier = notifier
        self._handlers: dict[str, JobHandler] = {}
        self._guards: dict[str, threading.Lock] = {}
        self._guards_lock = threading.Lock()

    def register(self, kind: str, handler: JobHandler) -> None:
        self._handlers[kind] = handler

    @property
    def kinds(self) -> list[str]:
        return sorted(self._handlers)

    def _guard(self, kind: str) -> threading.Lock:
        with self._guards_lock:
            return self._guards.setdefault(kind, threading.Lock())

    def run_exclusive(self, kind: str, func: Callable[..., Any], *args, **kwargs) -> bool:
        """Run *func* unless *kind* is already running.

        Returns False (without calling *func*) when the guard is held.
        Exceptions from *func* propagate after the guard is released.
        """
        guard = self._guard(kind)
        if not guard.acquire(blocking=False):
            logger.warning("Job kind %s still running; skipping", kind)
            return False
        try:
            func(*args, **kwargs)
        finally:
            guard.release()
        return True

    def ensure_recurring(self, now: datetime) -> None:
        tz = community_timezone(self.cache)
        for kind in RECURRING_JOBS:
            if kind in self._handlers:
                ensure_recurring_job(self.engine, kind, next_run_for(kind, now, tz))

    def tick(self, now: datetime | None = None) -> int:
        """Run everything due at *now*.  Returns the number of jobs completed."""
        now = as_utc(now) if now else utcnow()
        self.ensure_recurring(now)

        tz = community_timezone(self.cache)
        max_attempts = self.cache.get_int("scheduler.max_attempts", DEFAULT_MAX_ATTEMPTS)
        completed = 0

        for job in get_due_jobs(self.engine, now):
            next_due = None
            if job.recurring and job.kind in RECURRING_JOBS:
                next_due = next_run_for(job.kind, now, tz)

            handler = self._handlers.get(job.kind)
            if handler is None:
                logger.warning("No handler for job %d (%s)", job.id, job.kind)
                mark_job_failed(
                    self.engine, job.id, f"no handler registered for {job.kind!r}",
                    max_attempts=max_attempts, now=now, next_due=next_due,
                )
                continue

            try:
                ran = self.run_exclusive(job.kind, handler, job, now)
            except Exception as exc:
                logger.exception(
                    "Scheduled job %d (%s) failed", job.id, job.kind,
                    extra={"task": job.kind},
                )
                mark_job_failed(
                    self.engine, job.id, repr(exc),
                    max_attempts=max_attempts, now=now, next_due=next_due,
                )
                continue

            if not ran:
                continue
            mark_job_done(self.engine, job.id, now=now, next_due=next_due)
            completed += 1

        return completed


# ---------------------------------------------------------------------------
# Default wiring
# ---------------------------------------------------------------------------

def build_default_runner(
    engine: Engine,
    cache: PolicyCache,
    notifier: Notifier | None = None,
) -> JobRunner:
    """A :class:`JobRunner` with the season, streak, digest and reminder jobs."""
    runner = JobRunner(engine, cache, notifier)

    def _season_rollover(job: ScheduledJob, now: datetime) -> None:
        rollover_if_due(engine, cache, notifier=notifier, now=now)

    def _weekly_rollup(job: ScheduledJob, now: datetime) -> None:
        run_weekly_rollup(engine, cache, now=now)

    def _weekly_digest(job: ScheduledJob, now: datetime) -> None:
        publish_safely(notifier, build_weekly_digest(engine, cache, now=now))

    def _reminder(job: ScheduledJob, now: datetime) -> None:
        publish_safely(notifier, ReminderDue(job_id=job.id, payload=dict(job.payload or {})))

    runner.register(SEASON_ROLLOVER, _season_rollover)
    runner.register(WEEKLY_ROLLUP, _weekly_rollup)
    runner.register(WEEKLY_DIGEST, _weekly_digest)
    runner.register(REMINDER, _reminder)
    return runner
