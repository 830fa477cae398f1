"""
shipyard.services.schedule_service — Durable Job Schedule
===========================================================

CRUD over ``scheduled_jobs``.  A job is a "due at" record: it survives
restarts, can be cancelled while pending, and is picked up by the
recurring tick in :mod:`shipyard.services.scheduler`.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import Session

from shipyard.database.models import JobStatus, ScheduledJob
from shipyard.engine.weeks import as_utc, utcnow

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_ERROR_LIMIT = 2000


def schedule_job(
    engine: Engine,
    kind: str,
    due_at: datetime,
    payload: dict | None = None,
    *,
    recurring: bool = False,
) -> int:
    """Insert a pending job and return its id."""
    with Session(engine) as session:
        job = ScheduledJob(
            kind=kind,
            due_at=as_utc(due_at),
            payload=payload or {},
            status=JobStatus.PENDING.value,
            recurring=recurring,
        )
        session.add(job)
        session.commit()
        job_id = job.id
    logger.info("Scheduled %s job %d for %s", kind, job_id, as_utc(due_at).isoformat())
    return job_id


def cancel_job(engine: Engine, job_id: int, *, kind: str | None = None) -> bool:
    """Cancel a pending job, optionally only if it is of *kind*.

    Returns False if no such pending job exists.
    """
    with Session(engine) as session:
        job = session.get(ScheduledJob, job_id, with_for_update=True)
        if job is None or job.status != JobStatus.PENDING.value:
            return False
        if kind is not None and job.kind != kind:
            return False
        job.status = JobStatus.CANCELLED.value
        job.completed_at = utcnow()
        session.commit()
    logger.info("Cancelled job %d", job_id)
    return True


def get_due_jobs(engine: Engine, now: datetime, *, limit: int = 50) -> list[ScheduledJob]:
    """Pending jobs whose ``due_at`` has passed, oldest first (detached)."""
    with Session(engine) as session:
        rows = session.scalars(
            select(ScheduledJob)
            .where(
                ScheduledJob.status == JobStatus.PENDING.value,
                ScheduledJob.due_at <= as_utc(now),
            )
            .order_by(ScheduledJob.due_at, ScheduledJob.id)
            .limit(limit)
        ).all()
        for r in rows:
            session.expunge(r)
        return list(rows)


def get_pending_jobs(engine: Engine, kind: str | None = None) -> list[ScheduledJob]:
    with Session(engine) as session:
        stmt = select(ScheduledJob).where(
            ScheduledJob.status == JobStatus.PENDING.value
        )
        if kind is not None:
            stmt = stmt.where(ScheduledJob.kind == kind)
        rows = session.scalars(stmt.order_by(ScheduledJob.due_at)).all()
        for r in rows:
            session.expunge(r)
        return list(rows)


def mark_job_done(
    engine: Engine,
    job_id: int,
    *,
    now: datetime | None = None,
    next_due: datetime | None = None,
) -> None:
    """Complete *job_id*.  Recurring jobs pass *next_due* and stay pending."""
    now = as_utc(now) if now else utcnow()
    with Session(engine) as session:
        job = session.get(ScheduledJob, job_id, with_for_update=True)
        if job is None:
            return
        job.attempts = 0
        job.last_error = None
        if next_due is not None:
            job.due_at = as_utc(next_due)
        else:
            job.status = JobStatus.DONE.value
            job.completed_at = now
        session.commit()


def mark_job_failed(
    engine: Engine,
    job_id: int,
    error: str,
    *,
    max_attempts: int,
    now: datetime | None = None,
    next_due: datetime | None = None,
) -> str:
    """Record a failed run and return the job's resulting status.

    One-shot jobs stay pending (retried on a later tick) until
    *max_attempts* is reached.  Recurring jobs move to *next_due*.
    """
    now = as_utc(now) if now else utcnow()
    with Session(engine) as session:
        job = session.get(ScheduledJob, job_id, with_for_update=True)
        if job is None:
            return JobStatus.FAILED.value
        job.attempts += 1
        job.last_error = error[:_ERROR_LIMIT]
        if next_due is not None:
            job.due_at = as_utc(next_due)
        elif job.attempts >= max_attempts:
            job.status = JobStatus.FAILED.value
            job.completed_at = now
        status = job.status
        session.commit()
    if status == JobStatus.FAILED.value:
        logger.warning("Job %d failed permanently after %d attempts", job_id, max_attempts)
    return status


def ensure_recurring_job(engine: Engine, kind: str, first_due: datetime) -> int:
    """Return the pending recurring job of *kind*, creating it if missing."""
    with Session(engine) as session:
        job_id = session.scalar(
            select(ScheduledJob.id)
            .where(
                ScheduledJob.kind == kind,
                ScheduledJob.recurring.is_(True),
                ScheduledJob.status == JobStatus.PENDING.value,
            )
            .order_by(ScheduledJob.id)
            .limit(1)
        )
    if job_id is not None:
        return job_id
    return schedule_job(engine, kind, first_due, recurring=True)
