"""
tests/test_season_service.py — Season Lifecycle Integration Tests
===================================================================
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shipyard.database.models import Season, SeasonStatus
from shipyard.engine.events import SeasonEnded, SeasonStarted
from shipyard.engine.weeks import as_utc
from shipyard.services.badge_service import list_user_badges
from shipyard.services.ledger_service import log_action
from shipyard.services.notification_service import Notifier
from shipyard.services.season_service import (
    end_current_season,
    ensure_active_season,
    get_active_season,
    get_leaderboard,
    get_or_start_current_season,
    plan_season,
    rollover_if_due,
)


def _by_status(engine, status: SeasonStatus) -> list[Season]:
    with Session(engine) as session:
        return list(session.scalars(
            select(Season).where(Season.status == status.value).order_by(Season.id)
        ).all())


@pytest.fixture
def events():
    notifier = Notifier()
    seen: list = []
    notifier.subscribe(SeasonStarted, seen.append)
    notifier.subscribe(SeasonEnded, seen.append)
    return notifier, seen


class TestStart:
    def test_get_or_start_creates_once(self, seeded_engine, cache, now, events):
        notifier, seen = events
        first = get_or_start_current_season(seeded_engine, cache, notifier=notifier, now=now)
        again = get_or_start_current_season(seeded_engine, cache, notifier=notifier, now=now)
        assert first.id == again.id
        assert as_utc(first.end_date) == now + timedelta(weeks=6)
        assert [type(e) for e in seen] == [SeasonStarted]

    def test_length_follows_policy(self, seeded_engine, cache, now):
        cache.set("season.length_weeks", 2)
        season = get_or_start_current_season(seeded_engine, cache, now=now)
        assert as_utc(season.end_date) - as_utc(season.start_date) == timedelta(weeks=2)

    def test_store_rejects_second_active_season(self, seeded_engine, cache, now):
        get_or_start_current_season(seeded_engine, cache, now=now)
        with Session(seeded_engine) as session, pytest.raises(IntegrityError):
            session.add(Season(
                start_date=now, end_date=now + timedelta(days=1),
                status=SeasonStatus.ACTIVE.value,
            ))
            session.flush()

    def test_due_planned_season_is_activated(self, seeded_engine, cache, now):
        planned = plan_season(seeded_engine, now - timedelta(days=1), now + timedelta(days=30))
        future = plan_season(seeded_engine, now + timedelta(days=60), now + timedelta(days=90))
        season = get_or_start_current_season(seeded_engine, cache, now=now)
        assert season.id == planned.id
        assert [s.id for s in _by_status(seeded_engine, SeasonStatus.PLANNED)] == [future.id]

    def test_ensure_reuses_season_within_session(self, seeded_engine, cache, now):
        with Session(seeded_engine) as session:
            first, started = ensure_active_season(session, cache, now)
            second, started_again = ensure_active_season(session, cache, now)
            session.commit()
            assert (started, started_again) == (True, False)
            assert first is second

    def test_plan_season_rejects_inverted_dates(self, seeded_engine, now):
        with pytest.raises(ValueError):
            plan_season(seeded_engine, now, now - timedelta(days=1))


class TestEnd:
    def test_end_with_no_active_season_is_noop(self, seeded_engine, cache, now, events):
        notifier, seen = events
        assert end_current_season(seeded_engine, cache, notifier=notifier, now=now) is None
        assert seen == []

    def test_end_closes_and_restarts(self, seeded_engine, cache, now, events):
        notifier, seen = events
        for user, n in ((1, 3), (2, 1), (3, 2)):
            for _ in range(n):
                log_action(seeded_engine, cache, user, "check-in", now=now)
        seen.clear()

        later = now + timedelta(days=3)
        rollover = end_current_season(seeded_engine, cache, notifier=notifier, now=later)

        assert [(e.user_id, e.points) for e in rollover.top_scores] == [(1, 3), (3, 2), (2, 1)]
        closed = _by_status(seeded_engine, SeasonStatus.CLOSED)
        active = _by_status(seeded_engine, SeasonStatus.ACTIVE)
        assert [s.id for s in closed] == [rollover.ended.season_id]
        assert [s.id for s in active] == [rollover.started.season_id]
        assert as_utc(closed[0].closed_at) == later
        assert [type(e) for e in seen] == [SeasonEnded, SeasonStarted]

    def test_top_n_limits_announcement(self, seeded_engine, cache, now):
        cache.set("season.top_n", 2)
        for user in range(1, 6):
            log_action(seeded_engine, cache, user, "check-in", now=now)
        rollover = end_current_season(seeded_engine, cache, now=now)
        assert len(rollover.top_scores) == 2

    def test_winner_gets_seasonal_badge(self, seeded_engine, cache, now):
        log_action(seeded_engine, cache, 1, "meeting-attend", now=now)
        log_action(seeded_engine, cache, 2, "check-in", now=now)
        rollover = end_current_season(seeded_engine, cache, now=now)

        codes = [b.code for b in list_user_badges(seeded_engine, 1)]
        assert "season-winner" in codes
        held = [b for b in list_user_badges(seeded_engine, 1) if b.code == "season-winner"]
        assert held[0].season_id == rollover.ended.season_id
        assert "season-winner" not in [b.code for b in list_user_badges(seeded_engine, 2)]

    def test_new_season_scores_start_from_zero(self, seeded_engine, cache, now):
        log_action(seeded_engine, cache, 1, "check-in", now=now)
        end_current_season(seeded_engine, cache, now=now)
        assert get_leaderboard(seeded_engine, cache) == []


class TestRolloverIfDue:
    def test_not_due_leaves_season_alone(self, seeded_engine, cache, now):
        season = get_or_start_current_season(seeded_engine, cache, now=now)
        assert rollover_if_due(seeded_engine, cache, now=now + timedelta(days=1)) is None
        with Session(seeded_engine) as session:
            assert get_active_season(session).id == season.id

    def test_past_end_date_rolls_over_without_gap(self, seeded_engine, cache, now):
        season = get_or_start_current_season(seeded_engine, cache, now=now)
        late = as_utc(season.end_date) + timedelta(days=2)

        rollover = rollover_if_due(seeded_engine, cache, now=late)
        assert rollover.ended.season_id == season.id

        # A concurrent action after the rollover lands in the new season
        log_action(seeded_engine, cache, 7, "check-in", now=late)
        active = _by_status(seeded_engine, SeasonStatus.ACTIVE)
        assert len(active) == 1
        assert active[0].id == rollover.started.season_id
        assert as_utc(active[0].start_date) == late

    def test_rollover_is_idempotent(self, seeded_engine, cache, now):
        season = get_or_start_current_season(seeded_engine, cache, now=now)
        late = as_utc(season.end_date) + timedelta(minutes=5)
        assert rollover_if_due(seeded_engine, cache, now=late) is not None
        assert rollover_if_due(seeded_engine, cache, now=late) is None
        assert len(_by_status(seeded_engine, SeasonStatus.ACTIVE)) == 1
