"""
tests/test_cache.py — PolicyCache & policy_service
====================================================

Runs against the seeded in-memory SQLite database.
"""

from __future__ import annotations

import json

from sqlalchemy.orm import Session

from shipyard.database.models import Policy
from shipyard.database.seed import DEFAULT_BADGES, DEFAULT_POLICIES, seed_database
from shipyard.engine.cache import PolicyCache
from shipyard.services.policy_service import (
    delete_policy,
    get_all_policies,
    get_policy_value,
    parse_policy_input,
    upsert_policy,
)


class TestLoading:
    def test_defaults_loaded(self, cache):
        assert cache.get_int("points.max_per_week") == 3
        assert cache.get_bool("gamification.enabled") is True
        assert cache.get_str("community.timezone") == "Europe/London"
        assert set(cache.all_policies()) == set(DEFAULT_POLICIES)

    def test_badge_catalogue_loaded(self, cache):
        assert {b.code for b in cache.get_badges()} == set(DEFAULT_BADGES)
        assert cache.get_badge("season-winner").seasonal is True
        assert cache.get_badge("nope") is None

    def test_seed_is_idempotent(self, seeded_engine):
        seed_database(seeded_engine)
        with Session(seeded_engine) as session:
            assert session.query(Policy).count() == len(DEFAULT_POLICIES)


class TestTypedReads:
    def test_missing_key_returns_default(self, cache):
        assert cache.get_int("no.such.key", 42) == 42
        assert cache.get_bool("no.such.key", True) is True
        assert cache.get("no.such.key") is None

    def test_uncoercible_value_returns_default(self, seeded_engine, cache):
        upsert_policy(seeded_engine, key="points.per_action", value="lots")
        cache.invalidate("points.per_action")
        assert cache.get_int("points.per_action", 1) == 1

    def test_string_booleans(self, seeded_engine, cache):
        upsert_policy(seeded_engine, key="leaderboard.public", value="yes")
        cache.invalidate("leaderboard.public")
        assert cache.get_bool("leaderboard.public") is True


class TestWrites:
    def test_set_writes_through(self, seeded_engine, cache):
        cache.set("points.max_per_week", 5)
        assert cache.get_int("points.max_per_week") == 5

        fresh = PolicyCache(seeded_engine)
        fresh.load_all()
        assert fresh.get_int("points.max_per_week") == 5

    def test_set_new_key(self, seeded_engine, cache):
        cache.set("custom.flag", True, category="custom", description="test")
        rows = {r.key: r for r in get_all_policies(seeded_engine)}
        assert rows["custom.flag"].category == "custom"
        assert json.loads(rows["custom.flag"].value_json) is True

    def test_external_write_invisible_until_invalidated(self, seeded_engine, cache):
        upsert_policy(seeded_engine, key="season.length_weeks", value=8)
        assert cache.get_int("season.length_weeks") == 6
        cache.invalidate("season.length_weeks")
        assert cache.get_int("season.length_weeks") == 8

    def test_full_invalidate_reloads(self, seeded_engine, cache):
        upsert_policy(seeded_engine, key="season.top_n", value=3)
        upsert_policy(seeded_engine, key="leaderboard.size", value=4)
        cache.invalidate()
        assert cache.get_int("season.top_n") == 3
        assert cache.get_int("leaderboard.size") == 4

    def test_deleted_key_falls_back_to_default(self, seeded_engine, cache):
        assert delete_policy(seeded_engine, "points.per_action") is True
        assert delete_policy(seeded_engine, "points.per_action") is False
        cache.invalidate("points.per_action")
        assert cache.get_int("points.per_action", 1) == 1


class TestPolicyService:
    def test_get_policy_value(self, seeded_engine):
        with Session(seeded_engine) as session:
            assert get_policy_value(session, "points.max_per_week") == 3
            assert get_policy_value(session, "missing", "dflt") == "dflt"

    def test_parse_policy_input(self):
        assert parse_policy_input("5") == 5
        assert parse_policy_input("true") is True
        assert parse_policy_input('{"a": 1}') == {"a": 1}
        assert parse_policy_input("Europe/Paris") == "Europe/Paris"
