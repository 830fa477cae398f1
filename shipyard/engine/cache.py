"""
shipyard.engine.cache — PolicyCache (injected configuration service)
=====================================================================

Scoring policies and the badge catalogue are read on every
``log_action`` call, so they are cached in memory.  The cache is an
explicit object handed to every service function; nothing reads
policies from module-level state.

Lifecycle:

* ``load_all()`` on startup (and ``reload()`` whenever an operator wants
  a full refresh).
* ``set(key, value)`` writes through to the ``policies`` table and
  refreshes that key in memory.
* ``invalidate(key)`` marks one key stale; it is re-read from the store
  on the next ``get``.  ``invalidate()`` with no key reloads everything.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from shipyard.database.models import Badge, Policy

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _parse(value_json: str) -> Any:
    try:
        return json.loads(value_json)
    except (json.JSONDecodeError, TypeError):
        return value_json


class PolicyCache:
    """Thread-safe in-memory view of ``policies`` and ``badges``.

    Usage::

        cache = PolicyCache(engine)
        cache.load_all()

        cap = cache.get_int("points.max_per_week", 3)
        cache.set("points.max_per_week", 5)
        badges = cache.get_badges()
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()

        # key → parsed JSON value
        self._policies: dict[str, Any] = {}
        # keys to re-read from the store on next access
        self._stale: set[str] = set()
        # code → detached Badge row (active only)
        self._badges: dict[str, Badge] = {}

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load every policy and active badge from the store."""
        self._load_policies()
        self._load_badges()
        logger.info(
            "PolicyCache loaded: %d policies, %d badges",
            len(self._policies), len(self._badges),
        )

    def reload(self) -> None:
        self.load_all()

    def _load_policies(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(select(Policy)).all()
            parsed = {row.key: _parse(row.value_json) for row in rows}
        with self._lock:
            self._policies = parsed
            self._stale.clear()

    def _load_badges(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(
                select(Badge).where(Badge.active.is_(True)).order_by(Badge.id)
            ).all()
            by_code: dict[str, Badge] = {}
            for badge in rows:
                session.expunge(badge)
                by_code[badge.code] = badge
        with self._lock:
            self._badges = by_code

    def _refresh_key(self, key: str) -> None:
        with Session(self._engine) as session:
            row = session.get(Policy, key)
            value = _parse(row.value_json) if row is not None else None
        with self._lock:
            if row is None:
                self._policies.pop(key, None)
            else:
                self._policies[key] = value
            self._stale.discard(key)

    # -------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------
    def invalidate(self, key: str | None = None) -> None:
        """Mark *key* stale, or reload the whole cache when *key* is None."""
        if key is None:
            logger.info("PolicyCache full invalidation")
            self.load_all()
            return
        with self._lock:
            self._stale.add(key)
        logger.debug("Policy %s marked stale", key)

    # -------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------
    def set(
        self,
        key: str,
        value: Any,
        *,
        category: str = "general",
        description: str | None = None,
    ) -> None:
        """Persist *value* under *key* and refresh the cached copy."""
        from shipyard.services.policy_service import upsert_policy

        upsert_policy(
            self._engine, key=key, value=value,
            category=category, description=description,
        )
        with self._lock:
            self._policies[key] = value
            self._stale.discard(key)
        logger.info("Policy updated: %s = %r", key, value)

    # -------------------------------------------------------------------
    # Typed reads
    # -------------------------------------------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        """Return the parsed JSON value for *key*, or *default*."""
        with self._lock:
            stale = key in self._stale
        if stale:
            self._refresh_key(key)
        with self._lock:
            return self._policies.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        val = self.get(key)
        if val is None:
            return default
        try:
            return int(val)
        except (TypeError, ValueError):
            logger.warning("Policy %s=%r is not an int; using %r", key, val, default)
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        val = self.get(key)
        if val is None:
            return default
        if isinstance(val, str):
            return val.strip().lower() in _TRUTHY
        return bool(val)

    def get_str(self, key: str, default: str = "") -> str:
        val = self.get(key)
        if val is None:
            return default
        return str(val)

    def all_policies(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._policies)

    # -------------------------------------------------------------------
    # Badge catalogue
    # -------------------------------------------------------------------
    def get_badges(self) -> list[Badge]:
        with self._lock:
            return list(self._badges.values())

    def get_badge(self, code: str) -> Badge | None:
        with self._lock:
            return self._badges.get(code)
