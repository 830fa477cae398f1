"""
shipyard.services.policy_service — Policy CRUD
================================================

Typed read/write access to the ``policies`` table.  Callers that hold a
:class:`~shipyard.engine.cache.PolicyCache` should write through
``cache.set`` so the cached copy is refreshed; the functions here are the
store half of that operation.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from shipyard.database.models import Policy

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_policy_value(session: Session, key: str, default=None):
    """Read a single policy's parsed value from an existing session.

    Parameters
    ----------
    session : Session
        An open SQLAlchemy session.
    key : str
        The policy key to look up.
    default
        Returned when the key does not exist.

    Returns
    -------
    The JSON-decoded value, the raw string if it is not valid JSON, or
    *default*.
    """
    row = session.get(Policy, key)
    if row is None:
        return default
    try:
        return json.loads(row.value_json)
    except (json.JSONDecodeError, TypeError):
        return row.value_json


def get_all_policies(engine) -> list[Policy]:
    """Fetch every policy row, ordered by category then key."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Policy).order_by(Policy.category, Policy.key)
        ).all()
        for r in rows:
            session.expunge(r)
        return list(rows)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def upsert_policy(
    engine,
    *,
    key: str,
    value: Any,
    category: str = "general",
    description: str | None = None,
) -> Policy:
    """Insert or update a single policy."""
    value_json = json.dumps(value)
    with Session(engine) as session:
        existing = session.get(Policy, key)
        if existing:
            existing.value_json = value_json
            if description is not None:
                existing.description = description
        else:
            existing = Policy(
                key=key,
                value_json=value_json,
                category=category,
                description=description,
            )
            session.add(existing)
        session.commit()
        session.refresh(existing)
        session.expunge(existing)

    logger.debug("Policy %s written", key)
    return existing


def delete_policy(engine, key: str) -> bool:
    """Remove *key*.  Returns False if it did not exist."""
    with Session(engine) as session:
        row = session.get(Policy, key)
        if row is None:
            return False
        session.delete(row)
        session.commit()
    logger.info("Policy deleted: %s", key)
    return True


def parse_policy_input(raw: str) -> Any:
    """Interpret an admin-typed value: JSON if it parses, else the string.

    >>> parse_policy_input("5")
    5
    >>> parse_policy_input("false")
    False
    >>> parse_policy_input("Europe/Paris")
    'Europe/Paris'
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw
