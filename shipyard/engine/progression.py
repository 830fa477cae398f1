"""
shipyard.engine.progression — Role Progression Tiers
======================================================

Threshold evaluation over a user's lifetime aggregates.  Each tier is a
set of stat thresholds combined with AND (``all_of``) or OR (``any_of``).

Pure calculation; role lookups and grants live in
:mod:`shipyard.services.progression_service`.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class ProgressionStats:
    """Aggregates a user's tier eligibility is judged on.

    Demo and feedback counts are distinct source artifacts, not raw
    action rows, so re-logging the same message does not count twice.
    An action with no ref is its own artifact and always counts.
    """

    presented_demos: int = 0
    helpful_feedback: int = 0
    active_weeks: int = 0
    recent_helpful_feedback: int = 0


@dataclass(frozen=True, slots=True)
class RoleTier:
    name: str
    all_of: dict[str, int] = field(default_factory=dict)
    any_of: dict[str, int] = field(default_factory=dict)

    def is_met(self, stats: ProgressionStats) -> bool:
        if self.all_of and not all(
            getattr(stats, stat) >= threshold
            for stat, threshold in self.all_of.items()
        ):
            return False
        if self.any_of and not any(
            getattr(stats, stat) >= threshold
            for stat, threshold in self.any_of.items()
        ):
            return False
        return bool(self.all_of or self.any_of)


DEFAULT_ROLE_TIERS: tuple[RoleTier, ...] = (
    RoleTier("Crew", any_of={"active_weeks": 2, "recent_helpful_feedback": 2}),
    RoleTier("Builder", all_of={"presented_demos": 1, "helpful_feedback": 3}),
    RoleTier("Senior Builder", all_of={"presented_demos": 3, "helpful_feedback": 10}),
)


def eligible_roles(
    stats: ProgressionStats,
    tiers: tuple[RoleTier, ...] = DEFAULT_ROLE_TIERS,
) -> list[str]:
    """Names of every tier *stats* qualifies for, lowest tier first."""
    return [tier.name for tier in tiers if tier.is_met(stats)]
