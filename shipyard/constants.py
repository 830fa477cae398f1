"""
shipyard.constants — Shared Presentation Constants
===================================================

Emoji and labels used by bot embeds.  Import from here instead of
duplicating in cogs and the announcement adapter.
"""

from __future__ import annotations

from shipyard.database.models import ActionType

RANK_MEDALS: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

ACTION_LABELS: dict[ActionType, str] = {
    ActionType.CHECK_IN: "⚓ Check-ins",
    ActionType.MEETING_ATTEND: "\U0001f5d3️ Meetings",
    ActionType.DEMO_POSTED: "\U0001f3ac Demos posted",
    ActionType.DEMO_PRESENTED: "\U0001f3a4 Demos presented",
    ActionType.FEEDBACK_HELPFUL: "\U0001f4a1 Helpful feedback",
    ActionType.HELP_SOLVED: "✅ Help solved",
}

BADGE_EMOJI: dict[str, str] = {
    "first-check-in": "⚓",
    "first-demo": "\U0001f3ac",
    "feedback-helper": "\U0001f4a1",
    "problem-solver": "\U0001f527",
    "meet-regular": "\U0001f4c5",
    "4-week-streak": "\U0001f525",
    "season-winner": "\U0001f3c6",
    "early-bird": "\U0001f426",
    "mentor": "\U0001f9ed",
    "shipped": "\U0001f680",
}
DEFAULT_BADGE_EMOJI = "\U0001f3c5"


def rank_prefix(position: int) -> str:
    """Medal for the top three, ``**N.**`` for everyone else (1-based)."""
    if 0 < position <= len(RANK_MEDALS):
        return RANK_MEDALS[position - 1]
    return f"**{position}.**"
