"""
shipyard.services.embeds — Discord embed builders
===================================================

All embed construction lives here so the announcement adapter and cogs
only need to supply data.
"""

from __future__ import annotations

from collections.abc import Sequence

import discord

from shipyard.constants import (
    ACTION_LABELS,
    BADGE_EMOJI,
    DEFAULT_BADGE_EMOJI,
    rank_prefix,
)
from shipyard.database.models import ActionType
from shipyard.engine.events import (
    BadgeEarned,
    RolePromotion,
    ScoreEntry,
    SeasonEnded,
    SeasonStarted,
    WeeklyDigest,
)


def _ts(moment, style: str = "D") -> str:
    return discord.utils.format_dt(moment, style=style)


def format_leaderboard(entries: Sequence[ScoreEntry]) -> str:
    if not entries:
        return "*No points scored yet.*"
    return "\n".join(
        f"{rank_prefix(i)} <@{e.user_id}> — **{e.points}** pts"
        for i, e in enumerate(entries, start=1)
    )


def action_label(action_type: str) -> str:
    try:
        return ACTION_LABELS[ActionType(action_type)]
    except ValueError:
        return action_type


def build_badge_embed(event: BadgeEarned) -> discord.Embed:
    emoji = BADGE_EMOJI.get(event.badge_code, DEFAULT_BADGE_EMOJI)
    return discord.Embed(
        title="\U0001f3c5 Badge Earned!",
        description=f"<@{event.user_id}> earned {emoji} **{event.label}**",
        color=discord.Color.gold(),
    )


def build_promotion_embed(event: RolePromotion) -> discord.Embed:
    return discord.Embed(
        title="\U0001f6a2 Promotion!",
        description=f"<@{event.user_id}> is now a **{event.role_name}**.",
        color=discord.Color.blue(),
    )


def build_season_started_embed(event: SeasonStarted) -> discord.Embed:
    embed = discord.Embed(
        title=f"\U0001f30a Season {event.season_id} has started",
        description="Every action counts from now on. Good luck!",
        color=discord.Color.green(),
    )
    embed.add_field(name="Starts", value=_ts(event.start_date), inline=True)
    embed.add_field(name="Ends", value=_ts(event.end_date), inline=True)
    return embed


def build_season_ended_embed(event: SeasonEnded) -> discord.Embed:
    embed = discord.Embed(
        title=f"\U0001f3c1 Season {event.season_id} is over",
        description=f"{_ts(event.start_date)} → {_ts(event.end_date)}",
        color=discord.Color.purple(),
    )
    embed.add_field(
        name="Final standings",
        value=format_leaderboard(event.top_scores),
        inline=False,
    )
    return embed


def build_digest_embed(digest: WeeklyDigest, community_name: str) -> discord.Embed:
    embed = discord.Embed(
        title=f"\U0001f4ca {community_name} — week of {digest.week_key:%d %b}",
        color=discord.Color.teal(),
    )
    if digest.actions_by_type:
        lines = [
            f"{action_label(t)}: **{n}**"
            for t, n in sorted(digest.actions_by_type.items())
        ]
        embed.add_field(name="Activity", value="\n".join(lines), inline=False)
    else:
        embed.add_field(name="Activity", value="*A quiet week.*", inline=False)
    embed.add_field(name="Active members", value=str(digest.active_members), inline=True)
    embed.add_field(name="Points credited", value=str(digest.points_credited), inline=True)
    if digest.top_scores:
        embed.add_field(
            name="Season leaders",
            value=format_leaderboard(digest.top_scores[:5]),
            inline=False,
        )
    return embed
