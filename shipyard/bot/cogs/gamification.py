"""
shipyard.bot.cogs.gamification — Member Commands
==================================================

- /checkin — post today's check-in (one per local day)
- /stats — week breakdown, season points, streak and badges
- /season — the active season and, when public, its leaderboard
- /badges — badges a member holds
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from shipyard.constants import BADGE_EMOJI, DEFAULT_BADGE_EMOJI
from shipyard.database.engine import run_db
from shipyard.database.models import ActionType
from shipyard.engine.weeks import as_utc
from shipyard.services.badge_service import list_user_badges
from shipyard.services.embeds import action_label, format_leaderboard
from shipyard.services.ledger_service import (
    get_user_stats,
    has_checked_in_today,
    log_action,
)
from shipyard.services.season_service import (
    get_leaderboard,
    get_or_start_current_season,
)

if TYPE_CHECKING:
    from shipyard.bot.core import ShipyardBot

logger = logging.getLogger(__name__)


class Gamification(commands.Cog, name="Gamification"):
    """Points, streaks, seasons and badges for members."""

    def __init__(self, bot: ShipyardBot) -> None:
        self.bot = bot

    def _is_admin(self, member) -> bool:
        roles = getattr(member, "roles", [])
        return any(r.id == self.bot.cfg.admin_role_id for r in roles)

    # -------------------------------------------------------------------
    # /checkin
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="checkin",
        description="Post your daily check-in.",
    )
    @app_commands.describe(note="What are you working on today?")
    async def checkin(self, ctx: commands.Context, *, note: str = "") -> None:
        bot = self.bot
        if await run_db(has_checked_in_today, bot.engine, bot.cache, ctx.author.id):
            await ctx.send("⚓ You've already checked in today.", ephemeral=True)
            return

        ref = str(ctx.message.id) if ctx.message else None
        try:
            credited = await run_db(
                log_action, bot.engine, bot.cache, ctx.author.id, ActionType.CHECK_IN,
                ref, notifier=bot.notifier, roles=bot.roles,
            )
        except Exception:
            logger.exception("Check-in failed for %d", ctx.author.id)
            await ctx.send("❌ Couldn't record your check-in. Please try again.", ephemeral=True)
            return

        points = f"+{credited} pt" if credited else "weekly cap reached, no points"
        embed = discord.Embed(
            title="⚓ Checked in",
            description=note or None,
            color=discord.Color.green(),
        )
        embed.set_footer(text=points)
        await ctx.send(embed=embed)

    # -------------------------------------------------------------------
    # /stats
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="stats",
        description="View your (or another member's) engagement stats.",
    )
    @app_commands.describe(member="The member to look up (defaults to you)")
    async def stats(self, ctx: commands.Context, member: discord.Member | None = None) -> None:
        target = member or ctx.author
        stats = await run_db(get_user_stats, self.bot.engine, self.bot.cache, target.id)

        embed = discord.Embed(
            title=f"\U0001f4c8 {target.display_name}",
            color=discord.Color.blue(),
        )
        embed.set_thumbnail(url=target.display_avatar.url)

        if stats.week_stats:
            week = "\n".join(
                f"{action_label(t)}: {s.count} ({s.points} pts)"
                for t, s in sorted(stats.week_stats.items())
            )
        else:
            week = "*Nothing yet this week.*"
        embed.add_field(name=f"Week of {stats.week_key:%d %b}", value=week, inline=False)
        embed.add_field(name="Season points", value=str(stats.season_points), inline=True)
        embed.add_field(
            name="\U0001f525 Streak",
            value=f"{stats.current_streak} wk (best {stats.best_streak})",
            inline=True,
        )
        if stats.badges:
            embed.add_field(
                name=f"\U0001f3c5 Badges ({len(stats.badges)})",
                value=" ".join(
                    BADGE_EMOJI.get(b.code, DEFAULT_BADGE_EMOJI) for b in stats.badges
                ),
                inline=False,
            )
        await ctx.send(embed=embed, ephemeral=member is None)

    # -------------------------------------------------------------------
    # /season
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="season",
        description="Show the current season.",
    )
    async def season(self, ctx: commands.Context) -> None:
        bot = self.bot
        current = await run_db(
            get_or_start_current_season, bot.engine, bot.cache, notifier=bot.notifier,
        )
        embed = discord.Embed(
            title=f"\U0001f30a Season {current.id}",
            color=discord.Color.green(),
        )
        embed.add_field(
            name="Ends", value=discord.utils.format_dt(as_utc(current.end_date), "R"), inline=True
        )

        public = bot.cache.get_bool("leaderboard.public", False)
        if public or self._is_admin(ctx.author):
            rows = await run_db(get_leaderboard, bot.engine, bot.cache)
            embed.add_field(name="Leaderboard", value=format_leaderboard(rows), inline=False)
        await ctx.send(embed=embed, ephemeral=not public)

    # -------------------------------------------------------------------
    # /badges
    # -------------------------------------------------------------------
    @commands.hybrid_command(  # type: ignore[arg-type]
        name="badges",
        description="List the badges you (or another member) hold.",
    )
    @app_commands.describe(member="The member to look up (defaults to you)")
    async def badges(self, ctx: commands.Context, member: discord.Member | None = None) -> None:
        target = member or ctx.author
        held = await run_db(list_user_badges, self.bot.engine, target.id)
        if not held:
            await ctx.send(
                f"\U0001f50d **{target.display_name}** has no badges yet.", ephemeral=True
            )
            return

        lines = [
            f"{BADGE_EMOJI.get(b.code, DEFAULT_BADGE_EMOJI)} **{b.label}** · "
            f"{discord.utils.format_dt(b.awarded_at, 'd')}"
            for b in held
        ]
        embed = discord.Embed(
            title=f"\U0001f3c5 {target.display_name}'s badges",
            description="\n".join(lines),
            color=discord.Color.gold(),
        )
        await ctx.send(embed=embed)


async def setup(bot: ShipyardBot) -> None:
    await bot.add_cog(Gamification(bot))
