"""
shipyard.bot.announcements — Notifier → Discord adapter
=========================================================

Subscribes to the engine's events and posts embeds.  Publishers run on
worker threads, so every send is scheduled onto the bot loop and left to
finish on its own; a failed send is logged and never reaches the
publisher.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

import discord

from shipyard.engine.events import (
    BadgeEarned,
    ReminderDue,
    RolePromotion,
    SeasonEnded,
    SeasonStarted,
    WeeklyDigest,
)
from shipyard.services.embeds import (
    build_badge_embed,
    build_digest_embed,
    build_promotion_embed,
    build_season_ended_embed,
    build_season_started_embed,
)

if TYPE_CHECKING:
    from shipyard.bot.core import ShipyardBot

logger = logging.getLogger(__name__)


class Announcer:
    """Posts engine events to the configured announcement channel."""

    def __init__(self, bot: ShipyardBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------
    def _schedule(self, coro: Coroutine[Any, Any, None], what: str) -> None:
        future = asyncio.run_coroutine_threadsafe(coro, self.bot.loop)

        def _log_failure(fut) -> None:
            if fut.cancelled():
                return
            exc = fut.exception()
            if exc is not None:
                logger.error(
                    "Announcement failed (%s): %s", what, exc,
                    extra={"task": "announce"},
                )

        future.add_done_callback(_log_failure)

    async def _resolve_channel(self, channel_id: int | None = None):
        channel_id = channel_id or self.bot.cfg.announce_channel_id
        if not channel_id:
            return None
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            channel = await self.bot.fetch_channel(channel_id)
        return channel

    async def _post(self, embed: discord.Embed, content: str | None = None) -> None:
        channel = await self._resolve_channel()
        if channel is None:
            logger.debug("No announce channel configured; dropping %s", embed.title)
            return
        await channel.send(content=content, embed=embed)

    async def _dm_or_post(self, user_id: int, embed: discord.Embed) -> None:
        """DM *user_id*; post to the announce channel if the DM is refused."""
        try:
            user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
            await user.send(embed=embed)
            return
        except discord.HTTPException as exc:
            logger.info("DM to %d failed (%s); announcing in channel", user_id, exc)
        await self._post(embed, content=f"<@{user_id}>")

    # -------------------------------------------------------------------
    # Event callbacks (called from worker threads)
    # -------------------------------------------------------------------
    def on_badge(self, event: BadgeEarned) -> None:
        self._schedule(self._dm_or_post(event.user_id, build_badge_embed(event)), "badge")

    def on_promotion(self, event: RolePromotion) -> None:
        self._schedule(self._post(build_promotion_embed(event)), "promotion")

    def on_season_started(self, event: SeasonStarted) -> None:
        self._schedule(self._post(build_season_started_embed(event)), "season_started")

    def on_season_ended(self, event: SeasonEnded) -> None:
        self._schedule(self._post(build_season_ended_embed(event)), "season_ended")

    def on_digest(self, event: WeeklyDigest) -> None:
        embed = build_digest_embed(event, self.bot.cfg.community_name)
        self._schedule(self._post(embed), "digest")

    def on_reminder(self, event: ReminderDue) -> None:
        self._schedule(self._remind(event), "reminder")

    async def _remind(self, event: ReminderDue) -> None:
        message = event.payload.get("message", "Reminder!")
        user_id = event.payload.get("user_id")
        channel_id = event.payload.get("channel_id")

        if channel_id or not user_id:
            channel = await self._resolve_channel(channel_id)
            if channel is None:
                return
            mention = f"<@{user_id}> " if user_id else ""
            await channel.send(f"⏰ {mention}{message}")
            return

        user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
        try:
            await user.send(f"⏰ {message}")
        except discord.Forbidden:
            logger.info("User %s has DMs closed; reminder %d dropped", user_id, event.job_id)


def register_announcements(bot: ShipyardBot) -> Announcer:
    announcer = Announcer(bot)
    bot.notifier.subscribe(BadgeEarned, announcer.on_badge)
    bot.notifier.subscribe(RolePromotion, announcer.on_promotion)
    bot.notifier.subscribe(SeasonStarted, announcer.on_season_started)
    bot.notifier.subscribe(SeasonEnded, announcer.on_season_ended)
    bot.notifier.subscribe(WeeklyDigest, announcer.on_digest)
    bot.notifier.subscribe(ReminderDue, announcer.on_reminder)
    logger.info("Announcement callbacks registered")
    return announcer
