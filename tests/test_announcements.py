"""
tests/test_announcements.py — Discord announcement adapter
============================================================

Uses AsyncMock stand-ins for the bot, users and channels.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import discord

from shipyard.bot.announcements import Announcer
from shipyard.engine.events import BadgeEarned
from shipyard.services.embeds import build_badge_embed

EVENT = BadgeEarned(user_id=42, badge_code="first-demo", label="First Demo")


# Helper to run async tests without pytest-asyncio
def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _bot(user=None, channel=None) -> MagicMock:
    bot = MagicMock()
    bot.cfg.announce_channel_id = 555 if channel is not None else None
    bot.get_user.return_value = user
    bot.fetch_user = AsyncMock(return_value=user)
    bot.get_channel.return_value = channel
    return bot


def _user(send_error: Exception | None = None) -> MagicMock:
    user = MagicMock()
    user.send = AsyncMock(side_effect=send_error)
    return user


def _channel() -> MagicMock:
    channel = MagicMock()
    channel.send = AsyncMock()
    return channel


def _forbidden() -> discord.Forbidden:
    return discord.Forbidden(MagicMock(status=403, reason="Forbidden"), "DMs closed")


class TestBadgeDelivery:
    def test_badge_sent_by_dm(self):
        user, channel = _user(), _channel()
        announcer = Announcer(_bot(user, channel))
        embed = build_badge_embed(EVENT)

        _run(announcer._dm_or_post(EVENT.user_id, embed))

        user.send.assert_awaited_once_with(embed=embed)
        channel.send.assert_not_awaited()

    def test_closed_dms_fall_back_to_channel(self):
        user, channel = _user(_forbidden()), _channel()
        announcer = Announcer(_bot(user, channel))
        embed = build_badge_embed(EVENT)

        _run(announcer._dm_or_post(EVENT.user_id, embed))

        channel.send.assert_awaited_once_with(content="<@42>", embed=embed)

    def test_uncached_user_is_fetched(self):
        user = _user()
        bot = _bot(user, _channel())
        bot.get_user.return_value = None
        announcer = Announcer(bot)

        _run(announcer._dm_or_post(EVENT.user_id, build_badge_embed(EVENT)))

        bot.fetch_user.assert_awaited_once_with(42)
        user.send.assert_awaited_once()

    def test_no_channel_configured_drops_quietly(self):
        announcer = Announcer(_bot(_user(_forbidden()), None))
        _run(announcer._dm_or_post(EVENT.user_id, build_badge_embed(EVENT)))
