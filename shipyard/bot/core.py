"""
shipyard.bot.core — Bot Instance & Cog Loader
===============================================

:class:`ShipyardBot` is a ``commands.Bot`` subclass that carries the
shared state every cog needs:

- ``bot.cfg`` — the parsed ``config.yaml``
- ``bot.engine`` / ``bot.cache`` — database engine and policy cache
- ``bot.notifier`` — event fan-out, wired to announcements on startup
- ``bot.runner`` — the scheduled-job runner ticked by the tasks cog
- ``bot.roles`` — the :class:`DiscordRoleGateway` used for progression
"""

from __future__ import annotations

import asyncio
import logging
import os

import discord
from discord.ext import commands
from sqlalchemy import Engine

from shipyard.config import ShipyardConfig
from shipyard.engine.cache import PolicyCache
from shipyard.services.notification_service import Notifier
from shipyard.services.scheduler import build_default_runner

logger = logging.getLogger(__name__)

EXTENSIONS: list[str] = [
    "shipyard.bot.cogs.gamification",
    "shipyard.bot.cogs.admin",
    "shipyard.bot.cogs.tasks",
]

# Seconds a worker thread waits on a Discord role call
ROLE_CALL_TIMEOUT = 15


class DiscordRoleGateway:
    """:class:`~shipyard.services.progression_service.RoleGateway` over a guild.

    Service code runs on worker threads (``run_db``), so each call is
    scheduled onto the bot's event loop and waited on.
    """

    def __init__(self, bot: ShipyardBot) -> None:
        self.bot = bot

    def _call(self, coro):
        loop = self.bot.loop
        return asyncio.run_coroutine_threadsafe(coro, loop).result(ROLE_CALL_TIMEOUT)

    async def _member(self, user_id: int) -> discord.Member:
        guild = self.bot.get_guild(self.bot.cfg.guild_id)
        if guild is None:
            raise LookupError(f"Guild {self.bot.cfg.guild_id} not available")
        member = guild.get_member(user_id)
        if member is None:
            member = await guild.fetch_member(user_id)
        return member

    async def _has_role(self, user_id: int, role_name: str) -> bool:
        member = await self._member(user_id)
        return any(r.name == role_name for r in member.roles)

    async def _grant_role(self, user_id: int, role_name: str) -> None:
        member = await self._member(user_id)
        role = discord.utils.get(member.guild.roles, name=role_name)
        if role is None:
            raise LookupError(f"Role {role_name!r} does not exist in the guild")
        await member.add_roles(role, reason="Shipyard: role progression")

    def has_role(self, user_id: int, role_name: str) -> bool:
        return self._call(self._has_role(user_id, role_name))

    def grant_role(self, user_id: int, role_name: str) -> None:
        self._call(self._grant_role(user_id, role_name))


class ShipyardBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state."""

    def __init__(self, cfg: ShipyardConfig, engine: Engine, cache: PolicyCache) -> None:
        intents = discord.Intents.default()
        intents.members = True   # Privileged: role progression lookups
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description=f"{cfg.community_name} engagement bot",
        )

        self.cfg = cfg
        self.engine = engine
        self.cache = cache
        self.notifier = Notifier()
        self.runner = build_default_runner(engine, cache, self.notifier)
        self.roles = DiscordRoleGateway(self)

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load cogs and subscribe announcements before connecting.

        One broken cog is logged and skipped rather than stopping the bot.
        """
        from shipyard.bot.announcements import register_announcements

        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

        register_announcements(self)

    async def on_ready(self) -> None:
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

    async def close(self) -> None:
        logger.info("Bot shutting down…")
        await super().close()
