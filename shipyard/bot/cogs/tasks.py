"""
shipyard.bot.cogs.tasks — Scheduler Tick
==========================================

A one-minute ``discord.ext.tasks`` loop that hands the job runner a tick
on a worker thread.  What runs, and when, is decided by the durable
``scheduled_jobs`` table (season rollover, weekly streak rollup, weekly
digest, reminders), so a restart loses nothing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from shipyard.database.engine import run_db

if TYPE_CHECKING:
    from shipyard.bot.core import ShipyardBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog driving the scheduled-job runner."""

    def __init__(self, bot: ShipyardBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.scheduler_loop.start()

    async def cog_unload(self) -> None:
        self.scheduler_loop.cancel()

    @tasks.loop(minutes=1)
    async def scheduler_loop(self):
        """Run every scheduled job that is due."""
        try:
            completed = await run_db(self.bot.runner.tick)
            if completed:
                logger.info("Scheduler tick completed %d job(s)", completed)
        except Exception:
            logger.exception("Scheduler tick failed", extra={"task": "scheduler"})

    @scheduler_loop.before_loop
    async def _wait_scheduler(self):
        await self.bot.wait_until_ready()


async def setup(bot: ShipyardBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
