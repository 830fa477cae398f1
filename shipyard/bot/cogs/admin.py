"""
shipyard.bot.cogs.admin — Admin Slash Commands
================================================

- /policy set | show — read and change scoring policies
- /grant-badge, /revoke-badge — manual badge management
- /record-action — log an action on a member's behalf (meetings, demos,
  feedback, help)
- /end-season — close the active season now and start the next
- /remind, /cancel-reminder — durable one-shot reminders

All commands require the configured admin_role_id.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from shipyard.database.engine import run_db
from shipyard.database.models import ActionType
from shipyard.engine.schedule import REMINDER
from shipyard.engine.weeks import utcnow
from shipyard.services.badge_service import award_badge, revoke_badge
from shipyard.services.embeds import action_label, format_leaderboard
from shipyard.services.ledger_service import log_action
from shipyard.services.policy_service import get_all_policies, parse_policy_input
from shipyard.services.schedule_service import cancel_job, schedule_job
from shipyard.services.season_service import end_current_season

if TYPE_CHECKING:
    from shipyard.bot.core import ShipyardBot

logger = logging.getLogger(__name__)


def is_admin():
    """Check that the user has the configured admin role."""
    async def predicate(interaction: discord.Interaction) -> bool:
        bot: ShipyardBot = interaction.client  # type: ignore[assignment]
        if not interaction.user or not hasattr(interaction.user, "roles"):
            return False
        admin_role_id = bot.cfg.admin_role_id
        return any(role.id == admin_role_id for role in interaction.user.roles)
    return app_commands.check(predicate)


class Admin(commands.Cog, name="Admin"):
    """Server administration commands for Shipyard."""

    policy = app_commands.Group(name="policy", description="Scoring policies")

    def __init__(self, bot: ShipyardBot) -> None:
        self.bot = bot

    # -------------------------------------------------------------------
    # /policy set | show
    # -------------------------------------------------------------------
    @policy.command(name="set", description="Change a policy value.")
    @app_commands.describe(key="Policy key, e.g. points.max_per_week", value="New value (JSON)")
    @is_admin()
    async def policy_set(self, interaction: discord.Interaction, key: str, value: str) -> None:
        parsed = parse_policy_input(value)
        current = self.bot.cache.all_policies()
        if key not in current:
            await interaction.response.send_message(
                f"❌ Unknown policy `{key}`.", ephemeral=True,
            )
            return
        await run_db(self.bot.cache.set, key, parsed)
        await interaction.response.send_message(
            f"✅ `{key}` = `{parsed!r}`", ephemeral=True,
        )

    @policy.command(name="show", description="Show policy values.")
    @app_commands.describe(key="Only show this key")
    @is_admin()
    async def policy_show(
        self, interaction: discord.Interaction, key: str | None = None
    ) -> None:
        rows = await run_db(get_all_policies, self.bot.engine)
        if key:
            rows = [r for r in rows if r.key == key]
        if not rows:
            await interaction.response.send_message("No matching policies.", ephemeral=True)
            return

        embed = discord.Embed(title="⚙️ Policies", color=discord.Color.dark_grey())
        by_category: dict[str, list[str]] = {}
        for row in rows:
            by_category.setdefault(row.category, []).append(f"`{row.key}` = `{row.value_json}`")
        for category, lines in by_category.items():
            embed.add_field(name=category, value="\n".join(lines)[:1024], inline=False)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    # -------------------------------------------------------------------
    # /grant-badge, /revoke-badge
    # -------------------------------------------------------------------
    @app_commands.command(name="grant-badge", description="Grant a badge to a member.")
    @app_commands.describe(member="Recipient", code="Badge code, e.g. mentor")
    @is_admin()
    async def grant_badge(
        self, interaction: discord.Interaction, member: discord.Member, code: str
    ) -> None:
        try:
            granted = await run_db(
                award_badge, self.bot.engine, self.bot.cache, member.id, code,
                granted_by=interaction.user.id, notifier=self.bot.notifier,
            )
        except ValueError as exc:
            await interaction.response.send_message(f"❌ {exc}", ephemeral=True)
            return
        msg = (
            f"✅ Granted `{code}` to **{member.display_name}**."
            if granted else f"ℹ️ **{member.display_name}** already holds `{code}`."
        )
        await interaction.response.send_message(msg, ephemeral=True)

    @app_commands.command(name="revoke-badge", description="Remove a badge from a member.")
    @app_commands.describe(member="Member", code="Badge code")
    @is_admin()
    async def revoke_badge_cmd(
        self, interaction: discord.Interaction, member: discord.Member, code: str
    ) -> None:
        try:
            removed = await run_db(revoke_badge, self.bot.engine, member.id, code)
        except ValueError as exc:
            await interaction.response.send_message(f"❌ {exc}", ephemeral=True)
            return
        msg = (
            f"✅ Revoked `{code}` from **{member.display_name}**."
            if removed else f"ℹ️ **{member.display_name}** does not hold `{code}`."
        )
        await interaction.response.send_message(msg, ephemeral=True)

    @grant_badge.autocomplete("code")
    @revoke_badge_cmd.autocomplete("code")
    async def _badge_autocomplete(
        self, interaction: discord.Interaction, current: str
    ) -> list[app_commands.Choice[str]]:
        return [
            app_commands.Choice(name=f"{b.label} ({b.code})", value=b.code)
            for b in self.bot.cache.get_badges()
            if current.lower() in b.code
        ][:25]

    # -------------------------------------------------------------------
    # /record-action
    # -------------------------------------------------------------------
    @app_commands.command(
        name="record-action",
        description="Record an action for a member (meeting, demo, feedback, help).",
    )
    @app_commands.describe(
        member="The member who did it",
        action="What they did",
        ref="Message link or id of the source artifact",
    )
    @app_commands.choices(action=[
        app_commands.Choice(name=action_label(t), value=t.value) for t in ActionType
    ])
    @is_admin()
    async def record_action(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        action: str,
        ref: str | None = None,
    ) -> None:
        bot = self.bot
        await interaction.response.defer(ephemeral=True)
        try:
            credited = await run_db(
                log_action, bot.engine, bot.cache, member.id, action, ref,
                notifier=bot.notifier, roles=bot.roles,
            )
        except Exception:
            logger.exception("record-action failed for %d", member.id)
            await interaction.followup.send(
                "❌ Couldn't record that action. Please try again.", ephemeral=True,
            )
            return
        await interaction.followup.send(
            f"✅ {action_label(action)} for **{member.display_name}** (+{credited})",
            ephemeral=True,
        )

    # -------------------------------------------------------------------
    # /end-season
    # -------------------------------------------------------------------
    @app_commands.command(
        name="end-season",
        description="Close the current season now and start the next one.",
    )
    @is_admin()
    async def end_season(self, interaction: discord.Interaction) -> None:
        await interaction.response.defer(ephemeral=True)
        rollover = await run_db(
            end_current_season, self.bot.engine, self.bot.cache, notifier=self.bot.notifier,
        )
        if rollover is None:
            await interaction.followup.send("ℹ️ No season is active.", ephemeral=True)
            return
        embed = discord.Embed(
            title=f"\U0001f3c1 Season {rollover.ended.season_id} closed",
            description=f"Season {rollover.started.season_id} is now active.",
            color=discord.Color.purple(),
        )
        embed.add_field(
            name="Final standings",
            value=format_leaderboard(rollover.top_scores),
            inline=False,
        )
        await interaction.followup.send(embed=embed, ephemeral=True)

    # -------------------------------------------------------------------
    # /remind, /cancel-reminder
    # -------------------------------------------------------------------
    @app_commands.command(name="remind", description="Schedule a reminder.")
    @app_commands.describe(
        minutes="Minutes from now",
        message="Reminder text",
        member="Member to ping (optional)",
    )
    @is_admin()
    async def remind(
        self,
        interaction: discord.Interaction,
        minutes: app_commands.Range[int, 1, 60 * 24 * 30],
        message: str,
        member: discord.Member | None = None,
    ) -> None:
        payload = {
            "message": message,
            "channel_id": interaction.channel_id,
            "user_id": member.id if member else None,
        }
        due = utcnow() + timedelta(minutes=minutes)
        job_id = await run_db(schedule_job, self.bot.engine, REMINDER, due, payload)
        await interaction.response.send_message(
            f"⏰ Reminder #{job_id} set for {discord.utils.format_dt(due, 'R')}.",
            ephemeral=True,
        )

    @app_commands.command(name="cancel-reminder", description="Cancel a pending reminder.")
    @app_commands.describe(job_id="Reminder number")
    @is_admin()
    async def cancel_reminder(self, interaction: discord.Interaction, job_id: int) -> None:
        cancelled = await run_db(cancel_job, self.bot.engine, job_id, kind=REMINDER)
        msg = f"✅ Reminder #{job_id} cancelled." if cancelled else (
            f"ℹ️ Reminder #{job_id} is not pending."
        )
        await interaction.response.send_message(msg, ephemeral=True)

    # -------------------------------------------------------------------
    # Error handler for missing admin role
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await interaction.response.send_message(
                "🔒 You need the Admin role to use this command.",
                ephemeral=True,
            )
        else:
            raise error


async def setup(bot: ShipyardBot) -> None:
    await bot.add_cog(Admin(bot))
