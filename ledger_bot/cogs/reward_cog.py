# ledger_bot/cogs/reward_cog.py
import logging
from typing import List, Optional

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from ledger_bot.domain import format_gp, format_points
from ledger_bot.services.ledger_service import LedgerChange
from ledger_bot.services.logging_service import LogLevel
from ledger_bot.utils.embeds import BRAND_COLOR
from ledger_bot.utils.interactions import ledger_errors, register_guild_commands, send_ephemeral
from ledger_bot.utils.permissions import require_dm, resource_channel_only
from ledger_bot.utils.resource_ops import announce_level_change

logger = logging.getLogger(__name__)

Reason = Optional[app_commands.Range[str, 1, 200]]


def delta_text(change: LedgerChange) -> str:
    d = change.delta
    if d is None:
        return "no change"
    return f"+{d.xp} XP · +{format_gp(d.currency_minor)} GP · +{format_points(d.tickets)} GT"


def totals_text(change: LedgerChange) -> str:
    ch = change.after
    return f"Lv {ch.level} · {ch.xp} XP · {format_gp(ch.cp)} GP · {format_points(ch.tp)} GT"


class RewardCog(commands.Cog):
    """Custom rewards from DMs and DM reward self-claims."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def embed_logger(self):
        return getattr(self.bot, "embed_logger", None)

    @property
    def ledger(self):
        return self.bot.ledger

    async def cog_load(self):
        await register_guild_commands(self, self.bot)

    group = app_commands.Group(name="reward", description="Award XP/GP/GT or claim DM rewards")

    @group.command(name="custom", description="Award explicit XP/GP/GT to up to ten players")
    @app_commands.describe(
        user1="Target #1",
        xp="XP to award (>=0)",
        gp="GP to award (>=0)",
        gt="GT to award (>=0)",
        reason="Why? (audit)",
    )
    @require_dm()
    @resource_channel_only()
    async def reward_custom(
        self,
        itx: Interaction,
        user1: discord.User,
        user2: Optional[discord.User] = None,
        user3: Optional[discord.User] = None,
        user4: Optional[discord.User] = None,
        user5: Optional[discord.User] = None,
        user6: Optional[discord.User] = None,
        user7: Optional[discord.User] = None,
        user8: Optional[discord.User] = None,
        user9: Optional[discord.User] = None,
        user10: Optional[discord.User] = None,
        xp: app_commands.Range[int, 0] = 0,
        gp: app_commands.Range[float, 0] = 0.0,
        gt: app_commands.Range[float, 0] = 0.0,
        reason: Reason = None,
    ):
        recipients: List[discord.User] = []
        for u in (user1, user2, user3, user4, user5, user6, user7, user8, user9, user10):
            if u is not None and all(r.id != u.id for r in recipients):
                recipients.append(u)
        if not (xp or gp or gt):
            return await send_ephemeral(itx, "Give at least one of XP, GP or GT.")

        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "Reward Commands"):
            changes = await self.ledger.apply_custom_rewards(
                [u.id for u in recipients], xp, gp, gt, actor_id=itx.user.id, reason=reason
            )

            embed = discord.Embed(
                title="Rewards Granted",
                description=f"Awarded by {itx.user.mention}" + (f"\nReason: {reason}" if reason else ""),
                color=BRAND_COLOR,
                timestamp=discord.utils.utcnow(),
            )
            for user, change in zip(recipients, changes):
                embed.add_field(
                    name=f"{user.display_name} · {change.after.name}",
                    value=f"{delta_text(change)}\n{totals_text(change)}",
                    inline=False,
                )
            await itx.followup.send(content=" ".join(u.mention for u in recipients), embed=embed)

            for user, change in zip(recipients, changes):
                if change.levels_changed:
                    await announce_level_change(self.bot, itx, user.id, change)

            logger.info(f"{itx.user.id} rewarded {len(changes)} player(s): xp={xp} gp={gp} gt={gt}")
            if self.embed_logger:
                await self.embed_logger.log_custom(
                    service="Rewards",
                    title="Custom Reward",
                    description=f"<@{itx.user.id}> rewarded {', '.join(u.mention for u in recipients)}",
                    level=LogLevel.LEDGER,
                    fields={"XP": xp, "GP": f"{gp:.2f}", "GT": f"{gt:g}", "Reason": reason or "-"},
                )

    @group.command(name="dm", description="Claim your DM reward for running a session")
    @app_commands.describe(half="Claim half the reward (e.g. a short session)", reason="Why? (optional)")
    @require_dm()
    @resource_channel_only()
    async def reward_dm(self, itx: Interaction, half: bool = False, reason: Reason = None):
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "Reward Commands"):
            change = await self.ledger.claim_dm_reward(itx.user.id, None, half, reason=reason)

            embed = discord.Embed(
                title="DM Reward Claimed" + (" (half)" if half else ""),
                description=f"{itx.user.mention}'s **{change.after.name}**",
                color=BRAND_COLOR,
                timestamp=discord.utils.utcnow(),
            )
            embed.add_field(name="Reward", value=delta_text(change), inline=False)
            embed.add_field(name="Now", value=totals_text(change), inline=False)
            if reason:
                embed.add_field(name="Reason", value=reason, inline=False)
            await itx.followup.send(embed=embed)

            if change.levels_changed:
                await announce_level_change(self.bot, itx, itx.user.id, change)

            logger.info(f"{itx.user.id}/{change.after.name} claimed DM reward (half={half})")
            if self.embed_logger:
                await self.embed_logger.log_custom(
                    service="Rewards",
                    title="DM Reward Claimed",
                    description=f"<@{itx.user.id}> claimed a DM reward for **{change.after.name}**",
                    level=LogLevel.LEDGER,
                    fields={"Half": "yes" if half else "no", "Reward": delta_text(change), "Reason": reason or "-"},
                )


async def setup(bot: commands.Bot):
    await bot.add_cog(RewardCog(bot))
