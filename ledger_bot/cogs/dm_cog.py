# ledger_bot/cogs/dm_cog.py
import logging

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from ledger_bot.utils.interactions import add_role, register_guild_commands, remove_role, send_ephemeral
from ledger_bot.utils.permissions import require_dm

logger = logging.getLogger(__name__)


class DMCog(commands.Cog):
    """'Available to DM' role toggle and listing."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def cog_load(self):
        await register_guild_commands(self, self.bot)

    group = app_commands.Group(name="dm", description="DM availability controls", guild_only=True)

    def _available_role(self, guild: discord.Guild):
        role_id = self.bot.config.dm_available_role_id
        return guild.get_role(role_id) if role_id else None

    @group.command(name="toggle", description="Toggle your 'Available to DM' status")
    @require_dm()
    async def dm_toggle(self, itx: Interaction):
        role = self._available_role(itx.guild)
        if role is None:
            return await send_ephemeral(itx, "The 'Available to DM' role is not configured on this server.")
        member = itx.user
        reason = "DM availability toggled"
        if any(r.id == role.id for r in member.roles):
            changed = await remove_role(member, role.id, reason)
            text = f"{member.mention} is no longer available to DM."
        else:
            changed = await add_role(member, role.id, reason)
            text = f"{member.mention} is now available to DM!"
        if not changed:
            return await send_ephemeral(itx, "Couldn't update your role. Ask staff to check the bot's permissions.")
        logger.info(f"{member.id} toggled DM availability")
        await itx.response.send_message(text)

    @group.command(name="list", description="Show who is currently available to DM")
    async def dm_list(self, itx: Interaction):
        role = self._available_role(itx.guild)
        if role is None:
            return await send_ephemeral(itx, "The 'Available to DM' role is not configured on this server.")
        names = sorted(m.display_name for m in role.members)
        embed = discord.Embed(
            title="Available DMs",
            description="\n".join(names) if names else "Nobody is available to DM right now.",
            color=discord.Color(0x00BCD4),
        )
        await itx.response.send_message(embed=embed)


async def setup(bot: commands.Bot):
    await bot.add_cog(DMCog(bot))
