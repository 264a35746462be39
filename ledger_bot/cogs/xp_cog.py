# ledger_bot/cogs/xp_cog.py
import logging
from typing import Optional

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from ledger_bot.utils.interactions import character_autocomplete, register_guild_commands
from ledger_bot.utils.permissions import require_admin, require_dm, require_staff, resource_channel_only
from ledger_bot.utils.resource_ops import run_change, run_show

logger = logging.getLogger(__name__)


class XPCog(commands.Cog):
    """Experience points and level changes."""

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

    group = app_commands.Group(name="xp", description="Manage adventurers' experience points")

    @group.command(name="show", description="Show level, XP and progress to the next level")
    @app_commands.describe(user="Target (defaults to you)", name="Adventurer's name")
    @app_commands.autocomplete(name=character_autocomplete)
    @resource_channel_only()
    async def xp_show(self, itx: Interaction, user: Optional[discord.User] = None, name: Optional[str] = None):
        await run_show(self, itx, "xp", user, name)

    @group.command(name="add", description="Give XP to an adventurer")
    @app_commands.describe(user="Target", amount="XP to add", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_dm(include_keeper=True)
    @resource_channel_only()
    async def xp_add(
        self,
        itx: Interaction,
        user: discord.User,
        amount: app_commands.Range[int, 1],
        name: Optional[str] = None,
        reason: Optional[app_commands.Range[str, 1, 200]] = None,
    ):
        await run_change(self, itx, "xp", "add", user, amount, name, reason)

    @group.command(name="adjust", description="Adjust XP by a positive or negative amount")
    @app_commands.describe(user="Target", amount="Signed XP delta (e.g. -50)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_staff(include_keeper=True)
    @resource_channel_only()
    async def xp_adjust(
        self,
        itx: Interaction,
        user: discord.User,
        amount: int,
        name: Optional[str] = None,
        reason: Optional[app_commands.Range[str, 1, 200]] = None,
    ):
        await run_change(self, itx, "xp", "adjust", user, amount, name, reason)

    @group.command(name="set", description="Set an adventurer's XP to an exact value")
    @app_commands.describe(user="Target", amount="Absolute XP (>=0)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_admin()
    @resource_channel_only()
    async def xp_set(
        self,
        itx: Interaction,
        user: discord.User,
        amount: app_commands.Range[int, 0],
        name: Optional[str] = None,
        reason: Optional[app_commands.Range[str, 1, 200]] = None,
    ):
        await run_change(self, itx, "xp", "set", user, amount, name, reason)


async def setup(bot: commands.Bot):
    await bot.add_cog(XPCog(bot))
