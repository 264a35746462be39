# ledger_bot/cogs/resource_cog.py
import logging
from typing import Optional

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from ledger_bot.utils.interactions import character_autocomplete, register_guild_commands
from ledger_bot.utils.permissions import require_admin, require_dm, require_staff, resource_channel_only
from ledger_bot.utils.resource_ops import run_change, run_show

logger = logging.getLogger(__name__)

Reason = Optional[app_commands.Range[str, 1, 200]]

RESOURCE_CHOICES = [
    app_commands.Choice(name="GP (Gold Pieces)", value="gp"),
    app_commands.Choice(name="XP (Experience Points)", value="xp"),
    app_commands.Choice(name="GT (Golden Tickets)", value="gt"),
    app_commands.Choice(name="DTP (Downtime Points)", value="dtp"),
    app_commands.Choice(name="CC (Crew Coins)", value="cc"),
]


class ResourceCog(commands.Cog):
    """Gold, golden tickets, downtime and the generic /resource command."""

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

    # --------------- /gp ---------------

    gp = app_commands.Group(name="gp", description="Manage adventurers' gold pieces (GP)")

    @gp.command(name="show", description="Show GP for an adventurer")
    @app_commands.describe(user="Target (defaults to you)", name="Adventurer's name")
    @app_commands.autocomplete(name=character_autocomplete)
    @resource_channel_only()
    async def gp_show(self, itx: Interaction, user: Optional[discord.User] = None, name: Optional[str] = None):
        await run_show(self, itx, "gp", user, name)

    @gp.command(name="add", description="Give GP to an adventurer (positive, up to two decimals)")
    @app_commands.describe(user="Target", amount="GP to add (e.g. 12.5)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_dm(include_keeper=True)
    @resource_channel_only()
    async def gp_add(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "gp", "add", user, amount, name, reason)

    @gp.command(name="adjust", description="Adjust GP by a positive or negative amount")
    @app_commands.describe(user="Target", amount="Signed GP delta (e.g. -350.75)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_staff(include_keeper=True)
    @resource_channel_only()
    async def gp_adjust(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "gp", "adjust", user, amount, name, reason)

    @gp.command(name="set", description="Set an adventurer's GP to an exact value")
    @app_commands.describe(user="Target", amount="Absolute GP (>=0)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_admin()
    @resource_channel_only()
    async def gp_set(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "gp", "set", user, amount, name, reason)

    # --------------- /gt ---------------

    gt = app_commands.Group(name="gt", description="Manage adventurers' golden tickets (GT)")

    @gt.command(name="show", description="Show GT for an adventurer")
    @app_commands.describe(user="Target (defaults to you)", name="Adventurer's name")
    @app_commands.autocomplete(name=character_autocomplete)
    @resource_channel_only()
    async def gt_show(self, itx: Interaction, user: Optional[discord.User] = None, name: Optional[str] = None):
        await run_show(self, itx, "gt", user, name)

    @gt.command(name="add", description="Give GT to an adventurer")
    @app_commands.describe(user="Target", amount="GT to add", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_dm(include_keeper=True)
    @resource_channel_only()
    async def gt_add(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "gt", "add", user, amount, name, reason)

    @gt.command(name="adjust", description="Adjust GT by a positive or negative amount")
    @app_commands.describe(user="Target", amount="Signed GT delta", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_staff(include_keeper=True)
    @resource_channel_only()
    async def gt_adjust(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "gt", "adjust", user, amount, name, reason)

    @gt.command(name="set", description="Set an adventurer's GT to an exact value")
    @app_commands.describe(user="Target", amount="Absolute GT (>=0)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_admin()
    @resource_channel_only()
    async def gt_set(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "gt", "set", user, amount, name, reason)

    # --------------- /dtp ---------------

    dtp = app_commands.Group(name="dtp", description="Manage adventurers' downtime points (DTP)")

    @dtp.command(name="show", description="Show DTP for an adventurer (after accrual)")
    @app_commands.describe(user="Target (defaults to you)", name="Adventurer's name")
    @app_commands.autocomplete(name=character_autocomplete)
    @resource_channel_only(allow_dtp=True)
    async def dtp_show(self, itx: Interaction, user: Optional[discord.User] = None, name: Optional[str] = None):
        await run_show(self, itx, "dtp", user, name)

    @dtp.command(name="add", description="Give DTP to an adventurer")
    @app_commands.describe(user="Target", amount="DTP to add", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_dm(include_keeper=True)
    @resource_channel_only(allow_dtp=True)
    async def dtp_add(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "dtp", "add", user, amount, name, reason)

    @dtp.command(name="adjust", description="Adjust DTP by a positive or negative amount")
    @app_commands.describe(user="Target", amount="Signed DTP delta (e.g. -3)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_staff(include_keeper=True)
    @resource_channel_only(allow_dtp=True)
    async def dtp_adjust(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "dtp", "adjust", user, amount, name, reason)

    @dtp.command(name="set", description="Set an adventurer's DTP to an exact value")
    @app_commands.describe(user="Target", amount="Absolute DTP (>=0)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.autocomplete(name=character_autocomplete)
    @require_admin()
    @resource_channel_only(allow_dtp=True)
    async def dtp_set(self, itx: Interaction, user: discord.User, amount: float, name: Optional[str] = None, reason: Reason = None):
        await run_change(self, itx, "dtp", "set", user, amount, name, reason)

    # --------------- /resource ---------------

    resource = app_commands.Group(name="resource", description="Manage any adventurer resource (GP / XP / GT / DTP / CC)")

    @resource.command(name="show", description="Show one resource for an adventurer")
    @app_commands.describe(type="Which resource", user="Target (defaults to you)", name="Adventurer's name")
    @app_commands.choices(type=RESOURCE_CHOICES)
    @app_commands.autocomplete(name=character_autocomplete)
    @resource_channel_only(type_option="type")
    async def resource_show(
        self,
        itx: Interaction,
        type: app_commands.Choice[str],
        user: Optional[discord.User] = None,
        name: Optional[str] = None,
    ):
        await run_show(self, itx, type.value, user, name)

    @resource.command(name="add", description="Add to an adventurer's resource (positive number)")
    @app_commands.describe(type="Which resource", user="Target", amount="Amount to add", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.choices(type=RESOURCE_CHOICES)
    @app_commands.autocomplete(name=character_autocomplete)
    @require_dm(include_keeper=True)
    @resource_channel_only(type_option="type")
    async def resource_add(
        self,
        itx: Interaction,
        type: app_commands.Choice[str],
        user: discord.User,
        amount: float,
        name: Optional[str] = None,
        reason: Reason = None,
    ):
        await run_change(self, itx, type.value, "add", user, amount, name, reason)

    @resource.command(name="adjust", description="Adjust a resource by a positive or negative number")
    @app_commands.describe(type="Which resource", user="Target", amount="Signed delta", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.choices(type=RESOURCE_CHOICES)
    @app_commands.autocomplete(name=character_autocomplete)
    @require_staff(include_keeper=True)
    @resource_channel_only(type_option="type")
    async def resource_adjust(
        self,
        itx: Interaction,
        type: app_commands.Choice[str],
        user: discord.User,
        amount: float,
        name: Optional[str] = None,
        reason: Reason = None,
    ):
        await run_change(self, itx, type.value, "adjust", user, amount, name, reason)

    @resource.command(name="set", description="Set a resource to an exact value")
    @app_commands.describe(type="Which resource", user="Target", amount="Absolute value (>=0)", name="Adventurer's name", reason="Why? (audit)")
    @app_commands.choices(type=RESOURCE_CHOICES)
    @app_commands.autocomplete(name=character_autocomplete)
    @require_admin()
    @resource_channel_only(type_option="type")
    async def resource_set(
        self,
        itx: Interaction,
        type: app_commands.Choice[str],
        user: discord.User,
        amount: float,
        name: Optional[str] = None,
        reason: Reason = None,
    ):
        await run_change(self, itx, type.value, "set", user, amount, name, reason)


async def setup(bot: commands.Bot):
    await bot.add_cog(ResourceCog(bot))
