# ledger_bot/cogs/trade_cog.py
import logging
from typing import Optional

from discord import Interaction, app_commands
from discord.ext import commands

from ledger_bot.domain import format_gp, format_points
from ledger_bot.utils.embeds import RESOURCE_LABELS, resource_value
from ledger_bot.utils.interactions import ledger_errors, register_guild_commands, send_ephemeral
from ledger_bot.utils.permissions import resource_channel_only

logger = logging.getLogger(__name__)


class TradeCog(commands.Cog):
    """Players buying and selling with their active adventurer."""

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

    async def _audit(self, itx: Interaction, resource: str, change, item: str, verb: str):
        logger.info(
            f"{itx.user.id}/{change.after.name} {verb} '{item}': {resource} "
            f"{resource_value(change.before, resource)} -> {resource_value(change.after, resource)}"
        )
        if self.embed_logger:
            await self.embed_logger.log_ledger_change(
                actor_id=itx.user.id,
                target_id=itx.user.id,
                character=change.after.name,
                resource=RESOURCE_LABELS[resource],
                before=resource_value(change.before, resource),
                after=resource_value(change.after, resource),
                reason=f"{verb}: {item}",
            )

    @app_commands.command(name="buy", description="Buy an item for GP or GT with your active adventurer")
    @app_commands.describe(item="What are you buying?", amount="Price in GP or GT", type="Pay with GT instead of GP")
    @app_commands.choices(
        type=[
            app_commands.Choice(name="GP (Gold Pieces)", value="gp"),
            app_commands.Choice(name="GT (Golden Tickets)", value="gt"),
        ]
    )
    @resource_channel_only()
    async def buy(
        self,
        itx: Interaction,
        item: app_commands.Range[str, 1, 200],
        amount: app_commands.Range[float, 0.01],
        type: Optional[app_commands.Choice[str]] = None,
    ):
        item = item.strip()
        if not item:
            return await send_ephemeral(itx, "Tell me what you are buying.")
        resource = type.value if type else "gp"
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "Trade Commands"):
            reason = f"buy: {item}"
            if resource == "gt":
                change = await self.ledger.spend_tickets(itx.user.id, None, amount, actor_id=itx.user.id, reason=reason)
                paid = f"🎫 {format_points(amount)} GT"
            else:
                change = await self.ledger.spend_currency(itx.user.id, None, amount, actor_id=itx.user.id, reason=reason)
                paid = f"💰 {format_gp(change.before.cp - change.after.cp)} GP"
            await itx.followup.send(
                f"🛒 **{change.after.name}** bought **{item}** for {paid}.\n"
                f"Remaining {resource.upper()}: **{resource_value(change.after, resource)}**"
            )
            await self._audit(itx, resource, change, item, "buy")

    @app_commands.command(name="sell", description="Sell an item for GP with your active adventurer")
    @app_commands.describe(item="What are you selling?", amount="Sale price in GP")
    @resource_channel_only()
    async def sell(
        self,
        itx: Interaction,
        item: app_commands.Range[str, 1, 200],
        amount: app_commands.Range[float, 0.01],
    ):
        item = item.strip()
        if not item:
            return await send_ephemeral(itx, "Tell me what you are selling.")
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "Trade Commands"):
            change = await self.ledger.earn_currency(
                itx.user.id, None, amount, actor_id=itx.user.id, reason=f"sell: {item}"
            )
            await itx.followup.send(
                f"💰 **{change.after.name}** sold **{item}** for {format_gp(change.after.cp - change.before.cp)} GP.\n"
                f"New GP: **{format_gp(change.after.cp)}**"
            )
            await self._audit(itx, "gp", change, item, "sell")


async def setup(bot: commands.Bot):
    await bot.add_cog(TradeCog(bot))
