# ledger_bot/cogs/admin.py
import logging

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from ledger_bot.database.database_service import database_service
from ledger_bot.database.models import LedgerEvent
from ledger_bot.database.queries import CharacterQueries
from ledger_bot.domain import format_gp, format_points
from ledger_bot.services.logging_service import LogLevel
from ledger_bot.utils.embeds import BRAND_COLOR
from ledger_bot.utils.interactions import ledger_errors, register_guild_commands
from ledger_bot.utils.permissions import require_admin, require_staff

logger = logging.getLogger(__name__)


def history_line(event: LedgerEvent) -> str:
    parts = []
    for resource, value in event.deltas().items():
        shown = format_gp(value) if resource == "gp" else format_points(value)
        parts.append(f"{'+' if value > 0 else ''}{shown} {resource.upper()}")
    line = f"<t:{int(event.at.timestamp())}:R> `{event.kind}` **{event.name}**"
    if parts:
        line += ": " + ", ".join(parts)
    if event.actor_id and event.actor_id != event.user_id:
        line += f" (by <@{event.actor_id}>)"
    if event.reason:
        line += f" · {event.reason}"
    return line


class AdminCog(commands.Cog):
    """Ledger health, history and command sync (slash-only)"""

    def __init__(self, bot):
        self.bot = bot

    @property
    def embed_logger(self):
        return getattr(self.bot, "embed_logger", None)

    async def cog_load(self):
        await register_guild_commands(self, self.bot)

    group = app_commands.Group(name="ledger", description="Ledger administration")

    @group.command(name="health", description="Database, pool and logger status")
    @require_staff()
    async def ledger_health(self, itx: Interaction):
        await itx.response.defer(ephemeral=True)
        async with ledger_errors(itx, self.embed_logger, "Admin Commands"):
            healthy = await database_service.health_check()
            stats = await database_service.get_stats()
            counts = await CharacterQueries.count_characters(database_service.pool) if healthy else {}

            embed = discord.Embed(
                title="Ledger Health",
                color=discord.Color.green() if healthy else discord.Color.red(),
                timestamp=discord.utils.utcnow(),
            )
            embed.add_field(name="Database", value="🟢 Healthy" if healthy else "🔴 Unreachable", inline=True)
            if "pool_size" in stats:
                embed.add_field(
                    name="Pool",
                    value=f"{stats['pool_size']} open ({stats['pool_min_size']}-{stats['pool_max_size']})",
                    inline=True,
                )
            if "database_size" in stats:
                embed.add_field(name="Size", value=str(stats["database_size"]), inline=True)
            if counts:
                embed.add_field(
                    name="Characters",
                    value=f"{counts['total']} total, {counts['active']} active, {counts['players']} players",
                    inline=False,
                )
            if self.embed_logger:
                ls = await self.embed_logger.get_logging_stats()
                embed.add_field(
                    name="Admin Log",
                    value=(
                        f"{'connected' if ls['channel_status']['channel_resolved'] else 'disconnected'}, "
                        f"{ls['total_logs_sent']} sent, {ls['total_logs_failed']} failed, "
                        f"{ls['total_logs_suppressed']} suppressed"
                    ),
                    inline=False,
                )
            else:
                embed.add_field(name="Admin Log", value="not configured", inline=False)
            if "uptime_seconds" in stats:
                up = stats["uptime_seconds"]
                embed.set_footer(text=f"DB uptime {up // 3600:.0f}h {(up % 3600) // 60:.0f}m")
            await itx.followup.send(embed=embed, ephemeral=True)

    @group.command(name="sync", description="Re-sync slash commands to this server")
    @require_admin()
    async def ledger_sync(self, itx: Interaction):
        await itx.response.defer(ephemeral=True)
        async with ledger_errors(itx, self.embed_logger, "Admin Commands"):
            guild = discord.Object(id=self.bot.config.guild_id)
            synced = await self.bot.tree.sync(guild=guild)
            logger.info(f"{itx.user.id} synced {len(synced)} guild command(s)")
            if self.embed_logger:
                await self.embed_logger.log_custom(
                    service="Admin Commands",
                    title="Guild Commands Synced",
                    description=f"<@{itx.user.id}> synced guild slash commands",
                    level=LogLevel.SUCCESS,
                    fields={"Commands": str(len(synced)), "Guild ID": str(self.bot.config.guild_id)},
                )
            await itx.followup.send(f"✅ Synced {len(synced)} command(s) to this server.", ephemeral=True)

    @group.command(name="history", description="Recent ledger entries for a player")
    @app_commands.describe(user="Player to look up", limit="How many entries (max 25)")
    @require_staff(include_keeper=True)
    async def ledger_history(
        self, itx: Interaction, user: discord.Member, limit: app_commands.Range[int, 1, 25] = 10
    ):
        await itx.response.defer(ephemeral=True)
        async with ledger_errors(itx, self.embed_logger, "Admin Commands"):
            events = await self.bot.ledger.recent_events(user.id, limit)
            if not events:
                await itx.followup.send(f"No ledger entries for {user.mention}.", ephemeral=True)
                return
            embed = discord.Embed(title=f"Ledger History - {user.display_name}", color=BRAND_COLOR)
            embed.description = "\n".join(history_line(e) for e in events)[:4000]
            await itx.followup.send(embed=embed, ephemeral=True)


async def setup(bot: commands.Bot):
    await bot.add_cog(AdminCog(bot))
