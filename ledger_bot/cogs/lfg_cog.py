# ledger_bot/cogs/lfg_cog.py
import logging
import time
from typing import Optional

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from ledger_bot.database.database_service import database_service
from ledger_bot.database.queries import GuildStateQueries, LfgQueries
from ledger_bot.domain.lfg import (
    MS_PER_DAY,
    LfgEntry,
    LfgTier,
    PurgeScope,
    aggregate,
    any_tier_on,
    auto_tier_for_level,
    clear_all,
    new_entry,
    set_tier,
)
from ledger_bot.services.logging_service import LogLevel
from ledger_bot.utils.embeds import lfg_board_embed, lfg_status_embed, tier_list
from ledger_bot.utils.interactions import (
    add_role,
    ledger_errors,
    register_guild_commands,
    remove_role,
    resolve_member,
    send_ephemeral,
)
from ledger_bot.utils.permissions import is_staff, require_staff

logger = logging.getLogger(__name__)

BOARD_KEY = "lfg_board_message_id"

TIER_CHOICES = [
    app_commands.Choice(name="Low (1-4)", value="low"),
    app_commands.Choice(name="Mid (5-10)", value="mid"),
    app_commands.Choice(name="High (11-16)", value="high"),
    app_commands.Choice(name="Epic (17+)", value="epic"),
    app_commands.Choice(name="Play-by-Post", value="pbp"),
]
AUTO_CHOICE = app_commands.Choice(name="Auto (from level)", value="auto")
ALL_CHOICE = app_commands.Choice(name="All tiers", value="all")


def now_ms() -> int:
    return int(time.time() * 1000)


class LfgCog(commands.Cog):
    """Looking-for-group flags, roles and the sticky board."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    @property
    def embed_logger(self):
        return getattr(self.bot, "embed_logger", None)

    @property
    def pool(self):
        return database_service.pool

    async def cog_load(self):
        await register_guild_commands(self, self.bot)

    # --------------- helpers ---------------

    async def sync_roles(self, member: Optional[discord.Member], entry: Optional[LfgEntry]):
        """Base role while any tier is on; each tier role follows its flag."""
        if member is None:
            return
        cfg = self.bot.config
        reason = "LFG status changed"
        if any_tier_on(entry):
            await add_role(member, cfg.lfg_role_id, reason)
        else:
            await remove_role(member, cfg.lfg_role_id, reason)
        for tier, role_id in cfg.lfg_tier_role_ids().items():
            if entry is not None and entry.is_on(LfgTier(tier)):
                await add_role(member, role_id, reason)
            else:
                await remove_role(member, role_id, reason)

    async def refresh_board(self, guild: Optional[discord.Guild], reason: str = "auto") -> bool:
        """Edit the sticky board message, or post a new one and remember its id."""
        channel_id = self.bot.config.lfg_board_channel_id
        if guild is None or not channel_id:
            return False
        channel = guild.get_channel(channel_id)
        if channel is None or not hasattr(channel, "send"):
            logger.warning(f"LFG board channel {channel_id} not found")
            return False

        embed = lfg_board_embed(aggregate(await LfgQueries.list_entries(self.pool, guild.id)), now_ms())
        existing = await GuildStateQueries.get_value(self.pool, guild.id, BOARD_KEY)
        if existing:
            try:
                msg = await channel.fetch_message(int(existing))
                await msg.edit(embed=embed)
                return True
            except (discord.NotFound, ValueError):
                logger.info("LFG board message missing, posting a new one")
            except discord.HTTPException as e:
                logger.warning(f"Could not edit LFG board message {existing}: {e}")
        try:
            sent = await channel.send(embed=embed)
        except discord.HTTPException as e:
            logger.warning(f"Could not post LFG board: {e}")
            return False
        await GuildStateQueries.set_value(self.pool, guild.id, BOARD_KEY, str(sent.id))
        logger.info(f"Posted new LFG board message {sent.id} ({reason})")
        return True

    async def _load_entry(self, itx: Interaction) -> LfgEntry:
        entry = await LfgQueries.get_entry(self.pool, itx.guild_id, itx.user.id)
        if entry is None:
            entry = new_entry(itx.user.id, itx.guild_id, itx.user.display_name, now_ms())
        return entry

    async def _resolve_tier(self, itx: Interaction, choice: str) -> Optional[LfgTier]:
        if choice != "auto":
            return LfgTier(choice)
        ch = await self.bot.ledger.get_character(itx.user.id)
        if ch is None:
            await send_ephemeral(itx, "Couldn't determine your level. Pick a tier or get an adventurer initiated first.")
            return None
        return auto_tier_for_level(ch.level)

    async def _store(self, itx: Interaction, entry: LfgEntry):
        await LfgQueries.upsert_entry(self.pool, entry)
        member = itx.user if isinstance(itx.user, discord.Member) else await resolve_member(itx.guild, itx.user.id)
        await self.sync_roles(member, entry)
        await self.refresh_board(itx.guild)

    # --------------- commands ---------------

    group = app_commands.Group(name="lfg", description="Looking-for-group controls (roles and board)", guild_only=True)

    @group.command(name="toggle", description="Toggle LFG for a tier (auto = from your level)")
    @app_commands.describe(tier="Tier to toggle")
    @app_commands.choices(tier=[AUTO_CHOICE, *TIER_CHOICES])
    async def lfg_toggle(self, itx: Interaction, tier: Optional[app_commands.Choice[str]] = None):
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "LFG Commands"):
            target = await self._resolve_tier(itx, tier.value if tier else "auto")
            if target is None:
                return
            entry = await self._load_entry(itx)
            was_on = entry.is_on(target)
            entry = set_tier(entry, target, not was_on, now_ms())
            await self._store(itx, entry)
            verb = "Removed" if was_on else "Added"
            await itx.followup.send(f"{verb} **{target.value.upper()}**. Active tiers: {tier_list(entry)}")

    @group.command(name="add", description="Add LFG for a tier (auto = from your level)")
    @app_commands.describe(tier="Tier to add")
    @app_commands.choices(tier=[AUTO_CHOICE, *TIER_CHOICES])
    async def lfg_add(self, itx: Interaction, tier: Optional[app_commands.Choice[str]] = None):
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "LFG Commands"):
            target = await self._resolve_tier(itx, tier.value if tier else "auto")
            if target is None:
                return
            entry = await self._load_entry(itx)
            if entry.is_on(target):
                return await send_ephemeral(itx, f"You're already looking for **{target.value}** games.")
            entry = set_tier(entry, target, True, now_ms())
            await self._store(itx, entry)
            await itx.followup.send(f"{itx.user.display_name} is now looking for **{target.value}** games.")

    @group.command(name="remove", description="Remove LFG for a tier, or all tiers")
    @app_commands.describe(tier="Tier to remove (or all)")
    @app_commands.choices(tier=[ALL_CHOICE, *TIER_CHOICES])
    async def lfg_remove(self, itx: Interaction, tier: app_commands.Choice[str]):
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "LFG Commands"):
            entry = await LfgQueries.get_entry(self.pool, itx.guild_id, itx.user.id)
            if not any_tier_on(entry):
                return await send_ephemeral(itx, "You're not on the LFG board.")
            if tier.value == "all":
                await self._store(itx, clear_all(entry, now_ms()))
                return await itx.followup.send(f"{itx.user.display_name} is no longer looking for a game.")
            target = LfgTier(tier.value)
            if not entry.is_on(target):
                return await send_ephemeral(itx, f"You're not looking for **{target.value}** games.")
            await self._store(itx, set_tier(entry, target, False, now_ms()))
            await itx.followup.send(f"{itx.user.display_name} stopped looking for **{target.value}** games.")

    @group.command(name="status", description="Show your LFG tiers and wait time")
    async def lfg_status(self, itx: Interaction):
        await itx.response.defer(ephemeral=True)
        async with ledger_errors(itx, self.embed_logger, "LFG Commands"):
            entry = await LfgQueries.get_entry(self.pool, itx.guild_id, itx.user.id)
            if not any_tier_on(entry):
                return await send_ephemeral(itx, "You're not on the LFG board.")
            await itx.followup.send(embed=lfg_status_embed(entry, now_ms()), ephemeral=True)

    @group.command(name="list", description="Preview the LFG board; optionally post/update the sticky board")
    @app_commands.describe(post="Post or update the sticky board (staff only)")
    async def lfg_list(self, itx: Interaction, post: bool = False):
        if post and not is_staff(itx.user, self.bot.config):
            return await send_ephemeral(itx, "Only moderators and admins can post the board.")
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "LFG Commands"):
            entries = await LfgQueries.list_entries(self.pool, itx.guild_id)
            await itx.followup.send(embed=lfg_board_embed(aggregate(entries), now_ms()))
            if post:
                if await self.refresh_board(itx.guild, "manual-post"):
                    await itx.followup.send("📌 LFG board updated.")
                else:
                    await send_ephemeral(itx, "No LFG board channel is configured or it is unreachable.")

    @group.command(name="purge", description="Clear LFG flags older than N days (staff only)")
    @app_commands.describe(days="Age in days", scope="Level tiers (all) or only play-by-post")
    @app_commands.choices(
        scope=[
            app_commands.Choice(name="All level tiers", value="all"),
            app_commands.Choice(name="Only Play-by-Post", value="pbp"),
        ]
    )
    @require_staff()
    async def lfg_purge(
        self,
        itx: Interaction,
        days: app_commands.Range[int, 1],
        scope: Optional[app_commands.Choice[str]] = None,
    ):
        purge_scope = PurgeScope(scope.value if scope else "all")
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "LFG Commands"):
            now = now_ms()
            result = await LfgQueries.purge_before(
                self.pool, itx.guild_id, now - days * MS_PER_DAY, purge_scope, now
            )
            for entry in result.updated:
                await self.sync_roles(await resolve_member(itx.guild, entry.player_id), entry)
            for entry in result.removed:
                await self.sync_roles(await resolve_member(itx.guild, entry.player_id), None)
            await self.refresh_board(itx.guild, "purge")

            count = len(result.affected)
            if count:
                msg = f"🧹 Cleared `{purge_scope.value}` flags for {count} player{'s' if count != 1 else ''} waiting over {days} day(s)."
            else:
                msg = f"No `{purge_scope.value}` entries older than {days} day(s)."
            await itx.followup.send(msg)

            logger.info(f"{itx.user.id} purged LFG ({purge_scope.value}, {days}d): {count} affected")
            if self.embed_logger and count:
                await self.embed_logger.log_custom(
                    service="LFG",
                    title="LFG Purge",
                    description=f"<@{itx.user.id}> purged LFG entries older than {days} day(s)",
                    level=LogLevel.INFO,
                    fields={
                        "Scope": purge_scope.value,
                        "Updated": str(len(result.updated)),
                        "Removed": str(len(result.removed)),
                    },
                )


async def setup(bot: commands.Bot):
    await bot.add_cog(LfgCog(bot))
