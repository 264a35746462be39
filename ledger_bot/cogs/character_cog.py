# ledger_bot/cogs/character_cog.py
from __future__ import annotations

import logging
import re
from typing import Optional

import discord
from discord import Interaction, app_commands
from discord.ext import commands

from ledger_bot.domain import CharacterNotFound, format_gp, format_points
from ledger_bot.services.logging_service import LogLevel
from ledger_bot.utils.embeds import character_embed
from ledger_bot.utils.interactions import (
    add_role,
    character_autocomplete,
    ledger_errors,
    register_guild_commands,
    remove_role,
    resolve_member,
    send_ephemeral,
)
from ledger_bot.utils.permissions import is_staff, require_staff

logger = logging.getLogger(__name__)

NAME_RE = re.compile(r"^[A-Za-z0-9' -]+$")
CONFIRM_WORD = "RETIRE"


class RetireModal(discord.ui.Modal, title="Confirm Retirement"):
    char_name = discord.ui.TextInput(
        label="Character name (blank for active character)", required=False, max_length=100
    )
    confirm = discord.ui.TextInput(label=f"Type {CONFIRM_WORD} to confirm", placeholder=CONFIRM_WORD, max_length=20)

    def __init__(self, cog: "CharacterCog", target: discord.abc.User, character: Optional[str]):
        super().__init__()
        self.cog = cog
        self.target = target
        if character:
            self.char_name.default = character

    async def on_submit(self, itx: Interaction):
        await self.cog.finish_retire(itx, self.target, self.char_name.value.strip() or None, self.confirm.value)


class CharacterCog(commands.Cog):
    """Character lifecycle: initiate, swap, retire, info."""

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

    @app_commands.command(name="initiate", description="Create an adventurer record for a user")
    @app_commands.describe(user="Discord user to initiate", name="Adventurer's name")
    @require_staff()
    async def initiate(self, itx: Interaction, user: discord.Member, name: str):
        name = name.strip()
        if not NAME_RE.match(name):
            return await send_ephemeral(
                itx, "Invalid character name. Use letters, numbers, spaces, apostrophes, or hyphens."
            )
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "Character Commands"):
            cfg = self.bot.config
            ch = await self.ledger.create_character(
                user.id, name, xp=cfg.initiate_xp, gp=cfg.initiate_gp, gt=cfg.initiate_gt, actor_id=itx.user.id
            )
            if ch is None:
                who = "You already have" if user.id == itx.user.id else "That user already has"
                return await send_ephemeral(itx, f"{who} an adventurer of that name. Retire before initiating a new one.")

            embed = discord.Embed(
                title=f"Welcome, {ch.name}!",
                description=f"**{ch.name}** has joined the guild ledger.",
                color=discord.Color(0x00AAFF),
            )
            embed.set_author(name=user.display_name, icon_url=user.display_avatar.url)
            embed.add_field(name="⬆️ Level", value=str(ch.level), inline=False)
            embed.add_field(name="💪 XP", value=str(ch.xp), inline=False)
            embed.add_field(name="💰 GP", value=format_gp(ch.cp), inline=True)
            embed.add_field(name="🎫 GT", value=format_points(ch.tp), inline=True)
            await itx.followup.send(content=user.mention, embed=embed)

            logger.info(f"{itx.user.id} initiated {user.id}/{ch.name}")
            if self.embed_logger:
                await self.embed_logger.log_custom(
                    service="Character",
                    title="Adventurer Initiated",
                    description=f"<@{itx.user.id}> initiated **{ch.name}** for <@{user.id}>",
                    level=LogLevel.LEDGER,
                    fields={"Level": ch.level, "XP": ch.xp, "GP": format_gp(ch.cp)},
                )

    @app_commands.command(name="swap", description="Switch your active adventurer")
    @app_commands.describe(name="Adventurer to make active")
    @app_commands.autocomplete(name=character_autocomplete)
    async def swap(self, itx: Interaction, name: str):
        await itx.response.defer(ephemeral=True)
        async with ledger_errors(itx, self.embed_logger, "Character Commands"):
            ch = await self.ledger.swap_character(itx.user.id, name.strip())
            await itx.followup.send(f"✅ **{ch.name}** is now your active adventurer.", ephemeral=True)

    @app_commands.command(name="retire", description="Retire your adventurer (or another one, staff only)")
    @app_commands.describe(user="Target user (staff only)", character="Adventurer to retire (default: active)")
    @app_commands.autocomplete(character=character_autocomplete)
    async def retire(self, itx: Interaction, user: Optional[discord.User] = None, character: Optional[str] = None):
        target = user or itx.user
        if target.id != itx.user.id and not is_staff(itx.user, self.bot.config):
            return await send_ephemeral(itx, "Only moderators or staff can retire another adventurer.")
        await itx.response.send_modal(RetireModal(self, target, character))

    async def finish_retire(self, itx: Interaction, target: discord.abc.User, name: Optional[str], confirmation: str):
        if confirmation.strip() != CONFIRM_WORD:
            return await send_ephemeral(itx, "Retirement cancelled.")
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "Character Commands"):
            retired, was_last = await self.ledger.retire_character(target.id, name, actor_id=itx.user.id)

            if was_last:
                member = await resolve_member(itx.guild, target.id)
                if member is not None:
                    cfg = self.bot.config
                    await remove_role(member, cfg.guild_member_role_id, "Last adventurer retired")
                    await add_role(member, cfg.uninitiated_role_id, "Last adventurer retired")

            note = "" if itx.user.id == target.id else f" (retired by {itx.user.mention})"
            embed = discord.Embed(
                title=f"{retired.name} retires",
                description=f"**{retired.name}** hangs up their boots.",
                color=discord.Color.red(),
            )
            embed.add_field(name="⬆️ Level", value=str(retired.level), inline=True)
            embed.add_field(name="💪 XP", value=str(retired.xp), inline=True)
            embed.add_field(name="💰 GP", value=format_gp(retired.cp), inline=True)
            embed.add_field(name="🎫 GT", value=format_points(retired.tp), inline=True)
            await itx.followup.send(content=f"<@{target.id}>{note}", embed=embed)

            logger.info(f"{itx.user.id} retired {target.id}/{retired.name} (last={was_last})")
            if self.embed_logger:
                await self.embed_logger.log_custom(
                    service="Character",
                    title="Adventurer Retired",
                    description=f"<@{itx.user.id}> retired **{retired.name}** of <@{target.id}>",
                    level=LogLevel.WARNING,
                    fields={"Level": retired.level, "XP": retired.xp, "Last Character": "yes" if was_last else "no"},
                )

    @app_commands.command(name="charinfo", description="Show an adventurer's ledger")
    @app_commands.describe(user="Whose adventurer (default: you)", character="Adventurer name (default: active)")
    @app_commands.autocomplete(character=character_autocomplete)
    async def charinfo(self, itx: Interaction, user: Optional[discord.User] = None, character: Optional[str] = None):
        target = user or itx.user
        await itx.response.defer()
        async with ledger_errors(itx, self.embed_logger, "Character Commands"):
            ch = await self.ledger.get_character(target.id, character)
            if ch is None:
                raise CharacterNotFound(target.id, character)
            await itx.followup.send(
                embed=character_embed(ch, owner=target, footer=f"Requested via {itx.user.display_name}")
            )


async def setup(bot: commands.Bot):
    await bot.add_cog(CharacterCog(bot))
