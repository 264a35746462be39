# ledger_bot/utils/interactions.py
"""Shared plumbing for the ledger cogs: replies, error reporting, role edits, autocomplete."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..domain import LedgerError

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong while updating the ledger. Staff have been notified."


async def register_guild_commands(cog: commands.Cog, bot: commands.Bot) -> None:
    """Copy the cog's slash commands to the home guild and sync it."""
    try:
        guild_obj = discord.Object(id=bot.config.guild_id)
        for cmd in cog.get_app_commands():
            bot.tree.add_command(cmd, guild=guild_obj, override=True)
        await bot.tree.sync(guild=guild_obj)
    except (discord.HTTPException, app_commands.AppCommandError) as e:
        logger.warning(f"{cog.qualified_name} command sync: {e}")


async def send_ephemeral(itx: discord.Interaction, content: Optional[str] = None, *, embed: Optional[discord.Embed] = None):
    kwargs = {"ephemeral": True}
    if embed is not None:
        kwargs["embed"] = embed
    try:
        if itx.response.is_done():
            await itx.followup.send(content, **kwargs)
        else:
            await itx.response.send_message(content, **kwargs)
    except discord.HTTPException as e:
        logger.debug(f"Could not answer interaction {itx.id}: {e}")


def command_name(itx: discord.Interaction) -> str:
    return itx.command.qualified_name if itx.command else "unknown"


async def report_failure(itx: discord.Interaction, embed_logger, service: str, error: BaseException):
    logger.exception(f"/{command_name(itx)} failed for {itx.user.id}")
    if embed_logger:
        await embed_logger.log_error(
            service=service,
            error=error,
            context=f"/{command_name(itx)} by {itx.user.id} in {itx.channel_id}",
        )
    await send_ephemeral(itx, GENERIC_FAILURE)


@asynccontextmanager
async def ledger_errors(itx: discord.Interaction, embed_logger, service: str):
    """Ledger validation errors go back to the user; anything else is logged and reported."""
    try:
        yield
    except LedgerError as e:
        await send_ephemeral(itx, str(e))
    except Exception as e:
        await report_failure(itx, embed_logger, service, e)


async def add_role(member: discord.Member, role_id: int, reason: str) -> bool:
    if not role_id or any(r.id == role_id for r in member.roles):
        return False
    try:
        await member.add_roles(discord.Object(id=role_id), reason=reason)
        return True
    except discord.HTTPException as e:
        logger.warning(f"Could not add role {role_id} to {member.id}: {e}")
        return False


async def remove_role(member: discord.Member, role_id: int, reason: str) -> bool:
    if not role_id or not any(r.id == role_id for r in member.roles):
        return False
    try:
        await member.remove_roles(discord.Object(id=role_id), reason=reason)
        return True
    except discord.HTTPException as e:
        logger.warning(f"Could not remove role {role_id} from {member.id}: {e}")
        return False


async def resolve_member(guild: Optional[discord.Guild], user_id: int) -> Optional[discord.Member]:
    if guild is None:
        return None
    member = guild.get_member(user_id)
    if member is not None:
        return member
    try:
        return await guild.fetch_member(user_id)
    except discord.NotFound:
        return None
    except discord.HTTPException as e:
        logger.warning(f"Could not fetch member {user_id}: {e}")
        return None


async def character_autocomplete(itx: discord.Interaction, current: str) -> List[app_commands.Choice[str]]:
    """Names of the targeted user's characters (the `user` option, else the invoker)."""
    ledger = getattr(itx.client, "ledger", None)
    if ledger is None:
        return []
    target = getattr(itx.namespace, "user", None) or itx.user
    try:
        names = await ledger.list_names(target.id)
    except Exception:
        logger.exception("Character autocomplete failed")
        return []
    needle = current.lower()
    return [app_commands.Choice(name=n, value=n) for n in names if needle in n.lower()][:25]
