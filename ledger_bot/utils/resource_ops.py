# ledger_bot/utils/resource_ops.py
"""
Shared show/add/adjust/set flow for the resource commands (/xp, /gp, /gt, /dtp, /resource).
"""
from __future__ import annotations

import logging
from typing import Optional

import discord

from ..database.models import Character
from ..domain import CharacterNotFound, InvalidAmount
from ..services.ledger_service import LedgerChange, LedgerService
from .embeds import RESOURCE_LABELS, change_line, level_change_text, resource_value, xp_embed
from .interactions import ledger_errors

logger = logging.getLogger(__name__)

RESOURCES = ("xp", "gp", "gt", "dtp", "cc")
OPERATIONS = ("add", "adjust", "set")

# (resource, op) -> LedgerService method name
RESOURCE_METHODS = {
    "xp": {"add": "grant_xp", "adjust": "adjust_xp", "set": "set_xp"},
    "gp": {"add": "earn_currency", "adjust": "adjust_currency", "set": "set_currency"},
    "gt": {"add": "adjust_tickets", "adjust": "adjust_tickets", "set": "set_tickets"},
    "dtp": {"add": "adjust_downtime", "adjust": "adjust_downtime", "set": "set_downtime"},
    "cc": {"add": "adjust_crew_coins", "adjust": "adjust_crew_coins", "set": "set_crew_coins"},
}

RESOURCE_EMOJI = {"xp": "💪", "gp": "💰", "gt": "🎫", "dtp": "🔨", "cc": "🪙"}


async def apply_resource_op(
    ledger: LedgerService,
    resource: str,
    op: str,
    user_id: int,
    name: Optional[str],
    amount: float,
    *,
    actor_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> LedgerChange:
    """Dispatch one resource operation to the ledger. `add` only takes positive amounts."""
    try:
        method_name = RESOURCE_METHODS[resource][op]
    except KeyError:
        raise ValueError(f"unsupported resource operation: {resource} {op}") from None
    if op == "add" and not amount > 0:
        raise InvalidAmount(f"{resource.upper()} to add must be greater than zero.")
    if resource == "cc":
        if amount != int(amount):
            raise InvalidAmount("Crew coins are whole numbers.")
        amount = int(amount)
    method = getattr(ledger, method_name)
    return await method(user_id, name, amount, actor_id=actor_id, reason=reason)


def change_text(user: discord.abc.User, resource: str, change: LedgerChange, reason: Optional[str] = None) -> str:
    lines = [f"{user.mention}'s **{change.after.name}**", change_line(resource, change.before, change.after)]
    if resource == "xp" and change.levels_changed:
        lines.append(f"Level: {change.before.level} → **{change.after.level}**")
    if change.was_clamped:
        lines.append("_Clamped to the allowed range._")
    if reason:
        lines.append(f"Reason: {reason}")
    return "\n".join(lines)


async def announce_level_change(bot, itx: discord.Interaction, user_id: int, change: LedgerChange) -> None:
    """Post a level-up/down note in the resource channel, else where the command ran."""
    text = level_change_text(
        user_id, change.after.name, change.levels_changed, change.after.level, change.proficiency
    )
    if text is None:
        return
    channel = None
    channel_id = bot.config.resource_channel_id
    if channel_id:
        channel = bot.get_channel(channel_id)
    if channel is None:
        channel = itx.channel
    if channel is None:
        return
    try:
        await channel.send(text)
    except discord.HTTPException as e:
        logger.warning(f"Could not announce level change for {user_id}: {e}")


def show_text(user: discord.abc.User, ch: Character, resource: str) -> str:
    return (
        f"{user.mention}'s **{ch.name}** has {RESOURCE_EMOJI[resource]} "
        f"**{resource_value(ch, resource)}** {resource.upper()}"
    )


async def run_show(cog, itx: discord.Interaction, resource: str, user: Optional[discord.abc.User], name: Optional[str]):
    target = user or itx.user
    await itx.response.defer()
    async with ledger_errors(itx, cog.embed_logger, f"{resource.upper()} Commands"):
        ch = await cog.ledger.get_character(target.id, name)
        if ch is None:
            raise CharacterNotFound(target.id, name)
        if resource == "xp":
            embed = xp_embed(ch, cog.ledger.engine)
            await itx.followup.send(content=target.mention, embed=embed)
        else:
            await itx.followup.send(show_text(target, ch, resource))


async def run_change(
    cog,
    itx: discord.Interaction,
    resource: str,
    op: str,
    user: discord.abc.User,
    amount: float,
    name: Optional[str],
    reason: Optional[str],
):
    """Apply, reply, audit, and announce any level change."""
    await itx.response.defer()
    async with ledger_errors(itx, cog.embed_logger, f"{resource.upper()} Commands"):
        change = await apply_resource_op(
            cog.ledger, resource, op, user.id, name, amount, actor_id=itx.user.id, reason=reason
        )
        await itx.followup.send(change_text(user, resource, change, reason))
        logger.info(
            f"{itx.user.id} {resource} {op} {amount} on {user.id}/{change.after.name}: "
            f"{resource_value(change.before, resource)} -> {resource_value(change.after, resource)}"
        )
        if cog.embed_logger:
            await cog.embed_logger.log_ledger_change(
                actor_id=itx.user.id,
                target_id=user.id,
                character=change.after.name,
                resource=RESOURCE_LABELS[resource],
                before=resource_value(change.before, resource),
                after=resource_value(change.after, resource),
                reason=reason,
            )
        if change.levels_changed:
            await announce_level_change(cog.bot, itx, user.id, change)
