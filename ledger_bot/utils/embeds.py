# ledger_bot/utils/embeds.py
from __future__ import annotations

from typing import Dict, List, Optional

import discord

from ..database.models import Character
from ..domain import XPEngine, format_gp, format_points
from ..domain.lfg import TIER_LABELS, TIER_ORDER, LfgEntry, LfgTier, waiting_days

BRAND_COLOR = discord.Color(0x0099FF)
LFG_COLOR = discord.Color(0x4EA8DE)

RESOURCE_LABELS = {
    "xp": "Experience (XP)",
    "gp": "Gold Pieces (GP)",
    "gt": "Golden Tickets (GT)",
    "dtp": "Downtime (DTP)",
    "cc": "Crew Coins (CC)",
}


def resource_value(ch: Character, resource: str) -> str:
    """Display value of one resource column."""
    if resource == "xp":
        return str(ch.xp)
    if resource == "gp":
        return format_gp(ch.cp)
    if resource == "gt":
        return format_points(ch.tp)
    if resource == "dtp":
        return format_points(ch.dtp)
    if resource == "cc":
        return str(ch.cc)
    raise ValueError(f"unknown resource: {resource}")


def character_embed(ch: Character, *, owner: Optional[discord.abc.User] = None, footer: Optional[str] = None) -> discord.Embed:
    embed = discord.Embed(title=f"Character - {ch.name}", color=BRAND_COLOR)
    if owner is not None:
        embed.description = f"OOC Owner: {owner.mention}"
        embed.set_thumbnail(url=owner.display_avatar.url)
    embed.add_field(name="Level", value=f"⭐ {ch.level}", inline=True)
    embed.add_field(name=RESOURCE_LABELS["xp"], value=f"💪 {ch.xp}", inline=True)
    embed.add_field(name="\u200b", value="\u200b", inline=True)
    embed.add_field(name=RESOURCE_LABELS["gp"], value=f"💰 {format_gp(ch.cp)}", inline=True)
    embed.add_field(name=RESOURCE_LABELS["gt"], value=f"🎫 {format_points(ch.tp)}", inline=True)
    embed.add_field(name=RESOURCE_LABELS["dtp"], value=f"🔨 {format_points(ch.dtp)}", inline=True)
    if ch.cc:
        embed.add_field(name=RESOURCE_LABELS["cc"], value=f"🪙 {ch.cc}", inline=True)
    if footer:
        embed.set_footer(text=footer)
    return embed


def progress_bar(percent: int, width: int = 10) -> str:
    filled = max(0, min(width, percent * width // 100))
    return "▰" * filled + "▱" * (width - filled)


def xp_embed(ch: Character, engine: XPEngine) -> discord.Embed:
    band = engine.band_for(ch.level)
    pct = band.progress_percent(ch.xp)
    embed = discord.Embed(title=f"XP - {ch.name}", color=BRAND_COLOR)
    embed.add_field(name="Level", value=str(ch.level), inline=True)
    embed.add_field(name="XP", value=str(ch.xp), inline=True)
    embed.add_field(name="Proficiency", value=f"+{engine.proficiency_for(ch.level)}", inline=True)
    if band.next_threshold is None:
        embed.add_field(name="Next Level", value="Max level reached", inline=False)
    else:
        embed.add_field(
            name="Next Level",
            value=f"{band.next_threshold} XP ({band.next_threshold - ch.xp} to go)",
            inline=False,
        )
    embed.add_field(name="Progress", value=f"{progress_bar(pct)} {pct}%", inline=False)
    return embed


def level_change_text(user_id: int, name: str, levels_changed: int, new_level: int, proficiency: int) -> Optional[str]:
    if levels_changed > 0:
        return f"🎉 <@{user_id}>'s **{name}** reached level **{new_level}**! (proficiency +{proficiency})"
    if levels_changed < 0:
        return f"<@{user_id}>'s **{name}** dropped to level **{new_level}**."
    return None


def change_line(resource: str, before: Character, after: Character) -> str:
    return f"{RESOURCE_LABELS[resource]}: {resource_value(before, resource)} → **{resource_value(after, resource)}**"


# --------------- LFG ---------------

def tier_list(entry: Optional[LfgEntry]) -> str:
    if entry is None:
        return "none"
    active = [f"`{t.value}`" for t in entry.tiers.active()]
    return ", ".join(active) or "none"


def waiting_text(entry: LfgEntry, now_ms: int) -> str:
    days = waiting_days(entry, now_ms)
    if not days:
        return "less than a day"
    return f"{days} day{'s' if days > 1 else ''}"


def lfg_board_embed(groups: Dict[LfgTier, List[LfgEntry]], now_ms: int) -> discord.Embed:
    embed = discord.Embed(title="Looking for Group", color=LFG_COLOR, timestamp=discord.utils.utcnow())
    total = len({e.player_id for entries in groups.values() for e in entries})
    embed.description = f"{total} player{'s' if total != 1 else ''} looking for a game." if total else "Nobody is looking for a game right now."
    for tier in TIER_ORDER:
        entries = groups.get(tier, [])
        if entries:
            lines = [f"<@{e.player_id}> · {waiting_text(e, now_ms)}" for e in entries]
            value = "\n".join(lines)
            if len(value) > 1024:
                value = value[:1000].rsplit("\n", 1)[0] + "\n…"
        else:
            value = "nobody"
        embed.add_field(name=f"{TIER_LABELS[tier]} ({len(entries)})", value=value, inline=False)
    embed.set_footer(text="Longest waiting first")
    return embed


def lfg_status_embed(entry: LfgEntry, now_ms: int) -> discord.Embed:
    embed = discord.Embed(title="Your LFG status", color=LFG_COLOR)
    embed.add_field(name="Tiers", value=tier_list(entry), inline=True)
    embed.add_field(name="Waiting", value=waiting_text(entry, now_ms), inline=True)
    return embed
