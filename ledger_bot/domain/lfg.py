# ledger_bot/domain/lfg.py
"""
Looking-for-group presence.

Each player has one entry per guild with five independent tier flags. The board lists,
per tier, everyone flagged in it, longest-waiting first.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

MS_PER_DAY = 24 * 60 * 60 * 1000


class LfgTier(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"
    EPIC = "epic"
    PBP = "pbp"


class PurgeScope(str, Enum):
    ALL = "all"
    PBP = "pbp"


TIER_ORDER: Tuple[LfgTier, ...] = (LfgTier.LOW, LfgTier.MID, LfgTier.HIGH, LfgTier.EPIC, LfgTier.PBP)
LEVEL_TIERS: Tuple[LfgTier, ...] = (LfgTier.LOW, LfgTier.MID, LfgTier.HIGH, LfgTier.EPIC)

TIER_LABELS: Dict[LfgTier, str] = {
    LfgTier.LOW: "Low (1-4)",
    LfgTier.MID: "Mid (5-10)",
    LfgTier.HIGH: "High (11-16)",
    LfgTier.EPIC: "Epic (17+)",
    LfgTier.PBP: "Play-by-Post",
}


@dataclass(frozen=True)
class TierFlags:
    low: bool = False
    mid: bool = False
    high: bool = False
    epic: bool = False
    pbp: bool = False

    def is_on(self, tier: LfgTier) -> bool:
        return bool(getattr(self, LfgTier(tier).value))

    def with_tier(self, tier: LfgTier, on: bool) -> "TierFlags":
        return replace(self, **{LfgTier(tier).value: bool(on)})

    def without(self, tiers: Iterable[LfgTier]) -> "TierFlags":
        return replace(self, **{LfgTier(t).value: False for t in tiers})

    def any(self) -> bool:
        return self.low or self.mid or self.high or self.epic or self.pbp

    def active(self) -> Tuple[LfgTier, ...]:
        return tuple(t for t in TIER_ORDER if self.is_on(t))


@dataclass(frozen=True)
class LfgEntry:
    player_id: int
    guild_id: int
    display_name: str
    tiers: TierFlags = field(default_factory=TierFlags)
    started_at: int = 0
    updated_at: int = 0

    def is_on(self, tier: LfgTier) -> bool:
        return self.tiers.is_on(tier)


@dataclass(frozen=True)
class PurgeResult:
    updated: Tuple[LfgEntry, ...] = ()
    removed: Tuple[LfgEntry, ...] = ()

    @property
    def affected(self) -> Tuple[LfgEntry, ...]:
        return self.updated + self.removed

    @property
    def affected_ids(self) -> List[int]:
        return [e.player_id for e in self.affected]


def new_entry(player_id: int, guild_id: int, display_name: str, now: int) -> LfgEntry:
    return LfgEntry(player_id=player_id, guild_id=guild_id, display_name=display_name, updated_at=now)


def any_tier_on(entry: Optional[LfgEntry]) -> bool:
    return entry is not None and entry.tiers.any()


def set_tier(entry: LfgEntry, tier: LfgTier, on: bool, now: int) -> LfgEntry:
    was_active = entry.tiers.any()
    tiers = entry.tiers.with_tier(tier, on)
    started_at = entry.started_at
    if not was_active and tiers.any():
        started_at = now
    elif not tiers.any():
        started_at = 0
    return replace(entry, tiers=tiers, started_at=started_at, updated_at=now)


def clear_all(entry: LfgEntry, now: int) -> LfgEntry:
    return replace(entry, tiers=TierFlags(), started_at=0, updated_at=now)


def aggregate(entries: Iterable[LfgEntry]) -> Dict[LfgTier, List[LfgEntry]]:
    """Group by tier (an entry may sit in several groups), each group oldest `started_at` first."""
    groups: Dict[LfgTier, List[LfgEntry]] = {t: [] for t in TIER_ORDER}
    for entry in entries:
        for tier in entry.tiers.active():
            groups[tier].append(entry)
    for tier in TIER_ORDER:
        groups[tier].sort(key=lambda e: (e.started_at, e.player_id))
    return groups


def auto_tier_for_level(level: int) -> LfgTier:
    """Level band tier; pbp is opt-in only and never returned here."""
    if level < 5:
        return LfgTier.LOW
    if level < 11:
        return LfgTier.MID
    if level < 17:
        return LfgTier.HIGH
    return LfgTier.EPIC


def scope_tiers(scope: PurgeScope) -> Tuple[LfgTier, ...]:
    return (LfgTier.PBP,) if PurgeScope(scope) is PurgeScope.PBP else LEVEL_TIERS


def purge(entries: Iterable[LfgEntry], cutoff_ms: int, scope: PurgeScope, now: int) -> PurgeResult:
    """
    Clear the scoped flags of entries that started before `cutoff_ms`.

    Only flags inside the scope are touched. Entries left with no tier go to `removed`,
    the rest to `updated`.
    """
    tiers = scope_tiers(scope)
    updated: List[LfgEntry] = []
    removed: List[LfgEntry] = []
    for entry in entries:
        if entry.started_at >= cutoff_ms:
            continue
        if not any(entry.tiers.is_on(t) for t in tiers):
            continue
        cleared = replace(entry, tiers=entry.tiers.without(tiers), updated_at=now)
        if cleared.tiers.any():
            updated.append(cleared)
        else:
            removed.append(replace(cleared, started_at=0))
    return PurgeResult(updated=tuple(updated), removed=tuple(removed))


def waiting_days(entry: LfgEntry, now: int) -> int:
    if not entry.started_at:
        return 0
    return max(0, (now - entry.started_at) // MS_PER_DAY)
