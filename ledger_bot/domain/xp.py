# ledger_bot/domain/xp.py
"""
XP engine: level lookup, proficiency lookup, XP bands and XP-delta application.

Level is always derived from total XP; callers persist both.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from .progress import CharacterProgress
from .tables import AdvancementTable


@dataclass(frozen=True)
class XPBand:
    current_threshold: int
    next_threshold: Optional[int]

    def progress_percent(self, xp: int) -> int:
        """Percent of the way from this band's floor to the next; 100 at max level."""
        if self.next_threshold is None:
            return 100
        span = self.next_threshold - self.current_threshold
        done = min(max(0, xp - self.current_threshold), span)
        return int(math.floor(done * 100 / span))


@dataclass(frozen=True)
class XPResult:
    xp: int
    level: int
    levels_changed: int
    proficiency: int
    was_clamped: bool = False


class XPEngine:
    def __init__(self, table: AdvancementTable):
        self.table = table

    @property
    def max_level(self) -> int:
        return self.table.max_level

    def clamp_level(self, level: float) -> int:
        return min(max(1, int(math.floor(level))), self.table.max_level)

    def level_for_xp(self, total_xp: float) -> int:
        xp = max(0, int(math.floor(total_xp)))
        return self.table.rows[self.table.index_for_xp(xp)].level

    def proficiency_for(self, level: float) -> int:
        # Out-of-range levels are clamped, not rejected.
        return self.table.row(self.clamp_level(level)).proficiency

    def xp_needed_for(self, level: float) -> int:
        return self.table.row(self.clamp_level(level)).xp_threshold

    def band_for(self, level: float) -> XPBand:
        lv = self.clamp_level(level)
        current = self.table.row(lv).xp_threshold
        nxt = self.table.row(lv + 1).xp_threshold if lv < self.table.max_level else None
        return XPBand(current_threshold=current, next_threshold=nxt)

    def apply_xp(self, progress: CharacterProgress, signed_delta: float) -> XPResult:
        raw = int(math.floor(progress.xp + math.floor(signed_delta)))
        new_xp = max(0, raw)
        new_level = self.level_for_xp(new_xp)
        return XPResult(
            xp=new_xp,
            level=new_level,
            levels_changed=new_level - progress.level,
            proficiency=self.proficiency_for(new_level),
            was_clamped=raw < 0,
        )

    def set_xp(self, progress: CharacterProgress, total_xp: float) -> XPResult:
        """Explicit "set" operation: same result shape as apply_xp, level recomputed from xp."""
        raw = int(math.floor(total_xp))
        new_xp = max(0, raw)
        new_level = self.level_for_xp(new_xp)
        return XPResult(
            xp=new_xp,
            level=new_level,
            levels_changed=new_level - progress.level,
            proficiency=self.proficiency_for(new_level),
            was_clamped=raw < 0,
        )
