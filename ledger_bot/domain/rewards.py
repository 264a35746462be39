# ledger_bot/domain/rewards.py
"""
Reward calculator: custom and DM-table rewards as resource deltas, and delta application.

Deltas are non-negative when computed; callers negate them for spends and must check the
balance first, `apply_delta` only clamps at zero.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace

from .currency import round_half_up, to_minor
from .progress import CharacterProgress
from .tables import RewardTable
from .xp import XPEngine


@dataclass(frozen=True)
class ResourceDelta:
    xp: int = 0
    currency_minor: int = 0
    tickets: float = 0

    def __neg__(self) -> "ResourceDelta":
        return ResourceDelta(xp=-self.xp, currency_minor=-self.currency_minor, tickets=-self.tickets)

    def is_empty(self) -> bool:
        return self.xp == 0 and self.currency_minor == 0 and self.tickets == 0


@dataclass(frozen=True)
class DeltaResult:
    xp: int
    level: int
    levels_changed: int
    proficiency: int
    currency_minor: int
    tickets: float
    was_clamped: bool = False

    def apply_to(self, progress: CharacterProgress) -> CharacterProgress:
        return replace(
            progress,
            xp=self.xp,
            level=self.level,
            currency_minor=self.currency_minor,
            tickets=self.tickets,
        )


class RewardCalculator:
    def __init__(self, engine: XPEngine, table: RewardTable):
        self.engine = engine
        self.table = table

    @staticmethod
    def custom_reward(xp: float = 0, gp: float = 0, tp: float = 0) -> ResourceDelta:
        return ResourceDelta(
            xp=max(0, int(math.floor(xp or 0))),
            currency_minor=max(0, to_minor(gp or 0)),
            tickets=max(0.0, float(tp or 0)),
        )

    def dm_reward(self, level: float, half: bool = False) -> ResourceDelta:
        row = self.table.row_for(int(math.floor(level or 1)))
        mult = 0.5 if half else 1.0
        return ResourceDelta(
            xp=round_half_up(max(0, math.floor(row.xp) * mult)),
            currency_minor=round_half_up(max(0, to_minor(row.gp) * mult)),
            tickets=round_half_up(max(0.0, float(row.tp) * mult)),
        )

    def apply_delta(self, progress: CharacterProgress, delta: ResourceDelta) -> DeltaResult:
        res = self.engine.apply_xp(progress, math.floor(delta.xp))
        raw_cp = progress.currency_minor + delta.currency_minor
        raw_tp = progress.tickets + delta.tickets
        return DeltaResult(
            xp=res.xp,
            level=res.level,
            levels_changed=res.levels_changed,
            proficiency=res.proficiency,
            currency_minor=max(0, raw_cp),
            tickets=max(0, raw_tp),
            was_clamped=res.was_clamped or raw_cp < 0 or raw_tp < 0,
        )
