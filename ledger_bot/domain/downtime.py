# ledger_bot/domain/downtime.py
"""
Downtime point accrual.

Time is cut into buckets of round(86400 / rate) seconds. Accrual is lazy: every read or
spend of downtime first calls `accrue`, there is no background timer.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional

from .currency import round_half_up
from .progress import CharacterProgress

SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class AccrualResult:
    downtime_points: float
    downtime_last_updated: int
    accrued: float

    def apply_to(self, progress: CharacterProgress) -> CharacterProgress:
        return replace(
            progress,
            downtime_points=self.downtime_points,
            downtime_last_updated=self.downtime_last_updated,
        )


class DowntimeAccrual:
    def __init__(self, rate: float = 1.0):
        if rate <= 0:
            raise ValueError(f"downtime rate must be > 0, got {rate}")
        self.rate = rate
        self.bucket_seconds = max(1, round_half_up(SECONDS_PER_DAY / rate))

    def bucket_start(self, now: float) -> int:
        ts = int(math.floor(now))
        return ts - (ts % self.bucket_seconds)

    def accrue(self, progress: Optional[CharacterProgress], now: float) -> Optional[AccrualResult]:
        """
        Credit the buckets elapsed since `downtime_last_updated`.

        Returns None when there is no character, so absence is distinct from zero accrual.
        A bucket boundary earlier than the stored one (clock skew, rate change) credits nothing
        and keeps the stored boundary.
        """
        if progress is None:
            return None
        now_bucket = self.bucket_start(now)
        last = progress.downtime_last_updated
        if now_bucket <= last:
            return AccrualResult(progress.downtime_points, last, 0.0)
        accrued = (now_bucket - last) / self.bucket_seconds
        if accrued.is_integer():
            accrued = int(accrued)
        return AccrualResult(
            downtime_points=progress.downtime_points + accrued,
            downtime_last_updated=now_bucket,
            accrued=accrued,
        )
