# ledger_bot/database/models/character.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping, Optional

from ledger_bot.domain.progress import CharacterProgress


@dataclass(frozen=True)
class Character:
    user_id: int
    name: str
    level: int
    xp: int
    cp: int          # gold in minor units (GP * 100)
    tp: float        # golden tickets
    dtp: float       # downtime points
    dtp_updated: int  # epoch seconds, bucket aligned
    cc: int = 0      # crew coins
    active: bool = True
    created_at: Optional[datetime] = None

    @property
    def progress(self) -> CharacterProgress:
        return CharacterProgress(
            xp=self.xp,
            level=self.level,
            currency_minor=self.cp,
            tickets=self.tp,
            downtime_points=self.dtp,
            downtime_last_updated=self.dtp_updated,
        )

    def with_progress(self, progress: CharacterProgress) -> "Character":
        return replace(
            self,
            xp=progress.xp,
            level=progress.level,
            cp=progress.currency_minor,
            tp=progress.tickets,
            dtp=progress.downtime_points,
            dtp_updated=progress.downtime_last_updated,
        )

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Character":
        return cls(
            user_id=int(row["user_id"]),
            name=row["name"],
            level=int(row["level"]),
            xp=int(row["xp"]),
            cp=int(row["cp"]),
            tp=float(row["tp"]),
            dtp=float(row["dtp"]),
            dtp_updated=int(row["dtp_updated"]),
            cc=int(row["cc"]),
            active=bool(row["active"]),
            created_at=row.get("created_at"),
        )
