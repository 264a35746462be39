# ledger_bot/database/models/ledger_event.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class LedgerEvent:
    """One row of the ledger_events audit trail."""

    id: int
    user_id: int
    name: str
    kind: str     # xp_add, gp_spend, reward_dm, initiate, retire, ...
    delta_xp: int
    delta_cp: int
    delta_tp: float
    delta_dtp: float
    delta_cc: int
    at: datetime
    actor_id: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "LedgerEvent":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            kind=row["kind"],
            delta_xp=row["delta_xp"],
            delta_cp=row["delta_cp"],
            delta_tp=row["delta_tp"],
            delta_dtp=row["delta_dtp"],
            delta_cc=row["delta_cc"],
            at=row["at"],
            actor_id=row["actor_id"],
            reason=row["reason"],
        )

    def deltas(self) -> Mapping[str, float]:
        """Non-zero changes keyed by resource code."""
        raw = {
            "xp": self.delta_xp,
            "gp": self.delta_cp,
            "gt": self.delta_tp,
            "dtp": self.delta_dtp,
            "cc": self.delta_cc,
        }
        return {k: v for k, v in raw.items() if v}
