# ledger_bot/domain/progress.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CharacterProgress:
    """The slice of a character row that the XP, reward and downtime transforms read and write."""

    xp: int = 0
    level: int = 1
    currency_minor: int = 0
    tickets: float = 0.0
    downtime_points: float = 0.0
    downtime_last_updated: int = 0
