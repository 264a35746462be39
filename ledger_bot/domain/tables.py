# ledger_bot/domain/tables.py
"""
Static lookup tables: advancement (level -> xp threshold -> proficiency) and DM rewards by level.

Both are loaded once at startup and handed to the XP engine / reward calculator explicitly.
"""
from __future__ import annotations

import json
from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_ADVANCEMENT_PATH = DATA_DIR / "advancement.json"
DEFAULT_DM_REWARDS_PATH = DATA_DIR / "dm_rewards.json"


@dataclass(frozen=True)
class AdvancementRow:
    level: int
    xp_threshold: int
    proficiency: int


@dataclass(frozen=True)
class RewardRow:
    level: int
    tier: str
    xp: int
    gp: float
    tp: float


def _read_json(path: Union[str, Path]) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as fh:
        return json.load(fh)


def nearest_defined_level_at_or_below(levels: Sequence[int], level: int) -> int:
    """
    Pick the configured level to use for `level`.

    `levels` must be sorted ascending. Returns `level` itself when defined, otherwise the
    closest defined level below it, and the lowest defined level when `level` is below all.
    """
    if not levels:
        raise ValueError("no levels defined")
    idx = bisect_right(levels, level) - 1
    if idx < 0:
        return levels[0]
    return levels[idx]


class AdvancementTable:
    """Immutable, ordered advancement rows. Levels run 1..max_level without gaps."""

    def __init__(self, rows: Iterable[AdvancementRow]):
        ordered = tuple(sorted(rows, key=lambda r: r.level))
        if not ordered:
            raise ValueError("advancement table is empty")
        for expected, row in enumerate(ordered, start=1):
            if row.level != expected:
                raise ValueError(f"advancement table must define levels 1..N, got level {row.level} at position {expected}")
        for prev, row in zip(ordered, ordered[1:]):
            if row.xp_threshold <= prev.xp_threshold:
                raise ValueError(
                    f"xp thresholds must be strictly increasing (level {row.level}: {row.xp_threshold} <= {prev.xp_threshold})"
                )
        if ordered[0].xp_threshold < 0:
            raise ValueError("xp thresholds must be >= 0")
        self._rows: Tuple[AdvancementRow, ...] = ordered
        self._thresholds: List[int] = [r.xp_threshold for r in ordered]

    @property
    def rows(self) -> Tuple[AdvancementRow, ...]:
        return self._rows

    @property
    def thresholds(self) -> List[int]:
        return list(self._thresholds)

    @property
    def max_level(self) -> int:
        return self._rows[-1].level

    def row(self, level: int) -> AdvancementRow:
        """Row for an in-range level (1..max_level)."""
        return self._rows[level - 1]

    def index_for_xp(self, xp: int) -> int:
        """Index of the last row whose threshold is <= xp (0 when xp is below every threshold)."""
        return max(0, bisect_right(self._thresholds, xp) - 1)

    def __len__(self) -> int:
        return len(self._rows)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdvancementTable":
        rows = [
            AdvancementRow(
                level=int(item["level"]),
                xp_threshold=int(item["xp"]),
                proficiency=int(item["proficiency"]),
            )
            for item in data.get("levels", [])
        ]
        table = cls(rows)
        declared = data.get("max_level")
        if declared is not None and int(declared) != table.max_level:
            raise ValueError(f"max_level {declared} does not match table ({table.max_level})")
        return table

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "AdvancementTable":
        return cls.from_dict(_read_json(path or DEFAULT_ADVANCEMENT_PATH))


class RewardTable:
    """DM reward rows keyed by level; missing levels resolve to the nearest lower row."""

    def __init__(self, rows: Iterable[RewardRow]):
        by_level: Dict[int, RewardRow] = {}
        for row in rows:
            if row.level in by_level:
                raise ValueError(f"duplicate reward row for level {row.level}")
            by_level[row.level] = row
        if not by_level:
            raise ValueError("reward table is empty")
        self._by_level = by_level
        self._levels: List[int] = sorted(by_level)

    @property
    def levels(self) -> List[int]:
        return list(self._levels)

    def row_for(self, level: int) -> RewardRow:
        return self._by_level[nearest_defined_level_at_or_below(self._levels, level)]

    def get(self, level: int) -> Optional[RewardRow]:
        """Exact lookup without fallback."""
        return self._by_level.get(level)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RewardTable":
        return cls(
            RewardRow(
                level=int(item["level"]),
                tier=str(item.get("tier", "")),
                xp=int(item.get("xp", 0)),
                gp=float(item.get("gp", 0)),
                tp=float(item.get("tp", 0)),
            )
            for item in data.get("levels", [])
        )

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "RewardTable":
        return cls.from_dict(_read_json(path or DEFAULT_DM_REWARDS_PATH))
