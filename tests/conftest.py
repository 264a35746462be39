"""
Shared fixtures: packaged tables, engines, character factory and a fake row store
standing in for the asyncpg query layer.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

import pytest

from ledger_bot.database.models import Character
from ledger_bot.database.queries import CharacterQueries
from ledger_bot.domain import (
    AdvancementRow,
    AdvancementTable,
    RewardCalculator,
    RewardRow,
    RewardTable,
    XPEngine,
)
from ledger_bot.services.ledger_service import LedgerService

DAY = 86400
# A bucket-aligned "now" for a one-per-day rate
NOW = 1_700_006_400


@pytest.fixture
def advancement() -> AdvancementTable:
    return AdvancementTable.from_file()


@pytest.fixture
def engine(advancement) -> XPEngine:
    return XPEngine(advancement)


@pytest.fixture
def reward_table() -> RewardTable:
    return RewardTable.from_file()


@pytest.fixture
def calculator(engine, reward_table) -> RewardCalculator:
    return RewardCalculator(engine, reward_table)


@pytest.fixture
def small_table() -> AdvancementTable:
    """Three levels: 0 / 300 / 900 XP."""
    return AdvancementTable(
        [
            AdvancementRow(level=1, xp_threshold=0, proficiency=2),
            AdvancementRow(level=2, xp_threshold=300, proficiency=2),
            AdvancementRow(level=3, xp_threshold=900, proficiency=3),
        ]
    )


@pytest.fixture
def gappy_rewards() -> RewardTable:
    """Reward rows only at levels 2 and 5."""
    return RewardTable(
        [
            RewardRow(level=2, tier="low", xp=101, gp=10.05, tp=1),
            RewardRow(level=5, tier="mid", xp=500, gp=75, tp=3),
        ]
    )


def make_character(**overrides) -> Character:
    fields = dict(
        user_id=111,
        name="Aria",
        level=1,
        xp=0,
        cp=0,
        tp=0.0,
        dtp=0.0,
        dtp_updated=NOW,
        cc=0,
        active=True,
    )
    fields.update(overrides)
    return Character(**fields)


@pytest.fixture
def character_factory():
    return make_character


class FakeRows:
    """In-memory rows keyed by (user_id, name); mirrors CharacterQueries' lookup rules."""

    def __init__(self):
        self.rows: Dict[Tuple[int, str], Character] = {}
        self.events = []

    def add(self, ch: Character) -> Character:
        self.rows[(ch.user_id, ch.name)] = ch
        return ch

    def find(self, user_id: int, name: Optional[str]) -> Optional[Character]:
        if name:
            return self.rows.get((user_id, name))
        for ch in self.rows.values():
            if ch.user_id == user_id and ch.active:
                return ch
        return None

    async def get_character(self, pool, user_id, name=None):
        return self.find(user_id, name)

    async def mutate_character(self, pool, user_id, name, fn, *, kind, actor_id=None, reason=None):
        before = self.find(user_id, name)
        if before is None:
            return None
        after = fn(before)
        self.rows[(after.user_id, after.name)] = after
        self.events.append((kind, user_id, after.name, actor_id, reason))
        return before, after

    async def mutate_characters(self, pool, user_ids, fn, *, kind, actor_id=None, reason=None):
        locked = {uid: self.find(uid, None) for uid in user_ids}
        missing = [uid for uid, ch in locked.items() if ch is None]
        if missing:
            return [], missing
        # every fn runs before anything is stored, like a single transaction
        pairs = [(locked[uid], fn(locked[uid])) for uid in user_ids]
        for before, after in pairs:
            self.rows[(after.user_id, after.name)] = after
            self.events.append((kind, before.user_id, after.name, actor_id, reason))
        return pairs, []


@pytest.fixture
def fake_rows(mocker) -> FakeRows:
    rows = FakeRows()
    mocker.patch.object(CharacterQueries, "get_character", side_effect=rows.get_character)
    mocker.patch.object(CharacterQueries, "mutate_character", side_effect=rows.mutate_character)
    mocker.patch.object(CharacterQueries, "mutate_characters", side_effect=rows.mutate_characters)
    return rows


@pytest.fixture
def ledger(engine, calculator, fake_rows) -> LedgerService:
    return LedgerService(pool=object(), engine=engine, rewards=calculator, dtp_rate=1.0, clock=lambda: NOW)
