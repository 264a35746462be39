"""
Query layer against a fake asyncpg pool: transactions, audit events and purge writes.
"""

from dataclasses import replace

import asyncpg
import pytest

from ledger_bot.database.queries import CharacterQueries, LfgQueries
from ledger_bot.domain import InsufficientFunds, PurgeScope

from .conftest import NOW


def character_row(**overrides):
    row = dict(
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
        created_at=None,
    )
    row.update(overrides)
    return row


def lfg_row(user_id, started_at, **tiers):
    row = dict(user_id=user_id, guild_id=42, name=f"player{user_id}", started_at=started_at, updated_at=started_at)
    for tier in ("low", "mid", "high", "epic", "pbp"):
        row[tier] = tiers.get(tier, False)
    return row


def returned_update(sql, args):
    """Row an `UPDATE characters ... RETURNING` would give back for the bound args."""
    user_id, name, level, xp, cp, tp, dtp, dtp_updated, cc = args
    return character_row(
        user_id=user_id, name=name, level=level, xp=xp, cp=cp, tp=tp, dtp=dtp, dtp_updated=dtp_updated, cc=cc
    )


class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.log.append(("BEGIN",))
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.conn.log.append(("ROLLBACK",) if exc_type else ("COMMIT",))
        return False


class FakeConnection:
    """Records every statement; `fetchrow`/`fetch`/`fetchval` answers come from the handlers."""

    def __init__(self, fetchrow=None, fetch=None, fetchval=None):
        self.log = []
        self._fetchrow = fetchrow or (lambda sql, args: None)
        self._fetch = fetch or (lambda sql, args: [])
        self._fetchval = fetchval or (lambda sql, args: None)

    def transaction(self):
        return FakeTransaction(self)

    async def execute(self, sql, *args):
        self.log.append(("execute", " ".join(sql.split()), args))
        return "OK"

    async def fetchrow(self, sql, *args):
        self.log.append(("fetchrow", " ".join(sql.split()), args))
        return self._fetchrow(sql, args)

    async def fetch(self, sql, *args):
        self.log.append(("fetch", " ".join(sql.split()), args))
        return self._fetch(sql, args)

    async def fetchval(self, sql, *args):
        self.log.append(("fetchval", " ".join(sql.split()), args))
        return self._fetchval(sql, args)

    def statements(self, prefix):
        return [entry for entry in self.log if len(entry) == 3 and entry[1].startswith(prefix)]


class FakeAcquire:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        return self.conn

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakePool:
    def __init__(self, conn):
        self.conn = conn

    def acquire(self):
        return FakeAcquire(self.conn)


@pytest.mark.asyncio
class TestCreateCharacter:
    async def test_unique_violation_reads_as_duplicate(self):
        def insert_fails(sql, args):
            raise asyncpg.UniqueViolationError("duplicate key value violates unique constraint")

        conn = FakeConnection(fetchrow=insert_fails, fetchval=lambda sql, args: None)
        created = await CharacterQueries.create_character(
            FakePool(conn), 111, "Aria", level=1, xp=0, cp=0, tp=0, dtp_updated=NOW
        )
        assert created is None
        assert conn.log[-1] == ("ROLLBACK",)
        assert conn.statements("INSERT INTO ledger_events") == []

    async def test_existing_name_returns_none_without_writes(self):
        conn = FakeConnection(fetchval=lambda sql, args: 1)
        created = await CharacterQueries.create_character(
            FakePool(conn), 111, "Aria", level=1, xp=0, cp=0, tp=0, dtp_updated=NOW
        )
        assert created is None
        assert conn.statements("UPDATE") == []
        assert conn.statements("INSERT") == []

    async def test_new_character_is_recorded(self):
        conn = FakeConnection(fetchrow=lambda sql, args: character_row(xp=300, level=2))
        created = await CharacterQueries.create_character(
            FakePool(conn), 111, "Aria", level=2, xp=300, cp=0, tp=1, dtp_updated=NOW, actor_id=9
        )
        assert created.xp == 300
        (event,) = conn.statements("INSERT INTO ledger_events")
        assert event[2][:4] == (111, "Aria", 9, "initiate")
        assert conn.log[-1] == ("COMMIT",)


@pytest.mark.asyncio
class TestMutateCharacter:
    def connection(self, row):
        def fetchrow(sql, args):
            if sql.lstrip().startswith("SELECT"):
                return row
            return returned_update(sql, args)

        return FakeConnection(fetchrow=fetchrow)

    async def test_change_writes_update_and_event(self):
        conn = self.connection(character_row(xp=10))
        before, after = await CharacterQueries.mutate_character(
            FakePool(conn), 111, None, lambda ch: replace(ch, xp=60), kind="xp_add", actor_id=5
        )
        assert (before.xp, after.xp) == (10, 60)
        assert "FOR UPDATE" in conn.log[1][1]
        (event,) = conn.statements("INSERT INTO ledger_events")
        assert event[2][3:5] == ("xp_add", 50)

    async def test_unchanged_row_records_no_event(self):
        conn = self.connection(character_row(xp=10))
        before, after = await CharacterQueries.mutate_character(
            FakePool(conn), 111, "Aria", lambda ch: ch, kind="dtp_accrue"
        )
        assert before == after
        assert len(conn.statements("UPDATE characters")) == 1
        assert conn.statements("INSERT INTO ledger_events") == []

    async def test_error_from_fn_skips_update(self):
        def refuse(ch):
            raise InsufficientFunds("GP", "0", "5")

        conn = self.connection(character_row())
        with pytest.raises(InsufficientFunds):
            await CharacterQueries.mutate_character(FakePool(conn), 111, None, refuse, kind="gp_spend")
        assert conn.statements("UPDATE") == []
        assert conn.statements("INSERT") == []
        assert conn.log[-1] == ("ROLLBACK",)

    async def test_missing_row(self):
        conn = FakeConnection()
        assert await CharacterQueries.mutate_character(FakePool(conn), 111, None, lambda ch: ch, kind="x") is None
        assert conn.statements("UPDATE") == []


@pytest.mark.asyncio
class TestMutateCharacters:
    def connection(self, rows):
        return FakeConnection(fetch=lambda sql, args: rows, fetchrow=returned_update)

    async def test_missing_user_writes_nothing(self):
        conn = self.connection([character_row(user_id=1, name="A")])
        pairs, missing = await CharacterQueries.mutate_characters(
            FakePool(conn), [1, 2], lambda ch: ch, kind="reward_custom"
        )
        assert (pairs, missing) == ([], [2])
        assert conn.statements("UPDATE") == []
        assert conn.statements("INSERT") == []

    async def test_all_rows_updated_in_one_transaction(self):
        conn = self.connection([character_row(user_id=2, name="B"), character_row(user_id=1, name="A")])

        def add_xp(ch):
            return replace(ch, xp=ch.xp + 100)

        pairs, missing = await CharacterQueries.mutate_characters(
            FakePool(conn), [1, 2], add_xp, kind="reward_custom", actor_id=9, reason="quest"
        )
        assert missing == []
        assert [after.user_id for _, after in pairs] == [1, 2]
        assert [after.xp for _, after in pairs] == [100, 100]
        (select,) = conn.statements("SELECT")
        assert "ANY($1::bigint[])" in select[1] and "FOR UPDATE" in select[1]
        assert len(conn.statements("INSERT INTO ledger_events")) == 2
        assert [e for e in conn.log if len(e) == 1] == [("BEGIN",), ("COMMIT",)]

    async def test_error_for_one_recipient_rolls_back(self):
        conn = self.connection([character_row(user_id=1, name="A"), character_row(user_id=2, name="B")])

        def refuse_second(ch):
            if ch.user_id == 2:
                raise InsufficientFunds("GT", "0", "1")
            return replace(ch, tp=1.0)

        with pytest.raises(InsufficientFunds):
            await CharacterQueries.mutate_characters(FakePool(conn), [1, 2], refuse_second, kind="reward_custom")
        assert conn.log[-1] == ("ROLLBACK",)


@pytest.mark.asyncio
class TestPurgeBefore:
    async def test_only_emptied_entries_are_deleted(self):
        rows = [
            lfg_row(1, 100, low=True),
            lfg_row(2, 200, mid=True, pbp=True),
            lfg_row(3, 300, pbp=True),
        ]
        conn = FakeConnection(fetch=lambda sql, args: rows)
        result = await LfgQueries.purge_before(FakePool(conn), 42, 1000, PurgeScope.ALL, 5000)

        assert [e.player_id for e in result.removed] == [1]
        assert [e.player_id for e in result.updated] == [2]

        (delete,) = conn.statements("DELETE")
        assert "ANY($2::bigint[])" in delete[1]
        assert delete[2] == (42, [1])

        (upsert,) = conn.statements("INSERT INTO lfg_status")
        user_id, guild_id, _, started_at, low, mid, high, epic, pbp, updated_at = upsert[2]
        assert (user_id, guild_id, started_at) == (2, 42, 200)
        assert (low, mid, high, epic, pbp) == (False, False, False, False, True)
        assert updated_at == 5000

    async def test_nothing_removed_issues_no_delete(self):
        conn = FakeConnection(fetch=lambda sql, args: [lfg_row(3, 300, pbp=True)])
        result = await LfgQueries.purge_before(FakePool(conn), 42, 1000, PurgeScope.ALL, 5000)
        assert result.affected == ()
        assert conn.statements("DELETE") == []
        assert conn.statements("INSERT") == []
        select = conn.statements("SELECT")[0]
        assert select[2] == (42, 1000)
