# ledger_bot/database/queries/character_queries.py
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

import asyncpg

from ..models.character import Character
from ..models.ledger_event import LedgerEvent

_COLUMNS = "user_id, name, level, xp, cp, tp, dtp, dtp_updated, cc, active, created_at"

_EVENT_COLUMNS = {"xp": "delta_xp", "cp": "delta_cp", "tp": "delta_tp", "dtp": "delta_dtp", "cc": "delta_cc"}


class CharacterQueries:
    @staticmethod
    async def ensure_schema(pool: asyncpg.Pool) -> None:
        async with pool.acquire() as conn:
            await conn.execute(
                """
            CREATE TABLE IF NOT EXISTS characters(
              user_id BIGINT NOT NULL,
              name TEXT NOT NULL,
              level INT NOT NULL DEFAULT 1,
              xp BIGINT NOT NULL DEFAULT 0,
              cp BIGINT NOT NULL DEFAULT 0,
              tp DOUBLE PRECISION NOT NULL DEFAULT 0,
              dtp DOUBLE PRECISION NOT NULL DEFAULT 0,
              dtp_updated BIGINT NOT NULL DEFAULT 0,
              cc BIGINT NOT NULL DEFAULT 0,
              active BOOLEAN NOT NULL DEFAULT TRUE,
              created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
              PRIMARY KEY (user_id, name)
            );
            """
            )
            await conn.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_characters_one_active ON characters(user_id) WHERE active;"
            )
            await conn.execute(
                """
            CREATE TABLE IF NOT EXISTS ledger_events(
              id BIGSERIAL PRIMARY KEY,
              user_id BIGINT NOT NULL,
              name TEXT NOT NULL,
              actor_id BIGINT,
              kind TEXT NOT NULL,
              delta_xp BIGINT NOT NULL DEFAULT 0,
              delta_cp BIGINT NOT NULL DEFAULT 0,
              delta_tp DOUBLE PRECISION NOT NULL DEFAULT 0,
              delta_dtp DOUBLE PRECISION NOT NULL DEFAULT 0,
              delta_cc BIGINT NOT NULL DEFAULT 0,
              reason TEXT,
              at TIMESTAMPTZ NOT NULL DEFAULT now()
            );
            """
            )
            await conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_ledger_events_user_at ON ledger_events(user_id, at desc);"
            )

    @staticmethod
    async def _fetch_row(
        conn: asyncpg.Connection, user_id: int, name: Optional[str], *, lock: bool = False
    ) -> Optional[asyncpg.Record]:
        suffix = " FOR UPDATE" if lock else ""
        if name:
            return await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM characters WHERE user_id=$1 AND name=$2{suffix}", user_id, name
            )
        return await conn.fetchrow(
            f"SELECT {_COLUMNS} FROM characters WHERE user_id=$1 AND active{suffix}", user_id
        )

    @staticmethod
    async def _record_event(
        conn: asyncpg.Connection,
        user_id: int,
        name: str,
        kind: str,
        deltas: Dict[str, float],
        *,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        await conn.execute(
            """
        INSERT INTO ledger_events(user_id, name, actor_id, kind, delta_xp, delta_cp, delta_tp, delta_dtp, delta_cc, reason)
        VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9,$10)
        """,
            user_id,
            name,
            actor_id,
            kind,
            int(deltas.get("xp", 0)),
            int(deltas.get("cp", 0)),
            float(deltas.get("tp", 0)),
            float(deltas.get("dtp", 0)),
            int(deltas.get("cc", 0)),
            reason,
        )

    @staticmethod
    async def get_character(pool: asyncpg.Pool, user_id: int, name: Optional[str] = None) -> Optional[Character]:
        """Named character, or the user's active one when name is empty."""
        async with pool.acquire() as conn:
            row = await CharacterQueries._fetch_row(conn, user_id, name)
        return Character.from_record(row) if row else None

    @staticmethod
    async def list_characters(pool: asyncpg.Pool, user_id: int) -> List[Character]:
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM characters WHERE user_id=$1 ORDER BY created_at, name", user_id
            )
        return [Character.from_record(r) for r in rows]

    @staticmethod
    async def list_names(pool: asyncpg.Pool, user_id: int) -> List[str]:
        async with pool.acquire() as conn:
            rows = await conn.fetch("SELECT name FROM characters WHERE user_id=$1 ORDER BY name", user_id)
        return [r["name"] for r in rows]

    @staticmethod
    async def count_characters(pool: asyncpg.Pool) -> Dict[str, int]:
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT count(*) AS total, count(*) FILTER (WHERE active) AS active, count(DISTINCT user_id) AS players FROM characters"
            )
        return {"total": int(row["total"]), "active": int(row["active"]), "players": int(row["players"])}

    @staticmethod
    async def create_character(
        pool: asyncpg.Pool,
        user_id: int,
        name: str,
        *,
        level: int,
        xp: int,
        cp: int,
        tp: float,
        dtp_updated: int,
        actor_id: Optional[int] = None,
    ) -> Optional[Character]:
        """Insert a new active character; returns None if the user already has one with that name."""
        async with pool.acquire() as conn:
            try:
                async with conn.transaction():
                    exists = await conn.fetchval(
                        "SELECT 1 FROM characters WHERE user_id=$1 AND name=$2", user_id, name
                    )
                    if exists:
                        return None
                    await conn.execute("UPDATE characters SET active=FALSE WHERE user_id=$1 AND active", user_id)
                    row = await conn.fetchrow(
                        f"""
                    INSERT INTO characters(user_id, name, level, xp, cp, tp, dtp, dtp_updated, cc, active)
                    VALUES ($1,$2,$3,$4,$5,$6,0,$7,0,TRUE)
                    RETURNING {_COLUMNS}
                    """,
                        user_id,
                        name,
                        level,
                        xp,
                        cp,
                        float(tp),
                        dtp_updated,
                    )
                    await CharacterQueries._record_event(
                        conn, user_id, name, "initiate", {"xp": xp, "cp": cp, "tp": tp}, actor_id=actor_id
                    )
            except asyncpg.UniqueViolationError:
                # a concurrent create won the name or the active slot
                return None
        return Character.from_record(row)

    @staticmethod
    async def set_active(pool: asyncpg.Pool, user_id: int, name: str) -> Optional[Character]:
        async with pool.acquire() as conn:
            async with conn.transaction():
                exists = await conn.fetchval(
                    "SELECT 1 FROM characters WHERE user_id=$1 AND name=$2 FOR UPDATE", user_id, name
                )
                if not exists:
                    return None
                await conn.execute(
                    "UPDATE characters SET active=FALSE WHERE user_id=$1 AND name<>$2 AND active", user_id, name
                )
                row = await conn.fetchrow(
                    f"UPDATE characters SET active=TRUE WHERE user_id=$1 AND name=$2 RETURNING {_COLUMNS}",
                    user_id,
                    name,
                )
        return Character.from_record(row)

    @staticmethod
    async def retire_character(
        pool: asyncpg.Pool, user_id: int, name: Optional[str] = None, *, actor_id: Optional[int] = None
    ) -> Tuple[Optional[Character], bool]:
        """
        Delete a character. When the active one goes, the oldest remaining character becomes active.
        Returns (retired character or None, whether it was the user's last character).
        """
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await CharacterQueries._fetch_row(conn, user_id, name, lock=True)
                if not row:
                    return None, False
                retired = Character.from_record(row)
                await conn.execute("DELETE FROM characters WHERE user_id=$1 AND name=$2", user_id, retired.name)
                await CharacterQueries._record_event(
                    conn,
                    user_id,
                    retired.name,
                    "retire",
                    {"xp": -retired.xp, "cp": -retired.cp, "tp": -retired.tp, "dtp": -retired.dtp, "cc": -retired.cc},
                    actor_id=actor_id,
                )
                remaining = await conn.fetchval("SELECT count(*) FROM characters WHERE user_id=$1", user_id)
                if remaining and retired.active:
                    await conn.execute(
                        """
                    UPDATE characters SET active=TRUE
                     WHERE user_id=$1
                       AND name = (SELECT name FROM characters WHERE user_id=$1 ORDER BY created_at, name LIMIT 1)
                    """,
                        user_id,
                    )
        return retired, not remaining

    @staticmethod
    async def mutate_character(
        pool: asyncpg.Pool,
        user_id: int,
        name: Optional[str],
        fn: Callable[[Character], Character],
        *,
        kind: str,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Optional[Tuple[Character, Character]]:
        """
        Row-locked read-modify-write: `fn` receives the locked row and returns the new one.
        Exceptions from `fn` roll the transaction back and propagate.
        """
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await CharacterQueries._fetch_row(conn, user_id, name, lock=True)
                if not row:
                    return None
                return await CharacterQueries._write_locked(
                    conn, Character.from_record(row), fn, kind=kind, actor_id=actor_id, reason=reason
                )

    @staticmethod
    async def mutate_characters(
        pool: asyncpg.Pool,
        user_ids: List[int],
        fn: Callable[[Character], Character],
        *,
        kind: str,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> Tuple[List[Tuple[Character, Character]], List[int]]:
        """
        Apply `fn` to the active character of every user in one transaction.
        Returns ((before, after) per user in the given order, users with no active character).
        If any user is missing nothing is written; an exception from `fn` rolls every row back.
        """
        async with pool.acquire() as conn:
            async with conn.transaction():
                rows = await conn.fetch(
                    f"SELECT {_COLUMNS} FROM characters WHERE user_id = ANY($1::bigint[]) AND active "
                    "ORDER BY user_id FOR UPDATE",
                    list(user_ids),
                )
                by_user = {r["user_id"]: Character.from_record(r) for r in rows}
                missing = [uid for uid in user_ids if uid not in by_user]
                if missing:
                    return [], missing
                changes = []
                for uid in user_ids:
                    changes.append(
                        await CharacterQueries._write_locked(
                            conn, by_user[uid], fn, kind=kind, actor_id=actor_id, reason=reason
                        )
                    )
        return changes, []

    @staticmethod
    async def _write_locked(
        conn: asyncpg.Connection,
        before: Character,
        fn: Callable[[Character], Character],
        *,
        kind: str,
        actor_id: Optional[int],
        reason: Optional[str],
    ) -> Tuple[Character, Character]:
        after = fn(before)
        out = await conn.fetchrow(
            f"""
        UPDATE characters
           SET level=$3, xp=$4, cp=$5, tp=$6, dtp=$7, dtp_updated=$8, cc=$9
         WHERE user_id=$1 AND name=$2
        RETURNING {_COLUMNS}
        """,
            before.user_id,
            before.name,
            after.level,
            after.xp,
            after.cp,
            float(after.tp),
            float(after.dtp),
            after.dtp_updated,
            after.cc,
        )
        deltas = {col: getattr(after, col) - getattr(before, col) for col in _EVENT_COLUMNS}
        if any(deltas.values()):
            await CharacterQueries._record_event(
                conn, before.user_id, before.name, kind, deltas, actor_id=actor_id, reason=reason
            )
        return before, Character.from_record(out)

    @staticmethod
    async def recent_events(pool: asyncpg.Pool, user_id: int, limit: int = 10) -> List[LedgerEvent]:
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT * FROM ledger_events WHERE user_id=$1 ORDER BY at DESC LIMIT $2", user_id, limit
            )
        return [LedgerEvent.from_record(r) for r in rows]
