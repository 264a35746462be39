# ledger_bot/database/queries/lfg_queries.py
from __future__ import annotations

from typing import Any, List, Mapping, Optional

import asyncpg

from ledger_bot.domain.lfg import LfgEntry, PurgeResult, PurgeScope, TierFlags, purge

_COLUMNS = "user_id, guild_id, name, started_at, low, mid, high, epic, pbp, updated_at"


def entry_from_record(row: Mapping[str, Any]) -> LfgEntry:
    return LfgEntry(
        player_id=int(row["user_id"]),
        guild_id=int(row["guild_id"]),
        display_name=row["name"],
        tiers=TierFlags(
            low=bool(row["low"]),
            mid=bool(row["mid"]),
            high=bool(row["high"]),
            epic=bool(row["epic"]),
            pbp=bool(row["pbp"]),
        ),
        started_at=int(row["started_at"]),
        updated_at=int(row["updated_at"]),
    )


class LfgQueries:
    @staticmethod
    async def ensure_schema(pool: asyncpg.Pool) -> None:
        async with pool.acquire() as conn:
            await conn.execute(
                """
            CREATE TABLE IF NOT EXISTS lfg_status(
              user_id BIGINT NOT NULL,
              guild_id BIGINT NOT NULL,
              name TEXT NOT NULL,
              started_at BIGINT NOT NULL DEFAULT 0,
              low BOOLEAN NOT NULL DEFAULT FALSE,
              mid BOOLEAN NOT NULL DEFAULT FALSE,
              high BOOLEAN NOT NULL DEFAULT FALSE,
              epic BOOLEAN NOT NULL DEFAULT FALSE,
              pbp BOOLEAN NOT NULL DEFAULT FALSE,
              updated_at BIGINT NOT NULL DEFAULT 0,
              PRIMARY KEY (guild_id, user_id)
            );
            """
            )

    @staticmethod
    async def _upsert(conn: asyncpg.Connection, entry: LfgEntry) -> None:
        t = entry.tiers
        await conn.execute(
            """
        INSERT INTO lfg_status(user_id, guild_id, name, started_at, low, mid, high, epic, pbp, updated_at)
        VALUES ($1,$2,$3,$4,$5,$6,$7,$8,$9,$10)
        ON CONFLICT (guild_id, user_id) DO UPDATE
           SET name=EXCLUDED.name, started_at=EXCLUDED.started_at,
               low=EXCLUDED.low, mid=EXCLUDED.mid, high=EXCLUDED.high,
               epic=EXCLUDED.epic, pbp=EXCLUDED.pbp, updated_at=EXCLUDED.updated_at
        """,
            entry.player_id,
            entry.guild_id,
            entry.display_name,
            entry.started_at,
            t.low,
            t.mid,
            t.high,
            t.epic,
            t.pbp,
            entry.updated_at,
        )

    @staticmethod
    async def get_entry(pool: asyncpg.Pool, guild_id: int, user_id: int) -> Optional[LfgEntry]:
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM lfg_status WHERE guild_id=$1 AND user_id=$2", guild_id, user_id
            )
        return entry_from_record(row) if row else None

    @staticmethod
    async def upsert_entry(pool: asyncpg.Pool, entry: LfgEntry) -> LfgEntry:
        """Store the entry; an entry with no tier flagged is deleted instead."""
        async with pool.acquire() as conn:
            if entry.tiers.any():
                await LfgQueries._upsert(conn, entry)
            else:
                await conn.execute(
                    "DELETE FROM lfg_status WHERE guild_id=$1 AND user_id=$2", entry.guild_id, entry.player_id
                )
        return entry

    @staticmethod
    async def delete_entry(pool: asyncpg.Pool, guild_id: int, user_id: int) -> bool:
        async with pool.acquire() as conn:
            res = await conn.execute("DELETE FROM lfg_status WHERE guild_id=$1 AND user_id=$2", guild_id, user_id)
        return res.endswith(" 1")

    @staticmethod
    async def list_entries(pool: asyncpg.Pool, guild_id: int) -> List[LfgEntry]:
        async with pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {_COLUMNS} FROM lfg_status WHERE guild_id=$1 ORDER BY started_at asc, user_id asc",
                guild_id,
            )
        return [entry_from_record(r) for r in rows]

    @staticmethod
    async def purge_before(
        pool: asyncpg.Pool, guild_id: int, cutoff_ms: int, scope: PurgeScope, now_ms: int
    ) -> PurgeResult:
        """Clear scoped flags on entries started before the cutoff, in one transaction."""
        async with pool.acquire() as conn:
            async with conn.transaction():
                rows = await conn.fetch(
                    f"""
                SELECT {_COLUMNS} FROM lfg_status
                 WHERE guild_id=$1 AND started_at < $2
                 FOR UPDATE
                """,
                    guild_id,
                    cutoff_ms,
                )
                result = purge((entry_from_record(r) for r in rows), cutoff_ms, scope, now_ms)
                for entry in result.updated:
                    await LfgQueries._upsert(conn, entry)
                if result.removed:
                    await conn.execute(
                        "DELETE FROM lfg_status WHERE guild_id=$1 AND user_id = ANY($2::bigint[])",
                        guild_id,
                        [e.player_id for e in result.removed],
                    )
        return result
