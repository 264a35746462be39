# ledger_bot/database/queries/guild_state_queries.py
from __future__ import annotations

from typing import Optional

import asyncpg


class GuildStateQueries:
    """Small per-guild key/value store (e.g. the LFG board message id)."""

    @staticmethod
    async def ensure_schema(pool: asyncpg.Pool) -> None:
        async with pool.acquire() as conn:
            await conn.execute(
                """
            CREATE TABLE IF NOT EXISTS guild_state(
              guild_id BIGINT NOT NULL,
              key TEXT NOT NULL,
              value TEXT NOT NULL,
              updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
              PRIMARY KEY (guild_id, key)
            );
            """
            )

    @staticmethod
    async def get_value(pool: asyncpg.Pool, guild_id: int, key: str) -> Optional[str]:
        async with pool.acquire() as conn:
            return await conn.fetchval("SELECT value FROM guild_state WHERE guild_id=$1 AND key=$2", guild_id, key)

    @staticmethod
    async def set_value(pool: asyncpg.Pool, guild_id: int, key: str, value: str) -> None:
        async with pool.acquire() as conn:
            await conn.execute(
                """
            INSERT INTO guild_state(guild_id, key, value) VALUES ($1,$2,$3)
            ON CONFLICT (guild_id, key) DO UPDATE SET value=EXCLUDED.value, updated_at=now()
            """,
                guild_id,
                key,
                value,
            )

    @staticmethod
    async def delete_value(pool: asyncpg.Pool, guild_id: int, key: str) -> None:
        async with pool.acquire() as conn:
            await conn.execute("DELETE FROM guild_state WHERE guild_id=$1 AND key=$2", guild_id, key)
