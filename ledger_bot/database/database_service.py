"""
ledger_bot/database/database_service.py
asyncpg pool for the ledger: waits for PostgreSQL, opens the pool, ensures every table exists
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

import asyncpg
import discord

from ..services.logging_service import LogLevel
from ..utils.config import Config
from .queries import ALL_QUERIES

logger = logging.getLogger(__name__)

CONNECT_ATTEMPTS = 30
CONNECT_DELAY_SECONDS = 1.0
COMMAND_TIMEOUT_SECONDS = 60


@dataclass
class PoolCounters:
    connects_ok: int = 0
    connects_failed: int = 0
    health_checks_ok: int = 0
    health_checks_failed: int = 0
    started_at: Optional[datetime] = field(default=None)


class DatabaseService:
    """Owns the single asyncpg pool shared by the ledger service and the cogs"""

    def __init__(self, config: Config):
        self.config = config
        self.pool: Optional[asyncpg.Pool] = None
        self.embed_logger = None
        self.counters = PoolCounters()

    def set_logger(self, embed_logger):
        self.embed_logger = embed_logger

    @property
    def target(self) -> str:
        c = self.config
        return f"{c.db_name}@{c.db_host}:{c.db_port}"

    def _connect_kwargs(self) -> Dict[str, Any]:
        c = self.config
        return dict(host=c.db_host, port=c.db_port, user=c.db_user, password=c.db_password, database=c.db_name)

    async def initialize(self) -> asyncpg.Pool:
        """Wait for PostgreSQL, open the pool and run every ensure_schema."""
        started = discord.utils.utcnow()
        self.counters.started_at = started
        logger.info(f"Connecting to {self.target}")

        try:
            await self._wait_until_reachable()
            self.pool = await self._open_pool()
            for queries in ALL_QUERIES:
                await queries.ensure_schema(self.pool)
                logger.debug(f"Schema ensured for {queries.__name__}")
        except Exception as e:
            elapsed = (discord.utils.utcnow() - started).total_seconds()
            logger.error(f"Database initialization failed after {elapsed:.2f}s: {e}")
            if self.embed_logger:
                await self.embed_logger.log_error(
                    service="Database Service", error=e, context=f"Initialization of {self.target} failed"
                )
            raise

        elapsed = (discord.utils.utcnow() - started).total_seconds()
        logger.info(f"Database ready in {elapsed:.2f}s ({len(ALL_QUERIES)} schema modules)")
        if self.embed_logger:
            await self.embed_logger.log_custom(
                service="Database Service",
                title="Ledger Database Ready",
                description="Pool open and schema ensured",
                level=LogLevel.DATABASE,
                fields={
                    "Took": f"{elapsed:.2f}s",
                    "Pool": f"{self.config.db_pool_min}-{self.config.db_pool_max}",
                    "Database": self.target,
                },
            )
        return self.pool

    async def _wait_until_reachable(self):
        """The database container may still be starting; poll with a plain connection first."""
        last_error: Optional[BaseException] = None
        for attempt in range(1, CONNECT_ATTEMPTS + 1):
            try:
                conn = await asyncpg.connect(**self._connect_kwargs())
            except (OSError, asyncpg.PostgresError, asyncio.TimeoutError) as e:
                last_error = e
                self.counters.connects_failed += 1
                logger.info(f"Database not reachable ({attempt}/{CONNECT_ATTEMPTS}): {e}")
                await asyncio.sleep(CONNECT_DELAY_SECONDS)
                continue
            try:
                version = await conn.fetchval("SELECT version()")
            finally:
                await conn.close()
            self.counters.connects_ok += 1
            logger.info(f"PostgreSQL reachable: {version.split(',')[0]}")
            return
        logger.error(f"Gave up on {self.target} after {CONNECT_ATTEMPTS} attempts")
        raise last_error

    async def _open_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(
            **self._connect_kwargs(),
            min_size=self.config.db_pool_min,
            max_size=self.config.db_pool_max,
            command_timeout=COMMAND_TIMEOUT_SECONDS,
        )
        async with pool.acquire() as conn:
            current_db = await conn.fetchval("SELECT current_database()")
        if current_db != self.config.db_name:
            await pool.close()
            raise RuntimeError(f"Connected to {current_db!r}, expected {self.config.db_name!r}")
        self.counters.connects_ok += 1
        return pool

    async def close(self):
        if self.pool is None:
            return
        try:
            await self.pool.close()
            logger.info("Database pool closed")
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Error closing database pool: {e}")
        finally:
            self.pool = None

    async def health_check(self) -> bool:
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncpg.PostgresError, asyncio.TimeoutError) as e:
            self.counters.health_checks_failed += 1
            logger.error(f"Database health check failed: {e}")
            if self.embed_logger:
                await self.embed_logger.log_error(
                    service="Database Service", error=e, context="Health check query failed"
                )
            return False
        self.counters.health_checks_ok += 1
        return True

    async def get_stats(self) -> Dict[str, Any]:
        c = self.counters
        stats: Dict[str, Any] = {
            "connects_ok": c.connects_ok,
            "connects_failed": c.connects_failed,
            "health_checks_ok": c.health_checks_ok,
            "health_checks_failed": c.health_checks_failed,
        }
        if c.started_at is not None:
            stats["started_at"] = c.started_at.isoformat()
            stats["uptime_seconds"] = (discord.utils.utcnow() - c.started_at).total_seconds()
        if self.pool is None:
            return stats

        stats["pool_size"] = self.pool.get_size()
        stats["pool_min_size"] = self.pool.get_min_size()
        stats["pool_max_size"] = self.pool.get_max_size()
        try:
            async with self.pool.acquire() as conn:
                stats["database_size"] = await conn.fetchval(
                    "SELECT pg_size_pretty(pg_database_size($1))", self.config.db_name
                )
                stats["active_connections"] = await conn.fetchval(
                    "SELECT count(*) FROM pg_stat_activity WHERE datname = $1", self.config.db_name
                )
        except (asyncpg.PostgresError, OSError) as e:
            stats["stats_error"] = str(e)
        return stats


database_service = DatabaseService(Config())

__all__ = ["DatabaseService", "PoolCounters", "database_service"]
