#!/usr/bin/env python3
"""
scripts/check_database.py
Check database connection, ensure the ledger schema and print table counts
"""

import asyncio
import logging
import sys

import asyncpg

from ledger_bot.database.database_service import database_service
from ledger_bot.database.queries import CharacterQueries
from ledger_bot.utils.config import Config

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TABLES = ("characters", "ledger_events", "lfg_status", "guild_state")


async def check_database() -> bool:
    config = Config()

    print("Guild Ledger Bot - Database Health Check")
    print("=" * 50)
    print(f"Host: {config.db_host}")
    print(f"Port: {config.db_port}")
    print(f"Database: {config.db_name}")
    print(f"User: {config.db_user}")
    print()

    try:
        pool = await database_service.initialize()
        print("✅ Database service initialized, schema ensured")

        async with pool.acquire() as conn:
            version = await conn.fetchval("SELECT version()")
            print(f"✅ PostgreSQL Version: {version.split(',')[0]}")
            print(f"✅ Connected to database: {await conn.fetchval('SELECT current_database()')}")
            for table in TABLES:
                count = await conn.fetchval(f"SELECT COUNT(*) FROM {table}")
                print(f"   - {table}: {count} row(s)")

        counts = await CharacterQueries.count_characters(pool)
        print(f"✅ Characters: {counts['total']} total, {counts['active']} active, {counts['players']} players")

        healthy = await database_service.health_check()
        print("\n✅ Database health check passed!" if healthy else "\n❌ Health check query failed")
        return healthy
    except (OSError, asyncpg.PostgresError, RuntimeError) as e:
        print(f"❌ Database health check failed: {e}")
        return False
    finally:
        await database_service.close()


async def main():
    success = await check_database()
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
