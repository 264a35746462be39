# ledger_bot/services/service_loader.py
import logging
import time
from typing import Optional, Tuple

import discord

from ledger_bot.database.database_service import database_service
from ledger_bot.domain import AdvancementTable, RewardCalculator, RewardTable, XPEngine
from ledger_bot.services.ledger_service import LedgerService
from ledger_bot.services.logging_service import EmbedLogger, LogLevel
from ledger_bot.utils.config import Config

logger = logging.getLogger(__name__)

LEDGER_COGS = (
    "ledger_bot.cogs.admin",
    "ledger_bot.cogs.character_cog",
    "ledger_bot.cogs.xp_cog",
    "ledger_bot.cogs.resource_cog",
    "ledger_bot.cogs.trade_cog",
    "ledger_bot.cogs.reward_cog",
    "ledger_bot.cogs.lfg_cog",
    "ledger_bot.cogs.dm_cog",
)


def load_tables(config: Config) -> Tuple[AdvancementTable, RewardTable]:
    """Advancement and DM reward tables from the configured paths, else the packaged defaults."""
    advancement = AdvancementTable.from_file(config.advancement_table_path or None)
    rewards = RewardTable.from_file(config.dm_rewards_path or None)
    logger.info(
        f"Loaded advancement table ({advancement.max_level} levels) and DM rewards ({len(rewards.levels)} rows)"
    )
    return advancement, rewards


def build_ledger(pool, config: Config) -> LedgerService:
    advancement, reward_table = load_tables(config)
    engine = XPEngine(advancement)
    return LedgerService(pool, engine, RewardCalculator(engine, reward_table), dtp_rate=config.dtp_rate)


async def init_core_services(bot: discord.Client, config: Config) -> Tuple[Optional[EmbedLogger], LedgerService]:
    """Database, embed logger and ledger service, in that order."""
    t0 = time.monotonic()
    logger.info("Starting core services initialization...")

    # Logger object only; channel resolution waits for login
    embed_logger = None
    if config.admin_log_channel_id:
        embed_logger = EmbedLogger(bot, config.admin_log_channel_id)
        database_service.set_logger(embed_logger)
        logger.info(f"Embed logger created for channel {config.admin_log_channel_id} (setup deferred to post-login)")
    else:
        logger.info("Admin log channel not configured - running without embed logging")

    try:
        start = time.monotonic()
        await database_service.initialize()
        db_init_time = time.monotonic() - start
        logger.info(f"Database service initialized in {db_init_time:.2f}s")
    except Exception as e:
        logger.error(f"Failed to initialize database service: {e}")
        raise

    try:
        ledger = build_ledger(database_service.pool, config)
    except (OSError, ValueError, KeyError) as e:
        logger.error(f"Failed to load ledger tables: {e}")
        if embed_logger:
            await embed_logger.log_error(service="Service Loader", error=e, context="Ledger table load failed")
        raise

    total = time.monotonic() - t0
    logger.info(f"Core services initialization completed in {total:.2f}s")
    if embed_logger:
        await embed_logger.log_custom(
            service="Service Loader",
            title="Core Services Initialized",
            description="Database and ledger ready",
            level=LogLevel.SUCCESS,
            fields={
                "Database": f"Ready ({db_init_time:.2f}s)",
                "Max Level": str(ledger.engine.max_level),
                "DTP Rate": f"{config.dtp_rate:g}/day",
                "Total Init Time": f"{total:.2f}s",
            },
        )
    return embed_logger, ledger


async def load_ledger_cogs(bot) -> int:
    """Load every ledger cog extension; a failing cog is reported and skipped."""
    loaded = 0
    for ext in LEDGER_COGS:
        try:
            await bot.load_extension(ext)
            loaded += 1
        except Exception as e:
            logger.exception(f"Failed to load {ext}")
            if bot.embed_logger:
                await bot.embed_logger.log_error(service="Service Loader", error=e, context=f"Loading {ext}")
    logger.info(f"Loaded {loaded}/{len(LEDGER_COGS)} ledger cogs")
    return loaded
