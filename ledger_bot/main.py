"""
ledger_bot/main.py
Bootstrap: open the ledger database, load cogs once logged in, sync slash commands to the guild
"""
import asyncio
import logging
import sys
from typing import List, Optional

import discord
from discord import app_commands
from discord.ext import commands

from ledger_bot.database.database_service import database_service
from ledger_bot.services.ledger_service import LedgerService
from ledger_bot.services.logging_service import EmbedLogger, LogLevel
from ledger_bot.services.service_loader import init_core_services, load_ledger_cogs
from ledger_bot.utils.config import Config
from ledger_bot.utils.interactions import command_name, report_failure, send_ephemeral
from ledger_bot.utils.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


def _uptime_text(seconds: float) -> str:
    return f"{seconds // 3600:.0f}h {(seconds % 3600) // 60:.0f}m"


class LedgerBot(commands.Bot):
    def __init__(self, config: Config):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True  # role sync and /dm list
        super().__init__(command_prefix=config.command_prefix, intents=intents)
        self.config = config
        self.db_service = database_service
        self.embed_logger: Optional[EmbedLogger] = None
        self.ledger: Optional[LedgerService] = None
        self.started_at = None
        self.tree.on_error = self.on_app_command_error

    async def setup_hook(self):
        self.started_at = discord.utils.utcnow()
        # Database and ledger only; channels and roles are not visible before login
        try:
            self.embed_logger, self.ledger = await init_core_services(self, self.config)
        except Exception:
            logger.exception("Ledger services could not start")
            raise
        logger.info("Ledger services ready")
        asyncio.create_task(self._after_login())

    async def _after_login(self):
        await self.wait_until_ready()

        if self.embed_logger:
            try:
                await self.embed_logger.setup()
            except discord.HTTPException as e:
                logger.warning(f"Admin audit log unavailable: {e}")

        try:
            problems = await self._missing_config_entities()
        except discord.HTTPException as e:
            logger.warning(f"Could not verify configured channels and roles: {e}")
            problems = None
        if problems is not None:
            await self._report_config_check(problems)

        loaded = await load_ledger_cogs(self)
        if self.embed_logger:
            await self.embed_logger.log_custom(
                service="Bot Startup",
                title="Ledger Cogs Loaded",
                description=f"{loaded} cog(s) active",
                level=LogLevel.SUCCESS,
                fields={"Cogs": ", ".join(self.cogs) or "none"},
            )

        await self._sync_commands()

    async def _missing_config_entities(self) -> List[str]:
        """Every configured `*_channel_id` / `*_role_id` that does not resolve."""
        cfg = self.config
        guild = self.get_guild(cfg.guild_id) if cfg.guild_id else None
        problems = [] if guild else [f"guild {cfg.guild_id}"]

        for name, value in vars(cfg).items():
            if not isinstance(value, int) or isinstance(value, bool) or not value:
                continue
            if name.endswith("_channel_id"):
                if self.get_channel(value) is not None:
                    continue
                try:
                    await self.fetch_channel(value)
                except (discord.NotFound, discord.Forbidden):
                    problems.append(f"{name} {value}")
            elif name.endswith("_role_id"):
                if guild is None or guild.get_role(value) is None:
                    problems.append(f"{name} {value}")
        return problems

    async def _report_config_check(self, problems: List[str]):
        if problems:
            logger.warning(f"Unresolved config entries: {', '.join(problems)}")
        else:
            logger.info("All configured channels and roles resolved")
        if self.embed_logger:
            await self.embed_logger.log_custom(
                service="Config Validator",
                title="Configured IDs Checked" if not problems else "Configured IDs Missing",
                description="\n".join(problems) if problems else "Every channel and role id resolved",
                level=LogLevel.WARNING if problems else LogLevel.SUCCESS,
            )

    async def _sync_commands(self):
        """Guild sync always; global sync only when SYNC_GLOBAL_COMMANDS is set."""
        counts = {}
        try:
            counts["Guild"] = len(await self.tree.sync(guild=discord.Object(id=self.config.guild_id)))
            if self.config.sync_global_commands:
                counts["Global"] = len(await self.tree.sync())
        except (discord.HTTPException, app_commands.AppCommandError) as e:
            logger.exception("Command sync failed")
            if self.embed_logger:
                await self.embed_logger.log_error(service="Bot Startup", error=e, context="Command sync at startup")
            return
        logger.info(f"Commands synced: {counts}")
        if self.embed_logger:
            await self.embed_logger.log_custom(
                service="Bot Startup",
                title="Commands Synced",
                description=f"Guild {self.config.guild_id}",
                level=LogLevel.SUCCESS,
                fields={k: str(v) for k, v in counts.items()},
            )

    async def on_ready(self):
        took = (discord.utils.utcnow() - self.started_at).total_seconds() if self.started_at else None
        logger.info(f"Ready as {self.user} in {len(self.guilds)} guild(s)")
        await self.change_presence(
            activity=discord.Activity(type=discord.ActivityType.watching, name="the guild ledger")
        )
        if self.embed_logger:
            await self.embed_logger.log_custom(
                service="Bot Status",
                title="Ledger Online",
                description=f"{self.user.mention} is keeping the ledger",
                level=LogLevel.SUCCESS,
                fields={"Startup": f"{took:.2f}s" if took is not None else "unknown", "Guilds": str(len(self.guilds))},
            )

    async def on_app_command_error(self, itx: discord.Interaction, error: app_commands.AppCommandError):
        """Failed checks answer the user and are audited; anything else is reported."""
        if isinstance(error, app_commands.CheckFailure):
            await send_ephemeral(itx, str(error) or "You can't use this command here.")
            if self.embed_logger:
                await self.embed_logger.log_command(
                    itx.user.id, command_name(itx), dict(vars(itx.namespace)), succeeded=False, error=error
                )
            return
        original = getattr(error, "original", error)
        logger.error(f"/{command_name(itx)} raised {type(original).__name__}: {original}")
        await report_failure(itx, self.embed_logger, "Bot Commands", original)

    async def on_error(self, event: str, *args, **kwargs):
        logger.exception(f"Unhandled error in {event}")
        err = sys.exc_info()[1]
        if self.embed_logger and err is not None:
            await self.embed_logger.log_error(service="Bot Core", error=err, context=f"event {event}")

    async def close(self):
        logger.info("Closing ledger bot")
        if self.embed_logger and self.started_at:
            uptime = (discord.utils.utcnow() - self.started_at).total_seconds()
            await self.embed_logger.log_custom(
                service="Bot Status",
                title="Ledger Offline",
                description="Shutting down",
                level=LogLevel.WARNING,
                fields={"Uptime": _uptime_text(uptime)},
            )
        await self.db_service.close()
        await super().close()


async def main():
    config = Config()
    missing = config.missing_required()
    if missing:
        logger.error(f"Cannot start, missing: {', '.join(missing)}")
        return

    logger.info(
        f"Starting guild ledger bot (env={config.environment}, guild={config.guild_id}, "
        f"db={config.db_host}:{config.db_port}/{config.db_name}, dtp_rate={config.dtp_rate})"
    )
    bot = LedgerBot(config)
    try:
        await bot.start(config.bot_token)
    except Exception:
        logger.exception("Ledger bot stopped on an unhandled error")
    finally:
        if not bot.is_closed():
            await bot.close()


def run():
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    run()
