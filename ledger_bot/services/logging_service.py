"""
ledger_bot/services/logging_service.py
Admin-channel audit log: every ledger change, denied command and service failure is posted as an embed
"""

import asyncio
import logging
import time
import traceback
from collections import Counter, deque
from enum import Enum
from typing import Any, Deque, Dict, Iterable, Optional, Sequence, Tuple, Union

import discord
from discord import Color, Embed

logger = logging.getLogger(__name__)

# Either {name: value} or [(name, value[, inline]), ...]
FieldSpec = Optional[Union[Dict[str, Any], Sequence[tuple]]]
LogChannel = Union[discord.TextChannel, discord.Thread]

EMBED_FIELD_LIMIT = 25


class LogLevel(Enum):
    """Embed color and title emoji per severity"""
    INFO = (Color.blue(), "ℹ️")
    SUCCESS = (Color.green(), "✅")
    WARNING = (Color.orange(), "⚠️")
    ERROR = (Color.red(), "❌")
    CRITICAL = (Color.dark_red(), "🚨")
    DATABASE = (Color.teal(), "🗄️")
    LEDGER = (Color.gold(), "📜")

    @property
    def color(self) -> Color:
        return self.value[0]

    @property
    def emoji(self) -> str:
        return self.value[1]


class SendThrottle:
    """Sliding one-minute cap on sends, plus suppression of repeated keys inside a short window."""

    def __init__(self, per_minute: int = 30, repeat_window: float = 10.0, clock=time.monotonic):
        self.per_minute = per_minute
        self.repeat_window = repeat_window
        self.clock = clock
        self._sent: Deque[float] = deque()
        self._last_by_key: Dict[str, float] = {}

    def allow(self, key: Optional[str]) -> bool:
        now = self.clock()
        while self._sent and now - self._sent[0] >= 60:
            self._sent.popleft()
        if len(self._sent) >= self.per_minute:
            return False
        self._last_by_key = {k: t for k, t in self._last_by_key.items() if now - t < self.repeat_window}
        if key is not None:
            last = self._last_by_key.get(key)
            if last is not None and now - last < self.repeat_window:
                return False
            self._last_by_key[key] = now
        self._sent.append(now)
        return True


def _normalize_fields(fields: FieldSpec) -> Iterable[Tuple[str, Any, bool]]:
    if not fields:
        return []
    items = fields.items() if isinstance(fields, dict) else fields
    out = []
    for item in items:
        if len(item) == 3:
            name, value, inline = item
        elif len(item) == 2:
            name, value = item
            inline = len(str(value)) < 50
        else:
            continue
        out.append((str(name), value, bool(inline)))
    return out


class EmbedLogger:
    """Posts to the admin log channel. Failures are counted and logged locally, never raised."""

    def __init__(self, bot: discord.Client, admin_channel_id: int, throttle: Optional[SendThrottle] = None):
        self.bot = bot
        self.admin_channel_id = int(admin_channel_id or 0)
        self.channel: Optional[LogChannel] = None
        self.throttle = throttle or SendThrottle()
        self._setup_attempted = False
        self._retry_task: Optional[asyncio.Task] = None

        self.started_at = discord.utils.utcnow()
        self.sent = 0
        self.failed = 0
        self.suppressed = 0
        self.by_level: Counter = Counter()
        self.by_service: Counter = Counter()

    # --------------- channel ---------------

    async def _lookup_channel(self) -> Optional[LogChannel]:
        if not self.admin_channel_id:
            return None
        chan = self.bot.get_channel(self.admin_channel_id)
        if chan is None:
            try:
                chan = await self.bot.fetch_channel(self.admin_channel_id)
            except discord.HTTPException as e:
                logger.debug(f"Admin log channel {self.admin_channel_id} not fetchable: {e}")
                return None
        return chan if isinstance(chan, (discord.TextChannel, discord.Thread)) else None

    async def setup(self) -> bool:
        """Resolve the admin channel; if it is not visible yet, retry once after the bot is ready."""
        self._setup_attempted = True
        if not self.admin_channel_id:
            logger.warning("ADMIN_LOG_CHANNEL_ID not set; admin audit log disabled")
            return False

        self.channel = await self._lookup_channel()
        if self.channel is None:
            logger.error(f"Admin log channel {self.admin_channel_id} not found yet, retrying after ready")
            if self._retry_task is None:
                self._retry_task = asyncio.create_task(self._retry_after_ready())
            return False

        await self.log_system_event(
            "Audit Log Connected",
            f"Ledger audit entries will be posted in <#{self.admin_channel_id}>",
            LogLevel.SUCCESS,
        )
        return True

    async def _retry_after_ready(self):
        try:
            await self.bot.wait_until_ready()
            await asyncio.sleep(2)
            self.channel = await self._lookup_channel()
            if self.channel is None:
                logger.error(f"Admin log channel {self.admin_channel_id} still missing after ready")
                return
            logger.info(f"Admin log channel {self.admin_channel_id} resolved on retry")
            await self.log_system_event("Audit Log Reconnected", "Channel resolved after ready", LogLevel.SUCCESS)
        except Exception:
            logger.exception("Admin log channel retry failed")

    # --------------- sending ---------------

    def _embed(self, title: str, description: Optional[str], level: LogLevel, fields: FieldSpec = None) -> Embed:
        embed = Embed(
            title=f"{level.emoji} {title}"[:256],
            description=description[:2000] if description else None,
            color=level.color,
            timestamp=discord.utils.utcnow(),
        )
        for name, value, inline in _normalize_fields(fields):
            if len(embed.fields) >= EMBED_FIELD_LIMIT:
                break
            shown = "N/A" if value is None or value == "" else str(value)
            embed.add_field(name=name[:256], value=shown[:1024], inline=inline)
        self.by_level[level.name] += 1
        return embed

    async def _send(self, embed: Embed, key: Optional[str] = None) -> Optional[discord.Message]:
        if self.channel is None and self._setup_attempted and self.admin_channel_id:
            self.channel = await self._lookup_channel()
        if self.channel is None:
            return None
        if not self.throttle.allow(key.lower() if key else None):
            self.suppressed += 1
            logger.debug(f"Suppressed admin log entry {key}")
            return None
        try:
            message = await self.channel.send(embed=embed)
        except discord.HTTPException as e:
            self.failed += 1
            if e.status == 429:
                logger.warning("Discord rate limited the admin audit log")
            else:
                logger.debug(f"Admin log send failed: {e}")
            return None
        self.sent += 1
        return message

    # --------------- entry points ---------------

    async def log_system_event(self, title: str, description: str, level: LogLevel = LogLevel.INFO, fields: FieldSpec = None):
        embed = self._embed(title, description, level, fields)
        embed.set_footer(text="System")
        await self._send(embed, f"system_{title}")

    async def log_error(self, service: str, error: BaseException, context: Optional[str] = None):
        """Exception type, message, context and the end of the traceback."""
        error_type = type(error).__name__
        embed = self._embed(
            "Service Error",
            f"Error occurred in **{service}**",
            LogLevel.CRITICAL,
            [("Service", service, True), ("Error Type", f"`{error_type}`", True)],
        )
        embed.add_field(name="Error Message", value=f"```\n{str(error)[:1000]}\n```", inline=False)
        if context:
            embed.add_field(name="Context", value=context[:500], inline=False)
        if error.__traceback__ is not None:
            tb = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            embed.add_field(name="Traceback (tail)", value=f"```python\n{tb[-800:]}\n```", inline=False)
        embed.set_footer(text="Errors")
        self.by_service[service] += 1
        await self._send(embed, f"error_{service}_{error_type}")

    async def log_custom(
        self,
        service: str,
        title: str,
        description: str,
        level: LogLevel = LogLevel.INFO,
        fields: FieldSpec = None,
        footer: Optional[str] = None,
    ):
        embed = self._embed(f"[{service}] {title}", description, level, fields)
        embed.set_footer(text=footer or service)
        self.by_service[service] += 1
        await self._send(embed, f"custom_{service}_{title}")

    async def log_command(
        self,
        actor_id: int,
        command: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        succeeded: bool = True,
        error: Optional[BaseException] = None,
    ):
        fields: Dict[str, Any] = {"Command": f"/{command}", "User": f"<@{actor_id}>"}
        if params:
            shown = ", ".join(f"{k}={v}" for k, v in params.items())
            fields["Parameters"] = shown if len(shown) <= 500 else shown[:500] + "..."
        if error is not None:
            fields["Error"] = str(error)[:300]
        embed = self._embed(
            "Command Executed" if succeeded else "Command Denied",
            f"<@{actor_id}> ran **/{command}**",
            LogLevel.SUCCESS if succeeded else LogLevel.ERROR,
            fields,
        )
        embed.set_footer(text="Commands")
        await self._send(embed, f"command_{command}_{actor_id}_{succeeded}")

    async def log_ledger_change(
        self,
        actor_id: int,
        target_id: int,
        character: str,
        resource: str,
        before: Any,
        after: Any,
        reason: Optional[str] = None,
    ):
        """Audit entry for one resource change on one character."""
        fields = [
            ("Character", character, True),
            ("Resource", resource, True),
            ("Change", f"{before} → {after}", True),
        ]
        if reason:
            fields.append(("Reason", reason, False))
        embed = self._embed(
            f"{resource} updated",
            f"<@{actor_id}> changed **{character}** (<@{target_id}>)",
            LogLevel.LEDGER,
            fields,
        )
        embed.set_footer(text="Ledger Audit")
        self.by_service["Ledger"] += 1
        await self._send(embed, f"ledger_{target_id}_{character}_{resource}_{after}")

    # --------------- stats ---------------

    async def get_logging_stats(self) -> Dict[str, Any]:
        uptime = (discord.utils.utcnow() - self.started_at).total_seconds()
        attempts = self.sent + self.failed
        return {
            "uptime_seconds": uptime,
            "total_logs_sent": self.sent,
            "total_logs_failed": self.failed,
            "total_logs_suppressed": self.suppressed,
            "success_rate": round(self.sent / attempts * 100, 2) if attempts else 100.0,
            "logs_by_level": dict(self.by_level),
            "logs_by_service": dict(self.by_service),
            "channel_status": {
                "channel_id": self.admin_channel_id,
                "setup_attempted": self._setup_attempted,
                "channel_resolved": self.channel is not None,
            },
        }
