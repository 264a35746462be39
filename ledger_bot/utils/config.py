# ledger_bot/utils/config.py

import os
from dataclasses import dataclass, field
from typing import Dict, List


def _split_csv(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    parts = [p.strip() for p in raw.split(",") if p.strip()]
    return parts


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int = 0) -> int:
    raw = os.getenv(name, "")
    return int(raw) if raw.strip() else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    return float(raw) if raw.strip() else default


@dataclass
class Config:
    # Discord
    bot_token: str = field(default_factory=lambda: os.getenv("DISCORD_BOT_TOKEN", ""))
    guild_id: int = field(default_factory=lambda: _env_int("DISCORD_GUILD_ID"))
    command_prefix: str = field(default_factory=lambda: os.getenv("COMMAND_PREFIX", "!"))
    environment: str = field(default_factory=lambda: os.getenv("BOT_ENV", "prod").lower())
    # Only honoured outside prod
    dev_superusers: List[int] = field(default_factory=lambda: [int(x) for x in _split_csv("DEV_SUPERUSERS")])
    sync_global_commands: bool = field(default_factory=lambda: _env_bool("SYNC_GLOBAL_COMMANDS", False))

    # Database (Postgres)
    db_host: str = field(default_factory=lambda: os.getenv("DB_HOST", "postgres"))
    db_port: int = field(default_factory=lambda: _env_int("DB_PORT", 5432))
    db_name: str = field(default_factory=lambda: os.getenv("DB_NAME", "guild_ledger"))
    db_user: str = field(default_factory=lambda: os.getenv("DB_USER", "ledger_bot"))
    db_password: str = field(default_factory=lambda: os.getenv("DB_PASSWORD", ""))
    db_pool_min: int = field(default_factory=lambda: _env_int("DB_POOL_MIN", 2))
    db_pool_max: int = field(default_factory=lambda: _env_int("DB_POOL_MAX", 10))

    # Roles
    dm_role_id: int = field(default_factory=lambda: _env_int("DM_ROLE_ID"))
    moderator_role_id: int = field(default_factory=lambda: _env_int("MODERATOR_ROLE_ID"))
    admin_role_id: int = field(default_factory=lambda: _env_int("ADMIN_ROLE_ID"))
    keeper_role_id: int = field(default_factory=lambda: _env_int("KEEPER_ROLE_ID"))
    guild_member_role_id: int = field(default_factory=lambda: _env_int("GUILD_MEMBER_ROLE_ID"))
    uninitiated_role_id: int = field(default_factory=lambda: _env_int("UNINITIATED_ROLE_ID"))
    dm_available_role_id: int = field(default_factory=lambda: _env_int("DM_AVAILABLE_ROLE_ID"))

    # LFG roles
    lfg_role_id: int = field(default_factory=lambda: _env_int("LFG_ROLE_ID"))
    lfg_low_role_id: int = field(default_factory=lambda: _env_int("LFG_LOW_ROLE_ID"))
    lfg_mid_role_id: int = field(default_factory=lambda: _env_int("LFG_MID_ROLE_ID"))
    lfg_high_role_id: int = field(default_factory=lambda: _env_int("LFG_HIGH_ROLE_ID"))
    lfg_epic_role_id: int = field(default_factory=lambda: _env_int("LFG_EPIC_ROLE_ID"))
    lfg_pbp_role_id: int = field(default_factory=lambda: _env_int("LFG_PBP_ROLE_ID"))

    # Channels
    admin_log_channel_id: int = field(default_factory=lambda: _env_int("ADMIN_LOG_CHANNEL_ID"))
    resource_channel_id: int = field(default_factory=lambda: _env_int("RESOURCE_CHANNEL_ID"))
    magic_items_channel_id: int = field(default_factory=lambda: _env_int("MAGIC_ITEMS_CHANNEL_ID"))
    dtp_channel_id: int = field(default_factory=lambda: _env_int("DTP_CHANNEL_ID"))
    lfg_board_channel_id: int = field(default_factory=lambda: _env_int("LFG_BOARD_CHANNEL_ID"))

    # Ledger rules
    dtp_rate: float = field(default_factory=lambda: _env_float("DTP_RATE", 1.0))
    advancement_table_path: str = field(default_factory=lambda: os.getenv("ADVANCEMENT_TABLE_PATH", ""))
    dm_rewards_path: str = field(default_factory=lambda: os.getenv("DM_REWARDS_PATH", ""))
    initiate_xp: int = field(default_factory=lambda: _env_int("INITIATE_XP", 900))
    initiate_gp: float = field(default_factory=lambda: _env_float("INITIATE_GP", 80.0))
    initiate_gt: float = field(default_factory=lambda: _env_float("INITIATE_GT", 0.0))

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"

    def lfg_tier_role_ids(self) -> Dict[str, int]:
        return {
            "low": self.lfg_low_role_id,
            "mid": self.lfg_mid_role_id,
            "high": self.lfg_high_role_id,
            "epic": self.lfg_epic_role_id,
            "pbp": self.lfg_pbp_role_id,
        }

    def missing_required(self) -> List[str]:
        missing = []
        if not self.bot_token:
            missing.append("DISCORD_BOT_TOKEN")
        if not self.db_password:
            missing.append("DB_PASSWORD")
        if not self.guild_id:
            missing.append("DISCORD_GUILD_ID")
        return missing
