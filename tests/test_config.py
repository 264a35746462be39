"""
Environment-driven configuration.
"""

import pytest

from ledger_bot.utils.config import Config

ENV_KEYS = (
    "DISCORD_BOT_TOKEN",
    "DISCORD_GUILD_ID",
    "DB_PASSWORD",
    "BOT_ENV",
    "DEV_SUPERUSERS",
    "SYNC_GLOBAL_COMMANDS",
    "DTP_RATE",
    "LFG_PBP_ROLE_ID",
)


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestDefaults:
    def test_defaults(self, clean_env):
        cfg = Config()
        assert cfg.is_production
        assert cfg.dtp_rate == 1.0
        assert cfg.initiate_xp == 900
        assert cfg.dev_superusers == []
        assert not cfg.sync_global_commands

    def test_missing_required(self, clean_env):
        assert Config().missing_required() == ["DISCORD_BOT_TOKEN", "DB_PASSWORD", "DISCORD_GUILD_ID"]


class TestParsing:
    def test_values_from_env(self, clean_env):
        clean_env.setenv("DISCORD_BOT_TOKEN", "token")
        clean_env.setenv("DISCORD_GUILD_ID", "1234")
        clean_env.setenv("DB_PASSWORD", "secret")
        clean_env.setenv("BOT_ENV", "DEV")
        clean_env.setenv("DEV_SUPERUSERS", "1, 2,,3")
        clean_env.setenv("SYNC_GLOBAL_COMMANDS", "yes")
        clean_env.setenv("DTP_RATE", "2.5")
        cfg = Config()
        assert cfg.missing_required() == []
        assert cfg.guild_id == 1234
        assert not cfg.is_production
        assert cfg.dev_superusers == [1, 2, 3]
        assert cfg.sync_global_commands
        assert cfg.dtp_rate == 2.5

    def test_blank_int_uses_default(self, clean_env):
        clean_env.setenv("DISCORD_GUILD_ID", "  ")
        assert Config().guild_id == 0

    def test_tier_role_ids(self, clean_env):
        clean_env.setenv("LFG_PBP_ROLE_ID", "77")
        roles = Config().lfg_tier_role_ids()
        assert set(roles) == {"low", "mid", "high", "epic", "pbp"}
        assert roles["pbp"] == 77
