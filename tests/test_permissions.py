"""
Role and channel checks, using plain namespaces in place of discord members.
"""

from types import SimpleNamespace

import pytest

from ledger_bot.utils.config import Config
from ledger_bot.utils.permissions import in_resource_channel, is_admin, is_dm, is_staff

GUILD = 500


@pytest.fixture
def config():
    return Config(
        guild_id=GUILD,
        environment="prod",
        dev_superusers=[42],
        admin_role_id=1,
        moderator_role_id=2,
        keeper_role_id=3,
        dm_role_id=4,
        resource_channel_id=10,
        magic_items_channel_id=11,
        dtp_channel_id=12,
    )


def member(*role_ids, user_id=7, administrator=False):
    return SimpleNamespace(
        id=user_id,
        roles=[SimpleNamespace(id=r) for r in role_ids],
        guild_permissions=SimpleNamespace(administrator=administrator),
    )


def interaction(channel_id, guild_id=GUILD, parent_id=None):
    channel = SimpleNamespace(id=channel_id, parent_id=parent_id)
    return SimpleNamespace(guild_id=guild_id, channel=channel)


class TestRoles:
    def test_administrator_permission(self, config):
        assert is_admin(member(administrator=True), config)

    def test_role_hierarchy(self, config):
        assert is_admin(member(1), config)
        assert is_staff(member(2), config)
        assert not is_staff(member(3), config)
        assert is_staff(member(3), config, include_keeper=True)
        assert is_dm(member(4), config)
        assert not is_dm(member(), config)

    def test_superuser_only_outside_production(self, config):
        assert not is_admin(member(user_id=42), config)
        config.environment = "dev"
        assert is_admin(member(user_id=42), config)

    def test_unset_role_never_matches(self, config):
        config.dm_role_id = 0
        assert not is_dm(member(0), config)


class TestChannels:
    def test_resource_channels(self, config):
        assert in_resource_channel(interaction(10), config)
        assert in_resource_channel(interaction(11), config)
        assert not in_resource_channel(interaction(99), config)

    def test_dtp_channel_opt_in(self, config):
        assert not in_resource_channel(interaction(12), config)
        assert in_resource_channel(interaction(12), config, allow_dtp=True)

    def test_thread_inherits_parent(self, config):
        assert in_resource_channel(interaction(555, parent_id=10), config)

    def test_other_guild_unrestricted(self, config):
        assert in_resource_channel(interaction(99, guild_id=1), config)
        assert in_resource_channel(interaction(99, guild_id=None), config)

    def test_no_channels_configured(self, config):
        config.resource_channel_id = config.magic_items_channel_id = 0
        assert in_resource_channel(interaction(99), config)
