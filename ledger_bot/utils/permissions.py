# ledger_bot/utils/permissions.py
"""
Role-based access for ledger commands.

admin  = Administrator permission or the admin role
staff  = admin or moderator (keeper too where a command allows it)
dm     = staff or the DM role
Dev superusers pass every check outside production.
"""
from __future__ import annotations

from typing import Iterable, Optional, Set

import discord
from discord import app_commands

from .config import Config


def role_ids(user: discord.abc.User) -> Set[int]:
    roles: Iterable[discord.Role] = getattr(user, "roles", None) or []
    return {r.id for r in roles}


def is_dev_superuser(user_id: int, config: Config) -> bool:
    return not config.is_production and int(user_id) in config.dev_superusers


def _has_role(user: discord.abc.User, role_id: int) -> bool:
    return bool(role_id) and role_id in role_ids(user)


def is_admin(user: discord.abc.User, config: Config) -> bool:
    perms = getattr(user, "guild_permissions", None)
    if perms is not None and perms.administrator:
        return True
    return _has_role(user, config.admin_role_id) or is_dev_superuser(user.id, config)


def is_staff(user: discord.abc.User, config: Config, *, include_keeper: bool = False) -> bool:
    if is_admin(user, config) or _has_role(user, config.moderator_role_id):
        return True
    return include_keeper and _has_role(user, config.keeper_role_id)


def is_dm(user: discord.abc.User, config: Config, *, include_keeper: bool = False) -> bool:
    return is_staff(user, config, include_keeper=include_keeper) or _has_role(user, config.dm_role_id)


def allowed_channel_ids(config: Config, *, allow_dtp: bool = False) -> Set[int]:
    ids = {config.resource_channel_id, config.magic_items_channel_id}
    if allow_dtp:
        ids.add(config.dtp_channel_id)
    return {i for i in ids if i}


def in_resource_channel(itx: discord.Interaction, config: Config, *, allow_dtp: bool = False) -> bool:
    """Outside the home guild, or with no channels configured, any channel is fine."""
    if itx.guild_id is None or itx.guild_id != config.guild_id:
        return True
    allowed = allowed_channel_ids(config, allow_dtp=allow_dtp)
    if not allowed:
        return True
    channel = itx.channel
    if channel is None:
        return False
    parent_id = getattr(channel, "parent_id", None)
    return channel.id in allowed or (parent_id is not None and parent_id in allowed)


# --------------- app_commands checks ---------------

def _config(itx: discord.Interaction) -> Config:
    return itx.client.config


def require_admin():
    def predicate(itx: discord.Interaction) -> bool:
        if is_admin(itx.user, _config(itx)):
            return True
        raise app_commands.CheckFailure("Only administrators can use this command.")
    return app_commands.check(predicate)


def require_staff(*, include_keeper: bool = False):
    def predicate(itx: discord.Interaction) -> bool:
        if is_staff(itx.user, _config(itx), include_keeper=include_keeper):
            return True
        raise app_commands.CheckFailure("Only moderators and admins can use this command.")
    return app_commands.check(predicate)


def require_dm(*, include_keeper: bool = False):
    def predicate(itx: discord.Interaction) -> bool:
        if is_dm(itx.user, _config(itx), include_keeper=include_keeper):
            return True
        raise app_commands.CheckFailure("Only DMs and staff can use this command.")
    return app_commands.check(predicate)


def resource_channel_only(*, allow_dtp: bool = False, type_option: Optional[str] = None):
    """With `type_option`, the dtp channel is allowed when that option was given as `dtp`."""
    def predicate(itx: discord.Interaction) -> bool:
        config = _config(itx)
        allow = allow_dtp or (type_option is not None and getattr(itx.namespace, type_option, None) == "dtp")
        if in_resource_channel(itx, config, allow_dtp=allow):
            return True
        mentions = ", ".join(f"<#{cid}>" for cid in sorted(allowed_channel_ids(config, allow_dtp=allow)))
        raise app_commands.CheckFailure(f"Use this command in {mentions}.")
    return app_commands.check(predicate)
