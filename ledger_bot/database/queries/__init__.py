"""
ledger_bot/database/queries/__init__.py
Database queries package
"""
from .character_queries import CharacterQueries
from .guild_state_queries import GuildStateQueries
from .lfg_queries import LfgQueries

ALL_QUERIES = (CharacterQueries, LfgQueries, GuildStateQueries)

__all__ = [
    "ALL_QUERIES",
    "CharacterQueries",
    "GuildStateQueries",
    "LfgQueries",
]
