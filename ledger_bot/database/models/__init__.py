"""
ledger_bot/database/models/__init__.py
Database models package
"""
from .character import Character
from .ledger_event import LedgerEvent

__all__ = ["Character", "LedgerEvent"]
