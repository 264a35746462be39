"""
ledger_bot/services/__init__.py
Services package for the guild ledger bot
"""

from .ledger_service import LedgerChange, LedgerService
from .logging_service import EmbedLogger, LogLevel

__all__ = ["EmbedLogger", "LedgerChange", "LedgerService", "LogLevel"]
