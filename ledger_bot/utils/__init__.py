"""
ledger_bot/utils/__init__.py
Utilities package for the guild ledger bot
"""

from .config import Config
from .logging_config import setup_logging

__all__ = ["Config", "setup_logging"]
