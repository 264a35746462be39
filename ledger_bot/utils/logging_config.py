"""
ledger_bot/utils/logging_config.py
Logging configuration
"""

import logging
import os
import sys
from typing import Optional


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None):
    """Setup logging configuration"""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    handlers = [logging.StreamHandler(sys.stdout)]
    log_file = log_file if log_file is not None else os.getenv("LOG_FILE", "bot.log")
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )

    # Set specific loggers
    logging.getLogger("discord").setLevel(logging.WARNING)
    logging.getLogger("asyncpg").setLevel(logging.WARNING)
