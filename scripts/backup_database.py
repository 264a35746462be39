#!/usr/bin/env python3
"""
scripts/backup_database.py
pg_dump the ledger database into BACKUP_DIR and prune dumps older than BACKUP_RETAIN_DAYS
"""

import logging
import os
import subprocess
import sys
import time
from datetime import datetime
from pathlib import Path

from ledger_bot.utils.config import Config
from ledger_bot.utils.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

BACKUP_DIR = Path(os.getenv("BACKUP_DIR", "./backups"))
RETAIN_DAYS = int(os.getenv("BACKUP_RETAIN_DAYS", "14"))
DUMP_SUFFIX = ".dump"


def dump_path(config: Config, now: datetime) -> Path:
    return BACKUP_DIR / f"{config.db_name}-{now.strftime('%Y%m%d-%H%M%S')}{DUMP_SUFFIX}"


def run_dump(config: Config, dest: Path) -> None:
    cmd = [
        "pg_dump",
        "--format=custom",
        f"--host={config.db_host}",
        f"--port={config.db_port}",
        f"--username={config.db_user}",
        f"--file={dest}",
        config.db_name,
    ]
    env = dict(os.environ, PGPASSWORD=config.db_password)
    subprocess.run(cmd, env=env, check=True, capture_output=True, text=True)


def prune(retain_days: int, now: float) -> int:
    cutoff = now - retain_days * 24 * 60 * 60
    pruned = 0
    for f in BACKUP_DIR.glob(f"*{DUMP_SUFFIX}"):
        if f.stat().st_mtime < cutoff:
            f.unlink()
            logger.info(f"Pruned {f}")
            pruned += 1
    return pruned


def main() -> int:
    config = Config()
    BACKUP_DIR.mkdir(parents=True, exist_ok=True)
    dest = dump_path(config, datetime.now())
    try:
        run_dump(config, dest)
    except FileNotFoundError:
        logger.error("pg_dump not found on PATH")
        return 1
    except subprocess.CalledProcessError as e:
        logger.error(f"pg_dump failed ({e.returncode}): {e.stderr.strip()}")
        dest.unlink(missing_ok=True)
        return 1
    logger.info(f"Wrote {dest}")
    pruned = prune(RETAIN_DAYS, time.time())
    logger.info(f"Backup complete, {pruned} old dump(s) pruned (retention {RETAIN_DAYS} days)")
    return 0


if __name__ == "__main__":
    sys.exit(main())
