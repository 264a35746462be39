"""
ledger_bot/domain/__init__.py
Pure ledger rules: advancement, rewards, downtime accrual and LFG presence
"""
from .currency import format_gp, format_points, has_cent_precision, round_half_up, to_minor
from .downtime import AccrualResult, DowntimeAccrual
from .errors import CharacterNotFound, InsufficientFunds, InvalidAmount, LedgerError
from .lfg import LfgEntry, LfgTier, PurgeResult, PurgeScope, TierFlags
from .progress import CharacterProgress
from .rewards import DeltaResult, ResourceDelta, RewardCalculator
from .tables import AdvancementRow, AdvancementTable, RewardRow, RewardTable, nearest_defined_level_at_or_below
from .xp import XPBand, XPEngine, XPResult

__all__ = [
    "AccrualResult",
    "AdvancementRow",
    "AdvancementTable",
    "CharacterNotFound",
    "CharacterProgress",
    "DeltaResult",
    "DowntimeAccrual",
    "InsufficientFunds",
    "InvalidAmount",
    "LedgerError",
    "LfgEntry",
    "LfgTier",
    "PurgeResult",
    "PurgeScope",
    "ResourceDelta",
    "RewardCalculator",
    "RewardRow",
    "RewardTable",
    "TierFlags",
    "XPBand",
    "XPEngine",
    "XPResult",
    "format_gp",
    "format_points",
    "has_cent_precision",
    "nearest_defined_level_at_or_below",
    "round_half_up",
    "to_minor",
]
