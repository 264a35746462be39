# ledger_bot/domain/currency.py
"""Gold is stored in minor units (hundredths of a gold piece) and shown in major units."""
from __future__ import annotations

import math

MINOR_PER_MAJOR = 100


def round_half_up(value: float) -> int:
    """Round .5 away from the floor, the same way for every call site (no banker's rounding)."""
    return int(math.floor(value + 0.5))


def to_minor(major: float) -> int:
    return round_half_up(major * MINOR_PER_MAJOR)


def format_gp(minor: int) -> str:
    return f"{minor / MINOR_PER_MAJOR:.2f}"


def has_cent_precision(major: float) -> bool:
    """True when `major` has at most two decimal places."""
    scaled = major * MINOR_PER_MAJOR
    return abs(scaled - round(scaled)) < 1e-6


def format_points(value: float) -> str:
    """Tickets and downtime points may be fractional; show whole values without a decimal."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"
