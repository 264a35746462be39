"""
ledger_bot/services/ledger_service.py
Serializes every character read-modify-write through a row lock and applies the pure ledger rules
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, Optional, Tuple

import asyncpg

from ..database.models import Character, LedgerEvent
from ..database.queries import CharacterQueries
from ..domain import (
    CharacterNotFound,
    DowntimeAccrual,
    InsufficientFunds,
    InvalidAmount,
    ResourceDelta,
    RewardCalculator,
    XPEngine,
    format_gp,
    format_points,
    has_cent_precision,
    to_minor,
)

logger = logging.getLogger(__name__)

# transform(locked row) -> (new row, was_clamped)
Transform = Callable[[Character], Tuple[Character, bool]]


@dataclass(frozen=True)
class LedgerChange:
    before: Character
    after: Character
    levels_changed: int = 0
    proficiency: int = 0
    was_clamped: bool = False
    accrued: float = 0
    delta: Optional[ResourceDelta] = None

    @property
    def character(self) -> Character:
        return self.after


class LedgerService:
    def __init__(
        self,
        pool: asyncpg.Pool,
        engine: XPEngine,
        rewards: RewardCalculator,
        dtp_rate: float = 1.0,
        clock: Callable[[], float] = time.time,
    ):
        self.pool = pool
        self.engine = engine
        self.rewards = rewards
        self.downtime = DowntimeAccrual(dtp_rate)
        self.clock = clock

    # --------------- helpers ---------------

    def _accrued(self, ch: Character) -> Tuple[Character, float]:
        res = self.downtime.accrue(ch.progress, self.clock())
        return ch.with_progress(res.apply_to(ch.progress)), res.accrued

    async def _mutate(
        self,
        user_id: int,
        name: Optional[str],
        transform: Transform,
        *,
        kind: str,
        actor_id: Optional[int] = None,
        reason: Optional[str] = None,
        accrue: bool = False,
        delta: Optional[ResourceDelta] = None,
    ) -> LedgerChange:
        meta = {"clamped": False, "accrued": 0}

        def fn(locked: Character) -> Character:
            current = locked
            if accrue:
                current, meta["accrued"] = self._accrued(locked)
            new, clamped = transform(current)
            meta["clamped"] = clamped
            return new

        res = await CharacterQueries.mutate_character(
            self.pool, user_id, name, fn, kind=kind, actor_id=actor_id, reason=reason
        )
        if res is None:
            raise CharacterNotFound(user_id, name)
        before, after = res
        if meta["clamped"]:
            logger.debug(f"{kind} on {user_id}/{after.name} clamped at zero")
        return LedgerChange(
            before=before,
            after=after,
            levels_changed=after.level - before.level,
            proficiency=self.engine.proficiency_for(after.level),
            was_clamped=meta["clamped"],
            accrued=meta["accrued"],
            delta=delta,
        )

    @staticmethod
    def _require_finite(value: float, what: str) -> float:
        if value is None or not math.isfinite(value):
            raise InvalidAmount(f"{what} must be a number.")
        return value

    def _require_trade_gp(self, gp: float) -> int:
        self._require_finite(gp, "GP amount")
        if gp <= 0:
            raise InvalidAmount("GP amount must be greater than zero.")
        if not has_cent_precision(gp):
            raise InvalidAmount("GP amounts may have at most two decimal places.")
        return to_minor(gp)

    # --------------- characters ---------------

    async def get_character(self, user_id: int, name: Optional[str] = None) -> Optional[Character]:
        """Fresh row with pending downtime credited (and persisted), or None."""
        ch = await CharacterQueries.get_character(self.pool, user_id, name)
        if ch is None:
            return None
        fresh, accrued = self._accrued(ch)
        if not accrued and fresh.dtp_updated == ch.dtp_updated:
            return ch
        change = await self._mutate(user_id, ch.name, lambda c: (c, False), kind="dtp_accrue", accrue=True)
        return change.after

    async def list_characters(self, user_id: int) -> List[Character]:
        return await CharacterQueries.list_characters(self.pool, user_id)

    async def list_names(self, user_id: int) -> List[str]:
        return await CharacterQueries.list_names(self.pool, user_id)

    async def recent_events(self, user_id: int, limit: int = 10) -> List[LedgerEvent]:
        return await CharacterQueries.recent_events(self.pool, user_id, limit)

    async def create_character(
        self,
        user_id: int,
        name: str,
        *,
        xp: int,
        gp: float,
        gt: float,
        actor_id: Optional[int] = None,
    ) -> Optional[Character]:
        """New active character at the starting baseline; None when the name is taken."""
        xp = max(0, int(math.floor(xp)))
        return await CharacterQueries.create_character(
            self.pool,
            user_id,
            name,
            level=self.engine.level_for_xp(xp),
            xp=xp,
            cp=max(0, to_minor(gp)),
            tp=max(0.0, float(gt)),
            dtp_updated=self.downtime.bucket_start(self.clock()),
            actor_id=actor_id,
        )

    async def swap_character(self, user_id: int, name: str) -> Character:
        ch = await CharacterQueries.set_active(self.pool, user_id, name)
        if ch is None:
            raise CharacterNotFound(user_id, name)
        return ch

    async def retire_character(
        self, user_id: int, name: Optional[str] = None, *, actor_id: Optional[int] = None
    ) -> Tuple[Character, bool]:
        """Returns (retired character, whether it was the user's last)."""
        retired, was_last = await CharacterQueries.retire_character(self.pool, user_id, name, actor_id=actor_id)
        if retired is None:
            raise CharacterNotFound(user_id, name)
        return retired, was_last

    # --------------- XP ---------------

    def _xp_transform(self, delta: Optional[float] = None, total: Optional[float] = None) -> Transform:
        def transform(ch: Character) -> Tuple[Character, bool]:
            if total is not None:
                res = self.engine.set_xp(ch.progress, total)
            else:
                res = self.engine.apply_xp(ch.progress, delta)
            return replace(ch, xp=res.xp, level=res.level), res.was_clamped
        return transform

    async def grant_xp(self, user_id: int, name: Optional[str], amount: float, *, actor_id=None, reason=None) -> LedgerChange:
        amount = math.floor(self._require_finite(amount, "XP"))
        if amount < 1:
            raise InvalidAmount("XP to add must be at least 1.")
        return await self._mutate(
            user_id, name, self._xp_transform(delta=amount), kind="xp_add", actor_id=actor_id, reason=reason
        )

    async def adjust_xp(self, user_id: int, name: Optional[str], signed: float, *, actor_id=None, reason=None) -> LedgerChange:
        signed = math.floor(self._require_finite(signed, "XP"))
        if signed == 0:
            raise InvalidAmount("XP adjustment must not be zero.")
        return await self._mutate(
            user_id, name, self._xp_transform(delta=signed), kind="xp_adjust", actor_id=actor_id, reason=reason
        )

    async def set_xp(self, user_id: int, name: Optional[str], value: float, *, actor_id=None, reason=None) -> LedgerChange:
        if self._require_finite(value, "XP") < 0:
            raise InvalidAmount("XP cannot be negative.")
        return await self._mutate(
            user_id, name, self._xp_transform(total=value), kind="xp_set", actor_id=actor_id, reason=reason
        )

    # --------------- gold ---------------

    @staticmethod
    def _cp_transform(delta_minor: int = 0, total_minor: Optional[int] = None) -> Transform:
        def transform(ch: Character) -> Tuple[Character, bool]:
            raw = total_minor if total_minor is not None else ch.cp + delta_minor
            return replace(ch, cp=max(0, raw)), raw < 0
        return transform

    async def adjust_currency(self, user_id: int, name: Optional[str], signed_gp: float, *, actor_id=None, reason=None) -> LedgerChange:
        minor = to_minor(self._require_finite(signed_gp, "GP"))
        if minor == 0:
            raise InvalidAmount("GP adjustment must not be zero.")
        return await self._mutate(
            user_id, name, self._cp_transform(minor), kind="gp_adjust", actor_id=actor_id, reason=reason
        )

    async def set_currency(self, user_id: int, name: Optional[str], gp: float, *, actor_id=None, reason=None) -> LedgerChange:
        if self._require_finite(gp, "GP") < 0:
            raise InvalidAmount("GP cannot be negative.")
        return await self._mutate(
            user_id, name, self._cp_transform(total_minor=to_minor(gp)), kind="gp_set", actor_id=actor_id, reason=reason
        )

    async def earn_currency(self, user_id: int, name: Optional[str], gp: float, *, actor_id=None, reason=None) -> LedgerChange:
        minor = self._require_trade_gp(gp)
        return await self._mutate(
            user_id, name, self._cp_transform(minor), kind="gp_earn", actor_id=actor_id, reason=reason
        )

    async def spend_currency(self, user_id: int, name: Optional[str], gp: float, *, actor_id=None, reason=None) -> LedgerChange:
        minor = self._require_trade_gp(gp)

        def transform(ch: Character) -> Tuple[Character, bool]:
            if ch.cp < minor:
                raise InsufficientFunds("GP", format_gp(ch.cp), format_gp(minor))
            return replace(ch, cp=ch.cp - minor), False

        return await self._mutate(user_id, name, transform, kind="gp_spend", actor_id=actor_id, reason=reason)

    # --------------- golden tickets ---------------

    @staticmethod
    def _tp_transform(delta: float = 0, total: Optional[float] = None) -> Transform:
        def transform(ch: Character) -> Tuple[Character, bool]:
            raw = total if total is not None else ch.tp + delta
            return replace(ch, tp=max(0.0, raw)), raw < 0
        return transform

    async def adjust_tickets(self, user_id: int, name: Optional[str], signed: float, *, actor_id=None, reason=None) -> LedgerChange:
        if self._require_finite(signed, "GT") == 0:
            raise InvalidAmount("GT adjustment must not be zero.")
        return await self._mutate(
            user_id, name, self._tp_transform(signed), kind="gt_adjust", actor_id=actor_id, reason=reason
        )

    async def set_tickets(self, user_id: int, name: Optional[str], value: float, *, actor_id=None, reason=None) -> LedgerChange:
        if self._require_finite(value, "GT") < 0:
            raise InvalidAmount("GT cannot be negative.")
        return await self._mutate(
            user_id, name, self._tp_transform(total=value), kind="gt_set", actor_id=actor_id, reason=reason
        )

    async def spend_tickets(self, user_id: int, name: Optional[str], amount: float, *, actor_id=None, reason=None) -> LedgerChange:
        if self._require_finite(amount, "GT") <= 0:
            raise InvalidAmount("GT amount must be greater than zero.")

        def transform(ch: Character) -> Tuple[Character, bool]:
            if ch.tp < amount:
                raise InsufficientFunds("GT", format_points(ch.tp), format_points(amount))
            return replace(ch, tp=ch.tp - amount), False

        return await self._mutate(user_id, name, transform, kind="gt_spend", actor_id=actor_id, reason=reason)

    # --------------- downtime ---------------

    @staticmethod
    def _dtp_transform(delta: float = 0, total: Optional[float] = None) -> Transform:
        def transform(ch: Character) -> Tuple[Character, bool]:
            raw = total if total is not None else ch.dtp + delta
            return replace(ch, dtp=max(0.0, raw)), raw < 0
        return transform

    async def accrue_downtime(self, user_id: int, name: Optional[str] = None) -> LedgerChange:
        return await self._mutate(user_id, name, lambda c: (c, False), kind="dtp_accrue", accrue=True)

    async def adjust_downtime(self, user_id: int, name: Optional[str], signed: float, *, actor_id=None, reason=None) -> LedgerChange:
        if self._require_finite(signed, "DTP") == 0:
            raise InvalidAmount("DTP adjustment must not be zero.")
        return await self._mutate(
            user_id, name, self._dtp_transform(signed), kind="dtp_adjust", actor_id=actor_id, reason=reason, accrue=True
        )

    async def set_downtime(self, user_id: int, name: Optional[str], value: float, *, actor_id=None, reason=None) -> LedgerChange:
        if self._require_finite(value, "DTP") < 0:
            raise InvalidAmount("DTP cannot be negative.")
        return await self._mutate(
            user_id, name, self._dtp_transform(total=value), kind="dtp_set", actor_id=actor_id, reason=reason, accrue=True
        )

    # --------------- crew coins ---------------

    @staticmethod
    def _cc_transform(delta: int = 0, total: Optional[int] = None) -> Transform:
        def transform(ch: Character) -> Tuple[Character, bool]:
            raw = total if total is not None else ch.cc + delta
            return replace(ch, cc=max(0, raw)), raw < 0
        return transform

    async def adjust_crew_coins(self, user_id: int, name: Optional[str], signed: int, *, actor_id=None, reason=None) -> LedgerChange:
        if int(signed) == 0:
            raise InvalidAmount("CC adjustment must not be zero.")
        return await self._mutate(
            user_id, name, self._cc_transform(int(signed)), kind="cc_adjust", actor_id=actor_id, reason=reason
        )

    async def set_crew_coins(self, user_id: int, name: Optional[str], value: int, *, actor_id=None, reason=None) -> LedgerChange:
        if int(value) < 0:
            raise InvalidAmount("CC cannot be negative.")
        return await self._mutate(
            user_id, name, self._cc_transform(total=int(value)), kind="cc_set", actor_id=actor_id, reason=reason
        )

    # --------------- rewards ---------------

    def _delta_transform(self, delta_for: Callable[[Character], ResourceDelta], captured: dict) -> Transform:
        def transform(ch: Character) -> Tuple[Character, bool]:
            delta = delta_for(ch)
            captured["delta"] = delta
            res = self.rewards.apply_delta(ch.progress, delta)
            return ch.with_progress(res.apply_to(ch.progress)), res.was_clamped
        return transform

    async def apply_custom_reward(
        self, user_id: int, name: Optional[str], xp: float = 0, gp: float = 0, gt: float = 0, *, actor_id=None, reason=None
    ) -> LedgerChange:
        delta = RewardCalculator.custom_reward(xp, gp, gt)
        if delta.is_empty():
            raise InvalidAmount("A reward needs at least one of XP, GP or GT.")
        return await self._mutate(
            user_id,
            name,
            self._delta_transform(lambda ch: delta, {}),
            kind="reward_custom",
            actor_id=actor_id,
            reason=reason,
            delta=delta,
        )

    async def apply_custom_rewards(
        self, user_ids: Iterable[int], xp: float = 0, gp: float = 0, gt: float = 0, *, actor_id=None, reason=None
    ) -> List[LedgerChange]:
        """Reward several players' active characters in one transaction; a missing recipient writes nothing."""
        ids = list(dict.fromkeys(user_ids))
        delta = RewardCalculator.custom_reward(xp, gp, gt)
        if delta.is_empty():
            raise InvalidAmount("A reward needs at least one of XP, GP or GT.")
        clamped = set()
        transform = self._delta_transform(lambda ch: delta, {})

        def fn(locked: Character) -> Character:
            new, was_clamped = transform(locked)
            if was_clamped:
                clamped.add(locked.user_id)
            return new

        pairs, missing = await CharacterQueries.mutate_characters(
            self.pool, ids, fn, kind="reward_custom", actor_id=actor_id, reason=reason
        )
        if missing:
            raise CharacterNotFound(missing[0])
        return [
            LedgerChange(
                before=before,
                after=after,
                levels_changed=after.level - before.level,
                proficiency=self.engine.proficiency_for(after.level),
                was_clamped=before.user_id in clamped,
                delta=delta,
            )
            for before, after in pairs
        ]

    async def claim_dm_reward(
        self, user_id: int, name: Optional[str] = None, half: bool = False, *, reason=None
    ) -> LedgerChange:
        """DM self-claim from the reward table at the claiming character's level."""
        captured: dict = {}
        change = await self._mutate(
            user_id,
            name,
            self._delta_transform(lambda ch: self.rewards.dm_reward(ch.level, half), captured),
            kind="reward_dm_half" if half else "reward_dm",
            actor_id=user_id,
            reason=reason,
        )
        return replace(change, delta=captured.get("delta"))
