"""
Ledger audit trail rows and how /ledger history renders them.
"""

from datetime import datetime, timezone

from ledger_bot.cogs.admin import history_line
from ledger_bot.database.models import LedgerEvent

AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


def event(**overrides):
    fields = dict(
        id=1,
        user_id=111,
        name="Aria",
        kind="xp_add",
        delta_xp=0,
        delta_cp=0,
        delta_tp=0.0,
        delta_dtp=0.0,
        delta_cc=0,
        at=AT,
    )
    fields.update(overrides)
    return LedgerEvent(**fields)


class TestLedgerEvent:
    def test_from_record(self):
        row = {
            "id": 9, "user_id": 1, "name": "A", "kind": "gp_spend", "delta_xp": 0, "delta_cp": -250,
            "delta_tp": 0.0, "delta_dtp": 0.0, "delta_cc": 0, "at": AT, "actor_id": 1, "reason": "potion",
        }
        ev = LedgerEvent.from_record(row)
        assert ev.kind == "gp_spend"
        assert ev.deltas() == {"gp": -250}

    def test_deltas_skip_zero(self):
        assert event(delta_xp=100, delta_tp=1.0).deltas() == {"xp": 100, "gt": 1.0}


class TestHistoryLine:
    def test_signed_amounts(self):
        line = history_line(event(kind="reward_dm", delta_xp=100, delta_cp=-1250))
        assert "`reward_dm` **Aria**" in line
        assert "+100 XP" in line
        assert "-12.50 GP" in line
        assert f"<t:{int(AT.timestamp())}:R>" in line

    def test_actor_and_reason(self):
        line = history_line(event(delta_xp=5, actor_id=222, reason="session"))
        assert "(by <@222>)" in line
        assert line.endswith("· session")

    def test_self_actor_not_repeated(self):
        assert "(by" not in history_line(event(delta_xp=5, actor_id=111))
