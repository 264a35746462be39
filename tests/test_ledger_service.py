"""
LedgerService tests with the query layer replaced by an in-memory row store.
"""

import pytest

from ledger_bot.database.queries import CharacterQueries
from ledger_bot.domain import CharacterNotFound, InsufficientFunds, InvalidAmount
from ledger_bot.services.ledger_service import LedgerService

from .conftest import DAY, NOW, make_character


@pytest.mark.asyncio
class TestXP:
    async def test_grant_levels_up(self, ledger, fake_rows):
        fake_rows.add(make_character(xp=250))
        change = await ledger.grant_xp(111, None, 100, actor_id=5, reason="session")
        assert change.after.xp == 350
        assert change.after.level == 2
        assert change.levels_changed == 1
        assert change.proficiency == 2
        assert fake_rows.events == [("xp_add", 111, "Aria", 5, "session")]

    async def test_grant_below_one_rejected(self, ledger, fake_rows):
        fake_rows.add(make_character())
        with pytest.raises(InvalidAmount):
            await ledger.grant_xp(111, None, 0.5)
        assert fake_rows.events == []

    async def test_adjust_clamps_at_zero(self, ledger, fake_rows):
        fake_rows.add(make_character(xp=100))
        change = await ledger.adjust_xp(111, None, -500)
        assert change.after.xp == 0
        assert change.was_clamped

    async def test_set_recomputes_level(self, ledger, fake_rows):
        fake_rows.add(make_character(xp=0))
        change = await ledger.set_xp(111, "Aria", 6500)
        assert change.after.level == 5
        assert change.levels_changed == 4

    async def test_missing_character(self, ledger, fake_rows):
        with pytest.raises(CharacterNotFound):
            await ledger.grant_xp(222, None, 10)

    async def test_named_character_not_active(self, ledger, fake_rows):
        fake_rows.add(make_character(name="Aria"))
        fake_rows.add(make_character(name="Bram", active=False, xp=900, level=3))
        change = await ledger.grant_xp(111, "Bram", 10)
        assert change.after.name == "Bram"
        assert fake_rows.find(111, "Aria").xp == 0


@pytest.mark.asyncio
class TestGold:
    async def test_spend(self, ledger, fake_rows):
        fake_rows.add(make_character(cp=10_000))
        change = await ledger.spend_currency(111, None, 12.5)
        assert change.after.cp == 8_750

    async def test_spend_insufficient_leaves_row(self, ledger, fake_rows):
        fake_rows.add(make_character(cp=500))
        with pytest.raises(InsufficientFunds) as exc:
            await ledger.spend_currency(111, None, 10)
        assert exc.value.resource == "GP"
        assert fake_rows.find(111, None).cp == 500

    @pytest.mark.parametrize("amount", [0, -1, 1.005])
    async def test_trade_amount_validation(self, ledger, fake_rows, amount):
        fake_rows.add(make_character(cp=10_000))
        with pytest.raises(InvalidAmount):
            await ledger.earn_currency(111, None, amount)

    async def test_adjust_negative_clamps(self, ledger, fake_rows):
        fake_rows.add(make_character(cp=100))
        change = await ledger.adjust_currency(111, None, -5)
        assert change.after.cp == 0
        assert change.was_clamped

    async def test_set(self, ledger, fake_rows):
        fake_rows.add(make_character(cp=100))
        change = await ledger.set_currency(111, None, 42.42)
        assert change.after.cp == 4242

    async def test_set_negative_rejected(self, ledger, fake_rows):
        fake_rows.add(make_character())
        with pytest.raises(InvalidAmount):
            await ledger.set_currency(111, None, -1)


@pytest.mark.asyncio
class TestTicketsAndCoins:
    async def test_spend_tickets(self, ledger, fake_rows):
        fake_rows.add(make_character(tp=3))
        change = await ledger.spend_tickets(111, None, 2)
        assert change.after.tp == 1

    async def test_spend_tickets_insufficient(self, ledger, fake_rows):
        fake_rows.add(make_character(tp=1))
        with pytest.raises(InsufficientFunds):
            await ledger.spend_tickets(111, None, 2)

    async def test_adjust_zero_rejected(self, ledger, fake_rows):
        fake_rows.add(make_character())
        with pytest.raises(InvalidAmount):
            await ledger.adjust_tickets(111, None, 0)

    async def test_crew_coins(self, ledger, fake_rows):
        fake_rows.add(make_character(cc=2))
        change = await ledger.adjust_crew_coins(111, None, 3)
        assert change.after.cc == 5
        change = await ledger.set_crew_coins(111, None, 1)
        assert change.after.cc == 1


@pytest.mark.asyncio
class TestDowntime:
    async def test_adjust_accrues_first(self, ledger, fake_rows):
        fake_rows.add(make_character(dtp=1, dtp_updated=NOW - 2 * DAY))
        change = await ledger.adjust_downtime(111, None, -1)
        assert change.accrued == 2
        assert change.after.dtp == 2
        assert change.after.dtp_updated == NOW

    async def test_set_after_accrual(self, ledger, fake_rows):
        fake_rows.add(make_character(dtp=1, dtp_updated=NOW - DAY))
        change = await ledger.set_downtime(111, None, 10)
        assert change.after.dtp == 10
        assert change.after.dtp_updated == NOW

    async def test_get_character_persists_pending_accrual(self, ledger, fake_rows):
        fake_rows.add(make_character(dtp=0, dtp_updated=NOW - 3 * DAY))
        ch = await ledger.get_character(111)
        assert ch.dtp == 3
        assert fake_rows.events[0][0] == "dtp_accrue"

    async def test_get_character_without_pending_accrual_writes_nothing(self, ledger, fake_rows):
        fake_rows.add(make_character(dtp=4, dtp_updated=NOW))
        ch = await ledger.get_character(111)
        assert ch.dtp == 4
        assert fake_rows.events == []

    async def test_get_character_missing(self, ledger, fake_rows):
        assert await ledger.get_character(999) is None


@pytest.mark.asyncio
class TestRewards:
    async def test_custom_rewards_validate_before_writing(self, ledger, fake_rows):
        fake_rows.add(make_character(user_id=1))
        with pytest.raises(CharacterNotFound):
            await ledger.apply_custom_rewards([1, 2], xp=100)
        assert fake_rows.events == []
        assert fake_rows.find(1, None).xp == 0

    async def test_custom_rewards_written_together(self, ledger, fake_rows):
        fake_rows.add(make_character(user_id=1, name="A"))
        fake_rows.add(make_character(user_id=2, name="B"))
        await ledger.apply_custom_rewards([1, 2], gt=2, actor_id=9)
        CharacterQueries.mutate_characters.assert_awaited_once()
        assert CharacterQueries.mutate_characters.await_args.args[1] == [1, 2]
        CharacterQueries.mutate_character.assert_not_awaited()
        assert [e[1] for e in fake_rows.events] == [1, 2]

    async def test_custom_rewards_recipient_gone_at_lock(self, ledger, fake_rows, mocker):
        fake_rows.add(make_character(user_id=1, name="A"))
        fake_rows.add(make_character(user_id=2, name="B"))
        real = fake_rows.mutate_characters

        async def retire_then_lock(pool, user_ids, fn, **kwargs):
            del fake_rows.rows[(2, "B")]
            return await real(pool, user_ids, fn, **kwargs)

        mocker.patch.object(CharacterQueries, "mutate_characters", side_effect=retire_then_lock)
        with pytest.raises(CharacterNotFound):
            await ledger.apply_custom_rewards([1, 2], xp=100)
        assert fake_rows.find(1, None).xp == 0
        assert fake_rows.events == []

    async def test_custom_rewards_dedupe(self, ledger, fake_rows):
        fake_rows.add(make_character(user_id=1, name="A"))
        fake_rows.add(make_character(user_id=2, name="B"))
        changes = await ledger.apply_custom_rewards([1, 2, 1], xp=100, gp=5.5, gt=1, reason="quest")
        assert [c.after.user_id for c in changes] == [1, 2]
        assert changes[0].after.cp == 550
        assert changes[0].delta.currency_minor == 550
        assert all(e[0] == "reward_custom" for e in fake_rows.events)

    async def test_empty_reward_rejected(self, ledger, fake_rows):
        fake_rows.add(make_character())
        with pytest.raises(InvalidAmount):
            await ledger.apply_custom_rewards([111])

    async def test_dm_reward_half(self, ledger, fake_rows):
        fake_rows.add(make_character(xp=0, level=1))
        change = await ledger.claim_dm_reward(111, half=True)
        assert change.delta.xp == 50
        assert change.delta.currency_minor == 1000
        assert change.after.xp == 50
        assert fake_rows.events[0][0] == "reward_dm_half"
        assert fake_rows.events[0][3] == 111


@pytest.mark.asyncio
class TestLifecycle:
    async def test_create_uses_current_bucket(self, engine, calculator, mocker):
        create = mocker.patch.object(CharacterQueries, "create_character", return_value=make_character())
        ledger = LedgerService(object(), engine, calculator, clock=lambda: NOW + 5000)
        await ledger.create_character(111, "Aria", xp=900, gp=80, gt=0, actor_id=7)
        kwargs = create.call_args.kwargs
        assert kwargs["dtp_updated"] == NOW
        assert kwargs["level"] == 3
        assert kwargs["cp"] == 8000

    async def test_swap_unknown(self, ledger, mocker):
        mocker.patch.object(CharacterQueries, "set_active", return_value=None)
        with pytest.raises(CharacterNotFound):
            await ledger.swap_character(111, "Nobody")

    async def test_retire_returns_last_flag(self, ledger, mocker):
        ch = make_character()
        mocker.patch.object(CharacterQueries, "retire_character", return_value=(ch, True))
        retired, was_last = await ledger.retire_character(111)
        assert retired is ch
        assert was_last
