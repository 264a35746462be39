"""
Dispatch of the shared resource commands onto the ledger service.
"""

import pytest

from ledger_bot.domain import InvalidAmount
from ledger_bot.utils.resource_ops import RESOURCE_METHODS, apply_resource_op


@pytest.fixture
def ledger(mocker):
    return mocker.AsyncMock()


@pytest.mark.asyncio
class TestApplyResourceOp:
    @pytest.mark.parametrize("resource,op", [(r, o) for r, ops in RESOURCE_METHODS.items() for o in ops])
    async def test_dispatch(self, ledger, resource, op):
        await apply_resource_op(ledger, resource, op, 1, None, 3, actor_id=9, reason="r")
        method = getattr(ledger, RESOURCE_METHODS[resource][op])
        method.assert_awaited_once_with(1, None, 3, actor_id=9, reason="r")

    @pytest.mark.parametrize("amount", [0, -2])
    async def test_add_requires_positive(self, ledger, amount):
        with pytest.raises(InvalidAmount):
            await apply_resource_op(ledger, "gt", "add", 1, None, amount)
        ledger.adjust_tickets.assert_not_awaited()

    async def test_negative_adjust_allowed(self, ledger):
        await apply_resource_op(ledger, "dtp", "adjust", 1, "Aria", -1.5)
        ledger.adjust_downtime.assert_awaited_once_with(1, "Aria", -1.5, actor_id=None, reason=None)

    async def test_crew_coins_are_whole(self, ledger):
        with pytest.raises(InvalidAmount):
            await apply_resource_op(ledger, "cc", "set", 1, None, 1.5)
        await apply_resource_op(ledger, "cc", "set", 1, None, 4.0)
        ledger.set_crew_coins.assert_awaited_once_with(1, None, 4, actor_id=None, reason=None)

    async def test_unknown_pair(self, ledger):
        with pytest.raises(ValueError):
            await apply_resource_op(ledger, "mana", "add", 1, None, 1)
