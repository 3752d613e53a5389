from __future__ import annotations

import pytest

from turngate_ai.agent_core.credits import PricedCreditGate, StaticBalanceProvider
from turngate_ai.agent_core.schemas.domain import ToolCall


class CountingBalances(StaticBalanceProvider):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.lookups = 0

    async def get_balance(self, user_id: str) -> float:
        self.lookups += 1
        return await super().get_balance(user_id)


@pytest.mark.asyncio
async def test_estimate_sums_prices_with_breakdown() -> None:
    gate = PricedCreditGate({"generate_image": 5}, StaticBalanceProvider(), default_price=0.5)
    calls = [
        ToolCall(id="a", name="generate_image"),
        ToolCall(id="b", name="generate_image"),
        ToolCall(id="c", name="lookup"),
    ]

    cost = await gate.estimate(calls)

    assert cost.total == 10.5
    assert [(i.tool_call_id, i.credits) for i in cost.breakdown] == [("a", 5), ("b", 5), ("c", 0.5)]


@pytest.mark.asyncio
async def test_estimate_scales_price_by_requested_count() -> None:
    gate = PricedCreditGate({"generate_image": 2.0}, StaticBalanceProvider())
    call = ToolCall(id="g", name="generate_image", arguments='{"prompt": "x", "count": 3}')

    cost = await gate.estimate([call])

    assert cost.total == 6.0
    assert cost.breakdown[0].credits == 6.0
    assert cost.breakdown[0].details == "3 x 2"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "arguments, expected",
    [
        ('{"count": 0}', 2.0),
        ('{"count": -2}', 2.0),
        ('{"count": true}', 2.0),
        ('{"count": "4"}', 2.0),
        ("not json", 2.0),
        ('{"shot_ids": ["a", "b", "c"]}', 6.0),
        ('{"shot_ids": []}', 2.0),
    ],
)
async def test_estimate_quantity_edge_cases(arguments: str, expected: float) -> None:
    gate = PricedCreditGate({"animate": 2.0}, StaticBalanceProvider(), quantity_keys=("count", "shot_ids"))
    cost = await gate.estimate([ToolCall(id="x", name="animate", arguments=arguments)])
    assert cost.total == expected


@pytest.mark.asyncio
async def test_free_tools_carry_no_details() -> None:
    cost = await PricedCreditGate({}, StaticBalanceProvider()).estimate([ToolCall(id="a", name="lookup")])
    assert cost.breakdown[0].details is None


@pytest.mark.asyncio
async def test_estimate_of_nothing_is_free() -> None:
    cost = await PricedCreditGate({}, StaticBalanceProvider()).estimate([])
    assert cost.total == 0 and cost.breakdown == []


@pytest.mark.asyncio
@pytest.mark.parametrize("balance, enough", [(9.99, False), (10, True), (50, True)])
async def test_check_balance(balance: float, enough: bool) -> None:
    gate = PricedCreditGate({}, StaticBalanceProvider({"u1": balance}))
    check = await gate.check_balance("u1", 10)
    assert (check.has_enough, check.current_balance) == (enough, balance)


@pytest.mark.asyncio
async def test_free_batches_skip_the_balance_lookup() -> None:
    balances = CountingBalances(default=0)
    check = await PricedCreditGate({}, balances).check_balance("u1", 0)
    assert check.has_enough is True
    assert balances.lookups == 0


@pytest.mark.asyncio
async def test_static_balances_default_and_override() -> None:
    balances = StaticBalanceProvider(default=3)
    assert await balances.get_balance("anyone") == 3
    balances.set_balance("anyone", 7)
    assert await balances.get_balance("anyone") == 7
