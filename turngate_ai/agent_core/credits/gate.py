from __future__ import annotations

"""Credit gate contract and a price-table implementation.

The engine treats billing as a yes/no gate. Before an approved batch runs it
asks for the aggregate cost of exactly the enabled calls and checks the
conversation owner's balance once. Charging itself happens inside tool
handlers and is outside the engine's concern.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Protocol, Sequence

from ..schemas.domain import BalanceCheck, CreditCost, CreditLineItem, ToolCall

logger = logging.getLogger(__name__)


class CreditGate(Protocol):
    async def estimate(self, calls: Sequence[ToolCall]) -> CreditCost:
        """
        Compute the aggregate cost of a set of tool calls.

        Args:
            calls: The calls that are about to run.

        Returns:
            The total and a per-call breakdown.
        """
        ...

    async def check_balance(self, user_id: str, required: float) -> BalanceCheck:
        """
        Check whether a user can afford ``required`` credits.

        Args:
            user_id: The conversation owner.
            required: The aggregate cost.

        Returns:
            Whether the balance suffices, plus the current balance.
        """
        ...


class BalanceProvider(Protocol):
    async def get_balance(self, user_id: str) -> float: ...


class StaticBalanceProvider:
    """Balances held in memory, for local development and tests."""

    def __init__(self, balances: Optional[Mapping[str, float]] = None, *, default: float = 0.0) -> None:
        self._balances: Dict[str, float] = dict(balances or {})
        self._default = default

    def set_balance(self, user_id: str, amount: float) -> None:
        self._balances[user_id] = amount

    async def get_balance(self, user_id: str) -> float:
        return self._balances.get(user_id, self._default)


class PricedCreditGate:
    """``CreditGate`` backed by a per-tool price table.

    Tools missing from ``prices`` cost ``default_price``. A call is charged its
    unit price times its quantity: the first of ``quantity_keys`` present in the
    call arguments, read as a positive integer or as the length of a non-empty
    list. Calls without one count once. A zero total is always affordable and
    the balance is not queried.
    """

    def __init__(
        self,
        prices: Mapping[str, float],
        balances: BalanceProvider,
        *,
        default_price: float = 0.0,
        quantity_keys: Sequence[str] = ("count",),
    ) -> None:
        self._prices = dict(prices)
        self._balances = balances
        self._default_price = default_price
        self._quantity_keys = tuple(quantity_keys)

    def _quantity(self, arguments: Mapping[str, Any]) -> int:
        for key in self._quantity_keys:
            value = arguments.get(key)
            if isinstance(value, bool):
                continue
            if isinstance(value, int) and value > 0:
                return value
            if isinstance(value, list) and value:
                return len(value)
        return 1

    def _line_item(self, call: ToolCall) -> CreditLineItem:
        price = self._prices.get(call.name, self._default_price)
        quantity = self._quantity(call.parsed_arguments())
        return CreditLineItem(
            tool_call_id=call.id,
            tool_name=call.name,
            credits=price * quantity,
            details=f"{quantity} x {price:g}" if price else None,
        )

    async def estimate(self, calls: Sequence[ToolCall]) -> CreditCost:
        items = [self._line_item(c) for c in calls]
        return CreditCost(total=sum(i.credits for i in items), breakdown=items)

    async def check_balance(self, user_id: str, required: float) -> BalanceCheck:
        if required <= 0:
            return BalanceCheck(has_enough=True, current_balance=0.0)
        balance = await self._balances.get_balance(user_id)
        logger.debug("Balance check for %s: required=%s balance=%s", user_id, required, balance)
        return BalanceCheck(has_enough=balance >= required, current_balance=balance)
