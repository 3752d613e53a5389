"""Credit gate consulted before an approved batch of tool calls runs."""

from .gate import BalanceProvider, CreditGate, PricedCreditGate, StaticBalanceProvider

__all__ = [
    "BalanceProvider",
    "CreditGate",
    "PricedCreditGate",
    "StaticBalanceProvider",
]
