"""
fx_engines.statistics -- Dashboard profit/expense roll-up.

Responsibility:
    Sum recorded order profits, expenses and transfer fees per currency and
    net them: ``net[c] = profit[c] - expense[c]``.  Currencies whose net is
    exactly zero are omitted from ``net_by_currency``.

Architecture position:
    Engines -- pure.  Callers select the completed orders and date range;
    expense lines and transfer fees come from outside this core.

Invariants enforced:
    - Only strictly positive profit amounts with a currency are counted.
    - Only strictly positive transfer fees are counted.
    - Totals across currencies are nominal sums (no conversion), exactly as
      the per-currency maps add up.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from fx_engines.tracer import traced_engine

ZERO = Decimal("0")


@dataclass(frozen=True)
class MoneyLine:
    """An amount in one currency (order profit, expense or transfer fee)."""
    amount: Decimal | None
    currency_code: str | None


@dataclass(frozen=True)
class DashboardStatistics:
    profit_total: Decimal
    profit_by_currency: Mapping[str, Decimal]
    profit_order_count: int
    expense_total: Decimal
    expense_by_currency: Mapping[str, Decimal]
    expense_count: int
    transfer_fee_count: int
    net_total: Decimal
    net_by_currency: Mapping[str, Decimal]


def _accumulate(bucket: dict[str, Decimal], currency: str, amount: Decimal) -> None:
    bucket[currency] = bucket.get(currency, ZERO) + amount


@traced_engine("dashboard_statistics", "1.0")
def compute_dashboard_statistics(
    *,
    order_profits: Iterable[MoneyLine],
    expenses: Iterable[MoneyLine] = (),
    transfer_fees: Iterable[MoneyLine] = (),
) -> DashboardStatistics:
    """Roll profits and expenses up per currency."""
    profit_by: dict[str, Decimal] = {}
    profit_total = ZERO
    order_count = 0
    for line in order_profits:
        if line.amount is None or line.amount <= ZERO or not line.currency_code:
            continue
        _accumulate(profit_by, line.currency_code, line.amount)
        profit_total += line.amount
        order_count += 1

    expense_by: dict[str, Decimal] = {}
    expense_total = ZERO
    expense_count = 0
    for line in expenses:
        if line.amount is None or not line.currency_code:
            continue
        _accumulate(expense_by, line.currency_code, line.amount)
        expense_total += line.amount
        expense_count += 1

    fee_count = 0
    for line in transfer_fees:
        if line.amount is None or line.amount <= ZERO or not line.currency_code:
            continue
        _accumulate(expense_by, line.currency_code, line.amount)
        expense_total += line.amount
        fee_count += 1

    net_by: dict[str, Decimal] = {}
    for currency in sorted(set(profit_by) | set(expense_by)):
        net = profit_by.get(currency, ZERO) - expense_by.get(currency, ZERO)
        if net != ZERO:
            net_by[currency] = net

    return DashboardStatistics(
        profit_total=profit_total,
        profit_by_currency=profit_by,
        profit_order_count=order_count,
        expense_total=expense_total,
        expense_by_currency=expense_by,
        expense_count=expense_count,
        transfer_fee_count=fee_count,
        net_total=profit_total - expense_total,
        net_by_currency=net_by,
    )
