"""
Profit Calculation Domain Models (``fx_modules.profit.models``).

Responsibility
--------------
Frozen snapshots of a profit calculation: its header (name, target
currency, initial investment, default flag), its first-class groups, the
per-account multipliers with their optional group assignment, and the
stored exchange rates into the target currency.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  ``ProfitCalculationDetails``
adapts itself into the engine inputs of ``fx_engines.profit``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fx_engines.profit import GroupRef, MultiplierEntry


@dataclass(frozen=True)
class ProfitCalculation:
    id: UUID
    name: str
    target_currency: str
    initial_investment: Decimal
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ProfitGroup:
    """A named bucket of accounts.  Exists independently of membership."""
    id: UUID
    calculation_id: UUID
    name: str


@dataclass(frozen=True)
class AccountMultiplier:
    calculation_id: UUID
    account_id: UUID
    multiplier: Decimal
    group_id: UUID | None = None


@dataclass(frozen=True)
class ExchangeRate:
    """Rate converting one unit of ``from_currency`` into ``to_currency``."""
    calculation_id: UUID
    from_currency: str
    to_currency: str
    rate: Decimal


@dataclass(frozen=True)
class CalculationInput:
    name: str
    target_currency: str
    initial_investment: Decimal = Decimal("0")


@dataclass(frozen=True)
class CalculationChanges:
    """Header edits.  None means unchanged."""
    name: str | None = None
    target_currency: str | None = None
    initial_investment: Decimal | None = None

    def is_empty(self) -> bool:
        return self.name is None and self.target_currency is None and self.initial_investment is None


@dataclass(frozen=True)
class ProfitCalculationDetails:
    """A calculation with everything the aggregation needs except balances."""
    calculation: ProfitCalculation
    groups: tuple[ProfitGroup, ...]
    multipliers: tuple[AccountMultiplier, ...]
    exchange_rates: tuple[ExchangeRate, ...]

    def group_refs(self) -> tuple[GroupRef, ...]:
        return tuple(GroupRef(group_id=g.id, name=g.name) for g in self.groups)

    def multiplier_entries(self) -> tuple[MultiplierEntry, ...]:
        return tuple(
            MultiplierEntry(
                account_id=m.account_id,
                multiplier=m.multiplier,
                group_id=m.group_id,
            )
            for m in self.multipliers
        )

    def rate_map(self) -> dict[tuple[str, str], Decimal]:
        return {(r.from_currency, r.to_currency): r.rate for r in self.exchange_rates}

    def group_named(self, name: str) -> ProfitGroup | None:
        for group in self.groups:
            if group.name == name:
                return group
        return None
