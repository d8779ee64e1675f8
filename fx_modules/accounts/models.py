"""
Accounts Domain Models (``fx_modules.accounts.models``).

Frozen value objects for currencies and house accounts.  Balances are live
values owned by the store: receipts credit an account, payments debit it,
and every movement leaves an ``AccountTransaction`` behind.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


@dataclass(frozen=True)
class Currency:
    """A tradable currency or crypto ticker with its reference rates.

    All four rates are optional; ``reference_rate`` picks the first one
    present in the order conversion-buy, base-buy, base-sell, conversion-sell.
    """
    code: str
    name: str
    base_rate_buy: Decimal | None = None
    conversion_rate_buy: Decimal | None = None
    base_rate_sell: Decimal | None = None
    conversion_rate_sell: Decimal | None = None
    active: bool = True

    def reference_rate(self) -> Decimal | None:
        for rate in (
            self.conversion_rate_buy,
            self.base_rate_buy,
            self.base_rate_sell,
            self.conversion_rate_sell,
        ):
            if rate is not None:
                return rate
        return None


@dataclass(frozen=True)
class Account:
    """A house account holding one currency."""
    id: UUID
    name: str
    currency_code: str
    balance: Decimal = Decimal("0")


class TransactionKind(str, Enum):
    ADD = "add"
    WITHDRAW = "withdraw"


@dataclass(frozen=True)
class AccountTransaction:
    """One balance movement.  ``amount`` is always positive; ``kind`` gives the sign."""
    id: UUID
    account_id: UUID
    kind: TransactionKind
    amount: Decimal
    description: str
    order_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.kind is TransactionKind.ADD else -self.amount
