"""
fx_engines.settlement -- Settlement ledger arithmetic.

Responsibility:
    Compute the four reconciliation figures of an order from its contracted
    amounts and its append-only receipt and payment ledgers:

        total_receipt_amount = sum(receipts)
        receipt_balance      = amount_buy  - total_receipt_amount
        total_payment_amount = sum(payments)
        payment_balance      = amount_sell - total_payment_amount

    and compare Decimal amounts with an absolute tolerance.

Architecture position:
    Engines -- pure.  Used by the reference store (to publish the totals
    in order details and to apply its sufficiency rule) and by the order
    workflow engine (to check that the store's figures agree with its own).

Invariants enforced:
    - Ledgers are append-only: ``with_receipt``/``with_payment`` return a new
      ledger and never modify the existing one.
    - Balances may go negative (over-collection is reported, not rejected).
    - No rounding: totals are exact Decimal sums.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from fx_engines.tracer import traced_engine

ZERO = Decimal("0")


def amounts_agree(left: Decimal, right: Decimal, tolerance: Decimal = ZERO) -> bool:
    """True when ``|left - right| <= tolerance``."""
    return abs(left - right) <= tolerance


@dataclass(frozen=True)
class SettlementPosition:
    """Reconciliation figures for one order at one point in time."""
    amount_buy: Decimal
    amount_sell: Decimal
    total_receipt_amount: Decimal
    total_payment_amount: Decimal
    receipt_balance: Decimal
    payment_balance: Decimal

    def receipts_sufficient(self, tolerance: Decimal = ZERO) -> bool:
        """Collected receipts cover the buy amount (within tolerance)."""
        return self.total_receipt_amount >= self.amount_buy - tolerance

    def payments_sufficient(self, tolerance: Decimal = ZERO) -> bool:
        """Paid-out amounts cover the sell amount (within tolerance)."""
        return self.total_payment_amount >= self.amount_sell - tolerance

    def disagreements(
        self, other: SettlementPosition, tolerance: Decimal = ZERO,
    ) -> tuple[str, ...]:
        """Names of the figures on which ``other`` differs beyond tolerance."""
        fields = (
            "total_receipt_amount",
            "total_payment_amount",
            "receipt_balance",
            "payment_balance",
        )
        return tuple(
            name for name in fields
            if not amounts_agree(getattr(self, name), getattr(other, name), tolerance)
        )


@traced_engine(
    "settlement_position", "1.0",
    fingerprint_fields=("amount_buy", "amount_sell", "receipt_amounts", "payment_amounts"),
)
def compute_position(
    *,
    amount_buy: Decimal,
    amount_sell: Decimal,
    receipt_amounts: tuple[Decimal, ...],
    payment_amounts: tuple[Decimal, ...],
) -> SettlementPosition:
    """Pure computation of the four reconciliation figures."""
    total_receipts = sum(receipt_amounts, ZERO)
    total_payments = sum(payment_amounts, ZERO)
    return SettlementPosition(
        amount_buy=amount_buy,
        amount_sell=amount_sell,
        total_receipt_amount=total_receipts,
        total_payment_amount=total_payments,
        receipt_balance=amount_buy - total_receipts,
        payment_balance=amount_sell - total_payments,
    )


@dataclass(frozen=True)
class SettlementLedger:
    """Append-only receipt and payment amounts for one order."""
    amount_buy: Decimal
    amount_sell: Decimal
    receipts: tuple[Decimal, ...] = ()
    payments: tuple[Decimal, ...] = ()

    @classmethod
    def from_amounts(
        cls,
        amount_buy: Decimal,
        amount_sell: Decimal,
        receipts: Iterable[Decimal] = (),
        payments: Iterable[Decimal] = (),
    ) -> SettlementLedger:
        return cls(amount_buy, amount_sell, tuple(receipts), tuple(payments))

    def with_receipt(self, amount: Decimal) -> SettlementLedger:
        return SettlementLedger(
            self.amount_buy, self.amount_sell, self.receipts + (amount,), self.payments,
        )

    def with_payment(self, amount: Decimal) -> SettlementLedger:
        return SettlementLedger(
            self.amount_buy, self.amount_sell, self.receipts, self.payments + (amount,),
        )

    def position(self) -> SettlementPosition:
        return compute_position(
            amount_buy=self.amount_buy,
            amount_sell=self.amount_sell,
            receipt_amounts=self.receipts,
            payment_amounts=self.payments,
        )
