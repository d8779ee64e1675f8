"""
fx_engines.conversion -- Buy/sell amount auto-derivation.

Responsibility:
    Given an order's currency pair, its rate and the one amount the operator
    typed, decide which currency acts as the "base" and derive the other
    amount: an amount entered in the base currency is multiplied by the rate,
    an amount entered in the counter currency is divided by it.

Architecture position:
    Engines -- pure.  Rates arrive through the ``CurrencyRateResolver``
    protocol; the SQL-backed resolver lives in ``fx_modules.accounts.service``.

Invariants enforced:
    - A currency is base-like when its resolved rate-to-reference is <= 1.
      When no rate resolves, only the reference code (``USDT`` by default)
      is base-like.
    - Both sides base-like: no derivation, the operator fills both amounts.
    - Neither side base-like: the smaller resolved rate wins when both
      resolve, otherwise the from-currency is the base.
    - Derived amounts are quantized ROUND_HALF_UP to a configured number of
      places.  The rate itself is never rounded.

Failure modes:
    - InvalidAmountError if the rate or the typed amount is not > 0.

Audit relevance:
    The derivation is a convenience for data entry, not a financial
    invariant: ``amount_sell ~= amount_buy x rate`` is never enforced on
    stored orders.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Protocol

from fx_engines.tracer import traced_engine
from fx_kernel.db.types import positive_decimal, round_money
from fx_kernel.logging_config import get_logger

logger = get_logger("engines.conversion")

DEFAULT_REFERENCE_CODE = "USDT"
DEFAULT_DERIVED_PLACES = 8


class AmountSide(str, Enum):
    """Which order amount a value belongs to."""
    BUY = "buy"
    SELL = "sell"

    @property
    def other(self) -> AmountSide:
        return AmountSide.SELL if self is AmountSide.BUY else AmountSide.BUY


class CurrencyRateResolver(Protocol):
    """Returns the rate relating a currency to the reference unit, or None."""

    def resolve_rate(self, currency_code: str) -> Decimal | None:
        ...


@dataclass(frozen=True)
class DerivationResult:
    """Outcome of one auto-derivation.

    ``derived_side`` is None when no derivation happened; the amount on that
    side is then whatever the caller supplied (possibly None).
    """
    base_side: AmountSide | None
    amount_buy: Decimal | None
    amount_sell: Decimal | None
    derived_side: AmountSide | None = None


def _is_base_like(code: str, rate: Decimal | None, reference_code: str) -> bool:
    if rate is not None:
        return rate <= 1
    return code == reference_code


def classify_base_currency(
    from_currency: str,
    to_currency: str,
    from_rate: Decimal | None,
    to_rate: Decimal | None,
    reference_code: str = DEFAULT_REFERENCE_CODE,
) -> AmountSide | None:
    """Return the side (BUY = from-currency, SELL = to-currency) that is base.

    None means both currencies look like reference units and nothing should
    be derived.
    """
    from_base = _is_base_like(from_currency, from_rate, reference_code)
    to_base = _is_base_like(to_currency, to_rate, reference_code)

    if from_base and to_base:
        return None
    if from_base:
        return AmountSide.BUY
    if to_base:
        return AmountSide.SELL
    if from_rate is not None and to_rate is not None and to_rate < from_rate:
        return AmountSide.SELL
    return AmountSide.BUY


@traced_engine(
    "amount_derivation", "1.0",
    fingerprint_fields=("edited_side", "amount", "rate", "base_side"),
)
def derive_counter_amount(
    *,
    edited_side: AmountSide,
    amount: Decimal,
    rate: Decimal,
    base_side: AmountSide,
    decimal_places: int = DEFAULT_DERIVED_PLACES,
) -> Decimal:
    """Derive the amount on the side opposite ``edited_side``.

    Raises:
        InvalidAmountError: if ``amount`` or ``rate`` is not > 0.
    """
    amount = positive_decimal(amount, f"amount_{edited_side.value}")
    rate = positive_decimal(rate, "rate")
    if edited_side is base_side:
        raw = amount * rate
    else:
        raw = amount / rate
    return round_money(raw, decimal_places, ROUND_HALF_UP)


class AmountDeriver:
    """Applies the base-currency heuristic with rates from a resolver.

    Contract:
        ``derive`` never touches a side the operator filled in; it only fills
        the empty side, and only when a base currency can be identified.
    """

    def __init__(
        self,
        resolver: CurrencyRateResolver,
        reference_code: str = DEFAULT_REFERENCE_CODE,
        decimal_places: int = DEFAULT_DERIVED_PLACES,
    ):
        self._resolver = resolver
        self._reference_code = reference_code
        self._decimal_places = decimal_places

    def base_side(self, from_currency: str, to_currency: str) -> AmountSide | None:
        return classify_base_currency(
            from_currency,
            to_currency,
            self._resolver.resolve_rate(from_currency),
            self._resolver.resolve_rate(to_currency),
            self._reference_code,
        )

    def derive(
        self,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        edited_side: AmountSide,
        amount: Decimal,
    ) -> DerivationResult:
        """Derive the opposite amount from the one the operator typed."""
        base = self.base_side(from_currency, to_currency)
        typed = positive_decimal(amount, f"amount_{edited_side.value}")

        if base is None:
            logger.debug(
                "amount_derivation_skipped",
                extra={
                    "from_currency": from_currency,
                    "to_currency": to_currency,
                    "reason": "both_base_like",
                },
            )
            if edited_side is AmountSide.BUY:
                return DerivationResult(None, typed, None)
            return DerivationResult(None, None, typed)

        derived = derive_counter_amount(
            edited_side=edited_side,
            amount=typed,
            rate=rate,
            base_side=base,
            decimal_places=self._decimal_places,
        )
        logger.debug(
            "amount_derived",
            extra={
                "from_currency": from_currency,
                "to_currency": to_currency,
                "base_side": base.value,
                "edited_side": edited_side.value,
                "amount": str(typed),
                "derived": str(derived),
            },
        )
        if edited_side is AmountSide.BUY:
            return DerivationResult(base, typed, derived, AmountSide.SELL)
        return DerivationResult(base, derived, typed, AmountSide.BUY)
