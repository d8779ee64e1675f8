"""
Currency rate resolution backed by the account store.

``StoreCurrencyRateResolver`` satisfies ``fx_engines.conversion.
CurrencyRateResolver``: it returns a currency's reference rate, or None when
the currency is unknown, inactive or carries no rate at all.
"""

from __future__ import annotations

from decimal import Decimal

from fx_kernel.exceptions import CurrencyNotFoundError
from fx_kernel.logging_config import get_logger
from fx_modules.accounts.store import AccountStore

logger = get_logger("modules.accounts.service")


class StoreCurrencyRateResolver:
    """Resolves reference rates from the currencies known to the store."""

    def __init__(self, store: AccountStore):
        self._store = store

    def resolve_rate(self, currency_code: str) -> Decimal | None:
        try:
            currency = self._store.get_currency(currency_code)
        except CurrencyNotFoundError:
            logger.debug("currency_rate_unresolved", extra={"currency_code": currency_code})
            return None
        if not currency.active:
            return None
        return currency.reference_rate()
