"""
Draft multiplier / rate text for the profit screen.

Operators type multipliers and exchange rates as free text.  Until a value
is confirmed by the store it lives here, keyed by account id or currency
pair.  ``overlay`` merges the parseable drafts into the engine inputs so a
summary can be previewed; nothing in a ``DraftBook`` is ever persisted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from fx_engines.profit import MultiplierEntry, clamp_multiplier
from fx_kernel.db.types import to_decimal
from fx_kernel.exceptions import InvalidAmountError

RatePair = tuple[str, str]


def parse_draft(text: str | None) -> Decimal | None:
    """Decimal value of draft text, or None while it is not a number yet."""
    if text is None or not text.strip():
        return None
    try:
        return to_decimal(text)
    except InvalidAmountError:
        return None


class DraftBook:
    """Unconfirmed multiplier and rate edits for one calculation."""

    def __init__(self):
        self._multipliers: dict[UUID, str] = {}
        self._rates: dict[RatePair, str] = {}

    def __len__(self) -> int:
        return len(self._multipliers) + len(self._rates)

    # Multipliers

    def set_multiplier(self, account_id: UUID, text: str) -> None:
        self._multipliers[account_id] = text

    def multiplier_text(self, account_id: UUID) -> str | None:
        return self._multipliers.get(account_id)

    def parsed_multiplier(self, account_id: UUID) -> Decimal | None:
        return parse_draft(self._multipliers.get(account_id))

    def discard_multiplier(self, account_id: UUID) -> None:
        self._multipliers.pop(account_id, None)

    # Rates

    def set_rate(self, from_currency: str, to_currency: str, text: str) -> None:
        self._rates[(from_currency, to_currency)] = text

    def rate_text(self, from_currency: str, to_currency: str) -> str | None:
        return self._rates.get((from_currency, to_currency))

    def parsed_rate(self, from_currency: str, to_currency: str) -> Decimal | None:
        return parse_draft(self._rates.get((from_currency, to_currency)))

    def discard_rate(self, from_currency: str, to_currency: str) -> None:
        self._rates.pop((from_currency, to_currency), None)

    def clear(self) -> None:
        self._multipliers.clear()
        self._rates.clear()

    def overlay(
        self,
        multipliers: Iterable[MultiplierEntry],
        exchange_rates: Mapping[RatePair, Decimal],
    ) -> tuple[list[MultiplierEntry], dict[RatePair, Decimal]]:
        """Engine inputs with every parseable draft applied.

        Draft multipliers are clamped at 0; unparseable drafts are ignored.
        """
        entries = {m.account_id: m for m in multipliers}
        for account_id in self._multipliers:
            value = self.parsed_multiplier(account_id)
            if value is None:
                continue
            current = entries.get(account_id)
            if current is None:
                entries[account_id] = MultiplierEntry(account_id, clamp_multiplier(value))
            else:
                entries[account_id] = replace(current, multiplier=clamp_multiplier(value))

        rates = dict(exchange_rates)
        for pair in self._rates:
            value = self.parsed_rate(*pair)
            if value is not None:
                rates[pair] = value
        return list(entries.values()), rates
