"""
fx_modules.profit.service
=========================

Responsibility:
    ``ProfitCalculationService`` owns the profit screen's behaviour: CRUD
    over calculations, multipliers, exchange rates and groups, the default
    calculation, and the aggregation itself.  After every write the summary
    is recomputed from fresh store data and pushed to subscribed listeners.

Architecture:
    Module layer.  Loads inputs through ``ProfitStore`` and ``AccountStore``,
    delegates the arithmetic to ``fx_engines.profit.compute_profit_summary``.

Invariants enforced:
    - Negative multipliers are clamped to 0 at this boundary and logged as
      ``multiplier_clamped``; the store never sees a negative value.
    - Summaries are always computed from a fresh read, never patched.
    - The default calculation is summarised independently of whichever
      calculation the caller is viewing.

Failure modes:
    - CalculationNotFoundError / GroupNotFoundError / AccountNotFoundError.
    - DuplicateGroupError on create / rename clashes (nothing written).
    - InvalidAmountError for a non-numeric multiplier, a negative initial
      investment or a non-positive rate.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from uuid import UUID

from fx_engines.profit import AccountBalance, ProfitSummary, clamp_multiplier, compute_profit_summary
from fx_kernel.db.types import positive_decimal, to_decimal
from fx_kernel.exceptions import InvalidAmountError
from fx_kernel.logging_config import LogContext, get_logger
from fx_modules.accounts.store import AccountStore
from fx_modules.profit.drafts import DraftBook
from fx_modules.profit.models import (
    CalculationChanges,
    CalculationInput,
    ProfitCalculation,
    ProfitCalculationDetails,
    ProfitGroup,
)
from fx_modules.profit.store import ProfitStore

logger = get_logger("modules.profit.service")

SummaryListener = Callable[[UUID, ProfitSummary], None]


class ProfitCalculationService:
    """Profit calculations with reactive recomputation."""

    def __init__(self, store: ProfitStore, accounts: AccountStore):
        self._store = store
        self._accounts = accounts
        self._listeners: list[SummaryListener] = []

    def subscribe(self, listener: SummaryListener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_calculations(self) -> list[ProfitCalculation]:
        return self._store.list_calculations()

    def get_calculation(self, calculation_id: UUID) -> ProfitCalculationDetails:
        return self._store.get_calculation(calculation_id)

    def summary(self, calculation_id: UUID, drafts: DraftBook | None = None) -> ProfitSummary:
        """Aggregate one calculation over the live account balances.

        With ``drafts`` the parseable unconfirmed edits are applied for
        display; nothing is written.
        """
        return self._summarise(self._store.get_calculation(calculation_id), drafts)

    def default_summary(self) -> ProfitSummary | None:
        details = self._store.get_default()
        if details is None:
            return None
        return self._summarise(details)

    # ------------------------------------------------------------------
    # Calculations
    # ------------------------------------------------------------------

    def create_calculation(
        self,
        name: str,
        target_currency: str,
        initial_investment: Decimal = Decimal("0"),
    ) -> ProfitCalculation:
        investment = _non_negative(initial_investment, "initial_investment")
        return self._store.create_calculation(
            CalculationInput(
                name=name,
                target_currency=target_currency,
                initial_investment=investment,
            )
        )

    def update_calculation(
        self, calculation_id: UUID, changes: CalculationChanges,
    ) -> ProfitSummary:
        if changes.initial_investment is not None:
            _non_negative(changes.initial_investment, "initial_investment")
        self._store.update_calculation(calculation_id, changes)
        return self._recompute(calculation_id)

    def delete_calculation(self, calculation_id: UUID) -> None:
        self._store.delete_calculation(calculation_id)

    def set_default(self, calculation_id: UUID) -> ProfitCalculation:
        return self._store.set_default(calculation_id)

    def unset_default(self, calculation_id: UUID) -> ProfitCalculation:
        return self._store.unset_default(calculation_id)

    # ------------------------------------------------------------------
    # Multipliers, groups and rates
    # ------------------------------------------------------------------

    def set_multiplier(
        self, calculation_id: UUID, account_id: UUID, multiplier: Decimal,
    ) -> ProfitSummary:
        value = to_decimal(multiplier, "multiplier")
        clamped = clamp_multiplier(value)
        if clamped != value:
            logger.warning(
                "multiplier_clamped",
                extra={
                    "calculation_id": str(calculation_id),
                    "account_id": str(account_id),
                    "requested": str(value),
                    "stored": str(clamped),
                },
            )
        self._store.update_account_multiplier(calculation_id, account_id, clamped)
        return self._recompute(calculation_id)

    def assign_group(
        self, calculation_id: UUID, account_id: UUID, group_id: UUID | None,
    ) -> ProfitSummary:
        """Put an account into a group, or take it out with ``group_id=None``."""
        self._store.assign_group(calculation_id, account_id, group_id)
        return self._recompute(calculation_id)

    def set_exchange_rate(
        self, calculation_id: UUID, from_currency: str, to_currency: str, rate: Decimal,
    ) -> ProfitSummary:
        self._store.update_exchange_rate(
            calculation_id, from_currency, to_currency, positive_decimal(rate, "rate"),
        )
        return self._recompute(calculation_id)

    def create_group(self, calculation_id: UUID, name: str) -> ProfitGroup:
        group = self._store.create_group(calculation_id, name)
        self._recompute(calculation_id)
        return group

    def rename_group(self, calculation_id: UUID, group_id: UUID, new_name: str) -> ProfitSummary:
        self._store.rename_group(calculation_id, group_id, new_name)
        return self._recompute(calculation_id)

    def delete_group(self, calculation_id: UUID, group_id: UUID) -> ProfitSummary:
        self._store.delete_group(calculation_id, group_id)
        return self._recompute(calculation_id)

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def commit_multiplier_draft(
        self, calculation_id: UUID, account_id: UUID, drafts: DraftBook,
    ) -> ProfitSummary:
        """Persist a drafted multiplier, then drop the draft.

        The draft is kept when it does not parse or the write fails.
        """
        value = drafts.parsed_multiplier(account_id)
        if value is None:
            raise InvalidAmountError("multiplier", drafts.multiplier_text(account_id))
        result = self.set_multiplier(calculation_id, account_id, value)
        drafts.discard_multiplier(account_id)
        return result

    def commit_rate_draft(
        self,
        calculation_id: UUID,
        from_currency: str,
        to_currency: str,
        drafts: DraftBook,
    ) -> ProfitSummary:
        value = drafts.parsed_rate(from_currency, to_currency)
        if value is None:
            raise InvalidAmountError("rate", drafts.rate_text(from_currency, to_currency))
        result = self.set_exchange_rate(calculation_id, from_currency, to_currency, value)
        drafts.discard_rate(from_currency, to_currency)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _summarise(
        self, details: ProfitCalculationDetails, drafts: DraftBook | None = None,
    ) -> ProfitSummary:
        balances = [
            AccountBalance(
                account_id=a.id,
                name=a.name,
                currency_code=a.currency_code,
                balance=a.balance,
            )
            for a in self._accounts.list_accounts()
        ]
        multipliers = details.multiplier_entries()
        rates = details.rate_map()
        if drafts is not None and len(drafts):
            multipliers, rates = drafts.overlay(multipliers, rates)
        calc = details.calculation
        return compute_profit_summary(
            accounts=balances,
            multipliers=multipliers,
            exchange_rates=rates,
            groups=details.group_refs(),
            target_currency=calc.target_currency,
            initial_investment=calc.initial_investment,
        )

    def _recompute(self, calculation_id: UUID) -> ProfitSummary:
        with LogContext.bind(calculation_id=calculation_id):
            summary = self.summary(calculation_id)
            logger.info(
                "profit_recomputed",
                extra={
                    "total_converted": str(summary.total_converted),
                    "profit": str(summary.profit),
                    "missing_rates": [f"{a}->{b}" for a, b in summary.missing_rates],
                },
            )
            for listener in list(self._listeners):
                listener(calculation_id, summary)
        return summary


def _non_negative(value: object, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result < 0:
        raise InvalidAmountError(field, value)
    return result
