"""
Profit: multiplier-weighted aggregation of live account balances.

Each calculation holds per-account multipliers, first-class groups and
exchange rates into its target currency.  ``ProfitCalculationService``
recomputes the summary after every write.
"""

from fx_modules.profit.drafts import DraftBook, parse_draft
from fx_modules.profit.models import (
    AccountMultiplier,
    CalculationChanges,
    CalculationInput,
    ExchangeRate,
    ProfitCalculation,
    ProfitCalculationDetails,
    ProfitGroup,
)
from fx_modules.profit.service import ProfitCalculationService, SummaryListener
from fx_modules.profit.store import ProfitStore, SqlProfitStore

__all__ = [
    "AccountMultiplier",
    "CalculationChanges",
    "CalculationInput",
    "DraftBook",
    "ExchangeRate",
    "ProfitCalculation",
    "ProfitCalculationDetails",
    "ProfitCalculationService",
    "ProfitGroup",
    "ProfitStore",
    "SqlProfitStore",
    "SummaryListener",
    "parse_draft",
]
