"""
Pure calculation engines for the FX back office.

Engines take plain values (Decimal amounts, frozen dataclasses) and return
frozen results.  They perform no I/O; the only side effect is the
``FX_ENGINE_TRACE`` log record emitted by ``@traced_engine``.
"""

from fx_engines.conversion import (
    AmountDeriver,
    AmountSide,
    DerivationResult,
    classify_base_currency,
    derive_counter_amount,
)
from fx_engines.profit import (
    AccountBalance,
    GroupRef,
    GroupSummary,
    MultiplierEntry,
    ProfitSummary,
    compute_profit_summary,
)
from fx_engines.settlement import (
    SettlementLedger,
    SettlementPosition,
    amounts_agree,
)
from fx_engines.statistics import (
    DashboardStatistics,
    MoneyLine,
    compute_dashboard_statistics,
)

__all__ = [
    "AmountDeriver",
    "AmountSide",
    "DerivationResult",
    "classify_base_currency",
    "derive_counter_amount",
    "AccountBalance",
    "GroupRef",
    "GroupSummary",
    "MultiplierEntry",
    "ProfitSummary",
    "compute_profit_summary",
    "SettlementLedger",
    "SettlementPosition",
    "amounts_agree",
    "DashboardStatistics",
    "MoneyLine",
    "compute_dashboard_statistics",
]
