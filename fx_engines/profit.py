"""
fx_engines.profit -- Profit / multiplier aggregation.

Responsibility:
    Roll live account balances up into a single profit figure for one
    profit calculation:

    1. ``calculated = balance x multiplier`` per account (multiplier 1 when
       the calculation holds no entry for the account).
    2. Partition accounts by their group assignment.  Accounts without a
       group (or pointing at a group that no longer exists) are ungrouped.
       Every declared group is reported, members or not.
    3. Sum ``calculated`` per currency inside each group.
    4. Convert every currency bucket to the target currency with the stored
       ``(currency, target)`` rate.  Same currency uses 1.  A missing or
       non-positive rate contributes 0 and is listed in ``missing_rates``.
    5. ``total_converted`` is the sum over declared groups; ungrouped
       accounts are reported but never counted.
       ``profit = total_converted - initial_investment``.

Architecture position:
    Engines -- pure.  ``fx_modules.profit.service`` loads the inputs from the
    store and calls ``compute_profit_summary`` after every relevant write.

Invariants enforced:
    - Currencies are never mixed inside a bucket.
    - Missing data is tolerated, never raised: missing multiplier -> 1,
      missing rate -> 0.
    - The result depends only on the inputs (no clock, no I/O).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from fx_engines.tracer import traced_engine

ZERO = Decimal("0")
ONE = Decimal("1")

UNGROUPED_NAME = "Ungrouped"


def clamp_multiplier(value: Decimal) -> Decimal:
    """Negative multipliers become 0; everything else passes through."""
    return value if value > ZERO else ZERO


@dataclass(frozen=True)
class AccountBalance:
    """An account with its live balance."""
    account_id: UUID
    name: str
    currency_code: str
    balance: Decimal


@dataclass(frozen=True)
class MultiplierEntry:
    """A calculation's multiplier and optional group for one account."""
    account_id: UUID
    multiplier: Decimal = ONE
    group_id: UUID | None = None


@dataclass(frozen=True)
class GroupRef:
    """A first-class group: stable id plus display name."""
    group_id: UUID
    name: str


@dataclass(frozen=True)
class AccountLine:
    """One account's contribution to the summary."""
    account_id: UUID
    name: str
    currency_code: str
    balance: Decimal
    multiplier: Decimal
    calculated: Decimal
    group_id: UUID | None


@dataclass(frozen=True)
class GroupSummary:
    """Per-group currency sums and their converted total.

    ``group_id`` is None for the ungrouped bucket.
    """
    group_id: UUID | None
    name: str
    accounts: tuple[AccountLine, ...]
    currency_sums: Mapping[str, Decimal]
    converted_total: Decimal

    @property
    def account_count(self) -> int:
        return len(self.accounts)


@dataclass(frozen=True)
class ProfitSummary:
    """Full aggregation result for one calculation."""
    target_currency: str
    initial_investment: Decimal
    groups: tuple[GroupSummary, ...]
    ungrouped: GroupSummary
    total_converted: Decimal
    profit: Decimal
    missing_rates: tuple[tuple[str, str], ...] = field(default=())

    def group(self, group_id: UUID) -> GroupSummary | None:
        for g in self.groups:
            if g.group_id == group_id:
                return g
        return None

    def line_for(self, account_id: UUID) -> AccountLine | None:
        for g in self.groups + (self.ungrouped,):
            for line in g.accounts:
                if line.account_id == account_id:
                    return line
        return None


def conversion_rate(
    currency: str,
    target_currency: str,
    exchange_rates: Mapping[tuple[str, str], Decimal],
) -> Decimal | None:
    """Rate converting ``currency`` into ``target_currency``; None if unknown."""
    if currency == target_currency:
        return ONE
    rate = exchange_rates.get((currency, target_currency))
    if rate is None or rate <= ZERO:
        return None
    return rate


def _summarise(
    group_id: UUID | None,
    name: str,
    lines: list[AccountLine],
    target_currency: str,
    exchange_rates: Mapping[tuple[str, str], Decimal],
    missing: set[tuple[str, str]],
) -> GroupSummary:
    sums: dict[str, Decimal] = {}
    for line in lines:
        sums[line.currency_code] = sums.get(line.currency_code, ZERO) + line.calculated

    converted = ZERO
    for currency, amount in sums.items():
        rate = conversion_rate(currency, target_currency, exchange_rates)
        if rate is None:
            missing.add((currency, target_currency))
            continue
        converted += amount * rate

    return GroupSummary(
        group_id=group_id,
        name=name,
        accounts=tuple(lines),
        currency_sums=sums,
        converted_total=converted,
    )


@traced_engine(
    "profit_summary", "1.0",
    fingerprint_fields=(
        "accounts", "multipliers", "exchange_rates", "groups",
        "target_currency", "initial_investment",
    ),
)
def compute_profit_summary(
    *,
    accounts: Iterable[AccountBalance],
    multipliers: Iterable[MultiplierEntry],
    exchange_rates: Mapping[tuple[str, str], Decimal],
    groups: Iterable[GroupRef],
    target_currency: str,
    initial_investment: Decimal = ZERO,
) -> ProfitSummary:
    """Aggregate balances into per-group sums, a converted total and profit."""
    by_account = {m.account_id: m for m in multipliers}
    group_list = list(groups)
    known_groups = {g.group_id for g in group_list}

    members: dict[UUID, list[AccountLine]] = {g.group_id: [] for g in group_list}
    ungrouped: list[AccountLine] = []

    for account in accounts:
        entry = by_account.get(account.account_id)
        multiplier = entry.multiplier if entry is not None else ONE
        group_id = entry.group_id if entry is not None else None
        if group_id is not None and group_id not in known_groups:
            group_id = None
        line = AccountLine(
            account_id=account.account_id,
            name=account.name,
            currency_code=account.currency_code,
            balance=account.balance,
            multiplier=multiplier,
            calculated=account.balance * multiplier,
            group_id=group_id,
        )
        if group_id is None:
            ungrouped.append(line)
        else:
            members[group_id].append(line)

    missing: set[tuple[str, str]] = set()
    summaries = tuple(
        _summarise(g.group_id, g.name, members[g.group_id],
                   target_currency, exchange_rates, missing)
        for g in group_list
    )
    # Ungrouped rates are not needed for the total, so they are not reported missing.
    ungrouped_summary = _summarise(
        None, UNGROUPED_NAME, ungrouped, target_currency, exchange_rates, set(),
    )

    total = sum((g.converted_total for g in summaries), ZERO)
    return ProfitSummary(
        target_currency=target_currency,
        initial_investment=initial_investment,
        groups=summaries,
        ungrouped=ungrouped_summary,
        total_converted=total,
        profit=total - initial_investment,
        missing_rates=tuple(sorted(missing)),
    )
