"""Tests for the profit / multiplier aggregation (fx_engines/profit.py)."""

from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from fx_engines.profit import (
    UNGROUPED_NAME,
    AccountBalance,
    GroupRef,
    MultiplierEntry,
    clamp_multiplier,
    compute_profit_summary,
    conversion_rate,
)


def _account(balance, currency="USD", name="acct"):
    return AccountBalance(uuid4(), name, currency, Decimal(balance))


class TestComputeProfitSummary:

    def test_single_group_same_currency(self):
        a = _account("100", name="A")
        b = _account("50", name="B")
        pool = GroupRef(uuid4(), "Pool A")
        summary = compute_profit_summary(
            accounts=[a, b],
            multipliers=[
                MultiplierEntry(a.account_id, Decimal("2"), pool.group_id),
                MultiplierEntry(b.account_id, Decimal("1"), pool.group_id),
            ],
            exchange_rates={},
            groups=[pool],
            target_currency="USD",
            initial_investment=Decimal("100"),
        )
        group = summary.group(pool.group_id)
        assert group.currency_sums == {"USD": Decimal("250")}
        assert group.converted_total == Decimal("250")
        assert group.account_count == 2
        assert summary.total_converted == Decimal("250")
        assert summary.profit == Decimal("150")
        assert summary.missing_rates == ()

    def test_missing_multiplier_defaults_to_one(self):
        a = _account("40")
        pool = GroupRef(uuid4(), "Pool")
        summary = compute_profit_summary(
            accounts=[a],
            multipliers=[],
            exchange_rates={},
            groups=[pool],
            target_currency="USD",
        )
        line = summary.line_for(a.account_id)
        assert line.multiplier == Decimal("1")
        assert line.group_id is None
        assert summary.ungrouped.accounts == (line,)
        assert summary.group(pool.group_id).account_count == 0

    def test_ungrouped_accounts_excluded_from_total(self):
        grouped = _account("10")
        loose = _account("1000")
        pool = GroupRef(uuid4(), "Pool")
        summary = compute_profit_summary(
            accounts=[grouped, loose],
            multipliers=[MultiplierEntry(grouped.account_id, Decimal("1"), pool.group_id)],
            exchange_rates={},
            groups=[pool],
            target_currency="USD",
        )
        assert summary.total_converted == Decimal("10")
        assert summary.ungrouped.name == UNGROUPED_NAME
        assert summary.ungrouped.group_id is None
        assert summary.ungrouped.converted_total == Decimal("1000")

    def test_currencies_converted_with_stored_rates(self):
        usd = _account("100", "USD")
        pkr = _account("28500", "PKR")
        pool = GroupRef(uuid4(), "Mixed")
        summary = compute_profit_summary(
            accounts=[usd, pkr],
            multipliers=[
                MultiplierEntry(usd.account_id, Decimal("1"), pool.group_id),
                MultiplierEntry(pkr.account_id, Decimal("1"), pool.group_id),
            ],
            exchange_rates={("PKR", "USD"): Decimal("0.0035")},
            groups=[pool],
            target_currency="USD",
        )
        group = summary.group(pool.group_id)
        assert group.currency_sums == {"USD": Decimal("100"), "PKR": Decimal("28500")}
        assert group.converted_total == Decimal("199.75")

    def test_missing_rate_contributes_zero_and_is_reported(self):
        pkr = _account("28500", "PKR")
        pool = GroupRef(uuid4(), "Pool")
        summary = compute_profit_summary(
            accounts=[pkr],
            multipliers=[MultiplierEntry(pkr.account_id, Decimal("1"), pool.group_id)],
            exchange_rates={("PKR", "USD"): Decimal("0")},
            groups=[pool],
            target_currency="USD",
        )
        assert summary.total_converted == Decimal("0")
        assert summary.missing_rates == (("PKR", "USD"),)

    def test_stale_group_reference_treated_as_ungrouped(self):
        a = _account("10")
        summary = compute_profit_summary(
            accounts=[a],
            multipliers=[MultiplierEntry(a.account_id, Decimal("3"), uuid4())],
            exchange_rates={},
            groups=[],
            target_currency="USD",
        )
        assert summary.groups == ()
        assert summary.line_for(a.account_id).group_id is None
        assert summary.line_for(a.account_id).calculated == Decimal("30")

    def test_empty_groups_reported(self):
        pool = GroupRef(uuid4(), "Empty")
        summary = compute_profit_summary(
            accounts=[],
            multipliers=[],
            exchange_rates={},
            groups=[pool],
            target_currency="USD",
            initial_investment=Decimal("5"),
        )
        assert summary.group(pool.group_id).converted_total == Decimal("0")
        assert summary.profit == Decimal("-5")

    def test_conversion_rate(self):
        assert conversion_rate("USD", "USD", {}) == Decimal("1")
        assert conversion_rate("PKR", "USD", {}) is None
        assert conversion_rate("PKR", "USD", {("PKR", "USD"): Decimal("-1")}) is None
        assert conversion_rate("PKR", "USD", {("PKR", "USD"): Decimal("0.0035")}) == Decimal("0.0035")

    def test_clamp_multiplier(self):
        assert clamp_multiplier(Decimal("-2")) == Decimal("0")
        assert clamp_multiplier(Decimal("0")) == Decimal("0")
        assert clamp_multiplier(Decimal("1.5")) == Decimal("1.5")


balances = st.decimals(
    min_value=Decimal("-10000"), max_value=Decimal("10000"),
    allow_nan=False, allow_infinity=False, places=2,
)
multipliers = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("10"),
    allow_nan=False, allow_infinity=False, places=2,
)


class TestProfitSummaryProperties:

    @given(
        rows=st.lists(st.tuples(balances, multipliers, st.integers(0, 2)), max_size=12),
        investment=st.decimals(min_value=Decimal("0"), max_value=Decimal("5000"), places=2),
    )
    @settings(max_examples=150)
    def test_total_is_sum_of_group_totals(self, rows, investment):
        groups = [GroupRef(uuid4(), f"G{i}") for i in range(2)]
        accounts, entries = [], []
        for balance, mult, slot in rows:
            account = _account(balance)
            accounts.append(account)
            group_id = groups[slot].group_id if slot < 2 else None
            entries.append(MultiplierEntry(account.account_id, mult, group_id))

        summary = compute_profit_summary(
            accounts=accounts,
            multipliers=entries,
            exchange_rates={},
            groups=groups,
            target_currency="USD",
            initial_investment=investment,
        )

        expected = sum(
            (b * m for b, m, slot in rows if slot < 2), Decimal("0"),
        )
        assert summary.total_converted == expected
        assert summary.total_converted == sum(
            (g.converted_total for g in summary.groups), Decimal("0"),
        )
        assert summary.profit == expected - investment
        assert sum(g.account_count for g in summary.groups) + summary.ungrouped.account_count == len(rows)
