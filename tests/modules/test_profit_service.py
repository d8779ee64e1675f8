"""Tests for profit calculations (fx_modules/profit/store.py, service.py)."""

from decimal import Decimal
from uuid import uuid4

import pytest

from fx_kernel.exceptions import (
    AccountNotFoundError,
    CalculationNotFoundError,
    CurrencyNotFoundError,
    DuplicateGroupError,
    GroupNotFoundError,
    InvalidAmountError,
    StoreRejectedError,
)
from fx_modules.profit.drafts import DraftBook
from fx_modules.profit.models import CalculationChanges


@pytest.fixture
def usd_accounts(account_store, currencies):
    a = account_store.create_account("Desk A", "USD", Decimal("100"))
    b = account_store.create_account("Desk B", "USD", Decimal("50"))
    return a, b


@pytest.fixture
def calculation(profit_service, currencies):
    return profit_service.create_calculation("Q1 book", "USD", Decimal("100"))


@pytest.fixture
def pool(profit_service, calculation):
    return profit_service.create_group(calculation.id, "Pool A")


class TestCalculations:

    def test_create_and_list(self, profit_service, calculation):
        assert calculation.target_currency == "USD"
        assert calculation.initial_investment == Decimal("100")
        assert not calculation.is_default
        assert [c.id for c in profit_service.list_calculations()] == [calculation.id]

    def test_name_required(self, profit_service, currencies):
        with pytest.raises(StoreRejectedError) as exc_info:
            profit_service.create_calculation("  ", "USD")
        assert exc_info.value.code == "CALCULATION_NAME_REQUIRED"

    def test_negative_investment_rejected(self, profit_service, currencies):
        with pytest.raises(InvalidAmountError):
            profit_service.create_calculation("Bad", "USD", Decimal("-1"))
        assert profit_service.list_calculations() == []

    def test_unknown_target_currency(self, profit_service, currencies):
        with pytest.raises(CurrencyNotFoundError):
            profit_service.create_calculation("Bad", "EUR")

    def test_update_recomputes_profit(self, profit_service, calculation, pool, usd_accounts):
        a, _ = usd_accounts
        profit_service.assign_group(calculation.id, a.id, pool.id)
        summary = profit_service.update_calculation(
            calculation.id, CalculationChanges(initial_investment=Decimal("40")),
        )
        assert summary.total_converted == Decimal("100")
        assert summary.profit == Decimal("60")

    def test_empty_update_rejected(self, profit_service, calculation):
        with pytest.raises(StoreRejectedError) as exc_info:
            profit_service.update_calculation(calculation.id, CalculationChanges())
        assert exc_info.value.code == "NO_FIELDS_TO_UPDATE"

    def test_delete_removes_groups_and_multipliers(self, profit_service, calculation, pool, usd_accounts):
        a, _ = usd_accounts
        profit_service.assign_group(calculation.id, a.id, pool.id)
        profit_service.delete_calculation(calculation.id)
        with pytest.raises(CalculationNotFoundError):
            profit_service.get_calculation(calculation.id)


class TestAggregation:

    def test_two_accounts_in_one_group(self, profit_service, calculation, pool, usd_accounts):
        a, b = usd_accounts
        profit_service.set_multiplier(calculation.id, a.id, Decimal("2"))
        profit_service.assign_group(calculation.id, a.id, pool.id)
        summary = profit_service.assign_group(calculation.id, b.id, pool.id)

        group = summary.group(pool.id)
        assert group.currency_sums == {"USD": Decimal("250")}
        assert summary.total_converted == Decimal("250")
        assert summary.profit == Decimal("150")

    def test_ungrouped_accounts_do_not_count(self, profit_service, calculation, pool, usd_accounts):
        a, b = usd_accounts
        summary = profit_service.assign_group(calculation.id, a.id, pool.id)
        assert summary.total_converted == Decimal("100")
        assert [line.account_id for line in summary.ungrouped.accounts] == [b.id]

    def test_foreign_currency_needs_rate(self, profit_service, calculation, pool, usd_accounts,
                                         pkr_account):
        a, _ = usd_accounts
        profit_service.assign_group(calculation.id, a.id, pool.id)
        profit_service.set_multiplier(calculation.id, pkr_account.id, Decimal("0.0285"))
        summary = profit_service.assign_group(calculation.id, pkr_account.id, pool.id)
        assert summary.missing_rates == (("PKR", "USD"),)
        assert summary.total_converted == Decimal("100")

        summary = profit_service.set_exchange_rate(calculation.id, "PKR", "USD", Decimal("0.0035"))
        assert summary.missing_rates == ()
        assert summary.total_converted == Decimal("199.75")

    def test_exchange_rate_upserts(self, profit_service, calculation, currencies):
        profit_service.set_exchange_rate(calculation.id, "PKR", "USD", Decimal("0.0035"))
        profit_service.set_exchange_rate(calculation.id, "pkr", "usd", Decimal("0.004"))
        details = profit_service.get_calculation(calculation.id)
        assert details.rate_map() == {("PKR", "USD"): Decimal("0.004")}

    def test_non_positive_rate_rejected(self, profit_service, calculation):
        with pytest.raises(InvalidAmountError):
            profit_service.set_exchange_rate(calculation.id, "PKR", "USD", Decimal("0"))

    def test_negative_multiplier_clamped(self, profit_service, calculation, usd_accounts,
                                         captured_logs):
        a, _ = usd_accounts
        summary = profit_service.set_multiplier(calculation.id, a.id, Decimal("-3"))
        assert summary.line_for(a.id).multiplier == Decimal("0")
        clamped = [r for r in captured_logs() if r["message"] == "multiplier_clamped"]
        assert clamped[0]["requested"] == "-3"

    def test_unknown_account_rejected(self, profit_service, calculation):
        with pytest.raises(AccountNotFoundError):
            profit_service.set_multiplier(calculation.id, uuid4(), Decimal("1"))

    def test_recompute_logged_with_calculation_context(self, profit_service, calculation,
                                                       usd_accounts, captured_logs):
        a, _ = usd_accounts
        profit_service.set_multiplier(calculation.id, a.id, Decimal("1.5"))
        records = [r for r in captured_logs() if r["message"] == "profit_recomputed"]
        assert records[-1]["calculation_id"] == str(calculation.id)


class TestGroups:

    def test_rename_keeps_members_and_multipliers(self, profit_service, calculation, pool,
                                                  usd_accounts):
        a, b = usd_accounts
        profit_service.set_multiplier(calculation.id, a.id, Decimal("2"))
        profit_service.assign_group(calculation.id, a.id, pool.id)
        profit_service.assign_group(calculation.id, b.id, pool.id)

        summary = profit_service.rename_group(calculation.id, pool.id, "Pool B")
        details = profit_service.get_calculation(calculation.id)
        assert details.group_named("Pool A") is None
        assert details.group_named("Pool B").id == pool.id
        assert {m.group_id for m in details.multipliers} == {pool.id}
        assert summary.group(pool.id).name == "Pool B"
        assert summary.total_converted == Decimal("250")

    def test_rename_to_same_name_is_noop(self, profit_service, calculation, pool):
        profit_service.rename_group(calculation.id, pool.id, "Pool A")
        assert profit_service.get_calculation(calculation.id).group_named("Pool A").id == pool.id

    def test_duplicate_name_rejected(self, profit_service, calculation, pool):
        with pytest.raises(DuplicateGroupError):
            profit_service.create_group(calculation.id, "Pool A")
        other = profit_service.create_group(calculation.id, "Pool B")
        with pytest.raises(DuplicateGroupError):
            profit_service.rename_group(calculation.id, other.id, "Pool A")
        names = [g.name for g in profit_service.get_calculation(calculation.id).groups]
        assert names == ["Pool A", "Pool B"]

    def test_names_are_case_sensitive(self, profit_service, calculation, pool):
        profit_service.create_group(calculation.id, "pool a")
        assert len(profit_service.get_calculation(calculation.id).groups) == 2

    def test_delete_ungroups_members(self, profit_service, calculation, pool, usd_accounts):
        a, b = usd_accounts
        profit_service.set_multiplier(calculation.id, a.id, Decimal("2"))
        profit_service.assign_group(calculation.id, a.id, pool.id)
        profit_service.assign_group(calculation.id, b.id, pool.id)

        summary = profit_service.delete_group(calculation.id, pool.id)
        details = profit_service.get_calculation(calculation.id)
        assert details.groups == ()
        assert all(m.group_id is None for m in details.multipliers)
        multipliers = {m.account_id: m.multiplier for m in details.multipliers}
        assert multipliers[a.id] == Decimal("2")
        assert summary.total_converted == Decimal("0")
        assert summary.ungrouped.account_count == 2

    def test_group_from_other_calculation_rejected(self, profit_service, calculation, pool,
                                                   usd_accounts):
        a, _ = usd_accounts
        other = profit_service.create_calculation("Other", "USD")
        with pytest.raises(GroupNotFoundError):
            profit_service.assign_group(other.id, a.id, pool.id)

    def test_unassign(self, profit_service, calculation, pool, usd_accounts):
        a, _ = usd_accounts
        profit_service.assign_group(calculation.id, a.id, pool.id)
        summary = profit_service.assign_group(calculation.id, a.id, None)
        assert summary.group(pool.id).account_count == 0


class TestDefaultCalculation:

    def test_only_one_default(self, profit_service, calculation):
        other = profit_service.create_calculation("Q2 book", "USD")
        profit_service.set_default(calculation.id)
        profit_service.set_default(other.id)
        defaults = [c.id for c in profit_service.list_calculations() if c.is_default]
        assert defaults == [other.id]

    def test_default_summary(self, profit_service, calculation, pool, usd_accounts):
        assert profit_service.default_summary() is None
        a, _ = usd_accounts
        profit_service.assign_group(calculation.id, a.id, pool.id)
        profit_service.set_default(calculation.id)
        assert profit_service.default_summary().profit == Decimal("0")

        profit_service.unset_default(calculation.id)
        assert profit_service.default_summary() is None


class TestListenersAndDrafts:

    def test_listeners_notified_until_unsubscribed(self, profit_service, calculation, usd_accounts):
        a, _ = usd_accounts
        seen = []
        unsubscribe = profit_service.subscribe(lambda calc_id, summary: seen.append(calc_id))
        profit_service.set_multiplier(calculation.id, a.id, Decimal("2"))
        assert seen == [calculation.id]

        unsubscribe()
        profit_service.set_multiplier(calculation.id, a.id, Decimal("3"))
        assert seen == [calculation.id]

    def test_draft_preview_does_not_persist(self, profit_service, calculation, pool, usd_accounts):
        a, _ = usd_accounts
        profit_service.assign_group(calculation.id, a.id, pool.id)
        drafts = DraftBook()
        drafts.set_multiplier(a.id, "3")

        preview = profit_service.summary(calculation.id, drafts)
        assert preview.total_converted == Decimal("300")
        assert profit_service.summary(calculation.id).total_converted == Decimal("100")

    def test_commit_multiplier_draft(self, profit_service, calculation, pool, usd_accounts):
        a, _ = usd_accounts
        profit_service.assign_group(calculation.id, a.id, pool.id)
        drafts = DraftBook()
        drafts.set_multiplier(a.id, "1.5")

        summary = profit_service.commit_multiplier_draft(calculation.id, a.id, drafts)
        assert summary.total_converted == Decimal("150")
        assert drafts.multiplier_text(a.id) is None

    def test_unparseable_draft_kept(self, profit_service, calculation, usd_accounts):
        a, _ = usd_accounts
        drafts = DraftBook()
        drafts.set_multiplier(a.id, "1.2.3")
        with pytest.raises(InvalidAmountError):
            profit_service.commit_multiplier_draft(calculation.id, a.id, drafts)
        assert drafts.multiplier_text(a.id) == "1.2.3"

    def test_commit_rate_draft(self, profit_service, calculation, currencies):
        drafts = DraftBook()
        drafts.set_rate("PKR", "USD", "0.0035")
        profit_service.commit_rate_draft(calculation.id, "PKR", "USD", drafts)
        assert profit_service.get_calculation(calculation.id).rate_map() == {
            ("PKR", "USD"): Decimal("0.0035"),
        }
        assert len(drafts) == 0
