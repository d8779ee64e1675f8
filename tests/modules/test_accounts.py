"""Tests for currencies, accounts and rate resolution (fx_modules/accounts)."""

from decimal import Decimal
from uuid import uuid4

import pytest

from fx_kernel.exceptions import AccountNotFoundError, CurrencyNotFoundError, StoreRejectedError
from fx_modules.accounts.models import Currency, TransactionKind
from fx_modules.customers.models import PaymentDestination
from fx_modules.accounts.service import StoreCurrencyRateResolver


class TestCurrencyReferenceRate:

    def test_conversion_buy_preferred(self):
        currency = Currency("PKR", "Rupee", base_rate_buy=Decimal("280"), conversion_rate_buy=Decimal("285"))
        assert currency.reference_rate() == Decimal("285")

    def test_falls_back_through_rates(self):
        assert Currency("X", "x", base_rate_sell=Decimal("2")).reference_rate() == Decimal("2")
        assert Currency("X", "x", conversion_rate_sell=Decimal("3")).reference_rate() == Decimal("3")
        assert Currency("X", "x").reference_rate() is None


class TestSqlAccountStore:

    def test_currencies_listed_by_code(self, account_store, currencies):
        codes = [c.code for c in account_store.list_currencies()]
        assert codes == ["PKR", "USD", "USDT"]

    def test_get_currency_is_case_insensitive(self, account_store, currencies):
        assert account_store.get_currency("usdt").code == "USDT"

    def test_unknown_currency(self, account_store, currencies):
        with pytest.raises(CurrencyNotFoundError):
            account_store.get_currency("EUR")

    def test_account_roundtrip(self, account_store, pkr_account):
        fetched = account_store.get_account(pkr_account.id)
        assert fetched.currency_code == "PKR"
        assert fetched.balance == Decimal("1000000")

    def test_account_requires_known_currency(self, account_store, currencies):
        with pytest.raises(CurrencyNotFoundError):
            account_store.create_account("Euro Bank", "EUR")

    def test_missing_account(self, account_store, currencies):
        with pytest.raises(AccountNotFoundError):
            account_store.get_account(uuid4())


class TestStoreCurrencyRateResolver:

    def test_resolves_reference_rate(self, account_store, currencies):
        resolver = StoreCurrencyRateResolver(account_store)
        assert resolver.resolve_rate("PKR") == Decimal("285")
        assert resolver.resolve_rate("USDT") == Decimal("1")

    def test_unknown_currency_resolves_to_none(self, account_store, currencies):
        assert StoreCurrencyRateResolver(account_store).resolve_rate("EUR") is None

    def test_inactive_currency_resolves_to_none(self, account_store, currencies):
        account_store.create_currency(Currency("AED", "Dirham", conversion_rate_buy=Decimal("3.67"), active=False))
        assert StoreCurrencyRateResolver(account_store).resolve_rate("AED") is None


class TestAccountTransactions:

    @pytest.fixture
    def processed(self, engine, customer):
        order = engine.create_order(customer.id, "USDT", "PKR", amount_buy=Decimal("100"), rate=Decimal("285"))
        engine.process_order(order.id, uuid4(), PaymentDestination.crypto("TRC20", ["TXyz123"]))
        return order

    def test_receipts_journalled_as_additions(self, engine, account_store, processed, usdt_account):
        engine.add_receipt(processed.id, Decimal("60"), "r1.png", usdt_account.id)
        [entry] = account_store.list_transactions(usdt_account.id)
        assert entry.kind is TransactionKind.ADD
        assert entry.amount == Decimal("60")
        assert entry.order_id == processed.id
        assert "receipt 1" in entry.description

    def test_payments_journalled_as_withdrawals(self, engine, account_store, processed, pkr_account, clock):
        engine.add_receipt(processed.id, Decimal("100"), "r1.png")
        engine.add_beneficiary(processed.id, [PaymentDestination.crypto("TRC20", ["TXyz123"])])
        engine.add_payment(processed.id, Decimal("10000"), "p1.png", pkr_account.id)
        clock.advance(1)
        engine.add_payment(processed.id, Decimal("18500"), "p2.png", pkr_account.id)

        entries = account_store.list_transactions(pkr_account.id)
        assert [e.kind for e in entries] == [TransactionKind.WITHDRAW, TransactionKind.WITHDRAW]
        assert [e.amount for e in entries] == [Decimal("10000"), Decimal("18500")]
        movement = sum((e.signed_amount for e in entries), Decimal("0"))
        assert account_store.get_account(pkr_account.id).balance == Decimal("1000000") + movement

    def test_rejected_receipt_leaves_no_entry(self, engine, account_store, processed, pkr_account):
        with pytest.raises(StoreRejectedError):
            engine.add_receipt(processed.id, Decimal("60"), "r1.png", pkr_account.id)
        assert account_store.list_transactions(pkr_account.id) == []
        assert account_store.get_account(pkr_account.id).balance == Decimal("1000000")

    def test_receipt_without_account_moves_nothing(self, engine, account_store, processed, usdt_account):
        engine.add_receipt(processed.id, Decimal("60"), "r1.png")
        assert account_store.list_transactions(usdt_account.id) == []

    def test_unknown_account(self, account_store, currencies):
        with pytest.raises(AccountNotFoundError):
            account_store.list_transactions(uuid4())
