"""Tests for customers and the beneficiary directory (fx_modules/customers)."""

from uuid import uuid4

import pytest

from fx_kernel.exceptions import BeneficiaryNotFoundError, CustomerNotFoundError
from fx_modules.customers.models import Beneficiary, PaymentDestination, PaymentType


class TestPaymentDestination:

    def test_crypto_drops_blank_addresses_keeps_order(self):
        dest = PaymentDestination.crypto("TRC20", ["T2", " ", "", "T1 "])
        assert dest.wallet_addresses == ("T2", "T1")
        assert dest.payment_type is PaymentType.CRYPTO

    def test_crypto_requires_network(self):
        with pytest.raises(ValueError, match="network_chain"):
            PaymentDestination.crypto("  ", ["T1"])

    def test_fiat_cleans_fields(self):
        dest = PaymentDestination.fiat(bank_name=" Meezan ", account_iban="", swift_code=None)
        assert dest.bank_name == "Meezan"
        assert dest.account_iban is None

    def test_fiat_rejects_unknown_fields(self):
        with pytest.raises(ValueError, match="unknown bank fields"):
            PaymentDestination.fiat(routing="123")

    def test_dict_form(self):
        dest = PaymentDestination.crypto("ERC20", ["0xabc"])
        assert PaymentDestination.from_dict(dest.to_dict()) == dest

    def test_beneficiary_needs_exactly_one_owner(self):
        dest = PaymentDestination.crypto("TRC20", ["T1"])
        with pytest.raises(ValueError):
            Beneficiary(id=uuid4(), destination=dest)
        with pytest.raises(ValueError):
            Beneficiary(id=uuid4(), destination=dest, customer_id=uuid4(), order_id=uuid4())


class TestCustomerStore:

    def test_create_and_get(self, customer_store):
        created = customer_store.create_customer("  Ali Exchange ", phone="+92")
        fetched = customer_store.get_customer(created.id)
        assert fetched.name == "Ali Exchange"
        assert fetched.phone == "+92"

    def test_blank_name_rejected(self, customer_store):
        with pytest.raises(ValueError):
            customer_store.create_customer("   ")

    def test_missing_customer(self, customer_store):
        with pytest.raises(CustomerNotFoundError):
            customer_store.get_customer(uuid4())


class TestBeneficiaryDirectory:

    def test_add_list_update_delete(self, directory, customer, clock):
        wallet = PaymentDestination.crypto("TRC20", ["T1"])
        bank = PaymentDestination.fiat(bank_name="HBL", account_number="001")

        first = directory.add(customer.id, wallet)
        clock.advance(1)
        second = directory.add(customer.id, bank)
        assert [b.id for b in directory.list(customer.id)] == [first.id, second.id]

        updated = directory.update(customer.id, second.id, PaymentDestination.fiat(bank_name="UBL"))
        assert updated.destination.bank_name == "UBL"
        assert updated.customer_id == customer.id

        directory.delete(customer.id, first.id)
        assert [b.id for b in directory.list(customer.id)] == [second.id]

    def test_update_of_other_customers_beneficiary_rejected(self, directory, customer, customer_store):
        other = customer_store.create_customer("Other")
        saved = directory.add(other.id, PaymentDestination.crypto("TRC20", ["T9"]))
        with pytest.raises(BeneficiaryNotFoundError):
            directory.update(customer.id, saved.id, PaymentDestination.crypto("TRC20", ["T1"]))

    def test_save_if_new_does_not_duplicate(self, directory, customer):
        wallet = PaymentDestination.crypto("TRC20", ["T1", "T2"])
        first = directory.save_if_new(customer.id, wallet)
        again = directory.save_if_new(customer.id, PaymentDestination.crypto("TRC20", ["T1", "T2", " "]))
        assert again.id == first.id
        assert len(directory.list(customer.id)) == 1

    def test_list_for_unknown_customer(self, directory):
        with pytest.raises(CustomerNotFoundError):
            directory.list(uuid4())
