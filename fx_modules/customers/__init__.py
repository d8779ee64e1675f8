"""Customers and their reusable beneficiary directory."""

from fx_modules.customers.models import (
    Beneficiary,
    Customer,
    PaymentDestination,
    PaymentType,
)
from fx_modules.customers.service import BeneficiaryDirectory
from fx_modules.customers.store import CustomerBeneficiaryStore, SqlCustomerStore

__all__ = [
    "Beneficiary",
    "Customer",
    "PaymentDestination",
    "PaymentType",
    "BeneficiaryDirectory",
    "CustomerBeneficiaryStore",
    "SqlCustomerStore",
]
