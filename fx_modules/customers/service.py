"""
Beneficiary directory (``fx_modules.customers.service``).

Thin orchestration over ``CustomerBeneficiaryStore``: validates input,
logs, and offers ``find_matching`` so an order's one-off beneficiary is not
saved twice to the customer's directory.
"""

from __future__ import annotations

from uuid import UUID

from fx_kernel.logging_config import get_logger
from fx_modules.customers.models import Beneficiary, PaymentDestination
from fx_modules.customers.store import CustomerBeneficiaryStore

logger = get_logger("modules.customers.service")


class BeneficiaryDirectory:
    """Reusable payment destinations per customer."""

    def __init__(self, store: CustomerBeneficiaryStore):
        self._store = store

    def list(self, customer_id: UUID) -> list[Beneficiary]:
        return self._store.list_customer_beneficiaries(customer_id)

    def add(self, customer_id: UUID, destination: PaymentDestination) -> Beneficiary:
        return self._store.add_customer_beneficiary(customer_id, destination)

    def update(
        self, customer_id: UUID, beneficiary_id: UUID, destination: PaymentDestination,
    ) -> Beneficiary:
        return self._store.update_customer_beneficiary(customer_id, beneficiary_id, destination)

    def delete(self, customer_id: UUID, beneficiary_id: UUID) -> None:
        self._store.delete_customer_beneficiary(customer_id, beneficiary_id)

    def find_matching(
        self, customer_id: UUID, destination: PaymentDestination,
    ) -> Beneficiary | None:
        for beneficiary in self.list(customer_id):
            if beneficiary.destination == destination:
                return beneficiary
        return None

    def save_if_new(self, customer_id: UUID, destination: PaymentDestination) -> Beneficiary:
        """Add ``destination`` unless an identical one is already saved."""
        existing = self.find_matching(customer_id, destination)
        if existing is not None:
            logger.info(
                "customer_beneficiary_already_saved",
                extra={"customer_id": str(customer_id), "beneficiary_id": str(existing.id)},
            )
            return existing
        return self.add(customer_id, destination)
