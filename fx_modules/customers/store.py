"""
Customer Store (``fx_modules.customers.store``).

``CustomerBeneficiaryStore`` is the port for the reusable beneficiary
directory.  ``SqlCustomerStore`` implements it on SQLAlchemy and also
manages the customer rows themselves.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fx_kernel.domain.clock import Clock, SystemClock
from fx_kernel.exceptions import BeneficiaryNotFoundError, CustomerNotFoundError
from fx_kernel.logging_config import get_logger
from fx_modules._store_helpers import store_read, store_transaction
from fx_modules.customers.models import Beneficiary, Customer, PaymentDestination
from fx_modules.customers.orm import BeneficiaryModel, CustomerModel

logger = get_logger("modules.customers.store")


class CustomerBeneficiaryStore(Protocol):
    def list_customer_beneficiaries(self, customer_id: UUID) -> list[Beneficiary]:
        ...

    def add_customer_beneficiary(
        self, customer_id: UUID, destination: PaymentDestination,
    ) -> Beneficiary:
        ...

    def update_customer_beneficiary(
        self, customer_id: UUID, beneficiary_id: UUID, destination: PaymentDestination,
    ) -> Beneficiary:
        ...

    def delete_customer_beneficiary(self, customer_id: UUID, beneficiary_id: UUID) -> None:
        ...


class SqlCustomerStore:
    """SQLAlchemy-backed customer and beneficiary directory store."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # Customers

    def create_customer(
        self, name: str, email: str | None = None, phone: str | None = None,
    ) -> Customer:
        if not name or not name.strip():
            raise ValueError("customer name cannot be empty")
        now = self._clock.now()
        with store_transaction(self._session, "create_customer"):
            row = CustomerModel(
                name=name.strip(), email=email, phone=phone,
                created_at=now, updated_at=now,
            )
            self._session.add(row)
            self._session.flush()
            result = row.to_dto()
        logger.info("customer_created", extra={"customer_id": str(result.id)})
        return result

    def get_customer(self, customer_id: UUID) -> Customer:
        with store_read(self._session, "get_customer"):
            return self._customer_row(customer_id).to_dto()

    def list_customers(self) -> list[Customer]:
        with store_read(self._session, "list_customers"):
            rows = self._session.scalars(
                select(CustomerModel).order_by(CustomerModel.name, CustomerModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    # Beneficiary directory

    def list_customer_beneficiaries(self, customer_id: UUID) -> list[Beneficiary]:
        with store_read(self._session, "list_customer_beneficiaries"):
            self._customer_row(customer_id)
            rows = self._session.scalars(
                select(BeneficiaryModel)
                .where(BeneficiaryModel.customer_id == customer_id)
                .order_by(BeneficiaryModel.created_at, BeneficiaryModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def add_customer_beneficiary(
        self, customer_id: UUID, destination: PaymentDestination,
    ) -> Beneficiary:
        now = self._clock.now()
        with store_transaction(self._session, "add_customer_beneficiary"):
            self._customer_row(customer_id)
            row = BeneficiaryModel(customer_id=customer_id, created_at=now, updated_at=now)
            row.apply_destination(destination)
            self._session.add(row)
            self._session.flush()
            result = row.to_dto()
        logger.info(
            "customer_beneficiary_added",
            extra={
                "customer_id": str(customer_id),
                "beneficiary_id": str(result.id),
                "payment_type": destination.payment_type.value,
            },
        )
        return result

    def update_customer_beneficiary(
        self, customer_id: UUID, beneficiary_id: UUID, destination: PaymentDestination,
    ) -> Beneficiary:
        with store_transaction(self._session, "update_customer_beneficiary"):
            row = self._beneficiary_row(customer_id, beneficiary_id)
            row.apply_destination(destination)
            row.updated_at = self._clock.now()
            self._session.flush()
            result = row.to_dto()
        logger.info(
            "customer_beneficiary_updated",
            extra={"customer_id": str(customer_id), "beneficiary_id": str(beneficiary_id)},
        )
        return result

    def delete_customer_beneficiary(self, customer_id: UUID, beneficiary_id: UUID) -> None:
        with store_transaction(self._session, "delete_customer_beneficiary"):
            row = self._beneficiary_row(customer_id, beneficiary_id)
            self._session.delete(row)
        logger.info(
            "customer_beneficiary_deleted",
            extra={"customer_id": str(customer_id), "beneficiary_id": str(beneficiary_id)},
        )

    def _customer_row(self, customer_id: UUID) -> CustomerModel:
        row = self._session.get(CustomerModel, customer_id)
        if row is None:
            raise CustomerNotFoundError(customer_id)
        return row

    def _beneficiary_row(self, customer_id: UUID, beneficiary_id: UUID) -> BeneficiaryModel:
        row = self._session.get(BeneficiaryModel, beneficiary_id)
        if row is None or row.customer_id != customer_id:
            raise BeneficiaryNotFoundError(beneficiary_id)
        return row
