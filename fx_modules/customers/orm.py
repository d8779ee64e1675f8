"""
Customer ORM Models (``fx_modules.customers.orm``).

SQLAlchemy persistence for customers and beneficiaries.  A beneficiary row
is owned by a customer (reusable) or by an order (one-off); the check
constraint enforces exactly one owner.
"""

from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from fx_kernel.db.base import TrackedBase


class CustomerModel(TrackedBase):
    """ORM model for customers."""

    __tablename__ = "fx_customers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def to_dto(self):
        from fx_modules.customers.models import Customer

        return Customer(id=self.id, name=self.name, email=self.email, phone=self.phone)

    def __repr__(self) -> str:
        return f"<CustomerModel {self.name}>"


class BeneficiaryModel(TrackedBase):
    """
    ORM model for beneficiaries.

    Guarantees:
        - exactly one of customer_id / order_id is set (ck_fx_beneficiaries_owner).
        - order-owned rows are deleted with their order.
        - wallet_addresses keeps the entered order.
    """

    __tablename__ = "fx_beneficiaries"

    __table_args__ = (
        CheckConstraint(
            "(customer_id IS NULL) <> (order_id IS NULL)",
            name="ck_fx_beneficiaries_owner",
        ),
        Index("idx_fx_beneficiaries_customer_id", "customer_id"),
        Index("idx_fx_beneficiaries_order_id", "order_id"),
    )

    customer_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fx_customers.id", ondelete="CASCADE"), nullable=True,
    )
    order_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fx_orders.id", ondelete="CASCADE"), nullable=True,
    )
    payment_type: Mapped[str] = mapped_column(String(10), nullable=False)
    network_chain: Mapped[str | None] = mapped_column(String(50), nullable=True)
    wallet_addresses: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account_iban: Mapped[str | None] = mapped_column(String(100), nullable=True)
    swift_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bank_address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def apply_destination(self, destination) -> None:
        """Copy every destination field onto the row."""
        self.payment_type = destination.payment_type.value
        self.network_chain = destination.network_chain
        self.wallet_addresses = list(destination.wallet_addresses)
        self.bank_name = destination.bank_name
        self.account_title = destination.account_title
        self.account_number = destination.account_number
        self.account_iban = destination.account_iban
        self.swift_code = destination.swift_code
        self.bank_address = destination.bank_address

    def to_destination(self):
        from fx_modules.customers.models import PaymentDestination, PaymentType

        return PaymentDestination(
            payment_type=PaymentType(self.payment_type),
            network_chain=self.network_chain,
            wallet_addresses=tuple(self.wallet_addresses or ()),
            bank_name=self.bank_name,
            account_title=self.account_title,
            account_number=self.account_number,
            account_iban=self.account_iban,
            swift_code=self.swift_code,
            bank_address=self.bank_address,
        )

    def to_dto(self):
        from fx_modules.customers.models import Beneficiary

        return Beneficiary(
            id=self.id,
            destination=self.to_destination(),
            customer_id=self.customer_id,
            order_id=self.order_id,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        owner = f"customer={self.customer_id}" if self.customer_id else f"order={self.order_id}"
        return f"<BeneficiaryModel {self.payment_type} {owner}>"
