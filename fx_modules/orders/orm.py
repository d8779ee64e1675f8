"""
Order ORM Models (``fx_modules.orders.orm``).

Responsibility
--------------
SQLAlchemy persistence for orders and their receipt / payment ledgers.
Receipts, payments and order-owned beneficiaries are cascade-deleted with
their order.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``fx_kernel.db.base``.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fx_kernel.db.base import TrackedBase
from fx_modules.customers.orm import BeneficiaryModel


class OrderModel(TrackedBase):
    """
    ORM model for orders.

    Guarantees:
        - status holds an ``OrderStatus`` value.
        - payment_method holds ``PaymentDestination.to_dict()`` or NULL.
        - receipts / payments are ordered by their ledger position.
        - actual_* columns are only written for flex orders.
    """

    __tablename__ = "fx_orders"

    __table_args__ = (
        Index("idx_fx_orders_status", "status"),
        Index("idx_fx_orders_customer_id", "customer_id"),
        Index("idx_fx_orders_handler_id", "handler_id"),
        Index("idx_fx_orders_created_at", "created_at"),
    )

    customer_id: Mapped[UUID] = mapped_column(ForeignKey("fx_customers.id"), nullable=False)
    from_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("fx_currencies.code"), nullable=False,
    )
    to_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("fx_currencies.code"), nullable=False,
    )
    amount_buy: Mapped[Decimal] = mapped_column(nullable=False)
    amount_sell: Mapped[Decimal] = mapped_column(nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    handler_id: Mapped[UUID | None] = mapped_column(nullable=True)
    payment_method: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    profit_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    profit_currency: Mapped[str | None] = mapped_column(String(10), nullable=True)
    service_charge_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    service_charge_currency: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_flex: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    actual_amount_buy: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_amount_sell: Mapped[Decimal | None] = mapped_column(nullable=True)
    actual_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)

    receipts: Mapped[list["OrderReceiptModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderReceiptModel.position",
    )
    payments: Mapped[list["OrderPaymentModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderPaymentModel.position",
    )
    beneficiaries: Mapped[list[BeneficiaryModel]] = relationship(
        cascade="all",
        order_by=BeneficiaryModel.created_at,
    )

    def to_dto(self):
        from fx_modules.customers.models import PaymentDestination
        from fx_modules.orders.models import Order, OrderStatus

        return Order(
            id=self.id,
            customer_id=self.customer_id,
            from_currency=self.from_currency,
            to_currency=self.to_currency,
            amount_buy=self.amount_buy,
            amount_sell=self.amount_sell,
            rate=self.rate,
            status=OrderStatus(self.status),
            handler_id=self.handler_id,
            payment_method=(
                PaymentDestination.from_dict(self.payment_method)
                if self.payment_method else None
            ),
            profit_amount=self.profit_amount,
            profit_currency=self.profit_currency,
            service_charge_amount=self.service_charge_amount,
            service_charge_currency=self.service_charge_currency,
            is_flex=self.is_flex,
            actual_amount_buy=self.actual_amount_buy,
            actual_amount_sell=self.actual_amount_sell,
            actual_rate=self.actual_rate,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<OrderModel {self.id} {self.from_currency}->{self.to_currency} {self.status}>"


class OrderReceiptModel(TrackedBase):
    """ORM model for receipts.  Rows are never updated after insert."""

    __tablename__ = "fx_order_receipts"

    __table_args__ = (
        UniqueConstraint("order_id", "position", name="uq_fx_order_receipts_position"),
    )

    order_id: Mapped[UUID] = mapped_column(
        ForeignKey("fx_orders.id", ondelete="CASCADE"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    proof_locator: Mapped[str] = mapped_column(String(1000), nullable=False)
    account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fx_accounts.id"), nullable=True,
    )

    order: Mapped[OrderModel] = relationship(back_populates="receipts")

    def to_dto(self):
        from fx_modules.orders.models import Receipt

        return Receipt(
            id=self.id,
            order_id=self.order_id,
            amount=self.amount,
            proof_locator=self.proof_locator,
            account_id=self.account_id,
            created_at=self.created_at,
        )


class OrderPaymentModel(TrackedBase):
    """ORM model for payments.  Rows are never updated after insert."""

    __tablename__ = "fx_order_payments"

    __table_args__ = (
        UniqueConstraint("order_id", "position", name="uq_fx_order_payments_position"),
    )

    order_id: Mapped[UUID] = mapped_column(
        ForeignKey("fx_orders.id", ondelete="CASCADE"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    proof_locator: Mapped[str] = mapped_column(String(1000), nullable=False)
    account_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fx_accounts.id"), nullable=True,
    )

    order: Mapped[OrderModel] = relationship(back_populates="payments")

    def to_dto(self):
        from fx_modules.orders.models import Payment

        return Payment(
            id=self.id,
            order_id=self.order_id,
            amount=self.amount,
            proof_locator=self.proof_locator,
            account_id=self.account_id,
            created_at=self.created_at,
        )
