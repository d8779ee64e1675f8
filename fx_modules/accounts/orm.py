"""
Accounts ORM Models (``fx_modules.accounts.orm``).

SQLAlchemy persistence for currencies, house accounts and their balance
movements.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fx_kernel.db.base import TrackedBase


class CurrencyModel(TrackedBase):
    """
    ORM model for currencies.

    Guarantees:
        - code is unique (uq_fx_currencies_code) and stored upper-case.
    """

    __tablename__ = "fx_currencies"

    __table_args__ = (
        UniqueConstraint("code", name="uq_fx_currencies_code"),
    )

    code: Mapped[str] = mapped_column(String(10), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    base_rate_buy: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)
    conversion_rate_buy: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)
    base_rate_sell: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)
    conversion_rate_sell: Mapped[Decimal | None] = mapped_column(Numeric(38, 18), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        from fx_modules.accounts.models import Currency

        return Currency(
            code=self.code,
            name=self.name,
            base_rate_buy=self.base_rate_buy,
            conversion_rate_buy=self.conversion_rate_buy,
            base_rate_sell=self.base_rate_sell,
            conversion_rate_sell=self.conversion_rate_sell,
            active=self.active,
        )

    def __repr__(self) -> str:
        return f"<CurrencyModel {self.code}>"


class AccountModel(TrackedBase):
    """
    ORM model for house accounts.

    Guarantees:
        - currency_code references fx_currencies.code.
        - balance may go negative (payments debit without a floor).
    """

    __tablename__ = "fx_accounts"

    __table_args__ = (
        Index("idx_fx_accounts_currency_code", "currency_code"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    currency_code: Mapped[str] = mapped_column(
        String(10), ForeignKey("fx_currencies.code"), nullable=False,
    )
    balance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    def to_dto(self):
        from fx_modules.accounts.models import Account

        return Account(
            id=self.id,
            name=self.name,
            currency_code=self.currency_code,
            balance=self.balance,
        )

    def __repr__(self) -> str:
        return f"<AccountModel {self.name} ({self.currency_code})>"


class AccountTransactionModel(TrackedBase):
    """
    ORM model for account balance movements.

    Guarantees:
        - Rows are append-only and written in the same transaction as the
          balance change they describe.
        - order_id is kept after the order is deleted.
    """

    __tablename__ = "fx_account_transactions"

    __table_args__ = (
        Index("idx_fx_account_transactions_account_id", "account_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("fx_accounts.id", ondelete="CASCADE"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    order_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from fx_modules.accounts.models import AccountTransaction, TransactionKind

        return AccountTransaction(
            id=self.id,
            account_id=self.account_id,
            kind=TransactionKind(self.kind),
            amount=self.amount,
            description=self.description,
            order_id=self.order_id,
            created_at=self.created_at,
        )
