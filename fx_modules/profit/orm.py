"""
Profit Calculation ORM Models (``fx_modules.profit.orm``).

SQLAlchemy persistence for profit calculations, their groups, account
multipliers and exchange rates.  Child rows are cascade-deleted with their
calculation.  Deleting a group leaves its members in place with
``group_id`` cleared.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fx_kernel.db.base import TrackedBase


class ProfitCalculationModel(TrackedBase):
    """
    ORM model for profit calculations.

    Guarantees:
        - At most one row has is_default set (enforced by the store).
    """

    __tablename__ = "fx_profit_calculations"

    __table_args__ = (
        Index("idx_fx_profit_calculations_is_default", "is_default"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("fx_currencies.code"), nullable=False,
    )
    initial_investment: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    groups: Mapped[list["ProfitGroupModel"]] = relationship(
        back_populates="calculation",
        cascade="all, delete-orphan",
        order_by="ProfitGroupModel.name",
    )
    multipliers: Mapped[list["AccountMultiplierModel"]] = relationship(
        back_populates="calculation",
        cascade="all, delete-orphan",
        order_by="AccountMultiplierModel.created_at",
    )
    exchange_rates: Mapped[list["ExchangeRateModel"]] = relationship(
        back_populates="calculation",
        cascade="all, delete-orphan",
        order_by="ExchangeRateModel.from_currency",
    )

    def to_dto(self):
        from fx_modules.profit.models import ProfitCalculation

        return ProfitCalculation(
            id=self.id,
            name=self.name,
            target_currency=self.target_currency,
            initial_investment=self.initial_investment,
            is_default=self.is_default,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        return f"<ProfitCalculationModel {self.name} -> {self.target_currency}>"


class ProfitGroupModel(TrackedBase):
    """
    ORM model for calculation groups.

    Guarantees:
        - name is unique within a calculation (case-sensitive).
    """

    __tablename__ = "fx_profit_groups"

    __table_args__ = (
        UniqueConstraint("calculation_id", "name", name="uq_fx_profit_groups_calculation_name"),
    )

    calculation_id: Mapped[UUID] = mapped_column(
        ForeignKey("fx_profit_calculations.id", ondelete="CASCADE"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    calculation: Mapped[ProfitCalculationModel] = relationship(back_populates="groups")

    def to_dto(self):
        from fx_modules.profit.models import ProfitGroup

        return ProfitGroup(id=self.id, calculation_id=self.calculation_id, name=self.name)


class AccountMultiplierModel(TrackedBase):
    """
    ORM model for per-account multipliers.

    Guarantees:
        - One row per (calculation, account); an account sits in at most one
          group of a calculation.
        - multiplier >= 0.
    """

    __tablename__ = "fx_profit_account_multipliers"

    __table_args__ = (
        UniqueConstraint(
            "calculation_id", "account_id",
            name="uq_fx_profit_multipliers_calculation_account",
        ),
        Index("idx_fx_profit_multipliers_group_id", "group_id"),
    )

    calculation_id: Mapped[UUID] = mapped_column(
        ForeignKey("fx_profit_calculations.id", ondelete="CASCADE"), nullable=False,
    )
    account_id: Mapped[UUID] = mapped_column(
        ForeignKey("fx_accounts.id", ondelete="CASCADE"), nullable=False,
    )
    multiplier: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    group_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("fx_profit_groups.id", ondelete="SET NULL"), nullable=True,
    )

    calculation: Mapped[ProfitCalculationModel] = relationship(back_populates="multipliers")

    def to_dto(self):
        from fx_modules.profit.models import AccountMultiplier

        return AccountMultiplier(
            calculation_id=self.calculation_id,
            account_id=self.account_id,
            multiplier=self.multiplier,
            group_id=self.group_id,
        )


class ExchangeRateModel(TrackedBase):
    """ORM model for a calculation's (from, to) conversion rates."""

    __tablename__ = "fx_profit_exchange_rates"

    __table_args__ = (
        UniqueConstraint(
            "calculation_id", "from_currency", "to_currency",
            name="uq_fx_profit_exchange_rates_pair",
        ),
    )

    calculation_id: Mapped[UUID] = mapped_column(
        ForeignKey("fx_profit_calculations.id", ondelete="CASCADE"), nullable=False,
    )
    from_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("fx_currencies.code"), nullable=False,
    )
    to_currency: Mapped[str] = mapped_column(
        String(10), ForeignKey("fx_currencies.code"), nullable=False,
    )
    rate: Mapped[Decimal] = mapped_column(Numeric(38, 18), nullable=False)

    calculation: Mapped[ProfitCalculationModel] = relationship(back_populates="exchange_rates")

    def to_dto(self):
        from fx_modules.profit.models import ExchangeRate

        return ExchangeRate(
            calculation_id=self.calculation_id,
            from_currency=self.from_currency,
            to_currency=self.to_currency,
            rate=self.rate,
        )
