"""
Profit Calculation Store (``fx_modules.profit.store``).

Responsibility
--------------
``ProfitStore`` is the port ``ProfitCalculationService`` writes through;
``SqlProfitStore`` is the SQLAlchemy reference implementation.

Groups are first-class rows with a generated id.  Multipliers point at a
group by id, so renaming a group re-points every member without touching
the multiplier rows, and deleting a group only clears ``group_id`` on its
members.

Invariants enforced
-------------------
* Group names are unique within a calculation (case-sensitive); a clash
  raises ``DuplicateGroupError`` before anything is written.
* At most one calculation is the default: ``set_default`` clears the flag
  on every other calculation in the same transaction.
* Stored multipliers are >= 0; stored rates and the target currency are
  validated against the currency table.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from fx_kernel.db.types import normalize_currency_code, positive_decimal, to_decimal
from fx_kernel.domain.clock import Clock, SystemClock
from fx_kernel.exceptions import (
    AccountNotFoundError,
    CalculationNotFoundError,
    CurrencyNotFoundError,
    DuplicateGroupError,
    GroupNotFoundError,
    InvalidAmountError,
    StoreRejectedError,
)
from fx_kernel.logging_config import get_logger
from fx_modules._store_helpers import store_read, store_transaction
from fx_modules.accounts.orm import AccountModel, CurrencyModel
from fx_modules.profit.models import (
    AccountMultiplier,
    CalculationChanges,
    CalculationInput,
    ExchangeRate,
    ProfitCalculation,
    ProfitCalculationDetails,
    ProfitGroup,
)
from fx_modules.profit.orm import (
    AccountMultiplierModel,
    ExchangeRateModel,
    ProfitCalculationModel,
    ProfitGroupModel,
)

logger = get_logger("modules.profit.store")

_ONE = Decimal("1")


class ProfitStore(Protocol):
    """Port for profit calculation persistence.  Every mutation is atomic."""

    def list_calculations(self) -> list[ProfitCalculation]:
        ...

    def get_calculation(self, calculation_id: UUID) -> ProfitCalculationDetails:
        ...

    def create_calculation(self, data: CalculationInput) -> ProfitCalculation:
        ...

    def update_calculation(
        self, calculation_id: UUID, changes: CalculationChanges,
    ) -> ProfitCalculation:
        ...

    def delete_calculation(self, calculation_id: UUID) -> None:
        ...

    def update_account_multiplier(
        self, calculation_id: UUID, account_id: UUID, multiplier: Decimal,
    ) -> AccountMultiplier:
        ...

    def assign_group(
        self, calculation_id: UUID, account_id: UUID, group_id: UUID | None,
    ) -> AccountMultiplier:
        ...

    def update_exchange_rate(
        self, calculation_id: UUID, from_currency: str, to_currency: str, rate: Decimal,
    ) -> ExchangeRate:
        ...

    def create_group(self, calculation_id: UUID, name: str) -> ProfitGroup:
        ...

    def rename_group(self, calculation_id: UUID, group_id: UUID, new_name: str) -> ProfitGroup:
        ...

    def delete_group(self, calculation_id: UUID, group_id: UUID) -> int:
        ...

    def set_default(self, calculation_id: UUID) -> ProfitCalculation:
        ...

    def unset_default(self, calculation_id: UUID) -> ProfitCalculation:
        ...

    def get_default(self) -> ProfitCalculationDetails | None:
        ...


class SqlProfitStore:
    """SQLAlchemy-backed ``ProfitStore``."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Calculations
    # ------------------------------------------------------------------

    def list_calculations(self) -> list[ProfitCalculation]:
        with store_read(self._session, "list_calculations"):
            rows = self._session.scalars(
                select(ProfitCalculationModel).order_by(
                    ProfitCalculationModel.created_at.desc(), ProfitCalculationModel.id,
                )
            ).all()
            return [row.to_dto() for row in rows]

    def get_calculation(self, calculation_id: UUID) -> ProfitCalculationDetails:
        with store_read(self._session, "get_calculation"):
            row = self._calculation_row(calculation_id)
            self._session.refresh(row)
            return self._details(row)

    def create_calculation(self, data: CalculationInput) -> ProfitCalculation:
        name = _require_name(data.name, "CALCULATION_NAME_REQUIRED")
        investment = _non_negative(data.initial_investment, "initial_investment")
        now = self._clock.now()
        with store_transaction(self._session, "create_calculation"):
            target = self._require_currency(data.target_currency)
            row = ProfitCalculationModel(
                name=name,
                target_currency=target,
                initial_investment=investment,
                is_default=False,
                created_at=now,
                updated_at=now,
            )
            self._session.add(row)
            self._session.flush()
            result = row.to_dto()
        logger.info(
            "profit_calculation_created",
            extra={
                "calculation_id": str(result.id),
                "target_currency": target,
                "initial_investment": str(investment),
            },
        )
        return result

    def update_calculation(
        self, calculation_id: UUID, changes: CalculationChanges,
    ) -> ProfitCalculation:
        if changes.is_empty():
            raise StoreRejectedError("NO_FIELDS_TO_UPDATE", "No fields to update")
        with store_transaction(self._session, "update_calculation"):
            row = self._calculation_row(calculation_id)
            if changes.name is not None:
                row.name = _require_name(changes.name, "CALCULATION_NAME_REQUIRED")
            if changes.target_currency is not None:
                row.target_currency = self._require_currency(changes.target_currency)
            if changes.initial_investment is not None:
                row.initial_investment = _non_negative(
                    changes.initial_investment, "initial_investment",
                )
            self._touch(row)
            result = row.to_dto()
        logger.info("profit_calculation_updated", extra={"calculation_id": str(calculation_id)})
        return result

    def delete_calculation(self, calculation_id: UUID) -> None:
        with store_transaction(self._session, "delete_calculation"):
            row = self._calculation_row(calculation_id)
            # Members reference groups; clear them before the cascade removes both.
            for multiplier in row.multipliers:
                multiplier.group_id = None
            self._session.flush()
            self._session.delete(row)
        logger.info("profit_calculation_deleted", extra={"calculation_id": str(calculation_id)})

    # ------------------------------------------------------------------
    # Multipliers and rates
    # ------------------------------------------------------------------

    def update_account_multiplier(
        self, calculation_id: UUID, account_id: UUID, multiplier: Decimal,
    ) -> AccountMultiplier:
        value = _non_negative(multiplier, "multiplier")
        with store_transaction(self._session, "update_account_multiplier"):
            calc = self._calculation_row(calculation_id)
            entry = self._multiplier_row(calc, account_id)
            entry.multiplier = value
            self._touch(calc)
            result = entry.to_dto()
        logger.info(
            "account_multiplier_updated",
            extra={
                "calculation_id": str(calculation_id),
                "account_id": str(account_id),
                "multiplier": str(value),
            },
        )
        return result

    def assign_group(
        self, calculation_id: UUID, account_id: UUID, group_id: UUID | None,
    ) -> AccountMultiplier:
        with store_transaction(self._session, "assign_group"):
            calc = self._calculation_row(calculation_id)
            if group_id is not None:
                self._group_row(calculation_id, group_id)
            entry = self._multiplier_row(calc, account_id)
            entry.group_id = group_id
            self._touch(calc)
            result = entry.to_dto()
        logger.info(
            "account_group_assigned",
            extra={
                "calculation_id": str(calculation_id),
                "account_id": str(account_id),
                "group_id": str(group_id) if group_id is not None else None,
            },
        )
        return result

    def update_exchange_rate(
        self, calculation_id: UUID, from_currency: str, to_currency: str, rate: Decimal,
    ) -> ExchangeRate:
        value = positive_decimal(rate, "rate")
        with store_transaction(self._session, "update_exchange_rate"):
            calc = self._calculation_row(calculation_id)
            from_code = self._require_currency(from_currency)
            to_code = self._require_currency(to_currency)
            row = self._session.scalars(
                select(ExchangeRateModel).where(
                    ExchangeRateModel.calculation_id == calculation_id,
                    ExchangeRateModel.from_currency == from_code,
                    ExchangeRateModel.to_currency == to_code,
                )
            ).one_or_none()
            if row is None:
                row = ExchangeRateModel(
                    calculation_id=calculation_id,
                    from_currency=from_code,
                    to_currency=to_code,
                    rate=value,
                )
                calc.exchange_rates.append(row)
            else:
                row.rate = value
            self._touch(calc)
            result = row.to_dto()
        logger.info(
            "exchange_rate_updated",
            extra={
                "calculation_id": str(calculation_id),
                "from_currency": from_code,
                "to_currency": to_code,
                "rate": str(value),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(self, calculation_id: UUID, name: str) -> ProfitGroup:
        group_name = _require_name(name, "GROUP_NAME_REQUIRED")
        with store_transaction(self._session, "create_group"):
            calc = self._calculation_row(calculation_id)
            self._require_unique_name(calculation_id, group_name)
            row = ProfitGroupModel(calculation_id=calculation_id, name=group_name)
            calc.groups.append(row)
            self._touch(calc)
            result = row.to_dto()
        logger.info(
            "profit_group_created",
            extra={
                "calculation_id": str(calculation_id),
                "group_id": str(result.id),
                "group_name": group_name,
            },
        )
        return result

    def rename_group(self, calculation_id: UUID, group_id: UUID, new_name: str) -> ProfitGroup:
        group_name = _require_name(new_name, "GROUP_NAME_REQUIRED")
        with store_transaction(self._session, "rename_group"):
            calc = self._calculation_row(calculation_id)
            row = self._group_row(calculation_id, group_id)
            old_name = row.name
            if old_name != group_name:
                self._require_unique_name(calculation_id, group_name)
                row.name = group_name
                self._touch(calc)
            result = row.to_dto()
        logger.info(
            "profit_group_renamed",
            extra={
                "calculation_id": str(calculation_id),
                "group_id": str(group_id),
                "old_name": old_name,
                "new_name": group_name,
            },
        )
        return result

    def delete_group(self, calculation_id: UUID, group_id: UUID) -> int:
        """Delete a group; its members become ungrouped.  Returns how many."""
        with store_transaction(self._session, "delete_group"):
            calc = self._calculation_row(calculation_id)
            row = self._group_row(calculation_id, group_id)
            unassigned = self._session.execute(
                update(AccountMultiplierModel)
                .where(
                    AccountMultiplierModel.calculation_id == calculation_id,
                    AccountMultiplierModel.group_id == group_id,
                )
                .values(group_id=None)
                .execution_options(synchronize_session="fetch")
            ).rowcount
            calc.groups.remove(row)
            self._touch(calc)
        logger.info(
            "profit_group_deleted",
            extra={
                "calculation_id": str(calculation_id),
                "group_id": str(group_id),
                "unassigned_accounts": unassigned,
            },
        )
        return unassigned

    # ------------------------------------------------------------------
    # Default calculation
    # ------------------------------------------------------------------

    def set_default(self, calculation_id: UUID) -> ProfitCalculation:
        with store_transaction(self._session, "set_default"):
            row = self._calculation_row(calculation_id)
            self._session.execute(
                update(ProfitCalculationModel)
                .where(ProfitCalculationModel.id != calculation_id)
                .values(is_default=False)
                .execution_options(synchronize_session="fetch")
            )
            row.is_default = True
            self._touch(row)
            result = row.to_dto()
        logger.info("profit_default_set", extra={"calculation_id": str(calculation_id)})
        return result

    def unset_default(self, calculation_id: UUID) -> ProfitCalculation:
        with store_transaction(self._session, "unset_default"):
            row = self._calculation_row(calculation_id)
            row.is_default = False
            self._touch(row)
            result = row.to_dto()
        logger.info("profit_default_unset", extra={"calculation_id": str(calculation_id)})
        return result

    def get_default(self) -> ProfitCalculationDetails | None:
        with store_read(self._session, "get_default"):
            row = self._session.scalars(
                select(ProfitCalculationModel).where(ProfitCalculationModel.is_default.is_(True))
            ).first()
            if row is None:
                return None
            self._session.refresh(row)
            return self._details(row)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _calculation_row(self, calculation_id: UUID) -> ProfitCalculationModel:
        row = self._session.get(ProfitCalculationModel, calculation_id)
        if row is None:
            raise CalculationNotFoundError(calculation_id)
        return row

    def _group_row(self, calculation_id: UUID, group_id: UUID) -> ProfitGroupModel:
        row = self._session.get(ProfitGroupModel, group_id)
        if row is None or row.calculation_id != calculation_id:
            raise GroupNotFoundError(group_id)
        return row

    def _multiplier_row(
        self, calc: ProfitCalculationModel, account_id: UUID,
    ) -> AccountMultiplierModel:
        """Existing multiplier row for the account, or a new one at 1."""
        if self._session.get(AccountModel, account_id) is None:
            raise AccountNotFoundError(account_id)
        for entry in calc.multipliers:
            if entry.account_id == account_id:
                return entry
        entry = AccountMultiplierModel(
            calculation_id=calc.id,
            account_id=account_id,
            multiplier=_ONE,
            created_at=self._clock.now(),
            updated_at=self._clock.now(),
        )
        calc.multipliers.append(entry)
        return entry

    def _require_unique_name(self, calculation_id: UUID, name: str) -> None:
        clash = self._session.scalars(
            select(ProfitGroupModel.id).where(
                ProfitGroupModel.calculation_id == calculation_id,
                ProfitGroupModel.name == name,
            )
        ).first()
        if clash is not None:
            raise DuplicateGroupError(str(calculation_id), name)

    def _require_currency(self, code: str) -> str:
        normalized = normalize_currency_code(code)
        found = self._session.scalars(
            select(CurrencyModel.code).where(
                CurrencyModel.code == normalized, CurrencyModel.active.is_(True),
            )
        ).one_or_none()
        if found is None:
            raise CurrencyNotFoundError(normalized)
        return normalized

    def _touch(self, row: ProfitCalculationModel) -> None:
        row.updated_at = self._clock.now()
        self._session.flush()

    @staticmethod
    def _details(row: ProfitCalculationModel) -> ProfitCalculationDetails:
        return ProfitCalculationDetails(
            calculation=row.to_dto(),
            groups=tuple(g.to_dto() for g in row.groups),
            multipliers=tuple(m.to_dto() for m in row.multipliers),
            exchange_rates=tuple(r.to_dto() for r in row.exchange_rates),
        )


def _require_name(name: str | None, code: str) -> str:
    if name is None or not name.strip():
        raise StoreRejectedError(code, "A non-empty name is required")
    return name.strip()


def _non_negative(value: object, field: str) -> Decimal:
    result = to_decimal(value, field)
    if result < 0:
        raise InvalidAmountError(field, value)
    return result
