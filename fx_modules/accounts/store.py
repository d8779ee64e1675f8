"""
Accounts Store (``fx_modules.accounts.store``).

``AccountStore`` is the read port the workflow and profit engines consume.
``SqlAccountStore`` is the SQLAlchemy reference adapter; it also exposes the
write helpers used to seed currencies and accounts.  ``apply_movement`` is
the one place a balance changes: it adjusts the row and appends the
matching ``AccountTransactionModel`` inside the caller's transaction.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fx_kernel.db.types import normalize_currency_code, to_decimal
from fx_kernel.exceptions import AccountNotFoundError, CurrencyNotFoundError
from fx_kernel.logging_config import get_logger
from fx_modules._store_helpers import store_read, store_transaction
from fx_modules.accounts.models import (
    Account,
    AccountTransaction,
    Currency,
    TransactionKind,
)
from fx_modules.accounts.orm import AccountModel, AccountTransactionModel, CurrencyModel

logger = get_logger("modules.accounts.store")


class AccountStore(Protocol):
    def list_accounts(self) -> list[Account]:
        ...

    def get_account(self, account_id: UUID) -> Account:
        ...

    def get_currency(self, code: str) -> Currency:
        ...

    def list_currencies(self) -> list[Currency]:
        ...

    def list_transactions(self, account_id: UUID) -> list[AccountTransaction]:
        ...


class SqlAccountStore:
    """SQLAlchemy-backed ``AccountStore``."""

    def __init__(self, session: Session):
        self._session = session

    def list_accounts(self) -> list[Account]:
        with store_read(self._session, "list_accounts"):
            rows = self._session.scalars(
                select(AccountModel).order_by(AccountModel.name, AccountModel.id)
            ).all()
            return [row.to_dto() for row in rows]

    def get_account(self, account_id: UUID) -> Account:
        with store_read(self._session, "get_account"):
            row = self._session.get(AccountModel, account_id)
            if row is None:
                raise AccountNotFoundError(account_id)
            return row.to_dto()

    def get_currency(self, code: str) -> Currency:
        with store_read(self._session, "get_currency"):
            row = self._currency_row(code)
            if row is None:
                raise CurrencyNotFoundError(code)
            return row.to_dto()

    def list_currencies(self) -> list[Currency]:
        with store_read(self._session, "list_currencies"):
            rows = self._session.scalars(
                select(CurrencyModel).order_by(CurrencyModel.code)
            ).all()
            return [row.to_dto() for row in rows]

    def list_transactions(self, account_id: UUID) -> list[AccountTransaction]:
        """Movements on one account, oldest first."""
        with store_read(self._session, "list_transactions"):
            if self._session.get(AccountModel, account_id) is None:
                raise AccountNotFoundError(account_id)
            rows = self._session.scalars(
                select(AccountTransactionModel)
                .where(AccountTransactionModel.account_id == account_id)
                .order_by(AccountTransactionModel.created_at)
            ).all()
            return [row.to_dto() for row in rows]

    def create_currency(self, currency: Currency) -> Currency:
        code = normalize_currency_code(currency.code)
        with store_transaction(self._session, "create_currency"):
            row = CurrencyModel(
                code=code,
                name=currency.name,
                base_rate_buy=currency.base_rate_buy,
                conversion_rate_buy=currency.conversion_rate_buy,
                base_rate_sell=currency.base_rate_sell,
                conversion_rate_sell=currency.conversion_rate_sell,
                active=currency.active,
            )
            self._session.add(row)
            self._session.flush()
            result = row.to_dto()
        logger.info("currency_created", extra={"currency_code": code})
        return result

    def create_account(
        self, name: str, currency_code: str, balance: Decimal = Decimal("0"),
    ) -> Account:
        code = normalize_currency_code(currency_code)
        opening = to_decimal(balance, "balance")
        with store_transaction(self._session, "create_account"):
            if self._currency_row(code) is None:
                raise CurrencyNotFoundError(code)
            row = AccountModel(name=name, currency_code=code, balance=opening)
            self._session.add(row)
            self._session.flush()
            result = row.to_dto()
        logger.info(
            "account_created",
            extra={
                "account_id": str(result.id),
                "currency_code": code,
                "balance": str(opening),
            },
        )
        return result

    def _currency_row(self, code: str) -> CurrencyModel | None:
        return self._session.scalars(
            select(CurrencyModel).where(CurrencyModel.code == code.strip().upper())
        ).one_or_none()


def apply_movement(
    session: Session,
    account: AccountModel,
    kind: TransactionKind,
    amount: Decimal,
    description: str,
    now: datetime,
    order_id: UUID | None = None,
) -> AccountTransactionModel:
    """Move ``amount`` on ``account`` and append its transaction row.

    Runs inside the caller's ``store_transaction``; nothing is committed here.
    Withdrawals may take the balance below zero.
    """
    signed = amount if kind is TransactionKind.ADD else -amount
    account.balance = account.balance + signed
    row = AccountTransactionModel(
        account_id=account.id,
        kind=kind.value,
        amount=amount,
        description=description,
        order_id=order_id,
        created_at=now,
        updated_at=now,
    )
    session.add(row)
    logger.debug(
        "account_movement_applied",
        extra={
            "account_id": str(account.id),
            "kind": kind.value,
            "amount": str(amount),
            "balance": str(account.balance),
        },
    )
    return row
