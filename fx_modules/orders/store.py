"""
Order Store (``fx_modules.orders.store``).

Responsibility
--------------
``OrderStore`` is the port the order workflow engine talks to.
``SqlOrderStore`` is the SQLAlchemy reference implementation and the
authoritative "backend" in tests and embedded deployments.

The reference store owns what the workflow engine deliberately does not:

* the four reconciliation figures published in ``OrderDetails``;
* the sufficiency rule: after a receipt, ``total_receipt >= amount_buy -
  tolerance`` advances ``waiting_for_receipt -> waiting_for_payment``; after
  a payment, ``total_payment >= amount_sell - tolerance`` advances
  ``waiting_for_payment -> completed``;
* flex orders: receipts never advance them.  Each receipt resets
  ``actual_amount_buy`` to the collected total and re-derives
  ``actual_amount_sell`` at the actual rate; the operator moves the order
  on with ``proceed_with_partial_receipts`` and may re-price it with
  ``adjust_flex_rate``.  Payments then settle against the actual amounts;
* account movements: a receipt credits the named house account (which must
  hold the order's from-currency), a payment debits it (to-currency), and
  each movement is journalled as an account transaction.

Invariants enforced
-------------------
* Every method is one transaction (``store_transaction``): a receipt or
  payment is stored together with its account movement, its transaction
  row and its status change, or not at all.  Bulk deletes and beneficiary
  capture are all-or-nothing.
* Receipt/payment rows are append-only; ``position`` orders them.
* Terminal statuses are final.

Failure modes
-------------
* ``OrderNotFoundError`` / ``AccountNotFoundError`` / ``CustomerNotFoundError``
  / ``CurrencyNotFoundError`` for missing references.
* ``StoreRejectedError`` with a store code (``ORDER_NOT_EDITABLE``,
  ``ACCOUNT_CURRENCY_MISMATCH``, ``NOT_FLEX_ORDER``, ...) for requests the
  store refuses.
* ``UpstreamFailureError`` for database failures (after rollback).
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from fx_engines.conversion import DEFAULT_DERIVED_PLACES, AmountDeriver, AmountSide
from fx_engines.settlement import SettlementLedger
from fx_kernel.db.types import normalize_currency_code, positive_decimal, round_money
from fx_kernel.domain.clock import Clock, SystemClock
from fx_kernel.exceptions import (
    AccountNotFoundError,
    CurrencyNotFoundError,
    CustomerNotFoundError,
    OrderNotFoundError,
    StoreRejectedError,
)
from fx_kernel.logging_config import get_logger
from fx_modules._store_helpers import store_read, store_transaction
from fx_modules.accounts.models import TransactionKind
from fx_modules.accounts.orm import AccountModel, CurrencyModel
from fx_modules.accounts.store import apply_movement
from fx_modules.customers.models import Beneficiary, PaymentDestination
from fx_modules.customers.orm import BeneficiaryModel, CustomerModel
from fx_modules.orders.models import (
    Order,
    OrderChanges,
    OrderDetails,
    OrderFilter,
    OrderInput,
    OrderStatus,
    Payment,
    Receipt,
)
from fx_modules.orders.orm import OrderModel, OrderPaymentModel, OrderReceiptModel

logger = get_logger("modules.orders.store")


class OrderStore(Protocol):
    """Port for order persistence.  Every mutation is atomic."""

    def list_orders(self, order_filter: OrderFilter | None = None) -> list[Order]:
        ...

    def get_order(self, order_id: UUID) -> Order:
        ...

    def create_order(self, data: OrderInput) -> Order:
        ...

    def update_order(self, order_id: UUID, changes: OrderChanges) -> Order:
        ...

    def update_order_status(self, order_id: UUID, status: OrderStatus) -> Order:
        ...

    def delete_order(self, order_id: UUID) -> None:
        ...

    def delete_orders(self, order_ids: Sequence[UUID]) -> int:
        ...

    def get_order_details(self, order_id: UUID) -> OrderDetails:
        ...

    def process_order(
        self, order_id: UUID, handler_id: UUID, payment_method: PaymentDestination,
    ) -> Order:
        ...

    def add_receipt(
        self, order_id: UUID, amount: Decimal, proof_locator: str,
        account_id: UUID | None = None,
    ) -> Receipt:
        ...

    def add_payment(
        self, order_id: UUID, amount: Decimal, proof_locator: str,
        account_id: UUID | None = None,
    ) -> Payment:
        ...

    def add_beneficiaries(
        self, order_id: UUID, destinations: Sequence[PaymentDestination],
    ) -> tuple[Beneficiary, ...]:
        ...

    def proceed_with_partial_receipts(self, order_id: UUID) -> Order:
        ...

    def adjust_flex_rate(self, order_id: UUID, rate: Decimal) -> Order:
        ...

    def set_order_profit(self, order_id: UUID, amount: Decimal, currency: str) -> Order:
        ...

    def set_order_service_charge(self, order_id: UUID, amount: Decimal, currency: str) -> Order:
        ...


class SqlOrderStore:
    """SQLAlchemy-backed ``OrderStore``.

    ``deriver`` prices flex orders when their actual amounts change.  Without
    one, or when it finds no base currency, the actual sell amount is the
    actual buy amount multiplied by the rate.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        tolerance: Decimal = Decimal("0"),
        deriver: AmountDeriver | None = None,
        derived_places: int = DEFAULT_DERIVED_PLACES,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._tolerance = tolerance
        self._deriver = deriver
        self._derived_places = derived_places

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_orders(self, order_filter: OrderFilter | None = None) -> list[Order]:
        f = order_filter or OrderFilter()
        stmt = select(OrderModel)
        if f.status is not None:
            stmt = stmt.where(OrderModel.status == f.status.value)
        if f.customer_id is not None:
            stmt = stmt.where(OrderModel.customer_id == f.customer_id)
        if f.handler_id is not None:
            stmt = stmt.where(OrderModel.handler_id == f.handler_id)
        if f.created_from is not None:
            stmt = stmt.where(OrderModel.created_at >= f.created_from)
        if f.created_to is not None:
            stmt = stmt.where(OrderModel.created_at <= f.created_to)
        stmt = stmt.order_by(OrderModel.created_at.desc(), OrderModel.id)
        with store_read(self._session, "list_orders"):
            return [row.to_dto() for row in self._session.scalars(stmt).all()]

    def get_order(self, order_id: UUID) -> Order:
        with store_read(self._session, "get_order"):
            return self._order_row(order_id).to_dto()

    def get_order_details(self, order_id: UUID) -> OrderDetails:
        with store_read(self._session, "get_order_details"):
            row = self._order_row(order_id)
            self._session.refresh(row)
            return self._details(row)

    # ------------------------------------------------------------------
    # Order lifecycle
    # ------------------------------------------------------------------

    def create_order(self, data: OrderInput) -> Order:
        amount_buy = positive_decimal(data.amount_buy, "amount_buy")
        amount_sell = positive_decimal(data.amount_sell, "amount_sell")
        rate = positive_decimal(data.rate, "rate")
        now = self._clock.now()
        with store_transaction(self._session, "create_order"):
            self._require_customer(data.customer_id)
            from_code = self._require_currency(data.from_currency)
            to_code = self._require_currency(data.to_currency)
            row = OrderModel(
                customer_id=data.customer_id,
                from_currency=from_code,
                to_currency=to_code,
                amount_buy=amount_buy,
                amount_sell=amount_sell,
                rate=rate,
                status=OrderStatus.PENDING.value,
                is_flex=data.is_flex,
                created_at=now,
                updated_at=now,
            )
            self._session.add(row)
            self._session.flush()
            result = row.to_dto()
        logger.info(
            "order_created",
            extra={
                "order_id": str(result.id),
                "customer_id": str(data.customer_id),
                "from_currency": from_code,
                "to_currency": to_code,
                "amount_buy": str(amount_buy),
                "amount_sell": str(amount_sell),
                "rate": str(rate),
                "is_flex": data.is_flex,
            },
        )
        return result

    def update_order(self, order_id: UUID, changes: OrderChanges) -> Order:
        with store_transaction(self._session, "update_order"):
            row = self._order_row(order_id)
            if row.status != OrderStatus.PENDING.value:
                raise StoreRejectedError(
                    "ORDER_NOT_EDITABLE", f"Order {order_id} is {row.status}",
                )
            if changes.customer_id is not None:
                self._require_customer(changes.customer_id)
                row.customer_id = changes.customer_id
            if changes.from_currency is not None:
                row.from_currency = self._require_currency(changes.from_currency)
            if changes.to_currency is not None:
                row.to_currency = self._require_currency(changes.to_currency)
            if changes.amount_buy is not None:
                row.amount_buy = positive_decimal(changes.amount_buy, "amount_buy")
            if changes.amount_sell is not None:
                row.amount_sell = positive_decimal(changes.amount_sell, "amount_sell")
            if changes.rate is not None:
                row.rate = positive_decimal(changes.rate, "rate")
            row.updated_at = self._clock.now()
            self._session.flush()
            result = row.to_dto()
        logger.info("order_updated", extra={"order_id": str(order_id)})
        return result

    def update_order_status(self, order_id: UUID, status: OrderStatus) -> Order:
        with store_transaction(self._session, "update_order_status"):
            row = self._order_row(order_id)
            previous = row.status
            if OrderStatus(previous).is_terminal and previous != status.value:
                raise StoreRejectedError(
                    "ORDER_STATUS_FINAL", f"Order {order_id} is already {previous}",
                )
            row.status = status.value
            row.updated_at = self._clock.now()
            self._session.flush()
            result = row.to_dto()
        logger.info(
            "order_status_updated",
            extra={"order_id": str(order_id), "from_status": previous, "to_status": status.value},
        )
        return result

    def delete_order(self, order_id: UUID) -> None:
        with store_transaction(self._session, "delete_order"):
            row = self._order_row(order_id)
            self._session.delete(row)
        logger.info("order_deleted", extra={"order_id": str(order_id)})

    def delete_orders(self, order_ids: Sequence[UUID]) -> int:
        """Delete every order in ``order_ids`` or none of them."""
        with store_transaction(self._session, "delete_orders"):
            rows = [self._order_row(order_id) for order_id in order_ids]
            for row in rows:
                self._session.delete(row)
        logger.info(
            "orders_bulk_deleted",
            extra={"count": len(rows), "order_ids": [str(i) for i in order_ids]},
        )
        return len(rows)

    def process_order(
        self, order_id: UUID, handler_id: UUID, payment_method: PaymentDestination,
    ) -> Order:
        with store_transaction(self._session, "process_order"):
            row = self._order_row(order_id)
            if row.status != OrderStatus.PENDING.value:
                raise StoreRejectedError(
                    "ORDER_NOT_PENDING", f"Order {order_id} is {row.status}",
                )
            row.handler_id = handler_id
            row.payment_method = payment_method.to_dict()
            row.status = OrderStatus.WAITING_FOR_RECEIPT.value
            row.updated_at = self._clock.now()
            self._session.flush()
            result = row.to_dto()
        logger.info(
            "order_processed",
            extra={
                "order_id": str(order_id),
                "handler_id": str(handler_id),
                "payment_type": payment_method.payment_type.value,
            },
        )
        return result


    # ------------------------------------------------------------------
    # Settlement ledger
    # ------------------------------------------------------------------

    def add_receipt(
        self, order_id: UUID, amount: Decimal, proof_locator: str,
        account_id: UUID | None = None,
    ) -> Receipt:
        amount = positive_decimal(amount, "amount")
        proof = self._require_proof(proof_locator)
        now = self._clock.now()
        with store_transaction(self._session, "add_receipt"):
            row = self._order_row(order_id)
            if row.status != OrderStatus.WAITING_FOR_RECEIPT.value:
                raise StoreRejectedError(
                    "ORDER_NOT_ACCEPTING_RECEIPTS", f"Order {order_id} is {row.status}",
                )
            position_number = len(row.receipts) + 1
            if account_id is not None:
                account = self._require_account(account_id, row.from_currency)
                apply_movement(
                    self._session, account, TransactionKind.ADD, amount,
                    f"Order {order_id} receipt {position_number}", now, row.id,
                )
            receipt = OrderReceiptModel(
                order_id=row.id,
                position=position_number,
                amount=amount,
                proof_locator=proof,
                account_id=account_id,
                created_at=now,
                updated_at=now,
            )
            row.receipts.append(receipt)
            self._session.flush()

            if row.is_flex:
                self._reprice_flex(row, self._ledger(row).position().total_receipt_amount)
            position = self._ledger(row).position()
            if not row.is_flex and position.receipts_sufficient(self._tolerance):
                self._advance(row, OrderStatus.WAITING_FOR_PAYMENT)
            result = receipt.to_dto()
        logger.info(
            "receipt_added",
            extra={
                "order_id": str(order_id),
                "amount": str(amount),
                "total_receipt_amount": str(position.total_receipt_amount),
                "receipt_balance": str(position.receipt_balance),
                "account_id": str(account_id) if account_id else None,
                "is_flex": row.is_flex,
            },
        )
        return result

    def add_payment(
        self, order_id: UUID, amount: Decimal, proof_locator: str,
        account_id: UUID | None = None,
    ) -> Payment:
        amount = positive_decimal(amount, "amount")
        proof = self._require_proof(proof_locator)
        now = self._clock.now()
        with store_transaction(self._session, "add_payment"):
            row = self._order_row(order_id)
            if row.status != OrderStatus.WAITING_FOR_PAYMENT.value:
                raise StoreRejectedError(
                    "ORDER_NOT_ACCEPTING_PAYMENTS", f"Order {order_id} is {row.status}",
                )
            if not row.beneficiaries:
                raise StoreRejectedError(
                    "BENEFICIARY_REQUIRED", f"Order {order_id} has no beneficiary",
                )
            position_number = len(row.payments) + 1
            if account_id is not None:
                account = self._require_account(account_id, row.to_currency)
                apply_movement(
                    self._session, account, TransactionKind.WITHDRAW, amount,
                    f"Order {order_id} payment {position_number}", now, row.id,
                )
            payment = OrderPaymentModel(
                order_id=row.id,
                position=position_number,
                amount=amount,
                proof_locator=proof,
                account_id=account_id,
                created_at=now,
                updated_at=now,
            )
            row.payments.append(payment)
            self._session.flush()

            position = self._ledger(row).position()
            if position.payments_sufficient(self._tolerance):
                self._advance(row, OrderStatus.COMPLETED)
            result = payment.to_dto()
        logger.info(
            "payment_added",
            extra={
                "order_id": str(order_id),
                "amount": str(amount),
                "total_payment_amount": str(position.total_payment_amount),
                "payment_balance": str(position.payment_balance),
                "account_id": str(account_id) if account_id else None,
            },
        )
        return result

    def add_beneficiaries(
        self, order_id: UUID, destinations: Sequence[PaymentDestination],
    ) -> tuple[Beneficiary, ...]:
        """Attach all ``destinations`` to the order in one transaction."""
        now = self._clock.now()
        with store_transaction(self._session, "add_beneficiaries"):
            row = self._order_row(order_id)
            if row.status != OrderStatus.WAITING_FOR_PAYMENT.value:
                raise StoreRejectedError(
                    "ORDER_NOT_ACCEPTING_BENEFICIARIES", f"Order {order_id} is {row.status}",
                )
            if row.beneficiaries:
                raise StoreRejectedError(
                    "BENEFICIARIES_ALREADY_ADDED", f"Order {order_id} already has beneficiaries",
                )
            added = []
            for destination in destinations:
                beneficiary = BeneficiaryModel(order_id=row.id, created_at=now, updated_at=now)
                beneficiary.apply_destination(destination)
                row.beneficiaries.append(beneficiary)
                added.append(beneficiary)
            self._session.flush()
            result = tuple(b.to_dto() for b in added)
        logger.info(
            "order_beneficiaries_added",
            extra={
                "order_id": str(order_id),
                "beneficiary_ids": [str(b.id) for b in result],
                "payment_types": [d.payment_type.value for d in destinations],
            },
        )
        return result

    # ------------------------------------------------------------------
    # Flex orders
    # ------------------------------------------------------------------

    def proceed_with_partial_receipts(self, order_id: UUID) -> Order:
        """Fix a flex order's buy amount at what was collected and await payment."""
        with store_transaction(self._session, "proceed_with_partial_receipts"):
            row = self._flex_row(order_id)
            if row.status != OrderStatus.WAITING_FOR_RECEIPT.value:
                raise StoreRejectedError(
                    "ORDER_NOT_ACCEPTING_RECEIPTS", f"Order {order_id} is {row.status}",
                )
            collected = self._ledger(row).position().total_receipt_amount
            if collected <= 0:
                raise StoreRejectedError(
                    "RECEIPTS_REQUIRED", f"Order {order_id} has no receipts",
                )
            self._reprice_flex(row, collected)
            self._advance(row, OrderStatus.WAITING_FOR_PAYMENT)
            result = row.to_dto()
        logger.info(
            "flex_order_proceeded",
            extra={
                "order_id": str(order_id),
                "actual_amount_buy": str(result.actual_amount_buy),
                "actual_amount_sell": str(result.actual_amount_sell),
                "actual_rate": str(result.actual_rate),
            },
        )
        return result

    def adjust_flex_rate(self, order_id: UUID, rate: Decimal) -> Order:
        """Re-price a flex order's sell amount at ``rate``; the status is unchanged."""
        rate = positive_decimal(rate, "rate")
        with store_transaction(self._session, "adjust_flex_rate"):
            row = self._flex_row(order_id)
            if row.status not in (
                OrderStatus.WAITING_FOR_RECEIPT.value,
                OrderStatus.WAITING_FOR_PAYMENT.value,
            ):
                raise StoreRejectedError(
                    "ORDER_NOT_IN_SETTLEMENT", f"Order {order_id} is {row.status}",
                )
            previous = row.actual_rate if row.actual_rate is not None else row.rate
            amount_buy = (
                row.actual_amount_buy if row.actual_amount_buy is not None else row.amount_buy
            )
            row.actual_rate = rate
            self._reprice_flex(row, amount_buy)
            result = row.to_dto()
        logger.info(
            "flex_order_rate_adjusted",
            extra={
                "order_id": str(order_id),
                "previous_rate": str(previous),
                "actual_rate": str(rate),
                "actual_amount_sell": str(result.actual_amount_sell),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Post-completion figures
    # ------------------------------------------------------------------

    def set_order_profit(self, order_id: UUID, amount: Decimal, currency: str) -> Order:
        return self._set_completed_figure(order_id, amount, currency, "profit")

    def set_order_service_charge(self, order_id: UUID, amount: Decimal, currency: str) -> Order:
        return self._set_completed_figure(order_id, amount, currency, "service_charge")

    def _set_completed_figure(
        self, order_id: UUID, amount: Decimal, currency: str, figure: str,
    ) -> Order:
        amount = positive_decimal(amount, f"{figure}_amount")
        with store_transaction(self._session, f"set_order_{figure}"):
            row = self._order_row(order_id)
            if row.status != OrderStatus.COMPLETED.value:
                raise StoreRejectedError(
                    "ORDER_NOT_COMPLETED", f"Order {order_id} is {row.status}",
                )
            code = self._require_currency(currency)
            setattr(row, f"{figure}_amount", amount)
            setattr(row, f"{figure}_currency", code)
            row.updated_at = self._clock.now()
            self._session.flush()
            result = row.to_dto()
        logger.info(
            f"order_{figure}_recorded",
            extra={"order_id": str(order_id), "amount": str(amount), "currency": code},
        )
        return result

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _order_row(self, order_id: UUID) -> OrderModel:
        row = self._session.get(OrderModel, order_id)
        if row is None:
            raise OrderNotFoundError(order_id)
        return row

    def _require_customer(self, customer_id: UUID) -> None:
        if self._session.get(CustomerModel, customer_id) is None:
            raise CustomerNotFoundError(customer_id)

    def _require_currency(self, code: str) -> str:
        normalized = normalize_currency_code(code)
        found = self._session.scalars(
            select(CurrencyModel.code).where(CurrencyModel.code == normalized)
        ).one_or_none()
        if found is None:
            raise CurrencyNotFoundError(normalized)
        return normalized

    def _require_account(self, account_id: UUID, currency: str) -> AccountModel:
        account = self._session.get(AccountModel, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if account.currency_code != currency:
            raise StoreRejectedError(
                "ACCOUNT_CURRENCY_MISMATCH",
                f"Account {account_id} holds {account.currency_code}, order needs {currency}",
            )
        return account

    @staticmethod
    def _require_proof(proof_locator: str) -> str:
        if not proof_locator or not proof_locator.strip():
            raise StoreRejectedError("PROOF_REQUIRED", "A proof locator is required")
        return proof_locator.strip()

    def _advance(self, row: OrderModel, status: OrderStatus) -> None:
        previous = row.status
        row.status = status.value
        row.updated_at = self._clock.now()
        self._session.flush()
        logger.info(
            "order_status_advanced",
            extra={"order_id": str(row.id), "from_status": previous, "to_status": status.value},
        )

    def _flex_row(self, order_id: UUID) -> OrderModel:
        row = self._order_row(order_id)
        if not row.is_flex:
            raise StoreRejectedError("NOT_FLEX_ORDER", f"Order {order_id} is not a flex order")
        return row

    def _reprice_flex(self, row: OrderModel, amount_buy: Decimal) -> None:
        rate = row.actual_rate if row.actual_rate is not None else row.rate
        row.actual_rate = rate
        row.actual_amount_buy = amount_buy
        row.actual_amount_sell = self._flex_amount_sell(row, amount_buy, rate)
        row.updated_at = self._clock.now()
        self._session.flush()

    def _flex_amount_sell(self, row: OrderModel, amount_buy: Decimal, rate: Decimal) -> Decimal:
        if self._deriver is not None:
            derived = self._deriver.derive(
                row.from_currency, row.to_currency, rate, AmountSide.BUY, amount_buy,
            )
            if derived.amount_sell is not None:
                return derived.amount_sell
        return round_money(amount_buy * rate, self._derived_places)

    @staticmethod
    def _ledger(row: OrderModel) -> SettlementLedger:
        return SettlementLedger.from_amounts(
            row.actual_amount_buy
            if row.is_flex and row.actual_amount_buy is not None else row.amount_buy,
            row.actual_amount_sell
            if row.is_flex and row.actual_amount_sell is not None else row.amount_sell,
            (r.amount for r in row.receipts),
            (p.amount for p in row.payments),
        )

    def _details(self, row: OrderModel) -> OrderDetails:
        position = self._ledger(row).position()
        return OrderDetails(
            order=row.to_dto(),
            receipts=tuple(r.to_dto() for r in row.receipts),
            payments=tuple(p.to_dto() for p in row.payments),
            beneficiaries=tuple(b.to_dto() for b in row.beneficiaries),
            total_receipt_amount=position.total_receipt_amount,
            total_payment_amount=position.total_payment_amount,
            receipt_balance=position.receipt_balance,
            payment_balance=position.payment_balance,
        )
