"""
fx_modules.orders.service
=========================

Responsibility:
    ``OrderWorkflowEngine`` drives an order through its settlement
    lifecycle: create (with buy/sell auto-derivation), edit while pending,
    process, receipt collection, beneficiary capture, payment, cancel,
    delete, and the post-completion profit / service-charge figures.  Flex
    orders additionally proceed on partial receipts and take rate
    adjustments.  It exposes the next legal operator actions for any order.

Architecture:
    Module layer.  Every request follows the same shape:

        validate input -> fetch authoritative details -> authorize against
        ORDER_WORKFLOW (state, guard, capability) -> one store mutation ->
        re-fetch details -> agreement check -> trace the observed outcome

    The engine never infers a status locally.  Whether receipts or payments
    suffice is decided by the store; the engine reports what it re-reads.

Invariants enforced:
    - Rejected requests (invalid amount, wrong state, missing beneficiary,
      missing capability) raise before any store call.
    - receipt_balance = amount_buy - sum(receipts) and
      payment_balance = amount_sell - sum(payments) are recomputed from the
      ledger after every mutation and compared with the store's figures;
      a disagreement is logged as ``settlement_totals_mismatch`` and the
      store's figures are kept.
    - Batch uploads run in order, one atomic store call per item.
    - Beneficiary capture and bulk deletes are one store call each; the
      customer directory is only written after the beneficiaries commit.

Failure modes:
    - InvalidAmountError, PreconditionFailedError, ForbiddenError: request
      rejected, nothing written.
    - CurrencyNotFoundError for a malformed or unknown currency code.
    - StoreRejectedError / *NotFoundError: surfaced as the store raised them.
    - UpstreamFailureError: the store rolled back; callers re-fetch before
      deciding anything.

Usage::

    engine = OrderWorkflowEngine(order_store, directory, deriver, authority)
    order = engine.create_order(customer_id, "USDT", "PKR", amount_buy=100, rate=285)
    engine.process_order(order.id, handler_id, PaymentDestination.crypto("TRC20", ["T..."]))
    details = engine.add_receipt(order.id, Decimal("100"), "proofs/r1.png")
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from fx_engines.conversion import AmountDeriver, AmountSide, DerivationResult
from fx_engines.statistics import (
    DashboardStatistics,
    MoneyLine,
    compute_dashboard_statistics,
)
from fx_kernel.db.types import normalize_currency_code, positive_decimal
from fx_kernel.exceptions import (
    FxKernelError,
    InvalidAmountError,
    PreconditionFailedError,
)
from fx_kernel.logging_config import LogContext, get_logger
from fx_modules.accounts.service import StoreCurrencyRateResolver
from fx_modules.accounts.store import AccountStore
from fx_modules.customers.models import PaymentDestination
from fx_modules.customers.service import BeneficiaryDirectory
from fx_modules.orders.config import OrderConfig
from fx_modules.orders.models import (
    AvailableActions,
    BatchUploadResult,
    Order,
    OrderChanges,
    OrderDetails,
    OrderFilter,
    OrderInput,
    OrderStatus,
    UploadFailure,
    UploadItem,
)
from fx_modules.orders.store import OrderStore
from fx_modules.orders.workflows import (
    ACTION_ADD_BENEFICIARY,
    ACTION_ADD_PAYMENT,
    ACTION_ADD_RECEIPT,
    ACTION_ADJUST_RATE,
    ACTION_CANCEL,
    ACTION_DELETE,
    ACTION_EDIT,
    ACTION_PROCEED_PARTIAL,
    ACTION_PROCESS,
    ACTION_RECORD_PROFIT,
    ACTION_RECORD_SERVICE_CHARGE,
    BENEFICIARIES_ABSENT,
    BENEFICIARIES_PRESENT,
    FLEX_ORDER,
    HANDLER_ASSIGNED,
    ORDER_WORKFLOW,
    available_actions,
)
from fx_services.authority import AuthorizationPort, Capability, require_capability
from fx_services.workflow_executor import WorkflowExecutor

logger = get_logger("modules.orders.service")

_ENTITY = "order"


class OrderWorkflowEngine:
    """Settlement workflow over an ``OrderStore``."""

    def __init__(
        self,
        store: OrderStore,
        directory: BeneficiaryDirectory,
        deriver: AmountDeriver | None,
        authority: AuthorizationPort,
        config: OrderConfig | None = None,
    ):
        self._store = store
        self._directory = directory
        self._deriver = deriver
        self._authority = authority
        self._config = config or OrderConfig.with_defaults()
        self._executor = WorkflowExecutor(authority=authority)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_details(self, order_id: UUID) -> OrderDetails:
        """Authoritative details of one order, with the agreement check applied."""
        return self._refresh(order_id)

    def list_orders(self, order_filter: OrderFilter | None = None) -> list[Order]:
        return self._store.list_orders(order_filter)

    def available_actions(self, details: OrderDetails) -> AvailableActions:
        return available_actions(
            details.status,
            details.has_beneficiaries,
            self._authority,
            is_flex=details.order.is_flex,
            has_receipts=details.has_receipts,
        )

    def derive_amounts(
        self,
        from_currency: str,
        to_currency: str,
        rate: Decimal,
        edited_side: AmountSide,
        amount: Decimal,
    ) -> DerivationResult:
        """Fill the opposite amount for data entry.

        With no deriver configured, nothing is derived.
        """
        from_code = normalize_currency_code(from_currency)
        to_code = normalize_currency_code(to_currency)
        if self._deriver is None:
            typed = positive_decimal(amount, f"amount_{edited_side.value}")
            if edited_side is AmountSide.BUY:
                return DerivationResult(None, typed, None)
            return DerivationResult(None, None, typed)
        return self._deriver.derive(from_code, to_code, rate, edited_side, amount)

    # ------------------------------------------------------------------
    # Create / edit
    # ------------------------------------------------------------------

    def create_order(
        self,
        customer_id: UUID,
        from_currency: str,
        to_currency: str,
        amount_buy: Decimal | None = None,
        amount_sell: Decimal | None = None,
        rate: Decimal | None = None,
        is_flex: bool = False,
    ) -> Order:
        """Create a pending order.

        When only one amount is given it is derived from the other via the
        base-currency heuristic; if that yields nothing the missing amount
        is rejected as invalid.  A flex order's amounts are estimates that
        its receipts later replace.
        """
        from_code = normalize_currency_code(from_currency)
        to_code = normalize_currency_code(to_currency)
        rate_value = positive_decimal(
            rate if rate is not None else self._config.default_rate, "rate",
        )

        if amount_buy is None and amount_sell is not None:
            derived = self.derive_amounts(from_code, to_code, rate_value, AmountSide.SELL, amount_sell)
            amount_buy = derived.amount_buy
        elif amount_sell is None and amount_buy is not None:
            derived = self.derive_amounts(from_code, to_code, rate_value, AmountSide.BUY, amount_buy)
            amount_sell = derived.amount_sell

        if amount_buy is None:
            raise InvalidAmountError("amount_buy", None)
        if amount_sell is None:
            raise InvalidAmountError("amount_sell", None)

        data = OrderInput(
            customer_id=customer_id,
            from_currency=from_code,
            to_currency=to_code,
            amount_buy=positive_decimal(amount_buy, "amount_buy"),
            amount_sell=positive_decimal(amount_sell, "amount_sell"),
            rate=rate_value,
            is_flex=is_flex,
        )
        order = self._store.create_order(data)
        logger.info(
            "order_create_completed",
            extra={"order_id": str(order.id), "status": order.status.value},
        )
        return order

    def update_order(self, order_id: UUID, changes: OrderChanges) -> OrderDetails:
        """Edit a pending order's customer, currencies, amounts or rate."""
        checked = OrderChanges(
            customer_id=changes.customer_id,
            from_currency=(
                normalize_currency_code(changes.from_currency)
                if changes.from_currency is not None else None
            ),
            to_currency=(
                normalize_currency_code(changes.to_currency)
                if changes.to_currency is not None else None
            ),
            amount_buy=(
                positive_decimal(changes.amount_buy, "amount_buy")
                if changes.amount_buy is not None else None
            ),
            amount_sell=(
                positive_decimal(changes.amount_sell, "amount_sell")
                if changes.amount_sell is not None else None
            ),
            rate=positive_decimal(changes.rate, "rate") if changes.rate is not None else None,
        )
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(before, ACTION_EDIT)
            if not checked.is_empty():
                self._store.update_order(order_id, checked)
            return self._observe(order_id, transition, t0)

    # ------------------------------------------------------------------
    # Settlement steps
    # ------------------------------------------------------------------

    def process_order(
        self,
        order_id: UUID,
        handler_id: UUID | None,
        payment_method: PaymentDestination | None,
    ) -> OrderDetails:
        """Assign a handler and the counter-party payment method."""
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(
                before,
                ACTION_PROCESS,
                {HANDLER_ASSIGNED.name: handler_id is not None and payment_method is not None},
            )
            self._store.process_order(order_id, handler_id, payment_method)
            return self._observe(order_id, transition, t0)

    def add_receipt(
        self,
        order_id: UUID,
        amount: Decimal,
        proof_locator: str,
        account_id: UUID | None = None,
    ) -> OrderDetails:
        """Append one receipt; the status is re-read, never asserted."""
        value = positive_decimal(amount, "amount")
        proof = _require_proof(ACTION_ADD_RECEIPT, proof_locator)
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(before, ACTION_ADD_RECEIPT)
            self._store.add_receipt(order_id, value, proof, account_id)
            return self._observe(order_id, transition, t0)

    def upload_receipts(
        self,
        order_id: UUID,
        items: Sequence[UploadItem],
        continue_on_error: bool = False,
    ) -> BatchUploadResult:
        """Add receipts in order; see ``_upload_batch``."""
        return self._upload_batch(order_id, items, continue_on_error, self.add_receipt)

    def add_beneficiary(
        self,
        order_id: UUID,
        destinations: Sequence[PaymentDestination],
        save_to_customer: bool = False,
    ) -> OrderDetails:
        """Attach the order's beneficiaries (once per order).

        With ``save_to_customer`` each destination is also stored in the
        customer's reusable directory, unless an identical one exists.
        """
        if not destinations:
            raise PreconditionFailedError(ACTION_ADD_BENEFICIARY, "beneficiary_supplied")
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(
                before,
                ACTION_ADD_BENEFICIARY,
                {BENEFICIARIES_ABSENT.name: not before.has_beneficiaries},
            )
            self._store.add_beneficiaries(order_id, list(destinations))
            if save_to_customer:
                for destination in destinations:
                    self._directory.save_if_new(before.order.customer_id, destination)
            return self._observe(order_id, transition, t0)

    def add_payment(
        self,
        order_id: UUID,
        amount: Decimal,
        proof_locator: str,
        account_id: UUID | None = None,
    ) -> OrderDetails:
        """Append one payment; requires beneficiaries; status is re-read."""
        value = positive_decimal(amount, "amount")
        proof = _require_proof(ACTION_ADD_PAYMENT, proof_locator)
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(
                before,
                ACTION_ADD_PAYMENT,
                {BENEFICIARIES_PRESENT.name: before.has_beneficiaries},
            )
            self._store.add_payment(order_id, value, proof, account_id)
            return self._observe(order_id, transition, t0)

    def upload_payments(
        self,
        order_id: UUID,
        items: Sequence[UploadItem],
        continue_on_error: bool = False,
    ) -> BatchUploadResult:
        return self._upload_batch(order_id, items, continue_on_error, self.add_payment)

    # ------------------------------------------------------------------
    # Flex orders
    # ------------------------------------------------------------------

    def proceed_with_partial_receipts(self, order_id: UUID) -> OrderDetails:
        """Settle a flex order on the receipts collected so far.

        The store fixes the actual buy amount at the receipt total, prices
        the sell amount at the actual rate and moves the order to payment.
        """
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(
                before,
                ACTION_PROCEED_PARTIAL,
                {FLEX_ORDER.name: before.order.is_flex},
            )
            if not before.has_receipts:
                raise PreconditionFailedError(ACTION_PROCEED_PARTIAL, "receipts_present")
            self._store.proceed_with_partial_receipts(order_id)
            return self._observe(order_id, transition, t0)

    def adjust_rate(self, order_id: UUID, rate: Decimal) -> OrderDetails:
        value = positive_decimal(rate, "rate")
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(
                before,
                ACTION_ADJUST_RATE,
                {FLEX_ORDER.name: before.order.is_flex},
            )
            self._store.adjust_flex_rate(order_id, value)
            return self._observe(order_id, transition, t0)

    # ------------------------------------------------------------------
    # Cancel / delete
    # ------------------------------------------------------------------

    def cancel_order(self, order_id: UUID) -> OrderDetails:
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(before, ACTION_CANCEL)
            self._store.update_order_status(order_id, OrderStatus.CANCELLED)
            return self._observe(order_id, transition, t0)

    def delete_order(self, order_id: UUID) -> None:
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(before, ACTION_DELETE)
            self._store.delete_order(order_id)
            self._executor.record_outcome(
                ORDER_WORKFLOW, _ENTITY, order_id, transition, None, t0,
            )

    def delete_orders(self, order_ids: Iterable[UUID]) -> int:
        """Delete several orders; gated by ``can_delete_many_orders`` alone."""
        ids = list(dict.fromkeys(order_ids))
        require_capability(self._authority, Capability.DELETE_MANY_ORDERS, "delete_orders")
        deleted = self._store.delete_orders(ids)
        logger.info("orders_deleted", extra={"count": deleted})
        return deleted

    # ------------------------------------------------------------------
    # Post-completion figures
    # ------------------------------------------------------------------

    def record_profit(self, order_id: UUID, amount: Decimal, currency: str) -> OrderDetails:
        value = positive_decimal(amount, "profit_amount")
        code = normalize_currency_code(currency)
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(before, ACTION_RECORD_PROFIT)
            self._store.set_order_profit(order_id, value, code)
            return self._observe(order_id, transition, t0)

    def record_service_charge(
        self, order_id: UUID, amount: Decimal, currency: str,
    ) -> OrderDetails:
        value = positive_decimal(amount, "service_charge_amount")
        code = normalize_currency_code(currency)
        with LogContext.bind(order_id=order_id):
            before = self._refresh(order_id)
            t0 = time.monotonic()
            transition = self._authorize(before, ACTION_RECORD_SERVICE_CHARGE)
            self._store.set_order_service_charge(order_id, value, code)
            return self._observe(order_id, transition, t0)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _authorize(self, details: OrderDetails, action: str, context: dict | None = None):
        return self._executor.authorize(
            ORDER_WORKFLOW,
            _ENTITY,
            details.order.id,
            details.status.value,
            action,
            context,
        )

    def _observe(self, order_id: UUID, transition, t0: float) -> OrderDetails:
        details = self._refresh(order_id)
        self._executor.record_outcome(
            ORDER_WORKFLOW, _ENTITY, order_id, transition, details.status.value, t0,
        )
        return details

    def _refresh(self, order_id: UUID) -> OrderDetails:
        """Re-read details from the store and check its figures against the ledger."""
        details = self._store.get_order_details(order_id)
        local = details.ledger().position()
        mismatched = local.disagreements(
            details.published_position(), self._config.settlement_tolerance,
        )
        if mismatched:
            logger.warning(
                "settlement_totals_mismatch",
                extra={
                    "order_id": str(order_id),
                    "fields": list(mismatched),
                    "store_total_receipt_amount": str(details.total_receipt_amount),
                    "local_total_receipt_amount": str(local.total_receipt_amount),
                    "store_total_payment_amount": str(details.total_payment_amount),
                    "local_total_payment_amount": str(local.total_payment_amount),
                },
            )
        return details

    def _upload_batch(self, order_id, items, continue_on_error, upload) -> BatchUploadResult:
        """Run uploads in order.

        A failed item is recorded; the batch stops there unless
        ``continue_on_error`` is set.  Each item is one atomic store call.
        """
        succeeded: list[int] = []
        failures: list[UploadFailure] = []
        details: OrderDetails | None = None
        stopped = False
        for index, item in enumerate(items):
            try:
                details = upload(order_id, item.amount, item.proof_locator, item.account_id)
            except FxKernelError as exc:
                logger.warning(
                    "batch_upload_item_failed",
                    extra={
                        "order_id": str(order_id),
                        "index": index,
                        "error_code": exc.code,
                        "error": str(exc),
                    },
                )
                failures.append(UploadFailure(index=index, item=item, error=exc))
                if not continue_on_error:
                    stopped = index < len(items) - 1
                    break
            else:
                succeeded.append(index)
        if details is None or failures:
            details = self._refresh(order_id)
        logger.info(
            "batch_upload_completed",
            extra={
                "order_id": str(order_id),
                "succeeded": len(succeeded),
                "failed": len(failures),
                "status": details.status.value,
            },
        )
        return BatchUploadResult(
            succeeded=tuple(succeeded),
            failures=tuple(failures),
            details=details,
            stopped_early=stopped,
        )


def _require_proof(action: str, proof_locator: str) -> str:
    if not proof_locator or not proof_locator.strip():
        raise PreconditionFailedError(action, "proof_locator")
    return proof_locator.strip()


def compute_order_statistics(
    store: OrderStore,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    expenses: Iterable[MoneyLine] = (),
    transfer_fees: Iterable[MoneyLine] = (),
) -> DashboardStatistics:
    """Dashboard roll-up of recorded profit over completed orders in a date range."""
    orders = store.list_orders(
        OrderFilter(
            status=OrderStatus.COMPLETED,
            created_from=created_from,
            created_to=created_to,
        )
    )
    return compute_dashboard_statistics(
        order_profits=[MoneyLine(o.profit_amount, o.profit_currency) for o in orders],
        expenses=list(expenses),
        transfer_fees=list(transfer_fees),
    )


def build_amount_deriver(accounts: AccountStore, config: OrderConfig) -> AmountDeriver:
    """Deriver resolving rates from the account store with the configured heuristic."""
    return AmountDeriver(
        StoreCurrencyRateResolver(accounts),
        reference_code=config.reference_currency,
        decimal_places=config.derived_amount_places,
    )
