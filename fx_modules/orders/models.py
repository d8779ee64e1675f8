"""
Order Domain Models (``fx_modules.orders.models``).

Responsibility
--------------
Frozen value objects for the order settlement workflow: orders, their
append-only receipt and payment ledgers, the details snapshot the store
publishes after every mutation, and the request shapes the workflow engine
accepts.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O.  These objects flow
into and out of ``OrderWorkflowEngine`` and ``OrderStore`` as immutable
snapshots.

Invariants enforced
-------------------
* All monetary fields use ``Decimal``.
* ``OrderDetails`` carries the store's four reconciliation figures as
  published; the engine compares them with its own ledger arithmetic but
  never overwrites them.
* Flex orders settle against their actual amounts once receipts set them;
  every other order settles against the amounts it was created with.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from fx_engines.settlement import SettlementLedger, SettlementPosition
from fx_kernel.exceptions import FxKernelError
from fx_modules.customers.models import Beneficiary, PaymentDestination


class OrderStatus(str, Enum):
    """Order lifecycle states.  Must align with ``workflows.ORDER_WORKFLOW.states``."""
    PENDING = "pending"
    WAITING_FOR_RECEIPT = "waiting_for_receipt"
    WAITING_FOR_PAYMENT = "waiting_for_payment"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)


class OrderAction(str, Enum):
    """Affordances exposed to the operator for an order."""
    VIEW = "view"
    PROCESS = "process"
    UPLOAD_RECEIPT = "upload_receipt"
    ADD_BENEFICIARY = "add_beneficiary"
    UPLOAD_PAYMENT = "upload_payment"
    PROCEED_WITH_PARTIAL_RECEIPTS = "proceed_with_partial_receipts"
    ADJUST_RATE = "adjust_rate"
    CANCEL = "cancel"
    DELETE = "delete"


@dataclass(frozen=True)
class Order:
    """A contract to exchange ``amount_buy`` of one currency for ``amount_sell`` of another."""
    id: UUID
    customer_id: UUID
    from_currency: str
    to_currency: str
    amount_buy: Decimal
    amount_sell: Decimal
    rate: Decimal
    status: OrderStatus
    handler_id: UUID | None = None
    payment_method: PaymentDestination | None = None
    profit_amount: Decimal | None = None
    profit_currency: str | None = None
    service_charge_amount: Decimal | None = None
    service_charge_currency: str | None = None
    is_flex: bool = False
    actual_amount_buy: Decimal | None = None
    actual_amount_sell: Decimal | None = None
    actual_rate: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def target_amount_buy(self) -> Decimal:
        """Amount the receipts must cover."""
        if self.is_flex and self.actual_amount_buy is not None:
            return self.actual_amount_buy
        return self.amount_buy

    @property
    def target_amount_sell(self) -> Decimal:
        """Amount the payments must cover."""
        if self.is_flex and self.actual_amount_sell is not None:
            return self.actual_amount_sell
        return self.amount_sell

    @property
    def effective_rate(self) -> Decimal:
        return self.actual_rate if self.actual_rate is not None else self.rate


@dataclass(frozen=True)
class Receipt:
    """Proof that the customer's funds arrived.  Immutable once created."""
    id: UUID
    order_id: UUID
    amount: Decimal
    proof_locator: str
    account_id: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Payment:
    """Proof that funds were sent to the beneficiary.  Immutable once created."""
    id: UUID
    order_id: UUID
    amount: Decimal
    proof_locator: str
    account_id: UUID | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class OrderDetails:
    """Authoritative snapshot of one order as published by the store."""
    order: Order
    receipts: tuple[Receipt, ...]
    payments: tuple[Payment, ...]
    beneficiaries: tuple[Beneficiary, ...]
    total_receipt_amount: Decimal
    total_payment_amount: Decimal
    receipt_balance: Decimal
    payment_balance: Decimal

    @property
    def status(self) -> OrderStatus:
        return self.order.status

    @property
    def has_beneficiaries(self) -> bool:
        return len(self.beneficiaries) > 0

    @property
    def has_receipts(self) -> bool:
        return len(self.receipts) > 0

    def ledger(self) -> SettlementLedger:
        return SettlementLedger.from_amounts(
            self.order.target_amount_buy,
            self.order.target_amount_sell,
            (r.amount for r in self.receipts),
            (p.amount for p in self.payments),
        )

    def published_position(self) -> SettlementPosition:
        """The store's figures in engine form."""
        return SettlementPosition(
            amount_buy=self.order.target_amount_buy,
            amount_sell=self.order.target_amount_sell,
            total_receipt_amount=self.total_receipt_amount,
            total_payment_amount=self.total_payment_amount,
            receipt_balance=self.receipt_balance,
            payment_balance=self.payment_balance,
        )


@dataclass(frozen=True)
class OrderInput:
    """Validated input for ``OrderStore.create_order``."""
    customer_id: UUID
    from_currency: str
    to_currency: str
    amount_buy: Decimal
    amount_sell: Decimal
    rate: Decimal
    is_flex: bool = False


@dataclass(frozen=True)
class OrderChanges:
    """Field-level edits of a pending order.  None means unchanged."""
    customer_id: UUID | None = None
    from_currency: str | None = None
    to_currency: str | None = None
    amount_buy: Decimal | None = None
    amount_sell: Decimal | None = None
    rate: Decimal | None = None

    def is_empty(self) -> bool:
        return all(
            getattr(self, name) is None
            for name in (
                "customer_id", "from_currency", "to_currency",
                "amount_buy", "amount_sell", "rate",
            )
        )


@dataclass(frozen=True)
class OrderFilter:
    """Listing filter; every criterion is optional.  Date bounds are inclusive."""
    status: OrderStatus | None = None
    customer_id: UUID | None = None
    handler_id: UUID | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None


@dataclass(frozen=True)
class UploadItem:
    """One amount + proof pair in a batch upload."""
    amount: Decimal
    proof_locator: str
    account_id: UUID | None = None


@dataclass(frozen=True)
class UploadFailure:
    index: int
    item: UploadItem
    error: FxKernelError


@dataclass(frozen=True)
class BatchUploadResult:
    """Outcome of an ordered batch of receipt or payment uploads.

    ``details`` is the order as re-read after the last attempted item.
    """
    succeeded: tuple[int, ...]
    failures: tuple[UploadFailure, ...]
    details: OrderDetails | None
    stopped_early: bool = False

    @property
    def all_succeeded(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class AvailableActions:
    """What the operator may do with an order right now."""
    status: OrderStatus
    actions: frozenset[OrderAction] = field(default_factory=frozenset)

    def __contains__(self, action: object) -> bool:
        return action in self.actions
