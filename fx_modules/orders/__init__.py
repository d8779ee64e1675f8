"""
Orders: FX order settlement workflow.

Lifecycle: pending -> waiting_for_receipt -> waiting_for_payment -> completed,
with cancel from any non-terminal state and delete from any state.
Flex orders settle on the amount actually received and may have their rate
adjusted while settling.
"""

from fx_modules.orders.config import OrderConfig
from fx_modules.orders.models import (
    AvailableActions,
    BatchUploadResult,
    Order,
    OrderAction,
    OrderChanges,
    OrderDetails,
    OrderFilter,
    OrderInput,
    OrderStatus,
    Payment,
    Receipt,
    UploadFailure,
    UploadItem,
)
from fx_modules.orders.service import (
    OrderWorkflowEngine,
    build_amount_deriver,
    compute_order_statistics,
)
from fx_modules.orders.store import OrderStore, SqlOrderStore
from fx_modules.orders.workflows import ORDER_WORKFLOW, available_actions

__all__ = [
    "AvailableActions",
    "BatchUploadResult",
    "ORDER_WORKFLOW",
    "Order",
    "OrderAction",
    "OrderChanges",
    "OrderConfig",
    "OrderDetails",
    "OrderFilter",
    "OrderInput",
    "OrderStatus",
    "OrderStore",
    "OrderWorkflowEngine",
    "Payment",
    "Receipt",
    "SqlOrderStore",
    "UploadFailure",
    "UploadItem",
    "available_actions",
    "build_amount_deriver",
    "compute_order_statistics",
]
