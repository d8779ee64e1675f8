"""
Order Workflows (``fx_modules.orders.workflows``).

Responsibility
--------------
Declares the order settlement state machine and the per-state action policy
shown to operators.

    pending --process--> waiting_for_receipt --(receipts)--> waiting_for_payment
        --(payments)--> completed
    flex: waiting_for_receipt --proceed_with_partial_receipts--> waiting_for_payment
          adjust_rate while waiting for receipts or payments
    cancel: any non-terminal state -> cancelled
    delete: any state (entity removed)

Receipt and payment transitions are ``externally_confirmed``: the store
decides when collected amounts suffice, and the engine only observes the
status it re-reads.

Architecture position
---------------------
**Modules layer** -- declarative definitions.  Imports canonical Guard,
Transition, Workflow from ``fx_kernel.domain.workflow``; consumed by
``fx_services.workflow_executor``.

Invariants enforced
-------------------
* All ``Workflow``, ``Transition`` and ``Guard`` instances are frozen.
* CANCEL is never offered in a terminal state; pending orders never offer
  receipt or payment uploads.
"""

from fx_kernel.domain.workflow import Guard, Transition, Workflow
from fx_kernel.logging_config import get_logger
from fx_modules.orders.models import AvailableActions, OrderAction, OrderStatus
from fx_services.authority import AuthorizationPort, Capability

logger = get_logger("modules.orders.workflows")


# Guards

HANDLER_ASSIGNED = Guard(
    name="handler_assigned",
    description="A handler and a counter-party payment method are supplied",
)

BENEFICIARIES_ABSENT = Guard(
    name="beneficiaries_absent",
    description="Beneficiaries are captured once per order",
)

BENEFICIARIES_PRESENT = Guard(
    name="beneficiaries_present",
    description="At least one beneficiary must be attached before paying out",
)

FLEX_ORDER = Guard(
    name="flex_order",
    description="Only flex orders settle on collected receipts and take rate adjustments",
)


# Actions (workflow verbs, distinct from the operator-facing OrderAction)

ACTION_EDIT = "edit"
ACTION_PROCESS = "process"
ACTION_ADD_RECEIPT = "add_receipt"
ACTION_ADD_BENEFICIARY = "add_beneficiary"
ACTION_ADD_PAYMENT = "add_payment"
ACTION_PROCEED_PARTIAL = "proceed_with_partial_receipts"
ACTION_ADJUST_RATE = "adjust_rate"
ACTION_CANCEL = "cancel"
ACTION_DELETE = "delete"
ACTION_RECORD_PROFIT = "record_profit"
ACTION_RECORD_SERVICE_CHARGE = "record_service_charge"

_PENDING = OrderStatus.PENDING.value
_WAITING_RECEIPT = OrderStatus.WAITING_FOR_RECEIPT.value
_WAITING_PAYMENT = OrderStatus.WAITING_FOR_PAYMENT.value
_COMPLETED = OrderStatus.COMPLETED.value
_CANCELLED = OrderStatus.CANCELLED.value

_NON_TERMINAL = (_PENDING, _WAITING_RECEIPT, _WAITING_PAYMENT)
_ALL_STATES = _NON_TERMINAL + (_COMPLETED, _CANCELLED)


ORDER_WORKFLOW = Workflow(
    name="fx_order",
    description="Currency-exchange order settlement lifecycle",
    initial_state=_PENDING,
    states=_ALL_STATES,
    transitions=(
        Transition(_PENDING, _PENDING, action=ACTION_EDIT),
        Transition(_PENDING, _WAITING_RECEIPT, action=ACTION_PROCESS,
                   guard=HANDLER_ASSIGNED),
        Transition(_WAITING_RECEIPT, _WAITING_PAYMENT, action=ACTION_ADD_RECEIPT,
                   externally_confirmed=True),
        Transition(_WAITING_RECEIPT, _WAITING_PAYMENT, action=ACTION_PROCEED_PARTIAL,
                   guard=FLEX_ORDER),
        Transition(_WAITING_RECEIPT, _WAITING_RECEIPT, action=ACTION_ADJUST_RATE,
                   guard=FLEX_ORDER),
        Transition(_WAITING_PAYMENT, _WAITING_PAYMENT, action=ACTION_ADJUST_RATE,
                   guard=FLEX_ORDER),
        Transition(_WAITING_PAYMENT, _WAITING_PAYMENT, action=ACTION_ADD_BENEFICIARY,
                   guard=BENEFICIARIES_ABSENT),
        Transition(_WAITING_PAYMENT, _COMPLETED, action=ACTION_ADD_PAYMENT,
                   guard=BENEFICIARIES_PRESENT, externally_confirmed=True),
        Transition(_COMPLETED, _COMPLETED, action=ACTION_RECORD_PROFIT),
        Transition(_COMPLETED, _COMPLETED, action=ACTION_RECORD_SERVICE_CHARGE),
        *(
            Transition(state, _CANCELLED, action=ACTION_CANCEL,
                       requires_capability=Capability.CANCEL_ORDER.value)
            for state in _NON_TERMINAL
        ),
        *(
            Transition(state, None, action=ACTION_DELETE,
                       requires_capability=Capability.DELETE_ORDER.value)
            for state in _ALL_STATES
        ),
    ),
    terminal_states=(_COMPLETED, _CANCELLED),
)

logger.info(
    "order_workflow_defined",
    extra={
        "workflow": ORDER_WORKFLOW.name,
        "states": len(ORDER_WORKFLOW.states),
        "transitions": len(ORDER_WORKFLOW.transitions),
    },
)


def available_actions(
    status: OrderStatus,
    has_beneficiaries: bool,
    authority: AuthorizationPort,
    is_flex: bool = False,
    has_receipts: bool = False,
) -> AvailableActions:
    """Operator affordances for an order in ``status``.

    VIEW is always present.  CANCEL and DELETE additionally require the
    matching capability.  Flex orders add rate adjustment while settling,
    and proceeding once at least one receipt is in.
    """
    actions = {OrderAction.VIEW}
    if status is OrderStatus.PENDING:
        actions.add(OrderAction.PROCESS)
    elif status is OrderStatus.WAITING_FOR_RECEIPT:
        actions.add(OrderAction.UPLOAD_RECEIPT)
        if is_flex:
            actions.add(OrderAction.ADJUST_RATE)
            if has_receipts:
                actions.add(OrderAction.PROCEED_WITH_PARTIAL_RECEIPTS)
    elif status is OrderStatus.WAITING_FOR_PAYMENT:
        actions.add(
            OrderAction.UPLOAD_PAYMENT if has_beneficiaries else OrderAction.ADD_BENEFICIARY
        )
        if is_flex:
            actions.add(OrderAction.ADJUST_RATE)
    if not status.is_terminal and authority.can_cancel_order():
        actions.add(OrderAction.CANCEL)
    if authority.can_delete_order():
        actions.add(OrderAction.DELETE)
    return AvailableActions(status=status, actions=frozenset(actions))
