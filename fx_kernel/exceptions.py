"""
Typed Exception Hierarchy for the FX back-office kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Settlement and profit code must react to failures precisely.  Callers catch
by type, never by message text, and every exception carries:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA as attributes (order_id, state, amount, ...)

Example - WRONG way to handle errors:
    try:
        engine.add_payment(order_id, amount, proof)
    except Exception as e:
        if "beneficiar" in str(e):  # FRAGILE - message might change
            show_beneficiary_form()

Example - RIGHT way (what this module enables):
    try:
        engine.add_payment(order_id, amount, proof)
    except PreconditionFailedError as e:
        if e.precondition == "beneficiaries_present":
            show_beneficiary_form()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from FxKernelError:

    FxKernelError (base)
    |
    +-- InvalidAmountError
    +-- PreconditionFailedError
    +-- ForbiddenError
    +-- DuplicateGroupError
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- AccountNotFoundError
    |   +-- CurrencyNotFoundError
    |   +-- CustomerNotFoundError
    |   +-- BeneficiaryNotFoundError
    |   +-- CalculationNotFoundError
    |   +-- GroupNotFoundError
    |
    +-- UpstreamFailureError
    +-- StoreRejectedError
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                    | When Raised
------------------------|------------------------------------------------------
INVALID_AMOUNT          | Amount (or rate) is zero, negative or not a number
PRECONDITION_FAILED     | Action attempted outside its legal state
FORBIDDEN               | Capability check failed (cancel / delete)
DUPLICATE_GROUP         | Group name already used in the calculation
*_NOT_FOUND             | Referenced entity does not exist
UPSTREAM_FAILURE        | Store call failed (database / network)
(store-defined)         | Store rejected the request; code passed through
CONFIGURATION_ERROR     | Invalid or unreadable configuration

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Rejections never mutate state.  Validation happens before the store is
   called, so a caught FxKernelError means nothing was written (except
   UpstreamFailureError, where the store rolled back its own transaction).

2. UpstreamFailureError on a read may be retried by re-fetching.  It is
   never interpreted as "the order transitioned".

3. StoreRejectedError carries the store's own code; render it, do not
   re-derive the reason client-side.
"""


class FxKernelError(Exception):
    """
    Base exception for all FX kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FX_KERNEL_ERROR"


class InvalidAmountError(FxKernelError):
    """An amount or rate is not a positive decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Invalid amount for {field}: {value!r} (must be > 0)")


class PreconditionFailedError(FxKernelError):
    """
    An action was attempted outside its legal state.

    ``precondition`` names what was missing (e.g. ``beneficiaries_present``,
    ``status_waiting_for_payment``, ``handler``) so callers can branch on it.
    """

    code: str = "PRECONDITION_FAILED"

    def __init__(self, action: str, precondition: str, detail: str = ""):
        self.action = action
        self.precondition = precondition
        self.detail = detail
        message = f"Cannot {action}: precondition '{precondition}' not met"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ForbiddenError(FxKernelError):
    """The caller lacks the capability for this action."""

    code: str = "FORBIDDEN"

    def __init__(self, action: str, capability: str):
        self.action = action
        self.capability = capability
        super().__init__(f"Not allowed to {action}: missing capability '{capability}'")


class DuplicateGroupError(FxKernelError):
    """A group with the same name already exists in the calculation."""

    code: str = "DUPLICATE_GROUP"

    def __init__(self, calculation_id: str, group_name: str):
        self.calculation_id = calculation_id
        self.group_name = group_name
        super().__init__(
            f"Group '{group_name}' already exists in calculation {calculation_id}"
        )


# Lookup failures


class NotFoundError(FxKernelError):
    """Base exception for missing referenced entities."""

    code: str = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: object):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity.capitalize()} not found: {entity_id}")


class OrderNotFoundError(NotFoundError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"
    entity = "order"


class AccountNotFoundError(NotFoundError):
    """Account with given ID was not found."""

    code: str = "ACCOUNT_NOT_FOUND"
    entity = "account"


class CurrencyNotFoundError(NotFoundError):
    """Currency code is unknown or inactive."""

    code: str = "CURRENCY_NOT_FOUND"
    entity = "currency"


class CustomerNotFoundError(NotFoundError):
    """Customer with given ID was not found."""

    code: str = "CUSTOMER_NOT_FOUND"
    entity = "customer"


class BeneficiaryNotFoundError(NotFoundError):
    """Beneficiary with given ID was not found for the owner."""

    code: str = "BENEFICIARY_NOT_FOUND"
    entity = "beneficiary"


class CalculationNotFoundError(NotFoundError):
    """Profit calculation with given ID was not found."""

    code: str = "CALCULATION_NOT_FOUND"
    entity = "profit calculation"


class GroupNotFoundError(NotFoundError):
    """Group with given ID was not found in the calculation."""

    code: str = "GROUP_NOT_FOUND"
    entity = "group"


# Store failures


class UpstreamFailureError(FxKernelError):
    """
    The backing store could not complete the request.

    Raised after the store has rolled back.  Reads may be retried; a failed
    write must be followed by a re-fetch before any decision is taken.
    """

    code: str = "UPSTREAM_FAILURE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store call '{operation}' failed: {reason}")


class StoreRejectedError(FxKernelError):
    """
    The store refused the request with its own validation code.

    The instance ``code`` shadows the class default so the store's code is
    what callers and logs see.
    """

    code: str = "STORE_REJECTED"

    def __init__(self, code: str, message: str):
        self.code = code
        self.store_message = message
        super().__init__(f"[{code}] {message}")


class ConfigurationError(FxKernelError):
    """Configuration file is missing, malformed or inconsistent."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")
