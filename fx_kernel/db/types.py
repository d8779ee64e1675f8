"""
Module: fx_kernel.db.types
Responsibility: Decimal coercion, rounding and currency-code helpers for
    financial-grade values.  Centralizes precision, rounding, and currency-code
    normalization so that every model and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by ORM modules, domain,
    engines and services.

Invariants enforced:
    - No floats for money.  Amounts are Decimal; columns use Numeric(38, 9)
      for money and Numeric(38, 18) for rates.
    - Currency codes are upper-case alphanumeric, 2-10 characters.  Crypto
      tickers (USDT, BTC) are first-class, so ISO 4217 is NOT enforced.

Failure modes:
    - InvalidAmountError from to_decimal() on non-numeric input.
    - CurrencyNotFoundError from normalize_currency_code() on malformed codes.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from fx_kernel.exceptions import CurrencyNotFoundError, InvalidAmountError

MONEY_DECIMAL_PLACES = 9
RATE_DECIMAL_PLACES = 18
DEFAULT_ROUNDING = ROUND_HALF_UP

_CURRENCY_CODE = re.compile(r"^[A-Z0-9]{2,10}$")


def to_decimal(value: object, field: str = "amount") -> Decimal:
    """
    Coerce a user-supplied number to Decimal.

    Floats go through ``str()`` so 0.1 becomes Decimal("0.1"), not its binary
    expansion.  NaN and infinities are rejected.

    Raises:
        InvalidAmountError: if the value is not a finite number.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise InvalidAmountError(field, value)
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(field, value) from None
    else:
        raise InvalidAmountError(field, value)
    if not result.is_finite():
        raise InvalidAmountError(field, value)
    return result


def positive_decimal(value: object, field: str = "amount") -> Decimal:
    """Coerce to Decimal and require it to be strictly positive."""
    result = to_decimal(value, field)
    if result <= 0:
        raise InvalidAmountError(field, value)
    return result


def round_money(
    value: Decimal,
    decimal_places: int = 2,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    This is the only sanctioned rounding function for money in the system.
    Precision is widened to the value's own digits so amounts up to the
    width of the money columns quantize instead of raising.
    """
    quantize_str = "1" if decimal_places == 0 else "0." + "0" * decimal_places
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() + decimal_places + 2)
        return value.quantize(Decimal(quantize_str), rounding=rounding)


def normalize_currency_code(code: str) -> str:
    """
    Upper-case and trim a currency code.

    Raises:
        CurrencyNotFoundError: if the result is not 2-10 upper-case
            alphanumerics.  A malformed code can never name a stored currency.
    """
    if not code or not isinstance(code, str):
        raise CurrencyNotFoundError(repr(code))
    normalized = code.strip().upper()
    if not _CURRENCY_CODE.match(normalized):
        raise CurrencyNotFoundError(repr(code))
    return normalized
