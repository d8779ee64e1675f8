"""House accounts, currencies and balance movements."""

from fx_modules.accounts.models import (
    Account,
    AccountTransaction,
    Currency,
    TransactionKind,
)
from fx_modules.accounts.service import StoreCurrencyRateResolver
from fx_modules.accounts.store import AccountStore, SqlAccountStore, apply_movement

__all__ = [
    "Account",
    "AccountTransaction",
    "Currency",
    "TransactionKind",
    "AccountStore",
    "SqlAccountStore",
    "StoreCurrencyRateResolver",
    "apply_movement",
]
