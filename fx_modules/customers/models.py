"""
Customer Domain Models (``fx_modules.customers.models``).

Responsibility
--------------
Frozen value objects for customers and payment destinations.  A
``PaymentDestination`` is either a crypto wallet set (network plus ordered
addresses) or a set of bank details; the same shape describes an order's
counter-party payment method and a beneficiary.

Invariants enforced
-------------------
* Crypto destinations name a network; blank wallet addresses are dropped and
  the remaining addresses keep their order.
* Fiat destinations carry bank fields, none individually required.
* A ``Beneficiary`` is owned by exactly one of a customer or an order.

Failure modes
-------------
* ``ValueError`` from ``__post_init__`` when a constraint is violated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

_FIAT_FIELDS = (
    "bank_name",
    "account_title",
    "account_number",
    "account_iban",
    "swift_code",
    "bank_address",
)


class PaymentType(str, Enum):
    CRYPTO = "CRYPTO"
    FIAT = "FIAT"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class PaymentDestination:
    """Where money is sent: a crypto address set or bank details."""
    payment_type: PaymentType
    network_chain: str | None = None
    wallet_addresses: tuple[str, ...] = ()
    bank_name: str | None = None
    account_title: str | None = None
    account_number: str | None = None
    account_iban: str | None = None
    swift_code: str | None = None
    bank_address: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "payment_type", PaymentType(self.payment_type))
        if self.payment_type is PaymentType.CRYPTO:
            network = _clean(self.network_chain)
            if network is None:
                raise ValueError("crypto destination requires a network_chain")
            object.__setattr__(self, "network_chain", network)
            object.__setattr__(
                self,
                "wallet_addresses",
                tuple(a.strip() for a in self.wallet_addresses if a and a.strip()),
            )
            if any(getattr(self, name) for name in _FIAT_FIELDS):
                raise ValueError("crypto destination cannot carry bank fields")
        else:
            if self.network_chain or self.wallet_addresses:
                raise ValueError("fiat destination cannot carry crypto fields")
            for name in _FIAT_FIELDS:
                object.__setattr__(self, name, _clean(getattr(self, name)))

    @classmethod
    def crypto(cls, network_chain: str, wallet_addresses=()) -> PaymentDestination:
        return cls(
            payment_type=PaymentType.CRYPTO,
            network_chain=network_chain,
            wallet_addresses=tuple(wallet_addresses),
        )

    @classmethod
    def fiat(cls, **bank_fields: str | None) -> PaymentDestination:
        unknown = set(bank_fields) - set(_FIAT_FIELDS)
        if unknown:
            raise ValueError(f"unknown bank fields: {sorted(unknown)}")
        return cls(payment_type=PaymentType.FIAT, **bank_fields)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"payment_type": self.payment_type.value}
        if self.payment_type is PaymentType.CRYPTO:
            data["network_chain"] = self.network_chain
            data["wallet_addresses"] = list(self.wallet_addresses)
        else:
            for name in _FIAT_FIELDS:
                data[name] = getattr(self, name)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PaymentDestination:
        payment_type = PaymentType(data["payment_type"])
        if payment_type is PaymentType.CRYPTO:
            return cls.crypto(
                data.get("network_chain") or "",
                data.get("wallet_addresses") or (),
            )
        return cls.fiat(**{name: data.get(name) for name in _FIAT_FIELDS})


@dataclass(frozen=True)
class Customer:
    id: UUID
    name: str
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class Beneficiary:
    """A payment destination owned by a customer (reusable) or an order."""
    id: UUID
    destination: PaymentDestination
    customer_id: UUID | None = None
    order_id: UUID | None = None
    created_at: datetime | None = field(default=None, compare=False)

    def __post_init__(self):
        if (self.customer_id is None) == (self.order_id is None):
            raise ValueError("beneficiary must belong to exactly one of customer or order")

    @property
    def payment_type(self) -> PaymentType:
        return self.destination.payment_type
