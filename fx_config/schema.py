"""
Configuration Schema (``fx_config.schema``).

Responsibility
--------------
Frozen dataclasses describing the back-office configuration: settlement
arithmetic, currency heuristics, database connection, logging level and
the role -> action-permission map.

Architecture position
---------------------
**Config layer** -- pure data definitions, no I/O.  Parsed by
``fx_config.loader``; consumed through ``fx_config.get_active_config()``.

Invariants enforced
-------------------
* All dataclasses are ``frozen=True``.
* Decimal values are kept as ``Decimal``, never ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class SettlementSettings:
    """Settlement arithmetic.

    ``tolerance`` is the absolute slack the reference store allows when it
    decides whether receipts/payments cover the contracted amounts, and the
    slack the workflow engine allows when it compares its totals with the
    store's.
    """
    tolerance: Decimal = Decimal("0")
    derived_amount_places: int = 8
    default_rate: Decimal = Decimal("1")


@dataclass(frozen=True)
class CurrencySettings:
    reference_code: str = "USDT"


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite://"
    echo: bool = False


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class AuthoritySettings:
    """Role -> permitted action names (``cancelOrder``, ``deleteOrder``...)."""
    role_permissions: tuple[tuple[str, frozenset[str]], ...] = ()
    admin_role: str | None = "admin"

    def as_mapping(self) -> dict[str, frozenset[str]]:
        return dict(self.role_permissions)


@dataclass(frozen=True)
class BackOfficeConfig:
    """The complete, validated configuration."""
    settlement: SettlementSettings = field(default_factory=SettlementSettings)
    currency: CurrencySettings = field(default_factory=CurrencySettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    authority: AuthoritySettings = field(default_factory=AuthoritySettings)
    source: str = "<defaults>"
    checksum: str = ""
