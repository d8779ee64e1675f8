"""
Order Workflow Configuration (``fx_modules.orders.config``).

Responsibility
--------------
Settings the order workflow engine needs: the settlement tolerance, the
number of places derived amounts are rounded to, the default rate applied
when an order is created without one, and the reference currency used by the
base-currency heuristic.

Architecture position
---------------------
**Modules layer** -- configuration schema only.  Built from
``fx_config.get_active_config()`` via ``from_backoffice``; no component
reads config files directly.

Failure modes
-------------
* ``ValueError`` at construction if a numeric constraint is violated;
  ``CurrencyNotFoundError`` for a malformed reference currency.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from fx_config.schema import BackOfficeConfig
from fx_kernel.db.types import normalize_currency_code
from fx_kernel.logging_config import get_logger

logger = get_logger("modules.orders.config")


@dataclass
class OrderConfig:
    """
    Configuration schema for the order workflow.

        config = OrderConfig(settlement_tolerance=Decimal("0.01"))
    """

    settlement_tolerance: Decimal = Decimal("0")
    derived_amount_places: int = 8
    default_rate: Decimal = Decimal("1")
    reference_currency: str = "USDT"

    def __post_init__(self):
        if self.settlement_tolerance < 0:
            raise ValueError("settlement_tolerance cannot be negative")
        if self.derived_amount_places < 0:
            raise ValueError("derived_amount_places cannot be negative")
        if self.default_rate <= 0:
            raise ValueError("default_rate must be positive")
        self.reference_currency = normalize_currency_code(self.reference_currency)

        logger.info(
            "order_config_initialized",
            extra={
                "settlement_tolerance": str(self.settlement_tolerance),
                "derived_amount_places": self.derived_amount_places,
                "default_rate": str(self.default_rate),
                "reference_currency": self.reference_currency,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("order_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from a dictionary; Decimal fields accept strings."""
        logger.info(
            "order_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        for key in ("settlement_tolerance", "default_rate"):
            if key in data:
                data[key] = Decimal(str(data[key]))
        return cls(**data)

    @classmethod
    def from_backoffice(cls, config: BackOfficeConfig) -> Self:
        return cls(
            settlement_tolerance=config.settlement.tolerance,
            derived_amount_places=config.settlement.derived_amount_places,
            default_rate=config.settlement.default_rate,
            reference_currency=config.currency.reference_code,
        )
