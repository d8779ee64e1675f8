"""
Pytest fixtures for the FX back-office test suite.

Provides:
- In-memory SQLite sessions (fresh schema per test)
- Stores and services wired to a deterministic clock
- Seeded currencies (USDT, PKR, USD), a customer and house accounts
- JSON log capture
"""

import json
import logging
from collections.abc import Generator
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from fx_engines.conversion import AmountDeriver
from fx_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from fx_kernel.domain.clock import DeterministicClock
from fx_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from fx_modules.accounts.models import Currency
from fx_modules.accounts.store import SqlAccountStore
from fx_modules.customers.service import BeneficiaryDirectory
from fx_modules.customers.store import SqlCustomerStore
from fx_modules.orders.config import OrderConfig
from fx_modules.orders.service import OrderWorkflowEngine, build_amount_deriver
from fx_modules.orders.store import SqlOrderStore
from fx_modules.profit.service import ProfitCalculationService
from fx_modules.profit.store import SqlProfitStore
from fx_services.authority import StaticCapabilities


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture fx_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.add_receipt(...)
            logs = captured_logs()
            assert any(r["message"] == "receipt_added" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fx_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """A session on a fresh in-memory database."""
    init_engine_from_url("sqlite://")
    create_tables()
    s = get_session()
    yield s
    s.close()
    drop_tables()
    reset_engine()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 3, 1, 9, 0, 0, tzinfo=UTC))


# =============================================================================
# Stores
# =============================================================================


@pytest.fixture
def account_store(session) -> SqlAccountStore:
    return SqlAccountStore(session)


@pytest.fixture
def customer_store(session, clock) -> SqlCustomerStore:
    return SqlCustomerStore(session, clock)


@pytest.fixture
def order_store(session, clock, account_store) -> SqlOrderStore:
    return SqlOrderStore(
        session, clock, deriver=build_amount_deriver(account_store, OrderConfig()),
    )


@pytest.fixture
def profit_store(session, clock) -> SqlProfitStore:
    return SqlProfitStore(session, clock)


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def currencies(account_store) -> dict[str, Currency]:
    """USDT is the reference unit (rate 1); PKR trades at 285; USD at 1."""
    seeded = [
        Currency(code="USDT", name="Tether", conversion_rate_buy=Decimal("1")),
        Currency(code="PKR", name="Pakistani Rupee", conversion_rate_buy=Decimal("285")),
        Currency(code="USD", name="US Dollar", base_rate_buy=Decimal("1")),
    ]
    return {c.code: account_store.create_currency(c) for c in seeded}


@pytest.fixture
def customer(customer_store):
    return customer_store.create_customer("Ayesha Traders", email="ops@ayesha.example")


@pytest.fixture
def usdt_account(account_store, currencies):
    return account_store.create_account("USDT Hot Wallet", "USDT")


@pytest.fixture
def pkr_account(account_store, currencies):
    return account_store.create_account("PKR Bank", "PKR", Decimal("1000000"))


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def directory(customer_store) -> BeneficiaryDirectory:
    return BeneficiaryDirectory(customer_store)


@pytest.fixture
def deriver(account_store, currencies) -> AmountDeriver:
    return build_amount_deriver(account_store, OrderConfig())


@pytest.fixture
def authority() -> StaticCapabilities:
    return StaticCapabilities.allow_all()


@pytest.fixture
def engine(order_store, directory, deriver, authority) -> OrderWorkflowEngine:
    return OrderWorkflowEngine(order_store, directory, deriver, authority, OrderConfig())


@pytest.fixture
def profit_service(profit_store, account_store) -> ProfitCalculationService:
    return ProfitCalculationService(profit_store, account_store)
