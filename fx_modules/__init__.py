"""
FX back-office modules.

Each module contains:
- Domain models (frozen dataclasses, the nouns)
- ORM models (SQLAlchemy persistence)
- Store (typed port plus the SQL reference adapter)
- Service (orchestration over the engines and the store)

Modules:
- accounts: house accounts, currencies, the currency rate resolver
- customers: customers and the reusable beneficiary directory
- orders: the order settlement workflow
- profit: profit calculations, groups, multipliers, exchange rates
"""
